"""BPMNRouter -- orchestrator and public API for the ingestkit-bpmn pipeline.

Routes BPMN XML files and TWX archives through the pipeline:

1. Resolve the requested component category (extraction only).
2. Pre-flight scan via :class:`BPMNSecurityScanner`.
3. Compute the deterministic :class:`IngestKey` of the source.
4. Stream the document through :class:`StreamingWalker` into an
   :class:`ExtractionEngine` (one engine per document).
5. Write components, index, and reports via :class:`ArtifactWriter`.
6. Assemble and return the result model.

The router enforces **fail-closed** semantics: any fatal error returns a
result with error codes and no artifacts (files already written in the run
are rolled back).  Per-component failures are reported as warnings and do
not fail the run.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
from pathlib import Path

from ingestkit_bpmn.capture import build_predicate
from ingestkit_bpmn.config import BPMNProcessorConfig
from ingestkit_bpmn.engine import ExtractionEngine
from ingestkit_bpmn.errors import BPMNIngestException, ErrorCode, IngestError
from ingestkit_bpmn.idempotency import compute_ingest_key
from ingestkit_bpmn.models import (
    AnalysisResult,
    ComponentInventory,
    ExtractionResult,
    TWXAnalysisResult,
    TWXInventory,
)
from ingestkit_bpmn.report import render_analysis_markdown, render_twx_markdown
from ingestkit_bpmn.security import TWX_EXTENSIONS, XML_EXTENSIONS, BPMNSecurityScanner
from ingestkit_bpmn.twx import (
    MEMBER_READ_ERRORS,
    MetadataProbe,
    TWXArchive,
    update_statistics,
)
from ingestkit_bpmn.walker import StreamingWalker
from ingestkit_bpmn.writer import ArtifactWriter

logger = logging.getLogger("ingestkit_bpmn")

TWX_INVENTORY_STEM = "twx-inventory"


def _log_fatal(filename: str, error: IngestError) -> None:
    logger.error(
        "ingestkit_bpmn | file=%s | code=%s | detail=%s",
        filename,
        error.code,
        error.message,
    )


def _split(errors: list[IngestError]) -> tuple[list[IngestError], list[IngestError]]:
    fatal = [e for e in errors if e.code.startswith("E_")]
    warnings = [e for e in errors if not e.code.startswith("E_")]
    return fatal, warnings


class BPMNRouter:
    """Top-level orchestrator for the ingestkit-bpmn pipeline.

    Parameters
    ----------
    config:
        Pipeline configuration.  Uses defaults when *None*.
    """

    def __init__(self, config: BPMNProcessorConfig | None = None) -> None:
        self._config = config or BPMNProcessorConfig()
        self._security_scanner = BPMNSecurityScanner(self._config)
        self._walker = StreamingWalker.from_config(self._config)

    @property
    def config(self) -> BPMNProcessorConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def can_handle(self, file_path: str) -> bool:
        """Return True for ``.xml``, ``.bpmn`` and ``.twx`` files (case-insensitive)."""
        return file_path.lower().endswith(XML_EXTENSIONS + (".twx",))

    def analyze(self, file_path: str, output_dir: str | None = None) -> AnalysisResult:
        """Stream *file_path* once and write its analysis report.

        Reports go to ``<stem>-analysis.json`` (and ``.md``) in *output_dir*,
        defaulting to the source file's directory.
        """
        start = time.monotonic()
        config = self._config
        filename = os.path.basename(file_path)
        run_id = str(uuid.uuid4())

        # Step 1: Pre-flight
        preflight = self._security_scanner.scan(file_path, XML_EXTENSIONS)
        fatal, warnings = _split(preflight)
        if fatal:
            _log_fatal(filename, fatal[0])
            return AnalysisResult(
                file_path=file_path,
                ingest_key="",
                ingest_run_id=run_id,
                errors=[e.code for e in fatal],
                warnings=[e.code for e in warnings],
                error_details=preflight,
                processing_time_seconds=time.monotonic() - start,
            )

        # Step 2: Ingest key
        ingest_key = compute_ingest_key(file_path, config.parser_version).key

        # Step 3: Scan
        engine = ExtractionEngine(config, source_path=file_path)
        try:
            scan = engine.scan(self._walker.walk(file_path))
        except BPMNIngestException as exc:
            _log_fatal(filename, exc.error)
            return AnalysisResult(
                file_path=file_path,
                ingest_key=ingest_key,
                ingest_run_id=run_id,
                errors=[exc.code],
                warnings=[e.code for e in warnings],
                error_details=warnings + [exc.error],
                processing_time_seconds=time.monotonic() - start,
            )

        # Step 4: Reports
        out_dir = Path(output_dir) if output_dir else Path(file_path).parent
        writer = ArtifactWriter(out_dir)
        stem = Path(file_path).stem
        details = warnings + scan.error_details
        report = scan.report.model_copy(update={"errors": details})
        try:
            writer.write_model(f"{stem}-analysis.json", report)
            if config.write_markdown_report:
                writer.write_text(
                    f"{stem}-analysis.md",
                    render_analysis_markdown(report, filename),
                )
        except OSError as exc:
            writer.rollback()
            err = IngestError(
                code=ErrorCode.E_OUTPUT_WRITE_FAILED.value,
                message=f"Failed to write analysis report: {exc}",
                stage="output",
            )
            _log_fatal(filename, err)
            return AnalysisResult(
                file_path=file_path,
                ingest_key=ingest_key,
                ingest_run_id=run_id,
                report=report,
                errors=[err.code],
                warnings=[e.code for e in warnings],
                error_details=warnings + [err],
                processing_time_seconds=time.monotonic() - start,
            )

        elapsed = time.monotonic() - start
        logger.info(
            "ingestkit_bpmn | file=%s | ingest_key=%s | elements=%d | depth=%d | "
            "bindings=%d | score=%g | tier=%s | time=%.1fs",
            filename,
            ingest_key[:8],
            report.summary.total_elements,
            report.summary.max_nesting_depth,
            report.summary.unique_data_bindings,
            report.complexity.score,
            report.complexity.tier.value,
            elapsed,
        )
        return AnalysisResult(
            file_path=file_path,
            ingest_key=ingest_key,
            ingest_run_id=run_id,
            report=report,
            written=writer.artifacts(),
            warnings=[e.code for e in details],
            error_details=details,
            processing_time_seconds=elapsed,
        )

    def extract(
        self,
        file_path: str,
        category: str,
        component_id: str | None = None,
        output_dir: str | None = None,
    ) -> ExtractionResult:
        """Extract every component of *category* (optionally only *component_id*).

        Components and ``index.json`` go to *output_dir*, defaulting to
        ``<source dir>/extracted/<source stem>``.
        """
        start = time.monotonic()
        config = self._config
        filename = os.path.basename(file_path)
        run_id = str(uuid.uuid4())

        def failed(errors: list[IngestError], ingest_key: str = "") -> ExtractionResult:
            fatal, warnings = _split(errors)
            _log_fatal(filename, fatal[0])
            return ExtractionResult(
                file_path=file_path,
                ingest_key=ingest_key,
                ingest_run_id=run_id,
                category=category,
                component_id=component_id,
                errors=[e.code for e in fatal],
                warnings=[e.code for e in warnings],
                error_details=errors,
                processing_time_seconds=time.monotonic() - start,
            )

        # Step 1: Category
        try:
            tag_names = config.resolve_category(category)
        except KeyError:
            return failed([self._unknown_category(category)])

        # Step 2: Pre-flight
        preflight = self._security_scanner.scan(file_path, XML_EXTENSIONS)
        fatal, warnings = _split(preflight)
        if fatal:
            return failed(preflight)

        # Step 3: Ingest key
        ingest_key = compute_ingest_key(file_path, config.parser_version).key

        # Step 4: Scan + write components as they complete
        out_dir = (
            Path(output_dir)
            if output_dir
            else Path(file_path).parent / "extracted" / Path(file_path).stem
        )
        writer = ArtifactWriter(out_dir)
        engine = ExtractionEngine(
            config,
            predicate=build_predicate(tag_names, component_id, config.match_local_names),
            on_component=writer.write_component,
            source_path=file_path,
        )
        try:
            scan = engine.scan(self._walker.walk(file_path))
        except BPMNIngestException as exc:
            if config.rollback_on_fatal:
                writer.rollback()
            return failed(warnings + [exc.error], ingest_key)

        # Step 5: Index
        details = warnings + scan.error_details
        inventory = ComponentInventory(
            source_path=file_path,
            source_key=ingest_key,
            category=category,
            component_id=component_id,
            total_components=len(writer.entries),
            components=list(writer.entries),
            duplicate_ids=writer.duplicate_ids(),
            errors=scan.error_details,
        )
        try:
            writer.write_index(inventory)
        except OSError as exc:
            writer.rollback()
            return failed(
                details
                + [
                    IngestError(
                        code=ErrorCode.E_OUTPUT_WRITE_FAILED.value,
                        message=f"Failed to write index: {exc}",
                        stage="output",
                    )
                ],
                ingest_key,
            )

        return self._extraction_success(
            file_path, ingest_key, run_id, category, component_id,
            inventory, writer, details, start,
        )

    def analyze_twx(self, file_path: str, output_dir: str | None = None) -> TWXAnalysisResult:
        """Categorise and analyse every XML member of a TWX archive.

        Writes ``twx-inventory.json`` (and ``.md``) to *output_dir*,
        defaulting to ``<source dir>/twx-extracted/<source stem>``.  A
        malformed member is reported and skipped; the other members still
        run.
        """
        start = time.monotonic()
        config = self._config
        filename = os.path.basename(file_path)
        run_id = str(uuid.uuid4())

        def failed(errors: list[IngestError], ingest_key: str = "") -> TWXAnalysisResult:
            fatal, warnings = _split(errors)
            _log_fatal(filename, fatal[0])
            return TWXAnalysisResult(
                file_path=file_path,
                ingest_key=ingest_key,
                ingest_run_id=run_id,
                errors=[e.code for e in fatal],
                warnings=[e.code for e in warnings],
                error_details=errors,
                processing_time_seconds=time.monotonic() - start,
            )

        preflight = self._security_scanner.scan(file_path, TWX_EXTENSIONS)
        fatal, warnings = _split(preflight)
        if fatal:
            return failed(preflight)

        ingest_key = compute_ingest_key(file_path, config.parser_version).key

        try:
            archive = TWXArchive(file_path)
        except BPMNIngestException as exc:
            return failed(warnings + [exc.error], ingest_key)

        inventory = TWXInventory(source_path=file_path, source_key=ingest_key)
        with archive:
            for info in archive.xml_members():
                entry = archive.describe(info)
                probe = MetadataProbe(config.twx_wrapper_tags)
                engine = ExtractionEngine(config, source_path=f"{file_path}!{info.filename}")
                try:
                    with archive.open(info) as stream:
                        scan = engine.scan(probe.observe(self._walker.walk(stream)))
                except (BPMNIngestException, *MEMBER_READ_ERRORS) as exc:
                    inventory.errors.append(self._entry_failure(info.filename, exc))
                else:
                    entry.summary = scan.report.summary
                    entry.complexity = scan.report.complexity
                    entry.data_bindings = scan.report.data_bindings
                    inventory.errors.extend(scan.error_details)
                entry.metadata = probe.metadata

                update_statistics(inventory.statistics, entry)
                inventory.categories.setdefault(entry.category, []).append(entry)
                logger.debug(
                    "ingestkit_bpmn | twx_entry=%s | pattern=%s | category=%s",
                    entry.filename,
                    entry.pattern,
                    entry.category,
                )

        out_dir = (
            Path(output_dir)
            if output_dir
            else Path(file_path).parent / "twx-extracted" / Path(file_path).stem
        )
        writer = ArtifactWriter(out_dir)
        try:
            writer.write_model(f"{TWX_INVENTORY_STEM}.json", inventory)
            if config.write_markdown_report:
                writer.write_text(f"{TWX_INVENTORY_STEM}.md", render_twx_markdown(inventory))
        except OSError as exc:
            writer.rollback()
            return failed(
                warnings
                + [
                    IngestError(
                        code=ErrorCode.E_OUTPUT_WRITE_FAILED.value,
                        message=f"Failed to write TWX inventory: {exc}",
                        stage="output",
                    )
                ],
                ingest_key,
            )

        details = warnings + inventory.errors
        elapsed = time.monotonic() - start
        logger.info(
            "ingestkit_bpmn | file=%s | ingest_key=%s | twx_files=%d | failed=%d | time=%.1fs",
            filename,
            ingest_key[:8],
            inventory.statistics.total_files,
            len(inventory.errors),
            elapsed,
        )
        return TWXAnalysisResult(
            file_path=file_path,
            ingest_key=ingest_key,
            ingest_run_id=run_id,
            inventory=inventory,
            written=writer.artifacts(),
            warnings=[e.code for e in details],
            error_details=details,
            processing_time_seconds=elapsed,
        )

    def extract_twx(
        self,
        file_path: str,
        category: str,
        component_id: str | None = None,
        output_dir: str | None = None,
    ) -> ExtractionResult:
        """Run component extraction over every XML member of a TWX archive.

        All members share one output directory and one ``index.json``.
        Components written from a member that later turns out malformed
        are rolled back and the member is reported as failed.
        """
        start = time.monotonic()
        config = self._config
        filename = os.path.basename(file_path)
        run_id = str(uuid.uuid4())

        def failed(errors: list[IngestError], ingest_key: str = "") -> ExtractionResult:
            fatal, warnings = _split(errors)
            _log_fatal(filename, fatal[0])
            return ExtractionResult(
                file_path=file_path,
                ingest_key=ingest_key,
                ingest_run_id=run_id,
                category=category,
                component_id=component_id,
                errors=[e.code for e in fatal],
                warnings=[e.code for e in warnings],
                error_details=errors,
                processing_time_seconds=time.monotonic() - start,
            )

        try:
            tag_names = config.resolve_category(category)
        except KeyError:
            return failed([self._unknown_category(category)])

        preflight = self._security_scanner.scan(file_path, TWX_EXTENSIONS)
        fatal, warnings = _split(preflight)
        if fatal:
            return failed(preflight)

        ingest_key = compute_ingest_key(file_path, config.parser_version).key

        try:
            archive = TWXArchive(file_path)
        except BPMNIngestException as exc:
            return failed(warnings + [exc.error], ingest_key)

        out_dir = (
            Path(output_dir)
            if output_dir
            else Path(file_path).parent / "extracted" / Path(file_path).stem
        )
        writer = ArtifactWriter(out_dir)
        predicate = build_predicate(tag_names, component_id, config.match_local_names)
        item_errors: list[IngestError] = []

        with archive:
            for info in archive.xml_members():
                mark = writer.checkpoint()
                engine = ExtractionEngine(
                    config,
                    predicate=predicate,
                    on_component=writer.write_component,
                    source_path=f"{file_path}!{info.filename}",
                )
                try:
                    with archive.open(info) as stream:
                        scan = engine.scan(self._walker.walk(stream))
                except (BPMNIngestException, *MEMBER_READ_ERRORS) as exc:
                    writer.rollback(mark)
                    item_errors.append(self._entry_failure(info.filename, exc))
                    continue
                item_errors.extend(scan.error_details)

        details = warnings + item_errors
        inventory = ComponentInventory(
            source_path=file_path,
            source_key=ingest_key,
            category=category,
            component_id=component_id,
            total_components=len(writer.entries),
            components=list(writer.entries),
            duplicate_ids=writer.duplicate_ids(),
            errors=item_errors,
        )
        try:
            writer.write_index(inventory)
        except OSError as exc:
            writer.rollback()
            return failed(
                details
                + [
                    IngestError(
                        code=ErrorCode.E_OUTPUT_WRITE_FAILED.value,
                        message=f"Failed to write index: {exc}",
                        stage="output",
                    )
                ],
                ingest_key,
            )

        return self._extraction_success(
            file_path, ingest_key, run_id, category, component_id,
            inventory, writer, details, start,
        )

    async def aanalyze(self, file_path: str, output_dir: str | None = None) -> AnalysisResult:
        """Async wrapper around :meth:`analyze` via ``asyncio.to_thread()``."""
        return await asyncio.to_thread(self.analyze, file_path, output_dir)

    async def aextract(
        self,
        file_path: str,
        category: str,
        component_id: str | None = None,
        output_dir: str | None = None,
    ) -> ExtractionResult:
        """Async wrapper around :meth:`extract` via ``asyncio.to_thread()``."""
        return await asyncio.to_thread(
            self.extract, file_path, category, component_id, output_dir
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _unknown_category(self, category: str) -> IngestError:
        known = ", ".join(sorted(self._config.categories))
        return IngestError(
            code=ErrorCode.E_CONFIG_UNKNOWN_CATEGORY.value,
            message=f"Unknown component category '{category}' (known: {known})",
            stage="config",
        )

    @staticmethod
    def _entry_failure(entry_name: str, exc: Exception) -> IngestError:
        if isinstance(exc, BPMNIngestException):
            error = exc.error
            return IngestError(
                code=ErrorCode.W_TWX_ENTRY_FAILED.value,
                message=f"{entry_name}: [{error.code}] {error.message}",
                stage="twx",
                recoverable=True,
                line=error.line,
                column=error.column,
                byte_offset=error.byte_offset,
                xpath=error.xpath,
            )
        return IngestError(
            code=ErrorCode.W_TWX_ENTRY_FAILED.value,
            message=f"{entry_name}: {exc}",
            stage="twx",
            recoverable=True,
        )

    @staticmethod
    def _extraction_success(
        file_path: str,
        ingest_key: str,
        run_id: str,
        category: str,
        component_id: str | None,
        inventory: ComponentInventory,
        writer: ArtifactWriter,
        details: list[IngestError],
        start: float,
    ) -> ExtractionResult:
        elapsed = time.monotonic() - start
        logger.info(
            "ingestkit_bpmn | file=%s | ingest_key=%s | category=%s | id=%s | "
            "components=%d | item_errors=%d | time=%.1fs",
            os.path.basename(file_path),
            ingest_key[:8],
            category,
            component_id,
            inventory.total_components,
            len(inventory.errors),
            elapsed,
        )
        return ExtractionResult(
            file_path=file_path,
            ingest_key=ingest_key,
            ingest_run_id=run_id,
            category=category,
            component_id=component_id,
            inventory=inventory,
            components_extracted=inventory.total_components,
            written=writer.artifacts(),
            warnings=[e.code for e in details],
            error_details=details,
            processing_time_seconds=elapsed,
        )
