"""Scan-scoped statistics: depth, element counts, bindings, catalog.

``WalkerState`` is owned by exactly one ``ExtractionEngine`` for one
document scan.  It is updated on every parse event regardless of capture
state and is turned into an immutable ``AnalysisReport`` at end of scan.
"""

from __future__ import annotations

from collections import Counter

from ingestkit_bpmn.bindings import ReferenceMatcher, extract_references
from ingestkit_bpmn.config import ComplexityPolicy
from ingestkit_bpmn.errors import IngestError
from ingestkit_bpmn.complexity import compute_complexity
from ingestkit_bpmn.models import (
    AnalysisReport,
    AnalysisSummary,
    CatalogEntry,
    ComplexityFactors,
)

COACH_VIEW_TAGS = frozenset({"coachView"})
HUMAN_SERVICE_TAGS = frozenset({"humanService", "service"})
BPD_PROCESS_TAGS = frozenset({"process", "bpdProcess"})
SERVICE_TASK_TAGS = frozenset({"serviceTask", "scriptTask"})

_COACH_TYPE_MARKER = "coach"


def local_name(name: str) -> str:
    """Strip a ``prefix:`` from a qualified tag or attribute name."""
    return name.rsplit(":", 1)[-1]


class WalkerState:
    """Running counters for one document scan.

    Parameters
    ----------
    matchers:
        Reference matchers applied to attribute values.
    match_local_names:
        Compare catalog tags by local name instead of qualified name.
    scan_text_for_bindings:
        Also apply the matchers to text events.
    """

    def __init__(
        self,
        matchers: tuple[ReferenceMatcher, ...],
        match_local_names: bool = True,
        scan_text_for_bindings: bool = False,
    ) -> None:
        self.current_depth = 0
        self.max_depth_seen = 0
        self.element_count = 0
        self.element_type_counts: Counter[str] = Counter()
        self.data_bindings_seen: set[str] = set()
        self.path: list[str] = []
        # (depth, declarations) for each open element that declares namespaces
        self._namespace_scopes: list[tuple[int, dict[str, str]]] = []

        self.coach_views: list[CatalogEntry] = []
        self.human_services: list[CatalogEntry] = []
        self.bpd_processes: list[CatalogEntry] = []
        self.service_tasks: list[CatalogEntry] = []
        self._catalog_ids: Counter[str] = Counter()

        self._matchers = matchers
        self._match_local_names = match_local_names
        self._scan_text = scan_text_for_bindings

    # ------------------------------------------------------------------
    # Event hooks
    # ------------------------------------------------------------------

    def on_open(self, name: str, attributes: dict[str, str]) -> None:
        self.current_depth += 1
        if self.current_depth > self.max_depth_seen:
            self.max_depth_seen = self.current_depth
        self.element_count += 1
        self.element_type_counts[name] += 1
        self.path.append(name)

        declarations = {
            k: v for k, v in attributes.items() if k == "xmlns" or k.startswith("xmlns:")
        }
        if declarations:
            self._namespace_scopes.append((self.current_depth, declarations))

        for value in attributes.values():
            self.data_bindings_seen.update(extract_references(value, self._matchers))

        self._catalog(name, attributes)

    def on_text(self, value: str) -> None:
        if self._scan_text:
            self.data_bindings_seen.update(extract_references(value, self._matchers))

    def on_close(self) -> None:
        if self._namespace_scopes and self._namespace_scopes[-1][0] == self.current_depth:
            self._namespace_scopes.pop()
        self.current_depth -= 1
        if self.path:
            self.path.pop()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def _catalog(self, name: str, attributes: dict[str, str]) -> None:
        tag = local_name(name) if self._match_local_names else name
        type_attr = attributes.get("type") or ""

        if tag in COACH_VIEW_TAGS or _COACH_TYPE_MARKER in type_attr:
            self._record(self.coach_views, name, attributes)
        if tag in HUMAN_SERVICE_TAGS:
            self._record(self.human_services, name, attributes)
        if tag in BPD_PROCESS_TAGS:
            self._record(self.bpd_processes, name, attributes)
        if tag in SERVICE_TASK_TAGS:
            self._record(self.service_tasks, name, attributes)

    def _record(
        self,
        bucket: list[CatalogEntry],
        name: str,
        attributes: dict[str, str],
    ) -> None:
        entry_id = attributes.get("id")
        bucket.append(
            CatalogEntry(
                tag=name,
                id=entry_id,
                name=attributes.get("name"),
                type=attributes.get("type"),
                implementation=attributes.get("implementation"),
                is_executable=attributes.get("isExecutable"),
                nesting_level=self.current_depth,
                path=list(self.path),
                attributes=dict(attributes),
            )
        )
        if entry_id is not None:
            self._catalog_ids[entry_id] += 1

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def xpath(self) -> str:
        return "/" + "/".join(self.path)

    def namespaces_in_scope(self) -> dict[str, str]:
        """Namespace declarations visible at the current element, inner ones winning."""
        merged: dict[str, str] = {}
        for _depth, declarations in self._namespace_scopes:
            merged.update(declarations)
        return merged

    def duplicate_ids(self) -> dict[str, int]:
        return {k: v for k, v in sorted(self._catalog_ids.items()) if v > 1}

    def complexity_factors(self) -> ComplexityFactors:
        return ComplexityFactors(
            component_count=len(self.coach_views) + len(self.human_services),
            max_depth=self.max_depth_seen,
            binding_count=len(self.data_bindings_seen),
            task_count=len(self.service_tasks),
        )

    def snapshot(
        self,
        policy: ComplexityPolicy,
        source_path: str = "",
        truncated: bool = False,
        errors: list[IngestError] | None = None,
    ) -> AnalysisReport:
        """Freeze the current counters into an ``AnalysisReport``."""
        summary = AnalysisSummary(
            total_coach_views=len(self.coach_views),
            total_human_services=len(self.human_services),
            total_bpd_processes=len(self.bpd_processes),
            total_service_tasks=len(self.service_tasks),
            unique_data_bindings=len(self.data_bindings_seen),
            max_nesting_depth=self.max_depth_seen,
            total_elements=self.element_count,
            element_type_counts=dict(sorted(self.element_type_counts.items())),
        )
        return AnalysisReport(
            source_path=source_path,
            summary=summary,
            coach_views=list(self.coach_views),
            human_services=list(self.human_services),
            bpd_processes=list(self.bpd_processes),
            service_tasks=list(self.service_tasks),
            data_bindings=sorted(self.data_bindings_seen),
            duplicate_ids=self.duplicate_ids(),
            complexity=compute_complexity(self.complexity_factors(), policy),
            truncated=truncated,
            errors=list(errors or []),
        )
