"""Filesystem artifact writer for extraction and analysis runs.

Layout under ``output_dir``::

    {type}/{id}.xml     -- standalone XML fragment of one component
    {type}/{id}.json    -- metadata sidecar {type, id, name, attributes}
    index.json          -- ComponentInventory for the run
    {stem}-analysis.*   -- analysis reports

Every component gets its own file pair, written exactly once per run.
Repeated ids get ``__2``, ``__3`` ... suffixes so nothing is overwritten.
The writer records every path it writes so a failed run can be rolled
back, and creates directories lazily so a run that writes nothing leaves
nothing behind.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from pathlib import Path

from pydantic import BaseModel

from ingestkit_bpmn.models import (
    ComponentInventory,
    ComponentMetadata,
    ExtractedComponent,
    InventoryEntry,
    WrittenArtifacts,
)

logger = logging.getLogger("ingestkit_bpmn")

INDEX_FILENAME = "index.json"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(value: str | None, default: str = "unnamed") -> str:
    """Make *value* usable as a single path component."""
    if not value:
        return default
    cleaned = _UNSAFE_CHARS.sub("_", value).strip("._")
    return cleaned or default


class ArtifactWriter:
    """Write run artifacts under *output_dir* and remember what was written."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)
        self.entries: list[InventoryEntry] = []
        self._written: list[Path] = []
        self._created_dirs: list[Path] = []
        self._used_stems: set[tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def write_component(self, component: ExtractedComponent) -> InventoryEntry:
        """Write the XML fragment and JSON sidecar of *component*."""
        type_dir_name = safe_name(component.type)
        stem = self._unique_stem(type_dir_name, safe_name(component.id))
        type_dir = self.output_dir / type_dir_name

        xml_path = type_dir / f"{stem}.xml"
        json_path = type_dir / f"{stem}.json"

        metadata = ComponentMetadata(
            type=component.type,
            id=component.id,
            name=component.name,
            attributes=component.attributes,
        )
        mark = len(self._written)
        try:
            self._write_text(xml_path, component.serialized_xml)
            self._write_text(json_path, _dump_json(metadata))
        except OSError:
            # Drop the fragment when its sidecar cannot be written.
            for path in self._written[mark:]:
                path.unlink(missing_ok=True)
            del self._written[mark:]
            raise

        entry = InventoryEntry(
            type=component.type,
            id=component.id,
            name=component.name,
            path=xml_path.relative_to(self.output_dir).as_posix(),
            metadata_path=json_path.relative_to(self.output_dir).as_posix(),
        )
        self.entries.append(entry)
        logger.info("ingestkit_bpmn | extracted=%s/%s", component.type, component.name or component.id)
        return entry

    def duplicate_ids(self) -> dict[str, int]:
        counts = Counter(e.id for e in self.entries if e.id is not None)
        return {k: v for k, v in sorted(counts.items()) if v > 1}

    def _unique_stem(self, type_dir_name: str, stem: str) -> str:
        candidate = stem
        suffix = 1
        while (type_dir_name, candidate.lower()) in self._used_stems:
            suffix += 1
            candidate = f"{stem}__{suffix}"
        self._used_stems.add((type_dir_name, candidate.lower()))
        return candidate

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def write_index(self, inventory: ComponentInventory) -> Path:
        path = self.output_dir / INDEX_FILENAME
        self._write_text(path, _dump_json(inventory))
        return path

    def write_model(self, filename: str, model: BaseModel) -> Path:
        path = self.output_dir / filename
        self._write_text(path, _dump_json(model))
        return path

    def write_text(self, filename: str, content: str) -> Path:
        path = self.output_dir / filename
        self._write_text(path, content)
        return path

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def artifacts(self) -> WrittenArtifacts:
        return WrittenArtifacts(
            paths=[p.as_posix() for p in self._written],
            output_dir=self.output_dir.as_posix(),
        )

    def checkpoint(self) -> tuple[int, int]:
        """Return a marker for ``rollback(since=...)``."""
        return len(self._written), len(self.entries)

    def rollback(self, since: tuple[int, int] = (0, 0)) -> None:
        """Delete every file written after *since* (default: all of them)."""
        written_mark, entries_mark = since
        for path in reversed(self._written[written_mark:]):
            path.unlink(missing_ok=True)
        del self._written[written_mark:]
        del self.entries[entries_mark:]

        if written_mark == 0:
            for directory in reversed(self._created_dirs):
                try:
                    directory.rmdir()
                except OSError:
                    pass
            self._created_dirs.clear()
            self._used_stems.clear()
        logger.info("ingestkit_bpmn | rollback | output_dir=%s", self.output_dir)

    def _ensure_dir(self, directory: Path) -> None:
        missing: list[Path] = []
        current = directory
        while not current.exists():
            missing.append(current)
            if current.parent == current:
                break
            current = current.parent
        directory.mkdir(parents=True, exist_ok=True)
        self._created_dirs.extend(reversed(missing))

    def _write_text(self, path: Path, content: str) -> None:
        self._ensure_dir(path.parent)
        self._written.append(path)
        with open(path, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(content)


def _dump_json(model: BaseModel) -> str:
    return json.dumps(model.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"
