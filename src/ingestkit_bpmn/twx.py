"""TWX (TeamWorks Export) archive support.

A TWX file is a ZIP archive whose XML members are named by a numeric
pattern prefix (``21.<guid>.xml`` is a coach view, ``25.<guid>.xml`` a
BPD, ...).  ``TWXArchive`` lists and categorises those members and opens
each one as a stream for the walker; nothing is unpacked to disk.
"""

from __future__ import annotations

import logging
import posixpath
import re
import zipfile
import zlib
from collections.abc import Iterable, Iterator
from typing import IO, NamedTuple

from ingestkit_bpmn.errors import BPMNIngestException, ErrorCode
from ingestkit_bpmn.models import (
    CloseEvent,
    OpenEvent,
    ParseEvent,
    TWXEntry,
    TWXEntryMetadata,
    TWXStatistics,
)
from ingestkit_bpmn.stats import local_name

logger = logging.getLogger("ingestkit_bpmn")


class TWXCategory(NamedTuple):
    type: str
    name: str
    priority: str


PATTERN_MAP: dict[str, TWXCategory] = {
    "1": TWXCategory("process-apps", "Process Applications", "HIGH"),
    "4": TWXCategory("toolkits", "Toolkits", "HIGH"),
    "21": TWXCategory("coach-views", "Coach Views", "HIGHEST"),
    "25": TWXCategory("processes", "Processes (BPD)", "MEDIUM"),
    "61": TWXCategory("human-services", "Human Services", "HIGH"),
    "64": TWXCategory("service-flows", "Service Flows", "HIGH"),
    "72": TWXCategory("business-objects", "Business Objects", "MEDIUM"),
}
OTHER_CATEGORY = TWXCategory("other", "Other", "LOW")

_PATTERN_PREFIX = re.compile(r"^(\d+)\.")
_OBJECTS_DIR = "objects"

# Failures confined to reading one member; the rest of the archive stays readable.
MEMBER_READ_ERRORS = (
    zipfile.BadZipFile,
    RuntimeError,
    NotImplementedError,
    zlib.error,
    EOFError,
)

_MB = 1024 * 1024


def extract_pattern(filename: str) -> str:
    """``"21.abc123.xml"`` -> ``"21"``; ``"unknown"`` when there is no prefix."""
    match = _PATTERN_PREFIX.match(posixpath.basename(filename))
    return match.group(1) if match else "unknown"


def categorize(pattern: str) -> TWXCategory:
    return PATTERN_MAP.get(pattern, OTHER_CATEGORY)


def size_bucket(size: int) -> str:
    if size > 1 * _MB:
        return "xlarge"
    if size > 0.5 * _MB:
        return "large"
    if size > 0.1 * _MB:
        return "medium"
    return "small"


def update_statistics(stats: TWXStatistics, entry: TWXEntry) -> None:
    stats.total_files += 1
    stats.by_pattern[entry.pattern] = stats.by_pattern.get(entry.pattern, 0) + 1
    stats.by_size[size_bucket(entry.size)] += 1
    if stats.largest_file is None or entry.size > stats.largest_file_size:
        stats.largest_file = entry.path
        stats.largest_file_size = entry.size


class MetadataProbe:
    """Pass-through observer that records the identity of a TWX artifact.

    The artifact is the root element, or the first child of a wrapper root
    such as ``<teamworks>``.  Observing costs nothing beyond the events the
    scan reads anyway.
    """

    def __init__(self, wrapper_tags: Iterable[str] = ("teamworks",)) -> None:
        self._wrapper_tags = frozenset(wrapper_tags)
        self._root: OpenEvent | None = None
        self._target: OpenEvent | None = None
        self._done = False

    def observe(self, events: Iterable[ParseEvent]) -> Iterator[ParseEvent]:
        for event in events:
            if not self._done:
                self._inspect(event)
            yield event

    def _inspect(self, event: ParseEvent) -> None:
        if isinstance(event, OpenEvent):
            if self._root is None:
                self._root = event
                if local_name(event.name) not in self._wrapper_tags:
                    self._done = True
                return
            self._target = event
            self._done = True
        elif isinstance(event, CloseEvent):
            self._done = True

    @property
    def metadata(self) -> TWXEntryMetadata:
        element = self._target or self._root
        if element is None:
            return TWXEntryMetadata()
        attrs = element.attributes
        return TWXEntryMetadata(
            type=local_name(element.name),
            id=attrs.get("id") or attrs.get("bpdid") or attrs.get("snapshotId"),
            name=attrs.get("name") or attrs.get("displayName"),
            description=attrs.get("description"),
            version=attrs.get("version"),
        )


class TWXArchive:
    """Read-only view over the XML members of a TWX archive.

    Raises ``BPMNIngestException`` (``E_TWX_CORRUPT``) when the file is not
    a readable ZIP archive.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        try:
            self._zip = zipfile.ZipFile(path)
        except (zipfile.BadZipFile, OSError) as exc:
            raise BPMNIngestException(
                code=ErrorCode.E_TWX_CORRUPT.value,
                message=f"Cannot open TWX archive {path}: {exc}",
                stage="twx",
            ) from exc

    def __enter__(self) -> TWXArchive:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def xml_members(self) -> list[zipfile.ZipInfo]:
        """XML members, restricted to ``objects/`` when the archive has one."""
        members = [
            info
            for info in self._zip.infolist()
            if not info.is_dir() and info.filename.lower().endswith(".xml")
        ]
        in_objects = [
            info for info in members if _OBJECTS_DIR in info.filename.split("/")[:-1]
        ]
        if in_objects:
            members = in_objects
        else:
            logger.info("ingestkit_bpmn | twx=%s | no objects/ directory, using archive root", self.path)
        return sorted(members, key=lambda info: info.filename)

    def open(self, info: zipfile.ZipInfo) -> IO[bytes]:
        return self._zip.open(info)

    @staticmethod
    def describe(info: zipfile.ZipInfo) -> TWXEntry:
        filename = posixpath.basename(info.filename)
        pattern = extract_pattern(filename)
        category = categorize(pattern)
        return TWXEntry(
            filename=filename,
            path=info.filename,
            pattern=pattern,
            category=category.type,
            category_name=category.name,
            priority=category.priority,
            size=info.file_size,
        )
