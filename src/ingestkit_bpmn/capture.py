"""Subtree capture: selection predicates, capture sessions, serialization.

A ``CaptureSession`` records the events of exactly one matched element
and its descendants.  ``serialize_fragment()`` turns those events back
into a standalone, well-formed XML document.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence

from ingestkit_bpmn.models import (
    CloseEvent,
    ComponentMetadata,
    OpenEvent,
    ParseEvent,
    TextEvent,
)
from ingestkit_bpmn.stats import local_name

XML_PROLOGUE = '<?xml version="1.0" encoding="UTF-8"?>'

CapturePredicate = Callable[[str, Mapping[str, str], int], bool]

_TEXT_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)

# Literal whitespace in attribute values would be normalised to spaces on re-parse.
_ATTRIBUTE_ESCAPES = _TEXT_ESCAPES + (
    ("\n", "&#10;"),
    ("\r", "&#13;"),
    ("\t", "&#9;"),
)


class CaptureMismatch(Exception):
    """Internal signal that a close tag does not match the buffered open tag."""


def escape_xml(value: str) -> str:
    """Escape ``& < > " '`` for use in XML text."""
    for raw, escaped in _TEXT_ESCAPES:
        value = value.replace(raw, escaped)
    return value


def escape_attribute(value: str) -> str:
    """Escape an attribute value, including literal tabs and line breaks."""
    for raw, escaped in _ATTRIBUTE_ESCAPES:
        value = value.replace(raw, escaped)
    return value


def build_predicate(
    tag_names: Iterable[str],
    component_id: str | None = None,
    match_local_names: bool = True,
) -> CapturePredicate:
    """Return a predicate selecting elements named in *tag_names*.

    When *component_id* is given the element's ``id`` attribute must also
    equal it.  With *match_local_names* a ``prefix:`` on the document's
    tag is ignored.
    """
    targets = frozenset(tag_names)

    def predicate(name: str, attributes: Mapping[str, str], depth: int) -> bool:
        if name not in targets:
            if not match_local_names or local_name(name) not in targets:
                return False
        if component_id is not None and attributes.get("id") != component_id:
            return False
        return True

    return predicate


def metadata_for(event: OpenEvent, match_local_names: bool = True) -> ComponentMetadata:
    component_id = event.attributes.get("id")
    return ComponentMetadata(
        type=local_name(event.name) if match_local_names else event.name,
        id=component_id,
        name=event.attributes.get("name") or component_id,
        attributes=dict(event.attributes),
    )


def _event_size(event: ParseEvent) -> int:
    if isinstance(event, OpenEvent):
        return len(event.name) + sum(len(k) + len(v) for k, v in event.attributes.items())
    if isinstance(event, TextEvent):
        return len(event.value)
    return len(event.name)


class CaptureSession:
    """An in-progress recording of one element subtree.

    ``start_depth`` is the nesting depth before the matched Open event; the
    session is complete when a Close event brings the depth back to it.
    ``namespaces`` holds the ``xmlns`` declarations in scope at the matched
    element, so the fragment can be written as a standalone document.
    """

    def __init__(
        self,
        start_depth: int,
        metadata: ComponentMetadata,
        namespaces: Mapping[str, str] | None = None,
    ) -> None:
        self.start_depth = start_depth
        self.metadata = metadata
        self.namespaces = dict(namespaces or {})
        self.buffered_events: list[ParseEvent] = []
        self.buffered_chars = 0
        self._open_names: list[str] = []

    def append(self, event: ParseEvent) -> None:
        """Buffer *event*.  Raises ``CaptureMismatch`` on a mismatched close."""
        if isinstance(event, OpenEvent):
            self._open_names.append(event.name)
        elif isinstance(event, CloseEvent):
            if not self._open_names or self._open_names[-1] != event.name:
                expected = self._open_names[-1] if self._open_names else None
                raise CaptureMismatch(
                    f"Close tag '{event.name}' does not match open tag '{expected}'"
                )
            self._open_names.pop()
        self.buffered_events.append(event)
        self.buffered_chars += _event_size(event)

    def serialize(self, indent: str = "  ") -> str:
        return serialize_fragment(
            self.buffered_events, indent=indent, root_namespaces=self.namespaces
        )


def serialize_fragment(
    events: Sequence[ParseEvent],
    indent: str = "  ",
    root_namespaces: Mapping[str, str] | None = None,
) -> str:
    """Re-emit buffered events as a standalone XML document.

    One element per line, indented by nesting level.  Text is trimmed and
    written on its own line; elements without content are self-closing.
    Declarations in *root_namespaces* that the first element does not
    declare itself are appended to its attributes.
    """
    lines = [XML_PROLOGUE]
    level = 0
    i = 0
    count = len(events)
    inherited = dict(root_namespaces or {})

    while i < count:
        event = events[i]
        if isinstance(event, OpenEvent):
            attributes = event.attributes
            if inherited:
                attributes = dict(attributes)
                for key, value in inherited.items():
                    attributes.setdefault(key, value)
                inherited = {}
            attrs = "".join(
                f' {key}="{escape_attribute(value)}"'
                for key, value in attributes.items()
            )
            following = events[i + 1] if i + 1 < count else None
            if isinstance(following, CloseEvent) and following.name == event.name:
                lines.append(f"{indent * level}<{event.name}{attrs}/>")
                i += 2
                continue
            lines.append(f"{indent * level}<{event.name}{attrs}>")
            level += 1
        elif isinstance(event, TextEvent):
            value = event.value.strip()
            if value:
                lines.append(f"{indent * level}{escape_xml(value)}")
        else:
            level -= 1
            lines.append(f"{indent * level}</{event.name}>")
        i += 1

    return "\n".join(lines) + "\n"
