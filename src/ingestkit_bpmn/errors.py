"""Error codes and structured error model for the ingestkit-bpmn package.

``ErrorCode`` contains all error/warning codes relevant to BPMN ingestion.
``IngestError`` is the Pydantic data model carried in results;
``BPMNIngestException`` wraps it so it can be used with ``raise``/``except``.
``SourceUnavailable`` and ``MalformedDocument`` are the two fatal scan
failures callers usually want to catch by type.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes for BPMN ingestion.

    Values equal their names so they are stable strings suitable for
    metrics and alerting.  ``E_`` prefix = fatal, ``W_`` prefix = warning.
    """

    # Source
    E_SOURCE_UNAVAILABLE = "E_SOURCE_UNAVAILABLE"
    E_SOURCE_BAD_EXTENSION = "E_SOURCE_BAD_EXTENSION"

    # Security
    E_SECURITY_TOO_LARGE = "E_SECURITY_TOO_LARGE"
    E_SECURITY_ENTITY_DECLARATION = "E_SECURITY_ENTITY_DECLARATION"
    E_SECURITY_DEPTH_BOMB = "E_SECURITY_DEPTH_BOMB"

    # Parse
    E_PARSE_EMPTY = "E_PARSE_EMPTY"
    E_PARSE_MALFORMED = "E_PARSE_MALFORMED"

    # Archive
    E_TWX_CORRUPT = "E_TWX_CORRUPT"

    # Configuration / output
    E_CONFIG_UNKNOWN_CATEGORY = "E_CONFIG_UNKNOWN_CATEGORY"
    E_OUTPUT_WRITE_FAILED = "E_OUTPUT_WRITE_FAILED"

    # Warnings (non-fatal, per item)
    W_LARGE_FILE = "W_LARGE_FILE"
    W_ELEMENT_LIMIT = "W_ELEMENT_LIMIT"
    W_CAPTURE_TRUNCATED = "W_CAPTURE_TRUNCATED"
    W_CAPTURE_MALFORMED = "W_CAPTURE_MALFORMED"
    W_COMPONENT_WRITE_FAILED = "W_COMPONENT_WRITE_FAILED"
    W_TWX_ENTRY_FAILED = "W_TWX_ENTRY_FAILED"


class IngestError(BaseModel):
    """Structured error with code, message, and document location context.

    ``line``/``column``/``byte_offset`` are best-effort positions reported
    by the parser.  ``xpath`` is the element path at the failure point and
    ``component_id`` identifies the captured component, when there is one.
    """

    code: str
    message: str
    stage: str | None = None
    recoverable: bool = False
    line: int | None = None
    column: int | None = None
    byte_offset: int | None = None
    xpath: str | None = None
    component_id: str | None = None


class BPMNIngestException(Exception):
    """Raisable exception wrapping an ``IngestError`` data model.

    Carries the structured ``IngestError`` as the ``.error`` attribute
    for inspection and serialization.
    """

    def __init__(self, **kwargs: object) -> None:
        self.error = IngestError(**kwargs)  # type: ignore[arg-type]
        super().__init__(self.error.message)

    @property
    def code(self) -> str:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def stage(self) -> str | None:
        return self.error.stage

    @property
    def recoverable(self) -> bool:
        return self.error.recoverable


class SourceUnavailable(BPMNIngestException):
    """The input path is missing or unreadable."""

    def __init__(self, message: str, **kwargs: object) -> None:
        kwargs.setdefault("code", ErrorCode.E_SOURCE_UNAVAILABLE.value)
        kwargs.setdefault("stage", "open")
        super().__init__(message=message, **kwargs)


class MalformedDocument(BPMNIngestException):
    """The XML stream is not well-formed; the whole scan is aborted."""

    def __init__(self, message: str, **kwargs: object) -> None:
        kwargs.setdefault("code", ErrorCode.E_PARSE_MALFORMED.value)
        kwargs.setdefault("stage", "parse")
        super().__init__(message=message, **kwargs)

    @property
    def line(self) -> int | None:
        return self.error.line

    @property
    def column(self) -> int | None:
        return self.error.column
