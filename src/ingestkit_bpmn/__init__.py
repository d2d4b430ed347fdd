"""ingestkit-bpmn -- streaming analysis and component extraction for BPMN exports.

Public API re-exports for convenient access.
"""

from ingestkit_bpmn.bindings import ReferenceMatcher, extract_references
from ingestkit_bpmn.capture import build_predicate, serialize_fragment
from ingestkit_bpmn.complexity import compute_complexity
from ingestkit_bpmn.config import BPMNProcessorConfig, ComplexityPolicy
from ingestkit_bpmn.engine import ExtractionEngine
from ingestkit_bpmn.errors import (
    BPMNIngestException,
    ErrorCode,
    IngestError,
    MalformedDocument,
    SourceUnavailable,
)
from ingestkit_bpmn.models import (
    AnalysisReport,
    AnalysisResult,
    CloseEvent,
    ComplexityScore,
    ComplexityTier,
    ExtractedComponent,
    ExtractionResult,
    OpenEvent,
    TextEvent,
    TWXAnalysisResult,
)
from ingestkit_bpmn.router import BPMNRouter
from ingestkit_bpmn.security import BPMNSecurityScanner
from ingestkit_bpmn.walker import StreamingWalker, iter_events

__all__ = [
    "BPMNRouter",
    "BPMNProcessorConfig",
    "ComplexityPolicy",
    "ErrorCode",
    "IngestError",
    "BPMNIngestException",
    "SourceUnavailable",
    "MalformedDocument",
    "OpenEvent",
    "TextEvent",
    "CloseEvent",
    "ExtractedComponent",
    "AnalysisReport",
    "ComplexityScore",
    "ComplexityTier",
    "AnalysisResult",
    "ExtractionResult",
    "TWXAnalysisResult",
    "BPMNSecurityScanner",
    "StreamingWalker",
    "ExtractionEngine",
    "ReferenceMatcher",
    "iter_events",
    "extract_references",
    "build_predicate",
    "serialize_fragment",
    "compute_complexity",
]
