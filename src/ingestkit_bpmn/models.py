"""Pydantic models for the ingestkit-bpmn package.

Contains the parse event union produced by the walker, the component and
catalog models produced by the extraction engine, the analysis report and
complexity score, and the result models returned by ``BPMNRouter``.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ingestkit_bpmn.errors import IngestError


# ---------------------------------------------------------------------------
# Parse Events
# ---------------------------------------------------------------------------


class OpenEvent(BaseModel):
    """A start tag.  Self-closing tags produce an Open followed by a Close."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["open"] = "open"
    name: str
    attributes: dict[str, str] = Field(default_factory=dict)


class TextEvent(BaseModel):
    """A maximal run of character data between two pieces of markup."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    value: str


class CloseEvent(BaseModel):
    """An end tag."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["close"] = "close"
    name: str


ParseEvent = Annotated[
    Union[OpenEvent, TextEvent, CloseEvent],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ComplexityTier(str, Enum):
    """Ordinal recommendation tier derived from the complexity score."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


# ---------------------------------------------------------------------------
# Idempotency
# ---------------------------------------------------------------------------


class IngestKey(BaseModel):
    """Deterministic key identifying one source document and parser version."""

    content_hash: str
    source_uri: str
    parser_version: str

    @property
    def key(self) -> str:
        """Deterministic string key for dedup lookups."""
        parts = [self.content_hash, self.source_uri, self.parser_version]
        return hashlib.sha256("|".join(parts).encode()).hexdigest()


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


class ComponentMetadata(BaseModel):
    """Identity of a captured element; also the JSON sidecar payload."""

    type: str
    id: str | None = None
    name: str | None = None
    attributes: dict[str, str] = Field(default_factory=dict)


class ExtractedComponent(ComponentMetadata):
    """A completed capture: metadata plus the standalone XML fragment."""

    model_config = ConfigDict(frozen=True)

    serialized_xml: str
    source_path: str = ""


class InventoryEntry(BaseModel):
    """One component as listed in ``index.json``."""

    type: str
    id: str | None = None
    name: str | None = None
    path: str
    metadata_path: str


class ComponentInventory(BaseModel):
    """All components extracted in one run, in document order."""

    source_path: str
    source_key: str = ""
    category: str
    component_id: str | None = None
    total_components: int = 0
    components: list[InventoryEntry] = []
    duplicate_ids: dict[str, int] = {}
    errors: list[IngestError] = []


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


class CatalogEntry(BaseModel):
    """A node of interest recorded during analysis."""

    tag: str
    id: str | None = None
    name: str | None = None
    type: str | None = None
    implementation: str | None = None
    is_executable: str | None = None
    nesting_level: int
    path: list[str] = []
    attributes: dict[str, str] = {}


class ComplexityFactors(BaseModel):
    """Inputs of the complexity score."""

    component_count: int = 0
    max_depth: int = 0
    binding_count: int = 0
    task_count: int = 0


class ComplexityScore(BaseModel):
    """Weighted complexity score and its recommendation tier."""

    model_config = ConfigDict(frozen=True)

    score: float
    tier: ComplexityTier
    recommendation: str
    factors: ComplexityFactors


class AnalysisSummary(BaseModel):
    total_coach_views: int = 0
    total_human_services: int = 0
    total_bpd_processes: int = 0
    total_service_tasks: int = 0
    unique_data_bindings: int = 0
    max_nesting_depth: int = 0
    total_elements: int = 0
    element_type_counts: dict[str, int] = {}


class AnalysisReport(BaseModel):
    """Read-only snapshot of one scan's statistics plus its complexity."""

    model_config = ConfigDict(frozen=True)

    source_path: str = ""
    summary: AnalysisSummary
    coach_views: list[CatalogEntry] = []
    human_services: list[CatalogEntry] = []
    bpd_processes: list[CatalogEntry] = []
    service_tasks: list[CatalogEntry] = []
    data_bindings: list[str] = []
    duplicate_ids: dict[str, int] = {}
    complexity: ComplexityScore
    truncated: bool = False
    errors: list[IngestError] = []


class ScanResult(BaseModel):
    """Output of ``ExtractionEngine.finish()``."""

    report: AnalysisReport
    components: list[ExtractedComponent] = []
    component_count: int = 0
    duplicate_ids: dict[str, int] = {}
    error_details: list[IngestError] = []
    peak_buffered_events: int = 0
    peak_buffered_chars: int = 0


# ---------------------------------------------------------------------------
# TWX
# ---------------------------------------------------------------------------


class TWXEntryMetadata(BaseModel):
    """Identity of the artifact stored in one TWX entry."""

    type: str | None = None
    id: str | None = None
    name: str | None = None
    description: str | None = None
    version: str | None = None


class TWXEntry(BaseModel):
    """One XML member of a TWX archive."""

    filename: str
    path: str
    pattern: str
    category: str
    category_name: str
    priority: str
    size: int
    metadata: TWXEntryMetadata = TWXEntryMetadata()
    summary: AnalysisSummary | None = None
    complexity: ComplexityScore | None = None
    data_bindings: list[str] = []


class TWXStatistics(BaseModel):
    total_files: int = 0
    by_pattern: dict[str, int] = {}
    by_size: dict[str, int] = Field(
        default_factory=lambda: {"small": 0, "medium": 0, "large": 0, "xlarge": 0}
    )
    largest_file: str | None = None
    largest_file_size: int = 0


class TWXInventory(BaseModel):
    """Categorised listing of a TWX archive."""

    source_path: str
    source_key: str = ""
    statistics: TWXStatistics = TWXStatistics()
    categories: dict[str, list[TWXEntry]] = {}
    errors: list[IngestError] = []


# ---------------------------------------------------------------------------
# Result Models
# ---------------------------------------------------------------------------


class WrittenArtifacts(BaseModel):
    """Paths of every file written in a run, enabling caller-side rollback."""

    paths: list[str] = []
    output_dir: str | None = None


class AnalysisResult(BaseModel):
    """Final result of ``BPMNRouter.analyze()``."""

    file_path: str
    ingest_key: str
    ingest_run_id: str
    report: AnalysisReport | None = None
    written: WrittenArtifacts = WrittenArtifacts()
    errors: list[str] = []
    warnings: list[str] = []
    error_details: list[IngestError] = []
    processing_time_seconds: float = 0.0


class ExtractionResult(BaseModel):
    """Final result of ``BPMNRouter.extract()`` and ``extract_twx()``."""

    file_path: str
    ingest_key: str
    ingest_run_id: str
    category: str
    component_id: str | None = None
    inventory: ComponentInventory | None = None
    components_extracted: int = 0
    written: WrittenArtifacts = WrittenArtifacts()
    errors: list[str] = []
    warnings: list[str] = []
    error_details: list[IngestError] = []
    processing_time_seconds: float = 0.0


class TWXAnalysisResult(BaseModel):
    """Final result of ``BPMNRouter.analyze_twx()``."""

    file_path: str
    ingest_key: str
    ingest_run_id: str
    inventory: TWXInventory | None = None
    written: WrittenArtifacts = WrittenArtifacts()
    errors: list[str] = []
    warnings: list[str] = []
    error_details: list[IngestError] = []
    processing_time_seconds: float = 0.0
