"""Configuration model for the ingestkit-bpmn pipeline.

Provides ``BPMNProcessorConfig`` with all tunable parameters and sensible
defaults, and ``ComplexityPolicy`` for the scoring weights and tier
thresholds.  Supports loading overrides from YAML or JSON files via the
``from_file()`` classmethod.
"""

from __future__ import annotations

import json
import pathlib

from pydantic import BaseModel, Field, model_validator


def _default_categories() -> dict[str, list[str]]:
    return {
        "coachview": ["coachView"],
        "service": ["humanService", "service"],
        "process": ["process", "bpdProcess"],
        "task": ["serviceTask", "scriptTask", "userTask"],
        "all": [
            "coachView",
            "humanService",
            "service",
            "process",
            "bpdProcess",
            "serviceTask",
        ],
    }


class ComplexityPolicy(BaseModel):
    """Weights and tier thresholds for the complexity score.

    All weights must be non-negative so that the score never decreases
    when one of its inputs grows.
    """

    component_weight: float = Field(default=2.0, ge=0.0)
    depth_weight: float = Field(default=5.0, ge=0.0)
    binding_weight: float = Field(default=1.0, ge=0.0)
    task_weight: float = Field(default=3.0, ge=0.0)

    # Upper bounds (exclusive) for LOW, MEDIUM and HIGH; anything above is VERY_HIGH.
    tier_thresholds: list[float] = Field(default_factory=lambda: [50.0, 150.0, 300.0])

    @model_validator(mode="after")
    def _validate_thresholds(self) -> ComplexityPolicy:
        if len(self.tier_thresholds) != 3:
            raise ValueError("tier_thresholds must contain exactly 3 values")
        if any(b <= a for a, b in zip(self.tier_thresholds, self.tier_thresholds[1:])):
            raise ValueError("tier_thresholds must be strictly ascending")
        return self


class BPMNProcessorConfig(BaseModel):
    """All tunable parameters with sensible defaults for BPMN ingestion."""

    # --- Identity ---
    parser_version: str = "ingestkit_bpmn:1.0.0"

    # --- Security / Resource Limits ---
    max_file_size_mb: int = 100
    large_file_warning_mb: int = 10
    max_depth: int = Field(default=256, ge=1)
    max_elements: int = Field(default=5_000_000, ge=1)

    # --- Walker ---
    read_chunk_size: int = Field(default=64 * 1024, ge=1)
    trim_text: bool = True
    normalize_text: bool = False
    emit_whitespace_text: bool = False

    # --- Matching ---
    match_local_names: bool = True
    categories: dict[str, list[str]] = Field(default_factory=_default_categories)

    # --- Data Bindings ---
    binding_root: str = "tw"
    binding_scopes: list[str] = Field(default_factory=lambda: ["local", "system", "env"])
    scan_text_for_bindings: bool = False

    # --- Complexity ---
    complexity: ComplexityPolicy = Field(default_factory=ComplexityPolicy)

    # --- Output ---
    indent: str = "  "
    write_markdown_report: bool = True
    rollback_on_fatal: bool = True

    # --- TWX ---
    twx_wrapper_tags: list[str] = Field(default_factory=lambda: ["teamworks"])

    @model_validator(mode="after")
    def _validate_fields(self) -> BPMNProcessorConfig:
        if not self.categories:
            raise ValueError("categories must define at least one category")
        for name, tags in self.categories.items():
            if not tags:
                raise ValueError(f"category '{name}' must list at least one tag name")
        if not self.binding_scopes:
            raise ValueError("binding_scopes must not be empty")
        if self.indent.strip():
            raise ValueError("indent must consist of whitespace only")
        return self

    def resolve_category(self, category: str) -> list[str]:
        """Return the tag names for *category* (case-insensitive).

        Raises ``KeyError`` for unknown categories.
        """
        lowered = {k.lower(): v for k, v in self.categories.items()}
        return list(lowered[category.lower()])

    @classmethod
    def from_file(cls, path: str) -> BPMNProcessorConfig:
        """Load configuration from a YAML or JSON file.

        File format is detected by extension: ``.yaml`` / ``.yml`` for YAML,
        ``.json`` for JSON.  Any keys present in the file override the
        corresponding defaults; keys not present retain their defaults.
        """
        file_path = pathlib.Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        suffix = file_path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            import yaml  # type: ignore[import-untyped]

            with open(file_path, encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        elif suffix == ".json":
            with open(file_path, encoding="utf-8") as fh:
                data = json.load(fh)
        else:
            raise ValueError(
                f"Unsupported config file extension '{suffix}'. "
                "Use .yaml, .yml, or .json."
            )

        if data is None:
            data = {}

        return cls(**data)
