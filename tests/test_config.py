"""Unit tests for ingestkit_bpmn.config -- configuration model."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from ingestkit_bpmn.config import BPMNProcessorConfig, ComplexityPolicy


class TestDefaults:
    """Test that default values are correct."""

    def test_parser_version(self):
        config = BPMNProcessorConfig()
        assert config.parser_version == "ingestkit_bpmn:1.0.0"

    def test_max_depth(self):
        config = BPMNProcessorConfig()
        assert config.max_depth == 256

    def test_text_handling(self):
        config = BPMNProcessorConfig()
        assert config.trim_text is True
        assert config.normalize_text is False
        assert config.emit_whitespace_text is False

    def test_binding_scopes(self):
        config = BPMNProcessorConfig()
        assert config.binding_root == "tw"
        assert config.binding_scopes == ["local", "system", "env"]

    def test_all_category_tags(self):
        config = BPMNProcessorConfig()
        assert config.categories["all"] == [
            "coachView",
            "humanService",
            "service",
            "process",
            "bpdProcess",
            "serviceTask",
        ]

    def test_complexity_weights(self):
        policy = BPMNProcessorConfig().complexity
        assert policy.component_weight == 2
        assert policy.depth_weight == 5
        assert policy.binding_weight == 1
        assert policy.task_weight == 3
        assert policy.tier_thresholds == [50, 150, 300]


class TestResolveCategory:
    def test_known_category(self, default_config):
        assert default_config.resolve_category("coachview") == ["coachView"]

    def test_case_insensitive(self, default_config):
        assert default_config.resolve_category("CoachView") == ["coachView"]

    def test_unknown_category_raises(self, default_config):
        with pytest.raises(KeyError):
            default_config.resolve_category("widgets")

    def test_returns_copy(self, default_config):
        tags = default_config.resolve_category("service")
        tags.append("mutated")
        assert default_config.categories["service"] == ["humanService", "service"]


class TestValidation:
    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            ComplexityPolicy(depth_weight=-1)

    def test_thresholds_must_ascend(self):
        with pytest.raises(ValidationError):
            ComplexityPolicy(tier_thresholds=[150, 50, 300])

    def test_thresholds_need_three_values(self):
        with pytest.raises(ValidationError):
            ComplexityPolicy(tier_thresholds=[50, 150])

    def test_empty_categories_rejected(self):
        with pytest.raises(ValidationError):
            BPMNProcessorConfig(categories={})

    def test_category_without_tags_rejected(self):
        with pytest.raises(ValidationError):
            BPMNProcessorConfig(categories={"empty": []})

    def test_non_whitespace_indent_rejected(self):
        with pytest.raises(ValidationError):
            BPMNProcessorConfig(indent="--")

    def test_zero_depth_rejected(self):
        with pytest.raises(ValidationError):
            BPMNProcessorConfig(max_depth=0)


class TestFromFile:
    def test_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("max_depth: 32\ncomplexity:\n  depth_weight: 10\n", encoding="utf-8")
        config = BPMNProcessorConfig.from_file(str(path))
        assert config.max_depth == 32
        assert config.complexity.depth_weight == 10
        assert config.complexity.task_weight == 3

    def test_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"indent": "\t", "binding_root": "bpm"}), encoding="utf-8")
        config = BPMNProcessorConfig.from_file(str(path))
        assert config.indent == "\t"
        assert config.binding_root == "bpm"

    def test_empty_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("", encoding="utf-8")
        config = BPMNProcessorConfig.from_file(str(path))
        assert config == BPMNProcessorConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            BPMNProcessorConfig.from_file(str(tmp_path / "missing.yaml"))

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported config file extension"):
            BPMNProcessorConfig.from_file(str(path))
