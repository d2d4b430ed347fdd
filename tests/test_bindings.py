"""Unit tests for ingestkit_bpmn.bindings -- data-binding detection."""

from __future__ import annotations

import re

from ingestkit_bpmn.bindings import (
    DEFAULT_MATCHERS,
    ReferenceMatcher,
    dotted_path_matcher,
    extract_references,
    matchers_from_config,
)


class TestDottedPaths:
    def test_local_path(self):
        assert extract_references("tw.local.customer.address") == {"tw.local.customer.address"}

    def test_system_and_env(self):
        found = extract_references("tw.system.user.name and tw.env.HOST")
        assert found == {"tw.system.user.name", "tw.env.HOST"}

    def test_unknown_scope_ignored(self):
        assert extract_references("tw.other.value") == set()

    def test_bare_scope_ignored(self):
        assert extract_references("tw.local") == set()

    def test_embedded_in_script(self):
        found = extract_references("if (tw.local.a > 1) { tw.local.b = 2; }")
        assert found == {"tw.local.a", "tw.local.b"}


class TestBraceExpressions:
    def test_brace_expression_and_inner_path(self):
        found = extract_references("#{tw.local.total}")
        assert found == {"#{tw.local.total}", "tw.local.total"}

    def test_brace_without_path(self):
        assert extract_references("#{price * 2}") == {"#{price * 2}"}

    def test_empty_braces_ignored(self):
        assert extract_references("#{}") == set()


class TestExtractReferences:
    def test_empty_string(self):
        assert extract_references("") == set()

    def test_deduplicates(self):
        assert extract_references("tw.local.x tw.local.x") == {"tw.local.x"}

    def test_custom_matcher(self):
        matcher = ReferenceMatcher(name="dollar", pattern=re.compile(r"\$\{\w+\}"))
        assert extract_references("a ${b} c", [matcher]) == {"${b}"}


class TestMatchersFromConfig:
    def test_defaults_reused(self):
        assert matchers_from_config("tw", ["local", "system", "env"]) is DEFAULT_MATCHERS

    def test_custom_root_and_scopes(self):
        matchers = matchers_from_config("bpm", ["data"])
        assert extract_references("bpm.data.x tw.local.y", matchers) == {"bpm.data.x"}

    def test_scope_names_escaped(self):
        matcher = dotted_path_matcher("tw", ["a.b"])
        assert matcher.find("tw.aXb.c") == []
        assert matcher.find("tw.a.b.c") == ["tw.a.b.c"]
