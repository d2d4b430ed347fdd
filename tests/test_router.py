"""Unit tests for ingestkit_bpmn.router -- orchestration."""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from ingestkit_bpmn.config import BPMNProcessorConfig
from ingestkit_bpmn.errors import ErrorCode
from ingestkit_bpmn.router import BPMNRouter


def _tree(root: Path) -> dict[str, bytes]:
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


class TestCanHandle:
    def test_xml_extension(self):
        assert BPMNRouter().can_handle("model.xml") is True

    def test_bpmn_uppercase(self):
        assert BPMNRouter().can_handle("model.BPMN") is True

    def test_twx(self):
        assert BPMNRouter().can_handle("app.twx") is True

    def test_json_extension(self):
        assert BPMNRouter().can_handle("data.json") is False


class TestAnalyze:
    def test_writes_reports_beside_source(self, tmp_xml_file, sample_bpmn, tmp_path):
        fp = tmp_xml_file(sample_bpmn, "order.bpmn")
        result = BPMNRouter().analyze(fp)

        assert result.errors == []
        assert len(result.ingest_key) == 64
        assert result.report is not None
        assert result.report.summary.total_coach_views == 3

        data = json.loads((tmp_path / "order-analysis.json").read_text(encoding="utf-8"))
        assert data["summary"]["total_service_tasks"] == 2
        assert data["complexity"]["tier"] == "LOW"
        assert data["errors"] == []
        markdown = (tmp_path / "order-analysis.md").read_text(encoding="utf-8")
        assert markdown.startswith("# BPMN Analysis Report: order.bpmn")
        assert sorted(Path(p).name for p in result.written.paths) == [
            "order-analysis.json",
            "order-analysis.md",
        ]

    def test_markdown_disabled(self, tmp_xml_file, tmp_path):
        fp = tmp_xml_file("<r/>")
        router = BPMNRouter(BPMNProcessorConfig(write_markdown_report=False))
        router.analyze(fp, str(tmp_path / "reports"))
        assert _tree(tmp_path / "reports").keys() == {"test-analysis.json"}

    def test_rerun_is_byte_identical(self, tmp_xml_file, sample_bpmn, tmp_path):
        fp = tmp_xml_file(sample_bpmn)
        router = BPMNRouter()
        router.analyze(fp, str(tmp_path / "out"))
        first = _tree(tmp_path / "out")
        router.analyze(fp, str(tmp_path / "out"))
        assert _tree(tmp_path / "out") == first

    def test_malformed_is_fatal(self, tmp_xml_file, tmp_path):
        fp = tmp_xml_file("<a><b></a>")
        result = BPMNRouter().analyze(fp, str(tmp_path / "out"))

        assert result.errors == [ErrorCode.E_PARSE_MALFORMED.value]
        assert result.report is None
        assert result.error_details[0].line == 1
        assert not (tmp_path / "out").exists()

    def test_missing_file(self, tmp_path):
        result = BPMNRouter().analyze(str(tmp_path / "missing.xml"))
        assert result.errors == [ErrorCode.E_SOURCE_UNAVAILABLE.value]
        assert result.ingest_key == ""

    def test_large_file_warning_propagates(self, tmp_xml_file):
        fp = tmp_xml_file("<r/>")
        result = BPMNRouter(BPMNProcessorConfig(large_file_warning_mb=0)).analyze(fp)
        assert result.errors == []
        assert result.warnings == [ErrorCode.W_LARGE_FILE.value]
        assert [e.code for e in result.report.errors] == [ErrorCode.W_LARGE_FILE.value]

    def test_recoverable_errors_written_to_report(self, tmp_xml_file, tmp_path):
        fp = tmp_xml_file("<r><a/><b/><c/><d/></r>")
        router = BPMNRouter(BPMNProcessorConfig(max_elements=2))
        result = router.analyze(fp, str(tmp_path / "out"))

        assert result.errors == []
        assert result.warnings == [ErrorCode.W_ELEMENT_LIMIT.value]
        data = json.loads((tmp_path / "out" / "test-analysis.json").read_text(encoding="utf-8"))
        assert "errors" in data
        assert [e["code"] for e in data["errors"]] == [ErrorCode.W_ELEMENT_LIMIT.value]
        assert data["errors"][0]["recoverable"] is True
        markdown = (tmp_path / "out" / "test-analysis.md").read_text(encoding="utf-8")
        assert "## Errors" in markdown
        assert f"- `{ErrorCode.W_ELEMENT_LIMIT.value}`" in markdown

    def test_entity_declaration_is_fatal(self, tmp_xml_file):
        fp = tmp_xml_file('<!DOCTYPE r [<!ENTITY x "y">]><r>&x;</r>')
        result = BPMNRouter().analyze(fp)
        assert result.errors == [ErrorCode.E_SECURITY_ENTITY_DECLARATION.value]

    @pytest.mark.asyncio
    async def test_aanalyze(self, tmp_xml_file, sample_bpmn):
        fp = tmp_xml_file(sample_bpmn)
        result = await BPMNRouter().aanalyze(fp)
        assert result.errors == []
        assert result.report is not None


class TestExtract:
    def test_nested_coach_views(self, tmp_xml_file, sample_nested_coach_views, tmp_path):
        fp = tmp_xml_file(sample_nested_coach_views)
        out = tmp_path / "out"
        result = BPMNRouter().extract(fp, "coachview", output_dir=str(out))

        assert result.errors == []
        assert result.components_extracted == 1
        xml = (out / "coachView" / "A.xml").read_text(encoding="utf-8")
        assert '<coachView id="B"/>' in xml
        assert not (out / "coachView" / "B.xml").exists()

        index = json.loads((out / "index.json").read_text(encoding="utf-8"))
        assert index["total_components"] == 1
        assert index["category"] == "coachview"
        assert index["components"][0]["path"] == "coachView/A.xml"

    def test_component_id_filter(self, tmp_xml_file, sample_nested_coach_views, tmp_path):
        fp = tmp_xml_file(sample_nested_coach_views)
        out = tmp_path / "out"
        result = BPMNRouter().extract(fp, "coachview", "B", str(out))

        assert result.components_extracted == 1
        assert result.inventory.component_id == "B"
        assert (out / "coachView" / "B.xml").exists()

    def test_default_output_dir(self, tmp_xml_file, sample_bpmn, tmp_path):
        fp = tmp_xml_file(sample_bpmn, "order.xml")
        result = BPMNRouter().extract(fp, "all")

        out = tmp_path / "extracted" / "order"
        assert result.written.output_dir == out.as_posix()
        # process P1, humanService HS1 (containing CV1 and CV2), coachView CV3
        assert result.components_extracted == 3
        assert (out / "process" / "P1.xml").exists()
        assert (out / "humanService" / "HS1.xml").exists()

    def test_namespaced_fragment_is_standalone(self, tmp_xml_file, sample_bpmn, tmp_path):
        fp = tmp_xml_file(sample_bpmn)
        out = tmp_path / "out"
        result = BPMNRouter().extract(fp, "process", output_dir=str(out))

        assert result.errors == []
        root = ET.fromstring((out / "process" / "P1.xml").read_bytes())
        ns = "{http://www.omg.org/spec/BPMN/20100524/MODEL}"
        assert root.tag == f"{ns}process"
        assert [child.tag for child in root] == [f"{ns}serviceTask", f"{ns}scriptTask"]

        meta = json.loads((out / "process" / "P1.json").read_text(encoding="utf-8"))
        assert "xmlns:bpmn" not in meta["attributes"]

    def test_default_namespace_carried_into_fragment(self, tmp_xml_file, tmp_path):
        fp = tmp_xml_file('<r xmlns="urn:app"><coachView id="A"><x/></coachView></r>')
        out = tmp_path / "out"
        BPMNRouter().extract(fp, "coachview", output_dir=str(out))

        root = ET.fromstring((out / "coachView" / "A.xml").read_bytes())
        assert root.tag == "{urn:app}coachView"
        assert root[0].tag == "{urn:app}x"

    def test_sibling_with_same_tag_after_capture(self, tmp_xml_file, tmp_path):
        fp = tmp_xml_file('<r><process id="P"><serviceTask id="T"/></process><serviceTask id="U"/></r>')
        result = BPMNRouter().extract(fp, "all", output_dir=str(tmp_path / "out"))
        assert [c.id for c in result.inventory.components] == ["P", "U"]

    def test_duplicates_suffixed(self, tmp_xml_file, tmp_path):
        fp = tmp_xml_file('<r><coachView id="X"/><coachView id="X"/></r>')
        out = tmp_path / "out"
        result = BPMNRouter().extract(fp, "coachview", output_dir=str(out))

        assert result.inventory.duplicate_ids == {"X": 2}
        assert (out / "coachView" / "X.xml").exists()
        assert (out / "coachView" / "X__2.xml").exists()

    def test_rerun_is_byte_identical(self, tmp_xml_file, sample_bpmn, tmp_path):
        fp = tmp_xml_file(sample_bpmn)
        out = tmp_path / "out"
        router = BPMNRouter()
        router.extract(fp, "all", output_dir=str(out))
        first = _tree(out)
        router.extract(fp, "all", output_dir=str(out))
        assert _tree(out) == first
        assert "index.json" in first

    def test_malformed_leaves_no_artifacts(self, tmp_xml_file, tmp_path):
        # Small read blocks so component A is written before the parse error.
        config = BPMNProcessorConfig(read_chunk_size=16)
        fp = tmp_xml_file('<r><coachView id="A"/>' + " " * 64 + '<coachView id="B"></r>')
        out = tmp_path / "out"
        result = BPMNRouter(config).extract(fp, "coachview", output_dir=str(out))

        assert result.errors == [ErrorCode.E_PARSE_MALFORMED.value]
        assert result.written.paths == []
        assert not out.exists()

    def test_unknown_category(self, tmp_xml_file, tmp_path):
        fp = tmp_xml_file("<r/>")
        result = BPMNRouter().extract(fp, "widgets", output_dir=str(tmp_path / "out"))

        assert result.errors == [ErrorCode.E_CONFIG_UNKNOWN_CATEGORY.value]
        assert "coachview" in result.error_details[0].message
        assert not (tmp_path / "out").exists()

    def test_unknown_category_checked_before_file(self, tmp_path):
        result = BPMNRouter().extract(str(tmp_path / "missing.xml"), "widgets")
        assert result.errors == [ErrorCode.E_CONFIG_UNKNOWN_CATEGORY.value]

    def test_no_matches_writes_empty_index(self, tmp_xml_file, tmp_path):
        fp = tmp_xml_file("<r><a/></r>")
        out = tmp_path / "out"
        result = BPMNRouter().extract(fp, "coachview", output_dir=str(out))

        assert result.components_extracted == 0
        assert _tree(out).keys() == {"index.json"}

    def test_depth_bomb_is_fatal(self, tmp_xml_file, tmp_path):
        fp = tmp_xml_file("<a>" * 10 + "</a>" * 10)
        router = BPMNRouter(BPMNProcessorConfig(max_depth=5))
        result = router.extract(fp, "all", output_dir=str(tmp_path / "out"))
        assert result.errors == [ErrorCode.E_SECURITY_DEPTH_BOMB.value]

    @pytest.mark.asyncio
    async def test_aextract(self, tmp_xml_file, sample_nested_coach_views, tmp_path):
        fp = tmp_xml_file(sample_nested_coach_views)
        result = await BPMNRouter().aextract(fp, "coachview", output_dir=str(tmp_path / "o"))
        assert result.components_extracted == 1
