"""Shared test fixtures for ingestkit-bpmn tests."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from ingestkit_bpmn.config import BPMNProcessorConfig


@pytest.fixture
def default_config() -> BPMNProcessorConfig:
    """Return a default BPMNProcessorConfig."""
    return BPMNProcessorConfig()


@pytest.fixture
def tmp_xml_file(tmp_path: Path):
    """Factory fixture to write XML string to a temp .xml file and return the path."""

    def _write(xml_content: str, filename: str = "test.xml") -> str:
        file_path = tmp_path / filename
        file_path.write_text(xml_content, encoding="utf-8")
        return str(file_path)

    return _write


@pytest.fixture
def tmp_twx_file(tmp_path: Path):
    """Factory fixture to write a TWX (ZIP) archive from a {member: xml} mapping."""

    def _write(members: dict[str, str], filename: str = "app.twx") -> str:
        file_path = tmp_path / filename
        with zipfile.ZipFile(file_path, "w") as zf:
            for name, content in members.items():
                zf.writestr(name, content)
        return str(file_path)

    return _write


@pytest.fixture
def sample_nested_coach_views() -> str:
    """Coach view nested inside another coach view."""
    return '<svc><coachView id="A"><coachView id="B"/></coachView></svc>'


@pytest.fixture
def sample_bpmn() -> str:
    """Small IBM BPM export with one of each cataloged element kind."""
    return """<?xml version="1.0" encoding="UTF-8"?>
<bpmn:definitions xmlns:bpmn="http://www.omg.org/spec/BPMN/20100524/MODEL">
    <bpmn:process id="P1" name="Order Process" isExecutable="true">
        <bpmn:serviceTask id="T1" name="Validate" implementation="##WebService"/>
        <bpmn:scriptTask id="T2" name="Compute">
            <bpmn:script>tw.local.total = tw.local.price * 2;</bpmn:script>
        </bpmn:scriptTask>
    </bpmn:process>
    <humanService id="HS1" name="Approve Order">
        <coachView id="CV1" name="Order Form" binding="tw.local.order.customer">
            <coachView id="CV2" name="Address" binding="#{tw.local.order.address}"/>
        </coachView>
    </humanService>
    <coachView id="CV3" name="Summary" visibility="tw.system.user.name"/>
</bpmn:definitions>
"""


@pytest.fixture
def sample_twx_members() -> dict[str, str]:
    """Members of a small TWX archive."""
    return {
        "META-INF/package.xml": "<package/>",
        "objects/21.aaa.xml": (
            '<teamworks><coachView id="CV1" name="Form" description="Main form">'
            '<binding value="tw.local.x"/></coachView></teamworks>'
        ),
        "objects/25.bbb.xml": '<teamworks><bpd bpdid="BPD1" name="Flow"/></teamworks>',
        "objects/61.ccc.xml": (
            '<teamworks><process id="HS1" name="Service">'
            '<coachView id="CV9" name="Inner"/></process></teamworks>'
        ),
        "objects/99.ddd.xml": '<snapshot snapshotId="S1" displayName="Snap"/>',
    }
