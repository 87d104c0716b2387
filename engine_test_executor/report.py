"""
JUnit XML and JSON reports for a tested batch.
"""

import json
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from .models import BatchSummary, TestCase, TestComponent, TestResult, TestSuite

logger = logging.getLogger(__name__)

SUITE_FILENAME = "test-suite.json"
SCHEMA_LOCATION = "https://maven.apache.org/surefire/maven-surefire-plugin/xsd/surefire-test-report-3.0.xsd"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

# Child element written under a testcase for each non-passing result
OUTCOME_ELEMENTS = {
    TestResult.FAIL: ("failure", {"type": "Fail", "message": "Engine returned a fail status"}),
    TestResult.SKIPPED: ("skipped", {"message": "Engine returned a skip status"}),
    TestResult.ERROR: ("error", {"type": "Error", "message": "Engine returned an error status"}),
    TestResult.INVALID: ("error", {"type": "Error", "message": "Engine returned an error status"}),
}


@dataclass
class JUnitReport:
    """One rendered testsuite document."""
    file_name: str
    element: ET.Element

    def to_xml(self) -> str:
        ET.indent(self.element, space="\t")
        body = ET.tostring(self.element, encoding="unicode")
        return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'


def report_file_name(component_name: str) -> str:
    return "TEST-" + re.sub(r"[^a-zA-Z0-9_]+", "", component_name or "") + ".xml"


def class_name(component: TestComponent, case: TestCase) -> str:
    return f"{component.component_name}.{case.target}"


def render_component(component: TestComponent) -> JUnitReport:
    counts = {"errors": 0, "skipped": 0, "failures": 0}
    cases = []
    for case in component.tests:
        element = ET.Element("testcase", {"name": case.name, "classname": class_name(component, case),
                                          "time": "0.0"})
        outcome = OUTCOME_ELEMENTS.get(case.status)
        if outcome:
            tag, attrs = outcome
            ET.SubElement(element, tag, attrs)
            counts["failures" if tag == "failure" else "errors" if tag == "error" else "skipped"] += 1
        cases.append(element)

    suite = ET.Element("testsuite", {
        "xmlns:xsi": XSI_NAMESPACE,
        "xsi:noNamespaceSchemaLocation": SCHEMA_LOCATION,
        "version": "3.0",
        "name": component.component_name,
        "group": component.folder_path,
        "time": str(component.duration_ms / 1000),
        "tests": str(len(component.tests)),
        "errors": str(counts["errors"]),
        "skipped": str(counts["skipped"]),
        "failures": str(counts["failures"]),
    })
    suite.extend(cases)
    return JUnitReport(report_file_name(component.component_name), suite)


def render_junit(suite: TestSuite) -> list[JUnitReport]:
    """Render one JUnit testsuite per tested component, in suite order."""
    return [render_component(component) for component in suite.components]


def suite_to_dict(suite: TestSuite, summary: Optional[BatchSummary] = None) -> dict:
    data = {"components": [asdict(c) for c in suite.components]}
    if summary is not None:
        data["summary"] = asdict(summary)
        data["passed"] = summary.passed
    return data


def suite_from_dict(data: dict) -> TestSuite:
    """Rebuild a TestSuite from the JSON written by write_reports."""
    suite = TestSuite()
    for item in data.get("components", []):
        item = dict(item)
        tests = [TestCase(**case) for case in item.pop("tests", [])]
        suite.add(TestComponent(tests=tests, **item))
    return suite


def write_junit(suite: TestSuite, output_dir: Path) -> list[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for report in render_junit(suite):
        path = output_dir / report.file_name
        # Filters of the same route share a report name
        index = 2
        while path in written:
            path = output_dir / f"{Path(report.file_name).stem}-{index}.xml"
            index += 1
        path.write_text(report.to_xml(), encoding="utf-8")
        written.append(path)
    return written


def write_reports(suite: TestSuite, summary: BatchSummary, output_dir: Path) -> list[Path]:
    """Write the JSON suite and one JUnit XML file per component into output_dir."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    suite_path = output_dir / SUITE_FILENAME
    suite_path.write_text(json.dumps(suite_to_dict(suite, summary), indent=2), encoding="utf-8")
    written = [suite_path] + write_junit(suite, output_dir)
    logger.info(f"Wrote {len(written)} report files to {output_dir}")
    return written
