"""
Data models for engine components and their test results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class TestResult(Enum):
    """Result reported by the engine for a single test case."""
    PASS = "PASS"
    FAIL = "FAIL"
    SKIPPED = "SKIPPED"
    ERROR = "ERROR"
    INVALID = "INVALID"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TestResult":
        """Map a raw engine value onto a result, UNKNOWN for anything new."""
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class Component:
    """A testable unit in the engine configuration."""
    uuid: str = ""
    id: str = ""
    name: str = ""
    type: str = ""
    folder: str = ""

    @classmethod
    def fields_from(cls, data: dict) -> dict:
        return {key: str(data[key]) for key in ("uuid", "id", "name", "type") if data.get(key) is not None}


@dataclass(frozen=True)
class Filter(Component):
    """A processing step; belongs to exactly one route, referenced by the route's id."""
    route_id: str = ""


@dataclass(frozen=True)
class Route(Component):
    """A top-level pipeline and the filters it owns, in configuration order."""
    filters: tuple[Filter, ...] = ()

    @classmethod
    def from_tree(cls, data: dict, folder: str) -> "Route":
        fields = cls.fields_from(data)
        route_id = fields.get("id", "")
        filters = tuple(
            Filter(folder=folder, route_id=route_id, **Filter.fields_from(child))
            for child in data.get("childComponents") or []
        )
        return cls(folder=folder, filters=filters, **fields)


@dataclass(frozen=True)
class TestCase:
    """One itemised test outcome, tagged with either a filter or a connector."""
    name: str
    description: str
    result: str
    filter_name: Optional[str] = None
    connector_name: Optional[str] = None

    @property
    def status(self) -> TestResult:
        return TestResult.parse(self.result)

    @property
    def target(self) -> str:
        """Name of the filter or connector the case exercised."""
        if self.connector_name is not None:
            return self.connector_name
        return self.filter_name or ""


@dataclass
class TestComponent:
    """Rolled-up outcome of testing one component, reported against its parent route."""
    component_id: str
    component_name: str
    folder_path: str
    total: int = 0
    passed: int = 0
    executed: int = 0
    failed: int = 0
    errors: int = 0
    skipped: int = 0
    error: Optional[str] = None
    duration_ms: int = 0
    tests: list[TestCase] = field(default_factory=list)

    def add_counts(self, total: int = 0, passed: int = 0, executed: int = 0,
                   failed: int = 0, errors: int = 0, skipped: int = 0):
        self.total += total
        self.passed += passed
        self.executed += executed
        self.failed += failed
        self.errors += errors
        self.skipped += skipped

    def set_error(self, message: str):
        """Mark the whole component as not completed; any partial cases are dropped."""
        self.error = message
        self.tests = []


class Verdict(Enum):
    """Batch-level outcome of one tested component."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class BatchSummary:
    """Counts of components per verdict for one batch."""
    executed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def passed(self) -> bool:
        return self.failed == 0

    def record(self, verdict: Verdict):
        self.executed += 1
        if verdict == Verdict.SUCCEEDED:
            self.succeeded += 1
        elif verdict == Verdict.FAILED:
            self.failed += 1
        else:
            self.skipped += 1


@dataclass
class TestSuite:
    """All components tested in a batch, in submission order."""
    components: list[TestComponent] = field(default_factory=list)

    def add(self, component: TestComponent):
        self.components.append(component)
