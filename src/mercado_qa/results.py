"""Outcome records for steps, scenarios and whole runs."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import StepFailure


class Phase(str, Enum):
    """Where a step sits in its scenario."""

    SETUP = "setup"
    TEST = "test"
    TEARDOWN = "teardown"


class StepStatus(str, Enum):
    """Outcome of a single step."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StepResult:
    """Outcome of one step."""

    name: str
    method: str
    path: str
    phase: Phase
    status: StepStatus
    expected_status: int
    actual_status: int | None = None
    elapsed: float = 0.0
    error: StepFailure | None = None
    extracted: dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return self.error.message if self.error else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "method": self.method,
            "path": self.path,
            "phase": self.phase.value,
            "status": self.status.value,
            "expected_status": self.expected_status,
            "actual_status": self.actual_status,
            "elapsed": round(self.elapsed, 4),
            "error": self.error.to_dict() if self.error else None,
            "extracted": self.extracted,
        }


@dataclass
class ScenarioResult:
    """Outcome of one scenario group."""

    name: str
    steps: list[StepResult] = field(default_factory=list)
    elapsed: float = 0.0

    def count(self, status: StepStatus) -> int:
        return sum(1 for step in self.steps if step.status is status)

    @property
    def passed(self) -> int:
        return self.count(StepStatus.PASSED)

    @property
    def failed(self) -> int:
        return self.count(StepStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self.count(StepStatus.SKIPPED)

    @property
    def ok(self) -> bool:
        """True when no step failed or was skipped."""
        return self.failed == 0 and self.skipped == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "elapsed": round(self.elapsed, 4),
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "steps": [step.to_dict() for step in self.steps],
        }


@dataclass
class RunSummary:
    """Outcome of a whole run across scenario groups."""

    scenarios: list[ScenarioResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def passed(self) -> int:
        return sum(s.passed for s in self.scenarios)

    @property
    def failed(self) -> int:
        return sum(s.failed for s in self.scenarios)

    @property
    def skipped(self) -> int:
        return sum(s.skipped for s in self.scenarios)

    @property
    def total(self) -> int:
        return sum(len(s.steps) for s in self.scenarios)

    @property
    def ok(self) -> bool:
        return all(s.ok for s in self.scenarios)

    @property
    def exit_code(self) -> int:
        # A skipped step always follows a failed one
        return 0 if self.ok else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "ok": self.ok,
            "scenarios": [s.to_dict() for s in self.scenarios],
        }
