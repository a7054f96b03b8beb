"""Scenario declaration and the sequential scenario runner.

A scenario is an ordered list of steps. Each step issues one request, checks
the status code and optionally the body shape, and may capture values from
the response into named bindings. Later steps consume those bindings through
path templates (``/mercado/{mercado_id}``) or ``ref()`` placeholders in their
body and expected shape.

Dependencies are declared, not implied: a Scenario refuses to be built if a
step needs a binding that no earlier step captures, and the runner skips a
step (instead of sending ``/mercado/None``) when its producer failed.
"""

import asyncio
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from string import Formatter
from typing import Any
from urllib.parse import quote

from .client import ApiResponse, MercadoClient, MercadoClientError
from .errors import (
    ExtractionError,
    ScenarioDefinitionError,
    StepFailure,
    UpstreamStateError,
    status_mismatch,
    transport_failure,
)
from .extract import extract_path
from .matching import assert_shape
from .reporter import Reporter
from .results import Phase, RunSummary, ScenarioResult, StepResult, StepStatus
from .shared.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Deferred:
    """A value computed from the scenario context when the step runs."""

    fn: Callable[["ScenarioContext"], Any]
    requires: tuple[str, ...] = ()


def ref(name: str) -> Deferred:
    """Placeholder for a binding captured by an earlier step."""
    return Deferred(lambda ctx: ctx[name], requires=(name,))


def resolve(value: Any, ctx: "ScenarioContext") -> Any:
    """Replace every Deferred inside a body or shape with its value."""
    if isinstance(value, Deferred):
        return value.fn(ctx)
    if isinstance(value, dict):
        return {k: resolve(v, ctx) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve(v, ctx) for v in value]
    return value


def _deferred_requires(value: Any) -> list[str]:
    if isinstance(value, Deferred):
        return list(value.requires)
    if isinstance(value, dict):
        return [name for v in value.values() for name in _deferred_requires(v)]
    if isinstance(value, list):
        return [name for v in value for name in _deferred_requires(v)]
    return []


def _unique(names: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))


class ScenarioContext:
    """Bindings captured during one scenario run.

    Created fresh for every run; never shared between scenarios.
    """

    def __init__(self, scenario_name: str):
        self.scenario_name = scenario_name
        self._bindings: dict[str, Any] = {}
        self._producers: dict[str, str] = {}

    def __getitem__(self, name: str) -> Any:
        if name not in self._bindings:
            raise UpstreamStateError(
                message=(
                    f"Binding '{name}' has not been captured "
                    f"in scenario '{self.scenario_name}'"
                ),
                data={"missing": [name]},
            )
        return self._bindings[name]

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def bind(self, name: str, value: Any, step_name: str) -> None:
        self._bindings[name] = value
        self._producers[name] = step_name

    def missing(self, names: Iterable[str]) -> list[str]:
        return [name for name in names if name not in self._bindings]

    def as_dict(self) -> dict[str, Any]:
        return dict(self._bindings)


@dataclass(frozen=True)
class Step:
    """One request/assertion in a scenario.

    Attributes:
        name: Human-readable step name, unique within its scenario
        method: HTTP method
        path: Path template, fields are binding names (``/mercado/{mercado_id}``)
        expected_status: Status code the API must return
        body: JSON body; may contain ``ref()``/Deferred placeholders
        expected_shape: Shape the body must match (None: not checked)
        extract: Binding name -> extraction path in the response body
        requires: Extra bindings needed beyond those found in path/body/shape
        phase: setup, test or teardown
    """

    name: str
    method: str
    path: str
    expected_status: int
    body: Any = None
    expected_shape: Any = None
    extract: Mapping[str, str] = field(default_factory=dict)
    requires: tuple[str, ...] = ()
    phase: Phase = Phase.TEST

    @property
    def path_fields(self) -> tuple[str, ...]:
        return _unique(f for _, f, _, _ in Formatter().parse(self.path) if f)

    @property
    def required_bindings(self) -> tuple[str, ...]:
        return _unique(
            [
                *self.path_fields,
                *_deferred_requires(self.body),
                *_deferred_requires(self.expected_shape),
                *self.requires,
            ]
        )

    def resolve_path(self, ctx: ScenarioContext) -> str:
        values = {name: quote(str(ctx[name]), safe="") for name in self.path_fields}
        return self.path.format(**values)


class Scenario:
    """An ordered, validated sequence of dependent steps."""

    def __init__(self, name: str, steps: Sequence[Step], description: str = ""):
        self.name = name
        self.description = description
        self.steps: tuple[Step, ...] = tuple(steps)
        self._producers = self._validate()
        self._running = False

    def _validate(self) -> dict[str, str]:
        """Check names and binding order; return binding -> producing step."""
        if not self.steps:
            raise ScenarioDefinitionError(f"Scenario '{self.name}' has no steps")

        seen: set[str] = set()
        producers: dict[str, str] = {}
        for position, step in enumerate(self.steps, 1):
            if step.name in seen:
                raise ScenarioDefinitionError(
                    f"Scenario '{self.name}': duplicate step name '{step.name}'"
                )
            seen.add(step.name)

            for binding in step.required_bindings:
                if binding not in producers:
                    raise ScenarioDefinitionError(
                        f"Scenario '{self.name}': step {position} '{step.name}' requires "
                        f"'{binding}' but no earlier step captures it"
                    )

            for binding in step.extract:
                if binding in producers:
                    raise ScenarioDefinitionError(
                        f"Scenario '{self.name}': binding '{binding}' captured by both "
                        f"'{producers[binding]}' and '{step.name}'"
                    )
                producers[binding] = step.name
        return producers

    @property
    def bindings(self) -> dict[str, str]:
        """Binding name -> name of the step that captures it."""
        return dict(self._producers)

    def producer_of(self, binding: str) -> str | None:
        return self._producers.get(binding)

    def __repr__(self) -> str:
        return f"Scenario({self.name!r}, steps={len(self.steps)})"


def _capture(body: Any, path: str) -> Any:
    value = extract_path(body, path)
    if value is None:
        raise ExtractionError(
            message=f"Value at '{path}' is null in response body",
            data={"path": path},
        )
    return value


class ScenarioRunner:
    """Runs scenarios step by step against the API.

    Steps inside a scenario run strictly one after another; a step's request
    is only sent once the previous step's response has been checked.
    """

    def __init__(self, client: MercadoClient, reporters: Sequence[Reporter] = ()):
        self.client = client
        self.reporters = list(reporters)

    def _notify(self, event: str, *args: Any) -> None:
        for reporter in self.reporters:
            getattr(reporter, event)(*args)

    async def _send(self, method: str, path: str, body: Any) -> ApiResponse:
        try:
            return await self.client.request(method, path, json=body)
        except MercadoClientError as e:
            raise transport_failure(e.message, e.url, is_timeout=e.is_timeout) from e

    @staticmethod
    def _verify(response: ApiResponse, expected_status: int, expected_shape: Any) -> None:
        if response.status_code != expected_status:
            raise status_mismatch(expected_status, response.status_code, response.body)
        if expected_shape is not None:
            assert_shape(response.body, expected_shape)

    async def run_step(
        self,
        method: str,
        path: str,
        *,
        expected_status: int,
        body: Any = None,
        expected_shape: Any = None,
        extract: str | None = None,
    ) -> Any:
        """Issue one request and check it.

        Args:
            method: HTTP method
            path: Concrete path (bindings already substituted)
            expected_status: Status code the API must return
            body: JSON body
            expected_shape: Shape the body must match (None: not checked)
            extract: Path of a value to capture from the body

        Returns:
            The captured value, or None when no extraction was requested

        Raises:
            StepFailure: Status, shape, transport or extraction failure
        """
        response = await self._send(method, path, body)
        self._verify(response, expected_status, expected_shape)
        if extract is None:
            return None
        return _capture(response.body, extract)

    def _skipped(self, step: Step, error: UpstreamStateError) -> StepResult:
        return StepResult(
            name=step.name,
            method=step.method,
            path=step.path,
            phase=step.phase,
            status=StepStatus.SKIPPED,
            expected_status=step.expected_status,
            error=error,
        )

    async def _run_declared(
        self,
        scenario: Scenario,
        step: Step,
        ctx: ScenarioContext,
        failed_setup: str | None,
    ) -> StepResult:
        if failed_setup and step.phase is Phase.TEST:
            return self._skipped(
                step,
                UpstreamStateError(
                    message=f"Skipped: setup step '{failed_setup}' did not pass",
                    data={"setup_step": failed_setup},
                ),
            )

        missing = ctx.missing(step.required_bindings)
        if missing:
            producers = {name: scenario.producer_of(name) for name in missing}
            details = ", ".join(f"'{n}' (from '{p}')" for n, p in producers.items())
            return self._skipped(
                step,
                UpstreamStateError(
                    message=f"Skipped: upstream step did not capture {details}",
                    data={"missing": missing, "producers": producers},
                ),
            )

        path = step.resolve_path(ctx)
        body = resolve(step.body, ctx)
        shape = resolve(step.expected_shape, ctx)

        response = None
        started = time.perf_counter()
        try:
            response = await self._send(step.method, path, body)
            self._verify(response, step.expected_status, shape)
            extracted = {name: _capture(response.body, p) for name, p in step.extract.items()}
        except StepFailure as e:
            return StepResult(
                name=step.name,
                method=step.method,
                path=path,
                phase=step.phase,
                status=StepStatus.FAILED,
                expected_status=step.expected_status,
                actual_status=response.status_code if response is not None else None,
                elapsed=time.perf_counter() - started,
                error=e,
            )

        for name, value in extracted.items():
            ctx.bind(name, value, step.name)

        return StepResult(
            name=step.name,
            method=step.method,
            path=path,
            phase=step.phase,
            status=StepStatus.PASSED,
            expected_status=step.expected_status,
            actual_status=response.status_code,
            elapsed=time.perf_counter() - started,
            extracted=extracted,
        )

    async def run(self, scenario: Scenario) -> ScenarioResult:
        """Run every step of a scenario in declaration order.

        Raises:
            ScenarioDefinitionError: If this scenario is already running
        """
        if scenario._running:
            raise ScenarioDefinitionError(
                f"Scenario '{scenario.name}' is already running; its steps share state "
                "and cannot be interleaved"
            )
        scenario._running = True
        try:
            ctx = ScenarioContext(scenario.name)
            result = ScenarioResult(name=scenario.name)
            log = logger.bind(scenario=scenario.name)
            self._notify("scenario_started", scenario)

            failed_setup: str | None = None
            started = time.perf_counter()
            for step in scenario.steps:
                step_result = await self._run_declared(scenario, step, ctx, failed_setup)
                if step.phase is Phase.SETUP and step_result.status is not StepStatus.PASSED:
                    failed_setup = failed_setup or step.name

                if step_result.status is StepStatus.PASSED:
                    log.info("step_passed", step=step.name, status=step_result.actual_status)
                else:
                    log.warning(
                        f"step_{step_result.status.value}",
                        step=step.name,
                        error=step_result.message,
                    )
                result.steps.append(step_result)
                self._notify("step_finished", scenario, step_result)

            result.elapsed = time.perf_counter() - started
            self._notify("scenario_finished", scenario, result)
            return result
        finally:
            scenario._running = False

    async def run_all(self, scenarios: Sequence[Scenario], parallel: bool = False) -> RunSummary:
        """Run several scenario groups.

        Args:
            scenarios: Scenarios to run
            parallel: Run groups concurrently (steps inside each stay sequential)

        Returns:
            RunSummary over all groups

        Raises:
            ScenarioDefinitionError: If a scenario instance is listed twice in a
                parallel run (raised once the other groups have finished)
        """
        started_at = datetime.now(timezone.utc)
        if parallel:
            # Let every group settle before surfacing the first error
            outcomes = await asyncio.gather(
                *(self.run(s) for s in scenarios), return_exceptions=True
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
            results = list(outcomes)
        else:
            results = [await self.run(s) for s in scenarios]

        summary = RunSummary(scenarios=results, started_at=started_at)
        self._notify("run_finished", summary)
        return summary
