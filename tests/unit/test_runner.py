"""Unit tests for ScenarioRunner against the mock API."""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from mercado_qa.client import MercadoClient
from mercado_qa.errors import (
    ExtractionError,
    ScenarioDefinitionError,
    ShapeMismatchError,
    StatusMismatchError,
    TransportError,
)
from mercado_qa.matching import ANY
from mercado_qa.reporter import Reporter
from mercado_qa.results import Phase, ScenarioResult, StepStatus
from mercado_qa.scenario import Scenario, ScenarioRunner, Step, ref

MARKET = {"cnpj": "12345678000199", "endereco": "Rua X, 10", "nome": "Acme"}


class RecordingReporter(Reporter):
    """Reporter that remembers every event it receives."""

    def __init__(self):
        self.events = []

    def scenario_started(self, scenario):
        self.events.append(("scenario_started", scenario.name))

    def step_finished(self, scenario, result):
        self.events.append(("step_finished", result.name, result.status))

    def scenario_finished(self, scenario, result):
        self.events.append(("scenario_finished", scenario.name))

    def run_finished(self, summary):
        self.events.append(("run_finished", summary.total))


def market_crud_scenario(name="mercado"):
    return Scenario(
        name,
        [
            Step(
                "create market",
                "POST",
                "/mercado",
                201,
                body=MARKET,
                extract={"mercado_id": "novoMercado.id"},
            ),
            Step(
                "get market",
                "GET",
                "/mercado/{mercado_id}",
                200,
                expected_shape={"id": ref("mercado_id"), "nome": "Acme"},
            ),
            Step("delete market", "DELETE", "/mercado/{mercado_id}", 200),
            Step("get deleted market", "GET", "/mercado/{mercado_id}", 404),
        ],
    )


def client_with_handler(handler) -> MercadoClient:
    return MercadoClient("http://mercado.test", timeout=1.0, transport=httpx.MockTransport(handler))


@pytest.mark.cli_unit
class TestRunStep:
    """Tests for the single-request run_step contract."""

    @pytest.mark.asyncio
    async def test_returns_extracted_value(self, api_client):
        runner = ScenarioRunner(api_client)

        mercado_id = await runner.run_step(
            "POST", "/mercado", body=MARKET, expected_status=201, extract="novoMercado.id"
        )

        assert mercado_id == 1

    @pytest.mark.asyncio
    async def test_without_extract_returns_none(self, api_client):
        runner = ScenarioRunner(api_client)
        assert await runner.run_step("GET", "/mercado", expected_status=200) is None

    @pytest.mark.asyncio
    async def test_status_mismatch(self, api_client, mock_server):
        runner = ScenarioRunner(api_client)

        with pytest.raises(StatusMismatchError) as exc_info:
            await runner.run_step("GET", "/mercado/99999", expected_status=200)

        assert exc_info.value.data["actual"] == 404
        # Exactly one attempt, no retries
        assert mock_server.requests == [("GET", "/mercado/99999")]

    @pytest.mark.asyncio
    async def test_invalid_cnpj_rejected(self, api_client):
        runner = ScenarioRunner(api_client)
        body = {**MARKET, "cnpj": "123"}

        await runner.run_step("POST", "/mercado", body=body, expected_status=400)

    @pytest.mark.asyncio
    async def test_shape_mismatch(self, api_client, mock_server):
        mock_server.add_market(nome="Beta")
        runner = ScenarioRunner(api_client)

        with pytest.raises(ShapeMismatchError, match=r"\$\.nome"):
            await runner.run_step(
                "GET", "/mercado/1", expected_status=200, expected_shape={"nome": "Acme"}
            )

    @pytest.mark.asyncio
    async def test_null_extraction_fails(self, api_client, mock_server):
        mock_server.force_status("POST", "/mercado", 201, {"novoMercado": {"id": None}})
        runner = ScenarioRunner(api_client)

        with pytest.raises(ExtractionError, match="is null"):
            await runner.run_step(
                "POST", "/mercado", body=MARKET, expected_status=201, extract="novoMercado.id"
            )

    @pytest.mark.asyncio
    async def test_connection_error_becomes_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        async with client_with_handler(refuse) as client:
            with pytest.raises(TransportError) as exc_info:
                await ScenarioRunner(client).run_step("GET", "/mercado", expected_status=200)

        assert exc_info.value.data["timeout"] is False
        assert "Connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout_becomes_transport_error(self):
        calls = []

        def slow(request):
            calls.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        async with client_with_handler(slow) as client:
            with pytest.raises(TransportError, match="timed out"):
                await ScenarioRunner(client).run_step("GET", "/mercado", expected_status=200)

        assert len(calls) == 1


@pytest.mark.cli_unit
class TestRun:
    """Tests for running declared scenarios."""

    @pytest.mark.asyncio
    async def test_all_steps_pass_and_thread_bindings(self, api_client, mock_server):
        runner = ScenarioRunner(api_client)

        result = await runner.run(market_crud_scenario())

        assert [s.status for s in result.steps] == [StepStatus.PASSED] * 4
        assert result.steps[0].extracted == {"mercado_id": 1}
        assert result.steps[1].path == "/mercado/1"
        assert result.ok
        assert mock_server.markets == {}

    @pytest.mark.asyncio
    async def test_failed_producer_skips_consumers(self, api_client, mock_server):
        mock_server.force_status("POST", "/mercado", 500, {"error": "boom"})
        scenario = Scenario(
            "mercado",
            [
                Step(
                    "create market",
                    "POST",
                    "/mercado",
                    201,
                    body=MARKET,
                    extract={"mercado_id": "novoMercado.id"},
                ),
                Step("list markets", "GET", "/mercado", 200),
                Step("get market", "GET", "/mercado/{mercado_id}", 200),
            ],
        )

        result = await ScenarioRunner(api_client).run(scenario)

        create, listing, get = result.steps
        assert create.status is StepStatus.FAILED
        assert create.actual_status == 500
        assert listing.status is StepStatus.PASSED
        assert get.status is StepStatus.SKIPPED
        assert "'mercado_id' (from 'create market')" in get.message
        # The consumer never reached the API
        assert ("GET", "/mercado/None") not in mock_server.requests
        assert not result.ok

    @pytest.mark.asyncio
    async def test_failed_setup_skips_tests_but_runs_teardown(self, api_client, mock_server):
        mock_server.force_status("POST", "/mercado", 503)
        scenario = Scenario(
            "frutas",
            [
                Step(
                    "provision market",
                    "POST",
                    "/mercado",
                    201,
                    body=MARKET,
                    extract={"mercado_id": "novoMercado.id"},
                    phase=Phase.SETUP,
                ),
                Step("list markets", "GET", "/mercado", 200),
                Step("final listing", "GET", "/mercado", 200, phase=Phase.TEARDOWN),
            ],
        )

        result = await ScenarioRunner(api_client).run(scenario)

        setup, test, teardown = result.steps
        assert setup.status is StepStatus.FAILED
        assert test.status is StepStatus.SKIPPED
        assert "setup step 'provision market'" in test.message
        assert teardown.status is StepStatus.PASSED

    @pytest.mark.asyncio
    async def test_teardown_runs_after_test_failure(self, api_client, mock_server):
        scenario = Scenario(
            "frutas",
            [
                Step(
                    "provision market",
                    "POST",
                    "/mercado",
                    201,
                    body=MARKET,
                    extract={"mercado_id": "novoMercado.id"},
                    phase=Phase.SETUP,
                ),
                Step("wrong expectation", "GET", "/mercado/{mercado_id}", 418),
                Step(
                    "remove market",
                    "DELETE",
                    "/mercado/{mercado_id}",
                    200,
                    phase=Phase.TEARDOWN,
                ),
            ],
        )

        result = await ScenarioRunner(api_client).run(scenario)

        assert [s.status for s in result.steps] == [
            StepStatus.PASSED,
            StepStatus.FAILED,
            StepStatus.PASSED,
        ]
        assert mock_server.markets == {}

    @pytest.mark.asyncio
    async def test_shape_mismatch_recorded_on_step(self, api_client):
        scenario = Scenario(
            "mercado",
            [Step("list markets", "GET", "/mercado", 200, expected_shape=[{"id": ANY}])],
        )

        result = await ScenarioRunner(api_client).run(scenario)

        step = result.steps[0]
        assert step.status is StepStatus.FAILED
        assert step.actual_status == 200
        assert step.error.kind == "shape"

    @pytest.mark.asyncio
    async def test_undecodable_body_fails_step_and_teardown_still_runs(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            if request.method == "POST":
                return httpx.Response(201, json={"novoMercado": {"id": 1}})
            if request.method == "GET":
                return httpx.Response(
                    200, headers={"content-encoding": "gzip"}, content=b"not gzip"
                )
            return httpx.Response(200, json={"message": "removed"})

        scenario = Scenario(
            "frutas",
            [
                Step(
                    "provision market",
                    "POST",
                    "/mercado",
                    201,
                    body=MARKET,
                    extract={"mercado_id": "novoMercado.id"},
                    phase=Phase.SETUP,
                ),
                Step("get market", "GET", "/mercado/{mercado_id}", 200),
                Step(
                    "remove market",
                    "DELETE",
                    "/mercado/{mercado_id}",
                    200,
                    phase=Phase.TEARDOWN,
                ),
            ],
        )

        async with client_with_handler(handler) as client:
            result = await ScenarioRunner(client).run(scenario)

        assert [s.status for s in result.steps] == [
            StepStatus.PASSED,
            StepStatus.FAILED,
            StepStatus.PASSED,
        ]
        assert result.steps[1].error.kind == "transport"
        assert ("DELETE", "/mercado/1") in calls

    @pytest.mark.asyncio
    async def test_concurrent_run_of_same_scenario_rejected(self):
        async def slow_ok(request):
            await asyncio.sleep(0.01)
            return httpx.Response(200, json=[])

        scenario = Scenario("mercado", [Step("list", "GET", "/mercado", 200)])
        async with client_with_handler(slow_ok) as client:
            runner = ScenarioRunner(client)
            outcomes = await asyncio.gather(
                runner.run(scenario), runner.run(scenario), return_exceptions=True
            )

        errors = [o for o in outcomes if isinstance(o, ScenarioDefinitionError)]
        results = [o for o in outcomes if isinstance(o, ScenarioResult)]
        assert len(errors) == 1
        assert "already running" in str(errors[0])
        assert len(results) == 1
        assert results[0].ok

    @pytest.mark.asyncio
    async def test_scenario_can_be_rerun_sequentially(self, api_client):
        scenario = market_crud_scenario()
        runner = ScenarioRunner(api_client)

        first = await runner.run(scenario)
        second = await runner.run(scenario)

        assert first.ok and second.ok
        assert second.steps[0].extracted == {"mercado_id": 2}


@pytest.mark.cli_unit
class TestRunAll:
    """Tests for running several groups."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("parallel", [False, True])
    async def test_groups_are_independent(self, api_client, parallel):
        runner = ScenarioRunner(api_client)

        summary = await runner.run_all(
            [market_crud_scenario("first"), market_crud_scenario("second")], parallel=parallel
        )

        assert [s.name for s in summary.scenarios] == ["first", "second"]
        assert summary.total == 8
        assert summary.passed == 8
        assert summary.exit_code == 0

    @pytest.mark.asyncio
    async def test_reporters_receive_events_in_order(self, api_client):
        reporter = RecordingReporter()
        runner = ScenarioRunner(api_client, reporters=[reporter])
        scenario = Scenario("mercado", [Step("list", "GET", "/mercado", 200)])

        await runner.run_all([scenario])

        assert reporter.events == [
            ("scenario_started", "mercado"),
            ("step_finished", "list", StepStatus.PASSED),
            ("scenario_finished", "mercado"),
            ("run_finished", 1),
        ]

    @pytest.mark.asyncio
    async def test_started_at_is_taken_before_groups_run(self, api_client):
        class StartTimes(Reporter):
            def __init__(self):
                self.seen = []

            def scenario_started(self, scenario):
                self.seen.append(datetime.now(timezone.utc))

        reporter = StartTimes()
        runner = ScenarioRunner(api_client, reporters=[reporter])

        summary = await runner.run_all([market_crud_scenario()])

        assert summary.started_at <= reporter.seen[0]

    @pytest.mark.asyncio
    async def test_parallel_error_raised_after_other_groups_settle(self):
        async def slow_ok(request):
            await asyncio.sleep(0.01)
            return httpx.Response(200, json=[])

        reporter = RecordingReporter()
        scenario = Scenario("mercado", [Step("list", "GET", "/mercado", 200)])
        async with client_with_handler(slow_ok) as client:
            runner = ScenarioRunner(client, reporters=[reporter])
            with pytest.raises(ScenarioDefinitionError, match="already running"):
                await runner.run_all([scenario, scenario], parallel=True)

        # The group that did start ran to completion before the error surfaced
        assert ("scenario_finished", "mercado") in reporter.events
        assert not any(event[0] == "run_finished" for event in reporter.events)
