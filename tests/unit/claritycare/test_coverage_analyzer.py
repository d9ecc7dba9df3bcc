"""
Tests for the coverage analysis contract.

Covers:
- Query validation before any suspension
- Wire payload decoding, including the explicit failure variant
- Static, transport-backed and agent analyzers
- Session state transitions and stale response handling

These tests avoid real API calls by patching the underlying Agent.run to return
pre-constructed results with an `.output` attribute.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from claritycare.config import AppConfig, CoverageConfig
from claritycare.domain.errors import CoverageServiceError, EmptyQuery
from claritycare.domain.models import BenefitProgress, CoverageDetermination
from claritycare.services.benefit_tracker import track_benefit
from claritycare.services.coverage_analyzer import (
    COVERAGE_DISPLAY,
    SAMPLE_DETERMINATION,
    AgentCoverageAnalyzer,
    AnalysisState,
    CoverageAnalysisSession,
    CoverageContext,
    CoverageResponse,
    StaticCoverageAnalyzer,
    TransportCoverageAnalyzer,
    build_coverage_analyzer,
    parse_coverage_payload,
    validate_query,
)
from claritycare.services.results import Result

NOT_COVERED = CoverageDetermination(
    covered=False,
    cpt_code="97110",
    description="Therapeutic exercise",
    coverage_note="Not covered beyond 20 visits per year",
    deductible_note="Deductible does not apply",
    pre_auth_required=False,
)


class _FakeAgentResult:
    """Minimal stand-in for pydantic-ai AgentRunResult with .output"""

    def __init__(self, output: Any) -> None:
        self.output = output


class _ControlledAnalyzer:
    """Test double whose responses are released by the test, one query at a time."""

    def __init__(self) -> None:
        self.gates: dict[str, asyncio.Event] = {}
        self.responses: dict[str, Result[CoverageDetermination, CoverageServiceError]] = {}
        self.calls: list[str] = []

    def respond(
        self, query: str, result: Result[CoverageDetermination, CoverageServiceError]
    ) -> None:
        self.responses[query] = result
        self.gates.setdefault(query, asyncio.Event()).set()

    async def analyze(self, query: str) -> Result[CoverageDetermination, CoverageServiceError]:
        validate_query(query)
        self.calls.append(query)
        await self.gates.setdefault(query, asyncio.Event()).wait()
        return self.responses[query]


def _wire_payload(determination: CoverageDetermination) -> dict[str, Any]:
    return CoverageResponse.from_determination(determination).model_dump(by_alias=True)


class TestQueryValidation:
    @pytest.mark.parametrize("query", ["", "   ", "\n\t"])
    def test_blank_query_is_rejected(self, query: str) -> None:
        with pytest.raises(EmptyQuery) as exc_info:
            validate_query(query)

        assert exc_info.value.field == "query"

    def test_query_is_trimmed(self) -> None:
        assert validate_query("  MRI for lower back pain \n") == "MRI for lower back pain"


class TestPayloadDecoding:
    def test_success_payload_maps_to_determination(self) -> None:
        payload = {
            "covered": True,
            "cptCode": "72148",
            "description": "MRI lumbar spine without contrast",
            "coverage": "Covered under your BCBS PPO after deductible",
            "deductibleStatus": "You have met 80% of your deductible this year",
            "preAuthRequired": True,
            "suggestions": ["Consider in-network providers to reduce out-of-pocket costs"],
        }

        result = parse_coverage_payload(payload)

        assert result.is_ok()
        determination = result.unwrap()
        assert determination.cpt_code == "72148"
        assert determination.coverage_note == payload["coverage"]
        assert determination.deductible_note == payload["deductibleStatus"]
        assert determination.pre_auth_required is True

    def test_negative_determination_is_still_ok(self) -> None:
        result = parse_coverage_payload(_wire_payload(NOT_COVERED))

        assert result.is_ok()
        assert result.unwrap().covered is False

    def test_error_payload_is_a_failure_not_a_denial(self) -> None:
        result = parse_coverage_payload({"error": "decision service offline"})

        assert result.is_err()
        assert isinstance(result.unwrap_err(), CoverageServiceError)
        assert "decision service offline" in str(result.unwrap_err())

    def test_malformed_payload_is_a_failure(self) -> None:
        result = parse_coverage_payload({"covered": "maybe"})

        assert result.is_err()
        assert "Malformed coverage response" in str(result.unwrap_err())

    def test_empty_error_message_is_still_a_failure(self) -> None:
        assert parse_coverage_payload({"error": ""}).is_err()

    @pytest.mark.parametrize("payload", [None, ["covered"], "internal server error"])
    def test_non_object_payload_is_a_failure(self, payload: Any) -> None:
        result = parse_coverage_payload(payload)

        assert result.is_err()
        assert "expected an object" in str(result.unwrap_err())


class TestStaticCoverageAnalyzer:
    async def test_returns_sample_determination(self) -> None:
        analyzer = StaticCoverageAnalyzer(delay_seconds=0)

        result = await analyzer.analyze("MRI for lower back pain")

        assert result.is_ok()
        assert result.unwrap() == SAMPLE_DETERMINATION
        assert COVERAGE_DISPLAY[result.unwrap().covered].label == "Covered"

    async def test_blank_query_raises_before_waiting(self) -> None:
        analyzer = StaticCoverageAnalyzer(delay_seconds=60)

        with pytest.raises(EmptyQuery):
            await asyncio.wait_for(analyzer.analyze("  "), timeout=1.0)


class TestTransportCoverageAnalyzer:
    async def test_sends_trimmed_query_and_decodes_response(self) -> None:
        sent: list[dict[str, Any]] = []

        async def transport(body: dict[str, Any]) -> dict[str, Any]:
            sent.append(body)
            return _wire_payload(NOT_COVERED)

        analyzer = TransportCoverageAnalyzer(transport)
        result = await analyzer.analyze("  physical therapy  ")

        assert sent == [{"query": "physical therapy"}]
        assert result.unwrap() == NOT_COVERED

    async def test_transport_exception_becomes_failure(self) -> None:
        async def transport(body: dict[str, Any]) -> dict[str, Any]:
            raise ConnectionError("connection refused")

        result = await TransportCoverageAnalyzer(transport).analyze("annual physical")

        assert result.is_err()
        assert "unavailable" in str(result.unwrap_err())

    async def test_slow_transport_times_out(self) -> None:
        async def transport(body: dict[str, Any]) -> dict[str, Any]:
            await asyncio.sleep(1.0)
            return _wire_payload(SAMPLE_DETERMINATION)

        result = await TransportCoverageAnalyzer(transport, timeout_seconds=0.05).analyze("MRI")

        assert result.is_err()
        assert "timed out" in str(result.unwrap_err())

    async def test_blank_query_never_reaches_transport(self) -> None:
        async def transport(body: dict[str, Any]) -> dict[str, Any]:
            raise AssertionError("transport must not be called")

        with pytest.raises(EmptyQuery):
            await TransportCoverageAnalyzer(transport).analyze("")

    async def test_non_object_response_becomes_failure(self) -> None:
        async def transport(body: dict[str, Any]) -> None:
            return None

        result = await TransportCoverageAnalyzer(transport).analyze("MRI")

        assert result.is_err()
        assert "Malformed coverage response" in str(result.unwrap_err())


class TestAgentCoverageAnalyzer:
    @pytest.fixture
    def context(self) -> CoverageContext:
        return CoverageContext(
            plan_name="Blue Cross Blue Shield PPO",
            plan_type="PPO",
            deductible=track_benefit(
                BenefitProgress(name="Annual Deductible", used=1600, total=2000, unit="$")
            ),
        )

    async def test_returns_agent_determination(self, context: CoverageContext) -> None:
        analyzer = AgentCoverageAnalyzer(CoverageConfig(), context)
        prompts: list[str] = []

        async def fake_run(prompt: str, *args, **kwargs):
            prompts.append(prompt)
            return _FakeAgentResult(SAMPLE_DETERMINATION)

        analyzer.agent.run = fake_run  # type: ignore[assignment]

        result = await analyzer.analyze("MRI for lower back pain")

        assert result.unwrap() == SAMPLE_DETERMINATION
        assert "MEMBER REQUEST: MRI for lower back pain" in prompts[0]
        assert "Blue Cross Blue Shield PPO (PPO)" in prompts[0]
        assert "$1600 / $2000 (80% used)" in prompts[0]

    async def test_agent_error_is_a_failure(self) -> None:
        analyzer = AgentCoverageAnalyzer(CoverageConfig())

        async def fake_run(*args, **kwargs):
            raise RuntimeError("rate limited")

        analyzer.agent.run = fake_run  # type: ignore[assignment]

        result = await analyzer.analyze("annual physical")

        assert result.is_err()
        assert "rate limited" in str(result.unwrap_err())

    async def test_agent_timeout_is_a_failure(self) -> None:
        analyzer = AgentCoverageAnalyzer(CoverageConfig(timeout_seconds=0.05))

        async def fake_run(*args, **kwargs):
            await asyncio.sleep(1.0)
            return _FakeAgentResult(SAMPLE_DETERMINATION)

        analyzer.agent.run = fake_run  # type: ignore[assignment]

        result = await analyzer.analyze("annual physical")

        assert result.is_err()
        assert "timed out" in str(result.unwrap_err())

    def test_prompt_without_context(self) -> None:
        analyzer = AgentCoverageAnalyzer(CoverageConfig())
        assert "PLAN: unknown" in analyzer._build_user_prompt("therapy")


class TestCoverageAnalysisSession:
    async def test_starts_idle(self) -> None:
        session = CoverageAnalysisSession(StaticCoverageAnalyzer(delay_seconds=0))

        assert session.snapshot.state == AnalysisState.IDLE
        assert session.snapshot.determination is None
        assert session.is_analyzing is False

    async def test_analyzing_state_is_observable(self) -> None:
        analyzer = _ControlledAnalyzer()
        session = CoverageAnalysisSession(analyzer)

        task = asyncio.create_task(session.submit("MRI"))
        await asyncio.sleep(0)

        assert session.is_analyzing
        assert session.snapshot.query == "MRI"

        analyzer.respond("MRI", Result.ok(SAMPLE_DETERMINATION))
        snapshot = await task

        assert snapshot.state == AnalysisState.READY
        assert snapshot.determination == SAMPLE_DETERMINATION
        assert snapshot.request_id == 1

    async def test_service_failure_is_distinct_from_not_covered(self) -> None:
        analyzer = _ControlledAnalyzer()
        analyzer.respond("MRI", Result.err(CoverageServiceError("service offline")))
        analyzer.respond("therapy", Result.ok(NOT_COVERED))
        session = CoverageAnalysisSession(analyzer)

        failed = await session.submit("MRI")
        denied = await session.submit("therapy")

        assert failed.state == AnalysisState.FAILED
        assert failed.error == "service offline"
        assert failed.determination is None
        assert denied.state == AnalysisState.READY
        assert denied.determination is not None
        assert denied.determination.covered is False

    async def test_stale_response_is_discarded(self) -> None:
        analyzer = _ControlledAnalyzer()
        session = CoverageAnalysisSession(analyzer)

        slow = asyncio.create_task(session.submit("MRI"))
        await asyncio.sleep(0)
        fast = asyncio.create_task(session.submit("therapy"))
        await asyncio.sleep(0)

        analyzer.respond("therapy", Result.ok(NOT_COVERED))
        latest = await fast
        analyzer.respond("MRI", Result.ok(SAMPLE_DETERMINATION))
        stale = await slow

        assert latest.request_id == 2
        assert latest.determination == NOT_COVERED
        assert stale == latest
        assert session.snapshot.determination == NOT_COVERED

    async def test_blank_query_leaves_state_untouched(self) -> None:
        session = CoverageAnalysisSession(StaticCoverageAnalyzer(delay_seconds=0))
        await session.submit("MRI")
        before = session.snapshot

        with pytest.raises(EmptyQuery):
            await session.submit("   ")

        assert session.snapshot == before

    async def test_reset_discards_in_flight_response(self) -> None:
        analyzer = _ControlledAnalyzer()
        session = CoverageAnalysisSession(analyzer)

        task = asyncio.create_task(session.submit("MRI"))
        await asyncio.sleep(0)
        session.reset()
        analyzer.respond("MRI", Result.ok(SAMPLE_DETERMINATION))
        await task

        assert session.snapshot.state == AnalysisState.IDLE

    async def test_cancelled_submit_returns_to_idle(self) -> None:
        session = CoverageAnalysisSession(_ControlledAnalyzer())

        task = asyncio.create_task(session.submit("MRI"))
        await asyncio.sleep(0)
        assert session.is_analyzing

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert session.snapshot.state == AnalysisState.IDLE
        assert session.snapshot.request_id == 1
        assert not session.is_analyzing

    async def test_cancelling_older_submit_keeps_newer_one(self) -> None:
        analyzer = _ControlledAnalyzer()
        session = CoverageAnalysisSession(analyzer)

        older = asyncio.create_task(session.submit("MRI"))
        await asyncio.sleep(0)
        newer = asyncio.create_task(session.submit("therapy"))
        await asyncio.sleep(0)

        older.cancel()
        with pytest.raises(asyncio.CancelledError):
            await older

        assert session.is_analyzing
        assert session.snapshot.query == "therapy"

        analyzer.respond("therapy", Result.ok(NOT_COVERED))
        snapshot = await newer

        assert snapshot.state == AnalysisState.READY
        assert snapshot.determination == NOT_COVERED

    async def test_crashing_analyzer_becomes_failure(self) -> None:
        class _Broken:
            async def analyze(self, query: str):
                raise RuntimeError("boom")

        snapshot = await CoverageAnalysisSession(_Broken()).submit("MRI")

        assert snapshot.state == AnalysisState.FAILED
        assert "boom" in (snapshot.error or "")


class TestBuildCoverageAnalyzer:
    def test_static_backend_by_default(self) -> None:
        config = AppConfig(coverage=CoverageConfig(mock_delay_seconds=0.5))

        analyzer = build_coverage_analyzer(config)

        assert isinstance(analyzer, StaticCoverageAnalyzer)
        assert analyzer.delay_seconds == 0.5

    def test_agent_backend(self) -> None:
        config = AppConfig(coverage=CoverageConfig(backend="agent", api_key="sk-test-openai"))

        analyzer = build_coverage_analyzer(config)

        assert isinstance(analyzer, AgentCoverageAnalyzer)
