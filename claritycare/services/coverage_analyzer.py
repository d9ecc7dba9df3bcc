"""
Coverage analysis contract and reference analyzers.

The coverage determination itself comes from an external decision service.
This module owns:
- Query validation (blank queries never leave the process)
- The request/response wire shape, including an explicit failure variant
- Analyzers: a canned one for demos, a transport-backed one, and a Pydantic AI agent
- A session that exposes idle / analyzing / ready / failed and drops stale responses

Service failures are returned as Result.err(CoverageServiceError) and are never
coerced into a negative determination.
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_ai import Agent

from claritycare.config import AppConfig, CoverageConfig, get_config
from claritycare.domain.errors import CoverageServiceError, EmptyQuery
from claritycare.domain.models import BenefitSnapshot, CoverageDetermination, StatusDisplay
from claritycare.services.results import Result

logger = structlog.get_logger(__name__)

CoverageResult = Result[CoverageDetermination, CoverageServiceError]
CoverageTransport = Callable[[dict[str, Any]], Awaitable[Any]]

COVERAGE_DISPLAY: dict[bool, StatusDisplay] = {
    True: StatusDisplay(color_tag="#4CAF50", icon_tag="checkmark.circle.fill", label="Covered"),
    False: StatusDisplay(color_tag="#F44336", icon_tag="xmark.circle.fill", label="Not Covered"),
}

PRE_AUTH_NOTICE = "Pre-authorization may be required"

SAMPLE_DETERMINATION = CoverageDetermination(
    covered=True,
    cpt_code="72148",
    description="MRI lumbar spine without contrast",
    coverage_note="Covered under your BCBS PPO after deductible",
    deductible_note="You have met 80% of your deductible this year",
    pre_auth_required=True,
    suggestions=[
        'Ask your provider to document "neurological symptoms" for better pre-auth chance',
        "Consider in-network providers to reduce out-of-pocket costs",
    ],
)


def validate_query(query: str) -> str:
    """Return the trimmed query or raise EmptyQuery."""
    cleaned = (query or "").strip()
    if not cleaned:
        raise EmptyQuery()
    return cleaned


# Wire format
class CoverageRequest(BaseModel):
    """Request body sent to the coverage service."""

    query: str = Field(min_length=1)


class CoverageResponse(BaseModel):
    """Successful response body, camelCase on the wire."""

    model_config = ConfigDict(populate_by_name=True)

    covered: bool
    cpt_code: str = Field(alias="cptCode")
    description: str
    coverage: str
    deductible_status: str = Field(alias="deductibleStatus")
    pre_auth_required: bool = Field(alias="preAuthRequired")
    suggestions: list[str] = Field(default_factory=list)

    def to_determination(self) -> CoverageDetermination:
        return CoverageDetermination(
            covered=self.covered,
            cpt_code=self.cpt_code,
            description=self.description,
            coverage_note=self.coverage,
            deductible_note=self.deductible_status,
            pre_auth_required=self.pre_auth_required,
            suggestions=list(self.suggestions),
        )

    @classmethod
    def from_determination(cls, determination: CoverageDetermination) -> "CoverageResponse":
        return cls(
            covered=determination.covered,
            cpt_code=determination.cpt_code,
            description=determination.description,
            coverage=determination.coverage_note,
            deductible_status=determination.deductible_note,
            pre_auth_required=determination.pre_auth_required,
            suggestions=list(determination.suggestions),
        )


class CoverageErrorResponse(BaseModel):
    """Failure response body. Distinct from a determination with covered=False."""

    error: str = Field(min_length=1)


def parse_coverage_payload(payload: Any) -> CoverageResult:
    """Decode a service response into a determination or a service error."""
    if not isinstance(payload, Mapping):
        return Result.err(
            CoverageServiceError("Malformed coverage response: expected an object")
        )

    if "error" in payload:
        try:
            failure = CoverageErrorResponse.model_validate(payload)
        except ValidationError:
            return Result.err(CoverageServiceError("Coverage service returned an empty error"))
        return Result.err(CoverageServiceError(failure.error))

    try:
        response = CoverageResponse.model_validate(payload)
    except ValidationError as e:
        return Result.err(
            CoverageServiceError(f"Malformed coverage response: {e.error_count()} invalid fields")
        )
    return Result.ok(response.to_determination())


class CoverageAnalyzer(Protocol):
    """
    Contract for the external coverage-determination service.

    Implementations must raise EmptyQuery before awaiting anything when the
    query is blank, and must report service failures as Result.err.
    """

    async def analyze(self, query: str) -> CoverageResult:
        ...


class StaticCoverageAnalyzer:
    """
    Canned analyzer that answers every query with the same determination.

    Stands in for the decision service in demos and development, including its latency.
    """

    def __init__(
        self,
        determination: CoverageDetermination = SAMPLE_DETERMINATION,
        delay_seconds: float = 2.0,
    ) -> None:
        self.determination = determination
        self.delay_seconds = delay_seconds
        self.logger = logger.bind(component="static_coverage_analyzer")

    async def analyze(self, query: str) -> CoverageResult:
        cleaned = validate_query(query)
        await asyncio.sleep(self.delay_seconds)
        self.logger.info(
            "coverage_analysis_completed",
            query_length=len(cleaned),
            covered=self.determination.covered,
        )
        return Result.ok(self.determination)


class TransportCoverageAnalyzer:
    """Analyzer that posts the request through an injected async transport."""

    def __init__(self, transport: CoverageTransport, timeout_seconds: float = 30.0) -> None:
        self.transport = transport
        self.timeout_seconds = timeout_seconds
        self.logger = logger.bind(component="transport_coverage_analyzer")

    async def analyze(self, query: str) -> CoverageResult:
        request = CoverageRequest(query=validate_query(query))

        try:
            payload = await asyncio.wait_for(
                self.transport(request.model_dump()), timeout=self.timeout_seconds
            )
        except TimeoutError:
            self.logger.error("coverage_service_timeout", timeout_seconds=self.timeout_seconds)
            return Result.err(
                CoverageServiceError(f"Coverage service timed out after {self.timeout_seconds}s")
            )
        except Exception as e:
            self.logger.error("coverage_service_unavailable", error=str(e))
            return Result.err(CoverageServiceError(f"Coverage service unavailable: {e}"))

        result = parse_coverage_payload(payload)
        if result.is_err():
            self.logger.warning("coverage_service_error", error=str(result.unwrap_err()))
        return result


class CoverageContext(BaseModel):
    """What the agent knows about the member's plan when judging coverage."""

    plan_name: str
    plan_type: str = ""
    deductible: BenefitSnapshot | None = None
    out_of_pocket: BenefitSnapshot | None = None


class AgentCoverageAnalyzer:
    """
    Pydantic AI agent acting as the coverage decision service.

    The determination is validated against CoverageDetermination, so a
    malformed model answer surfaces as a service failure, not a guess.
    """

    def __init__(self, config: CoverageConfig, context: CoverageContext | None = None) -> None:
        self.config = config
        self.context = context
        self.logger = logger.bind(component="agent_coverage_analyzer")

        self.agent = Agent(
            model=self.config.model_name,
            output_type=CoverageDetermination,
            system_prompt=self._build_system_prompt(),
            retries=self.config.max_retries,
            model_settings={"temperature": self.config.temperature},
            defer_model_check=True,
        )

    def _build_system_prompt(self) -> str:
        return """You are a health insurance benefits specialist helping a member understand
whether a treatment is covered by their plan.

Given a free-text description of symptoms, a diagnosis or a requested service:
1. Identify the most likely billed procedure and its CPT code
2. Decide whether the member's plan covers it
3. Explain how the deductible applies
4. Flag whether pre-authorization is typically required
5. Offer at most three practical suggestions to improve the chance of coverage
   or lower out-of-pocket cost

Be concrete. Never invent plan details that are not in the context."""

    def _build_user_prompt(self, query: str) -> str:
        lines = [f"MEMBER REQUEST: {query}"]

        if self.context:
            plan = self.context.plan_name
            if self.context.plan_type:
                plan = f"{plan} ({self.context.plan_type})"
            lines.append(f"PLAN: {plan}")
            for label, snapshot in (
                ("DEDUCTIBLE", self.context.deductible),
                ("OUT-OF-POCKET MAX", self.context.out_of_pocket),
            ):
                if snapshot:
                    lines.append(
                        f"{label}: {snapshot.usage_label} ({snapshot.percentage:.0f}% used)"
                    )
        else:
            lines.append("PLAN: unknown")

        return "\n".join(lines)

    async def analyze(self, query: str) -> CoverageResult:
        cleaned = validate_query(query)

        try:
            result = await asyncio.wait_for(
                self.agent.run(self._build_user_prompt(cleaned)),
                timeout=self.config.timeout_seconds,
            )
        except TimeoutError:
            self.logger.error(
                "coverage_analysis_timeout", timeout_seconds=self.config.timeout_seconds
            )
            return Result.err(
                CoverageServiceError(
                    f"Coverage analysis timed out after {self.config.timeout_seconds}s"
                )
            )
        except Exception as e:
            self.logger.error("coverage_analysis_failed", error=str(e))
            return Result.err(CoverageServiceError(f"Coverage analysis failed: {e}"))

        determination = result.output
        self.logger.info(
            "coverage_analysis_completed",
            cpt_code=determination.cpt_code,
            covered=determination.covered,
            pre_auth_required=determination.pre_auth_required,
        )
        return Result.ok(determination)


class AnalysisState(str, Enum):
    """What the caller should show for the coverage check."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    READY = "ready"
    FAILED = "failed"


class AnalysisSnapshot(BaseModel):
    """Observable state of a coverage session at one point in time."""

    model_config = ConfigDict(frozen=True)

    state: AnalysisState = AnalysisState.IDLE
    request_id: int = 0
    query: str | None = None
    determination: CoverageDetermination | None = None
    error: str | None = None


class CoverageAnalysisSession:
    """
    Tracks the member's coverage checks and keeps only the latest answer.

    Each submit is tagged with a monotonically increasing request id. When a
    slow response arrives after a newer query was issued, it is logged and
    discarded instead of overwriting the newer state.
    """

    def __init__(self, analyzer: CoverageAnalyzer) -> None:
        self.analyzer = analyzer
        self.logger = logger.bind(component="coverage_analysis_session")
        self._latest_request_id = 0
        self._snapshot = AnalysisSnapshot()

    @property
    def snapshot(self) -> AnalysisSnapshot:
        return self._snapshot

    @property
    def is_analyzing(self) -> bool:
        return self._snapshot.state == AnalysisState.ANALYZING

    async def submit(self, query: str) -> AnalysisSnapshot:
        """
        Run one coverage check and return the session state afterwards.

        Raises EmptyQuery synchronously, before the session state changes.
        """
        cleaned = validate_query(query)

        self._latest_request_id += 1
        request_id = self._latest_request_id
        self._snapshot = AnalysisSnapshot(
            state=AnalysisState.ANALYZING, request_id=request_id, query=cleaned
        )
        self.logger.info("coverage_analysis_started", request_id=request_id)

        try:
            result = await self.analyzer.analyze(cleaned)
        except asyncio.CancelledError:
            self.logger.info("coverage_analysis_cancelled", request_id=request_id)
            if request_id == self._latest_request_id:
                self._snapshot = AnalysisSnapshot(request_id=request_id)
            raise
        except Exception as e:
            self.logger.exception("coverage_analyzer_crashed", request_id=request_id, error=str(e))
            result = Result.err(CoverageServiceError(f"Coverage analyzer error: {e}"))

        if request_id != self._latest_request_id:
            self.logger.info(
                "stale_coverage_result_discarded",
                request_id=request_id,
                latest_request_id=self._latest_request_id,
            )
            return self._snapshot

        if result.is_ok():
            self._snapshot = AnalysisSnapshot(
                state=AnalysisState.READY,
                request_id=request_id,
                query=cleaned,
                determination=result.unwrap(),
            )
        else:
            self._snapshot = AnalysisSnapshot(
                state=AnalysisState.FAILED,
                request_id=request_id,
                query=cleaned,
                error=str(result.unwrap_err()),
            )

        self.logger.info(
            "coverage_analysis_finished", request_id=request_id, state=self._snapshot.state.value
        )
        return self._snapshot

    def reset(self) -> None:
        """Return to idle. Any in-flight response becomes stale."""
        self._latest_request_id += 1
        self._snapshot = AnalysisSnapshot()


def build_coverage_analyzer(
    config: AppConfig | None = None, context: CoverageContext | None = None
) -> CoverageAnalyzer:
    """Create the analyzer selected by configuration."""
    config = config or get_config()

    if config.coverage.backend == "agent":
        return AgentCoverageAnalyzer(config.coverage, context)
    return StaticCoverageAnalyzer(delay_seconds=config.coverage.mock_delay_seconds)
