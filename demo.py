"""
Walkthrough of the navigator core on the sample member data.

This script exercises:
1. Configuration loading and logging setup
2. Benefit usage tracking and status bands
3. Claim summary and the appeal flow
4. Appeal letter generation
5. Coverage analysis through the configured analyzer

Run with: uv run python demo.py
"""

import asyncio
from datetime import date

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from claritycare.config import get_config
from claritycare.domain.errors import NavigatorError
from claritycare.domain.models import (
    BenefitProgress,
    BenefitStatus,
    Claim,
    ClaimStatus,
    InsurancePlan,
)
from claritycare.services import claims_ledger
from claritycare.services.appeal_composer import AppealDraft, submission_notice
from claritycare.services.coverage_analyzer import (
    COVERAGE_DISPLAY,
    PRE_AUTH_NOTICE,
    AnalysisState,
    CoverageAnalysisSession,
    CoverageContext,
    build_coverage_analyzer,
)
from claritycare.services.dashboard import build_dashboard
from claritycare.services.results import configure_logging

console = Console()

SAMPLE_PLAN = InsurancePlan(
    id="1",
    name="Blue Cross Blue Shield PPO",
    type="PPO",
    member_id="ABC123456789",
    group_number="GRP001",
)

SAMPLE_BENEFITS = [
    BenefitProgress(name="Annual Deductible", used=1600, total=2000, unit="$", color_tag="#FF6B6B"),
    BenefitProgress(name="Out-of-Pocket Max", used=3200, total=5000, unit="$", color_tag="#4ECDC4"),
    BenefitProgress(
        name="Primary Care Visits", used=3, total=12, unit="visits", color_tag="#45B7D1"
    ),
    BenefitProgress(name="Specialist Visits", used=1, total=8, unit="visits", color_tag="#96CEB4"),
    BenefitProgress(
        name="Mental Health Sessions", used=0, total=20, unit="sessions", color_tag="#FFEAA7"
    ),
    BenefitProgress(
        name="Prescription Coverage", used=450, total=1000, unit="$", color_tag="#DDA0DD"
    ),
]

SAMPLE_CLAIMS = [
    Claim(
        id="C001",
        date=date(2024, 1, 15),
        provider="Dr. Sarah Johnson",
        service="Annual Physical",
        amount=250,
        status=ClaimStatus.APPROVED,
        description="Routine annual checkup and blood work",
    ),
    Claim(
        id="C002",
        date=date(2024, 1, 20),
        provider="City Radiology",
        service="MRI Lumbar Spine",
        amount=1200,
        status=ClaimStatus.DENIED,
        description="MRI for lower back pain - denied for lack of pre-authorization",
    ),
    Claim(
        id="C003",
        date=date(2024, 2, 1),
        provider="Dr. Michael Chen",
        service="Specialist Consultation",
        amount=180,
        status=ClaimStatus.PENDING,
        description="Cardiology consultation for chest pain",
    ),
    Claim(
        id="C004",
        date=date(2024, 2, 10),
        provider="Mental Health Center",
        service="Therapy Session",
        amount=120,
        status=ClaimStatus.APPROVED,
        description="Individual therapy session",
    ),
]


def show_benefits() -> None:
    console.print(Panel("Benefits Tracker", style="blue"))

    dashboard = build_dashboard(SAMPLE_PLAN, SAMPLE_BENEFITS, SAMPLE_CLAIMS)

    table = Table(title=f"{SAMPLE_PLAN.name} - Member {SAMPLE_PLAN.member_id}")
    table.add_column("Benefit", style="cyan")
    table.add_column("Usage", style="white")
    table.add_column("Used", justify="right")
    table.add_column("Status")

    for snapshot in dashboard.benefits:
        table.add_row(
            snapshot.benefit.name,
            snapshot.usage_label,
            f"{snapshot.percentage:.0f}%",
            snapshot.limit_message or snapshot.display.label,
            style=None if snapshot.status == BenefitStatus.OK else snapshot.display.color_tag,
        )

    console.print(table)

    for notice in dashboard.notices:
        console.print(f"• {notice.title}: {notice.description}", style=notice.color_tag)


def show_claims_and_appeal() -> None:
    console.print(Panel("Claims & Appeals", style="blue"))

    summary = claims_ledger.summarize(SAMPLE_CLAIMS)
    console.print(
        f"Total: {summary.total}  Approved: {summary.approved_count}  "
        f"Denied: {summary.denied_count}  Pending: {summary.pending_count}"
    )

    denied = claims_ledger.find_claim(SAMPLE_CLAIMS, "C002")
    if denied is None:
        return

    draft = AppealDraft(claim=denied).with_reason(
        "Medically necessary per physician note documenting neurological symptoms"
    )
    config = get_config()

    try:
        letter = draft.letter(
            member_id=config.appeals.default_member_id or SAMPLE_PLAN.member_id,
            submission_date=date.today(),
        )
        appealed = draft.submit()
    except NavigatorError as e:
        console.print(f"Appeal blocked: {e}", style="red")
        return

    console.print(Panel(letter, title="Appeal Letter Generated"))
    console.print(submission_notice(appealed, config.appeals.response_window_days), style="green")

    display = claims_ledger.status_display(appealed.status)
    console.print(f"Claim {appealed.id} is now {display.label}", style=display.color_tag)


async def show_coverage_check() -> None:
    console.print(Panel("Coverage Checker", style="blue"))

    dashboard = build_dashboard(SAMPLE_PLAN, SAMPLE_BENEFITS, [])
    context = CoverageContext(
        plan_name=SAMPLE_PLAN.name,
        plan_type=SAMPLE_PLAN.type,
        deductible=dashboard.benefit("Annual Deductible"),
        out_of_pocket=dashboard.benefit("Out-of-Pocket Max"),
    )
    session = CoverageAnalysisSession(build_coverage_analyzer(context=context))

    console.print("Analyzing...", style="yellow")
    snapshot = await session.submit("MRI for lower back pain")

    if snapshot.state == AnalysisState.FAILED:
        console.print(f"Coverage service unavailable: {snapshot.error}", style="red")
        return

    determination = snapshot.determination
    if determination is None:
        return

    display = COVERAGE_DISPLAY[determination.covered]
    console.print(display.label, style=display.color_tag)
    console.print(f"CPT Code: {determination.cpt_code}")
    console.print(f"Description: {determination.description}")
    console.print(f"Coverage: {determination.coverage_note}")
    console.print(f"Deductible Status: {determination.deductible_note}")
    if determination.pre_auth_required:
        console.print(PRE_AUTH_NOTICE, style="#FF9800")
    for suggestion in determination.suggestions:
        console.print(f"  • {suggestion}")


async def main() -> None:
    config = get_config()
    configure_logging(config.logging.level, config.logging.format)
    console.print(f"Configuration loaded for {config.environment} environment", style="green")

    show_benefits()
    show_claims_and_appeal()
    await show_coverage_check()


if __name__ == "__main__":
    asyncio.run(main())
