import asyncio
from datetime import datetime, timedelta
from typing import Optional

import pytest

from report_engine.config.settings import Settings
from report_engine.models.schemas import (
    ComparativeAnalysis,
    Competitor,
    CompetitorAnalysis,
    Product,
    Project,
    Snapshot,
)
from report_engine.pipeline.orchestrator import ReportGenerator
from report_engine.services.report_store import InMemoryProjectStore, InMemoryReportStore
from report_engine.utils.formatters import ReportArchive


class FakeProvider:
    """Completion provider double that records prompts."""

    def __init__(
        self,
        content: str = "## Executive Summary\n\nAcme leads on integrations.",
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.content = content
        self.delay = delay
        self.error = error
        self.calls = 0
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.content


@pytest.fixture
def settings(tmp_path):
    """Real settings isolated from the environment and .env files."""
    return Settings(
        _env_file=None,
        anthropic_api_key=None,
        reports_dir=tmp_path / "reports",
        log_dir=tmp_path / "logs",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'reports.db'}",
        ai_analysis_timeout_seconds=0.5,
        generation_timeout_seconds=5,
        max_retries=1,
    )


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def product():
    return Product(name="Acme CRM", website="https://acme.example", description="CRM for small teams")


def _competitor(name: str, snapshot_count: int) -> Competitor:
    now = datetime.utcnow()
    return Competitor(
        name=name,
        website=f"https://{name.lower()}.example",
        snapshots=[
            Snapshot(
                content=f"{name} homepage capture {i}",
                url=f"https://{name.lower()}.example/page{i}",
                created_at=now - timedelta(hours=i),
            )
            for i in range(snapshot_count)
        ],
    )


@pytest.fixture
def ready_project(product):
    """Every competitor has captured data (100% complete)."""
    return Project(
        id="proj-ready",
        name="Acme Ready",
        product=product,
        competitors=[_competitor("Globex", 2), _competitor("Initech", 1)],
    )


@pytest.fixture
def partial_project(product):
    """One of four competitors has captured data (25% complete)."""
    return Project(
        id="proj-partial",
        name="Acme Partial",
        product=product,
        competitors=[
            _competitor("Globex", 1),
            _competitor("Initech", 0),
            _competitor("Hooli", 0),
            _competitor("Umbrella", 0),
        ],
    )


@pytest.fixture
def unscraped_project(product):
    """Competitors exist but none has any snapshot (0% complete)."""
    return Project(
        id="proj-unscraped",
        name="Acme Unscraped",
        product=product,
        competitors=[_competitor("Globex", 0), _competitor("Initech", 0)],
    )


@pytest.fixture
def solo_project(product):
    """A project without competitors."""
    return Project(id="proj-solo", name="Acme Solo", product=product)


@pytest.fixture
def project_store(ready_project, partial_project, unscraped_project, solo_project):
    return InMemoryProjectStore([ready_project, partial_project, unscraped_project, solo_project])


@pytest.fixture
def report_store():
    return InMemoryReportStore()


@pytest.fixture
def make_generator(settings, project_store, report_store):
    """Build a generator over the shared in-memory stores."""

    def _make(provider=None, llm_factory=None, **overrides):
        kwargs = {
            "settings": settings,
            "project_store": project_store,
            "report_store": report_store,
            "archive": ReportArchive(settings.reports_dir),
            "llm_service": provider,
            "llm_factory": llm_factory,
        }
        kwargs.update(overrides)
        return ReportGenerator(**kwargs)

    return _make


@pytest.fixture
def comparative_analysis():
    return ComparativeAnalysis(
        competitors=[
            CompetitorAnalysis(
                name="Globex",
                features=["Email sync", "Pipelines"],
                primary_message="The all-in-one sales platform",
            ),
            CompetitorAnalysis(
                name="Initech",
                features=["Pipelines", "Forecasting"],
                primary_message="A growing threat in mid-market CRM",
            ),
        ],
        product_features=["Pipelines", "Integrations"],
        market_position="Challenger",
        opportunity_score=72.4,
        threat_level="Medium",
        confidence_score=81,
        key_strengths=["Fast onboarding"],
        key_weaknesses=["No forecasting"],
        market_opportunities=["SMB migration", "Partner channel", "Vertical bundles"],
        competitive_advantages=["Integrations marketplace"],
        immediate_recommendations=["Ship forecasting beta"],
        short_term_recommendations=["Launch partner program", "Publish comparison pages", "Add SSO", "Localize UI"],
        long_term_recommendations=["Enter enterprise segment"],
        priority_score=65,
    )
