import pytest

from report_engine.models.schemas import (
    MAX_TITLE_LENGTH,
    ComparativeReportOptions,
    ComparativeReportRequest,
    IntelligentReportRequest,
    Product,
)
from report_engine.pipeline.orchestrator import CHARS_PER_TOKEN, COST_PER_TOKEN


def _comparative_request(product, analysis, template="comprehensive", **kwargs):
    return ComparativeReportRequest(
        project_id="proj-ready",
        product=product,
        analysis=analysis,
        options=ComparativeReportOptions(template=template),
        **kwargs,
    )


def _intelligent_request(product, analysis, enhance=False, template="comprehensive"):
    return IntelligentReportRequest(
        project_id="proj-ready",
        product=product,
        analysis=analysis,
        options=ComparativeReportOptions(template=template, include_charts=True),
        enhance_with_ai=enhance,
    )


@pytest.mark.asyncio
async def test_comprehensive_report(make_generator, product, comparative_analysis, report_store, settings):
    generator = make_generator()

    response = await generator.generate_comparative_report(
        _comparative_request(product, comparative_analysis, task_id="cmp-1")
    )

    assert response.success is True
    assert response.task_id == "cmp-1"
    report = response.report
    assert report.title == "Comparative Analysis Report: Acme CRM - Comprehensive Analysis"
    assert report.description.endswith("Analysis of Acme CRM against 2 competitors")
    assert [s.order for s in report.sections] == [1, 2, 3, 4, 5]
    assert [s.section_type for s in report.sections] == [
        "executive_summary",
        "feature_comparison",
        "positioning_analysis",
        "market_opportunities",
        "recommendations",
    ]
    assert report.metadata.report_type == "comparative"
    assert report.metadata.template == "comprehensive"
    assert report.metadata.data_completeness_score == 100
    assert report.metadata.competitor_count == 2
    assert report.metadata.confidence_score == 81

    section_chars = sum(len(s.content) for s in report.sections)
    assert response.tokens_used == -(-section_chars // CHARS_PER_TOKEN)
    assert response.cost == pytest.approx(response.tokens_used * COST_PER_TOKEN)

    assert len(await report_store.list_report_versions(report.id)) == 1
    files = list((settings.reports_dir / "proj-ready").glob("comparative-report-*.md"))
    assert len(files) == 1


@pytest.mark.asyncio
async def test_report_content_from_analysis(make_generator, product, comparative_analysis):
    generator = make_generator()

    response = await generator.generate_comparative_report(
        _comparative_request(product, comparative_analysis)
    )

    content = response.report.content
    assert "**Market Position:** Challenger" in content
    assert "**Opportunity Score:** 72/100" in content
    # Features only the product has, and competitor features it lacks
    assert "### Unique to Acme CRM\n- Integrations" in content
    assert "- Email sync\n- Forecasting" in content
    assert "Initech: A growing threat in mid-market CRM" in content
    assert "1. Ship forecasting beta" in content


@pytest.mark.parametrize(
    "template,section_count",
    [("executive", 2), ("technical", 3), ("strategic", 4)],
)
@pytest.mark.asyncio
async def test_template_sections(make_generator, product, comparative_analysis, template, section_count):
    generator = make_generator()

    response = await generator.generate_comparative_report(
        _comparative_request(product, comparative_analysis, template=template)
    )

    assert response.success is True
    assert len(response.report.sections) == section_count
    assert response.report.sections[0].section_type == "executive_summary"


@pytest.mark.asyncio
async def test_long_product_name_is_shortened_in_title(make_generator, comparative_analysis):
    generator = make_generator()
    product = Product(name="B" * 290)

    response = await generator.generate_comparative_report(
        _comparative_request(product, comparative_analysis, template="executive")
    )

    assert response.success is True
    title = response.report.title
    assert len(title) == MAX_TITLE_LENGTH
    assert title.startswith("Comparative Analysis Report: BBBB")
    assert title.endswith("... - Executive Summary")


@pytest.mark.asyncio
async def test_unknown_template(make_generator, product, comparative_analysis, report_store):
    generator = make_generator()

    response = await generator.generate_comparative_report(
        _comparative_request(product, comparative_analysis, template="quarterly")
    )

    assert response.success is False
    assert response.error_type == "validation_error"
    assert response.error == "Template not found: quarterly"
    assert response.report is None
    assert await report_store.list_reports() == []


# =============================================================================
# Intelligent reports
# =============================================================================

@pytest.mark.asyncio
async def test_intelligent_report_insights(make_generator, make_provider, product, comparative_analysis):
    provider = make_provider()
    generator = make_generator(provider=provider)

    response = await generator.generate_intelligent_report(
        _intelligent_request(product, comparative_analysis)
    )

    assert response.success is True
    assert response.actionable_insights == [
        "Ship forecasting beta",
        "Launch partner program",
        "Publish comparison pages",
        "Add SSO",
        "SMB migration",
        "Partner channel",
    ]
    assert response.enhanced_content == ""
    assert provider.calls == 0


@pytest.mark.asyncio
async def test_intelligent_report_enhancement(make_generator, make_provider, product, comparative_analysis):
    provider = make_provider(content="## Enhanced insights")
    generator = make_generator(provider=provider)

    response = await generator.generate_intelligent_report(
        _intelligent_request(product, comparative_analysis, enhance=True)
    )

    assert response.success is True
    assert response.enhanced_content == "## Enhanced insights"
    assert response.warnings == []
    assert "comprehensive comparative analysis report" in provider.prompts[0]
    assert "data visualizations" in provider.prompts[0]


@pytest.mark.asyncio
async def test_intelligent_report_enhancement_failure(make_generator, make_provider, product, comparative_analysis):
    provider = make_provider(error=RuntimeError("upstream 529"))
    generator = make_generator(provider=provider)

    response = await generator.generate_intelligent_report(
        _intelligent_request(product, comparative_analysis, enhance=True)
    )

    assert response.success is True
    assert response.report is not None
    assert response.enhanced_content == ""
    assert response.warnings == ["AI enhancement failed: upstream 529. Using template-based report."]


@pytest.mark.asyncio
async def test_intelligent_report_enhancement_timeout(make_generator, make_provider, product, comparative_analysis):
    generator = make_generator(provider=make_provider(delay=5))

    response = await generator.generate_intelligent_report(
        _intelligent_request(product, comparative_analysis, enhance=True)
    )

    assert response.success is True
    assert len(response.warnings) == 1
    assert "timed out" in response.warnings[0]


@pytest.mark.asyncio
async def test_intelligent_report_without_credentials(make_generator, product, comparative_analysis):
    generator = make_generator()

    response = await generator.generate_intelligent_report(
        _intelligent_request(product, comparative_analysis, enhance=True)
    )

    assert response.success is True
    assert response.warnings[0].startswith("AI enhancement failed: ANTHROPIC_API_KEY is not configured")


@pytest.mark.asyncio
async def test_intelligent_report_failure(make_generator, product, comparative_analysis):
    generator = make_generator()

    response = await generator.generate_intelligent_report(
        _intelligent_request(product, comparative_analysis, template="quarterly")
    )

    assert response.success is False
    assert response.error_type == "validation_error"
    assert response.actionable_insights == []
