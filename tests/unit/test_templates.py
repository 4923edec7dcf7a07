from datetime import datetime

import pytest

from report_engine.models.schemas import MAX_TITLE_LENGTH, Competitor, Product, Snapshot
from report_engine.pipeline.templates import (
    REPORT_TEMPLATES,
    bullet_list,
    build_report_context,
    excerpt,
    format_competitive_analysis_prompt,
    format_enhanced_report_prompt,
    get_report_template,
    list_report_templates,
    numbered_list,
    render_fallback_overview,
    render_project_only,
    render_rule_based_analysis,
    render_sections,
    report_title,
)


@pytest.fixture
def bare_product():
    return Product(name="Acme CRM")


def test_list_helpers():
    assert bullet_list(["a", "", "b"]) == "- a\n- b"
    assert bullet_list([]) == "- None identified"
    assert numbered_list(["x", "y"]) == "1. x\n2. y"
    assert numbered_list([], empty="Nothing") == "1. Nothing"


def test_excerpt():
    assert excerpt("abcdef", 3) == "abc..."
    assert excerpt(None, 3) == "Limited data available"
    assert excerpt("", 3) == "Limited data available"


def test_report_title_keeps_short_names():
    assert report_title("Project Overview - {product_name}", "Acme CRM") == "Project Overview - Acme CRM"


def test_report_title_shortens_long_names():
    title = report_title("Basic Project Overview - {product_name}", "x" * 400)

    assert len(title) == MAX_TITLE_LENGTH
    assert title.startswith("Basic Project Overview - xxx")
    assert title.endswith("x...")

    fallback_title, _ = render_fallback_overview(Product(name="y" * 400), 2)
    assert len(fallback_title) == MAX_TITLE_LENGTH


def test_render_project_only(bare_product):
    title, content = render_project_only(bare_product)

    assert title == "Project Overview - Acme CRM"
    assert "- **Website:** Not specified" in content
    assert "- **Description:** No description available" in content


def test_render_fallback_overview(bare_product):
    title, content = render_fallback_overview(bare_product, 3)

    assert title == "Basic Project Overview - Acme CRM"
    assert content.startswith("# Initial Project Overview - Acme CRM")
    assert "- **Competitors:** 3 identified" in content


def test_render_rule_based_analysis(bare_product):
    captured = datetime(2024, 5, 1, 9, 0, 0)
    competitor = Competitor(name="Globex", snapshots=[Snapshot(content="x", created_at=captured)])

    content = render_rule_based_analysis(bare_product, [competitor])

    assert "1 competitors identified:" in content
    assert "1. **Globex** - Data collected on 2024-05-01T09:00:00" in content


def test_competitive_analysis_prompt_uses_latest_snapshot(bare_product):
    competitor = Competitor(
        name="Globex",
        website="https://globex.example",
        snapshots=[
            Snapshot(content="old capture", created_at=datetime(2024, 1, 1)),
            Snapshot(content="N" * 800, url="https://globex.example/new", created_at=datetime(2024, 2, 1)),
        ],
    )

    prompt = format_competitive_analysis_prompt(bare_product, [competitor], excerpt_chars=500)

    assert '"Acme CRM" (Not specified)' in prompt
    assert "1. Globex (https://globex.example/new)" in prompt
    assert "N" * 500 + "..." in prompt
    assert "N" * 501 not in prompt
    assert "old capture" not in prompt


def test_enhanced_report_prompt():
    assert "data visualizations" in format_enhanced_report_prompt("executive", include_charts=True)
    assert "data visualizations" not in format_enhanced_report_prompt("executive")


def test_template_registry():
    assert list_report_templates() == ["comprehensive", "executive", "technical", "strategic"]
    assert get_report_template("executive") is REPORT_TEMPLATES["executive"]
    with pytest.raises(KeyError):
        get_report_template("quarterly")


def test_render_sections(comparative_analysis, product):
    context = build_report_context(comparative_analysis, product)
    sections = render_sections(get_report_template("strategic"), context)

    assert [s.title for s in sections] == [
        "Executive Summary",
        "Positioning Analysis",
        "Market Opportunities",
        "Strategic Recommendations",
    ]
    assert context["competitor_count"] == 2
    assert "**Priority Score:** 65/100" in sections[-1].content
