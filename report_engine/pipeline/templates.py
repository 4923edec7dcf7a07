"""
Report content templates and AI prompts.

This module holds every piece of deterministic report text the generator
produces plus the prompts it sends to the completion provider:

    1. Initial-report bodies (project-only, fallback overview, rule-based analysis)
    2. Competitive analysis prompt for the AI-powered initial report
    3. Comparative report templates (comprehensive, executive, technical, strategic)
    4. Enhanced-content prompt for intelligent reports

Templates are plain ``str.format`` strings; list values are pre-rendered into
markdown before formatting.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from report_engine.models.schemas import (
    MAX_TITLE_LENGTH,
    ComparativeAnalysis,
    Competitor,
    Product,
    ReportSection,
    ReportTemplateName,
)


NOT_SPECIFIED = "Not specified"


# =============================================================================
# Formatting Helpers
# =============================================================================

def bullet_list(items: Iterable[str], empty: str = "None identified") -> str:
    """Render items as a markdown bullet list."""
    rendered = [f"- {item}" for item in items if item]
    return "\n".join(rendered) if rendered else f"- {empty}"


def numbered_list(items: Iterable[str], empty: str = "None identified") -> str:
    rendered = [f"{i}. {item}" for i, item in enumerate((x for x in items if x), 1)]
    return "\n".join(rendered) if rendered else f"1. {empty}"


def excerpt(content: Optional[str], limit: int) -> str:
    """Leading slice of captured content for prompts."""
    if not content:
        return "Limited data available"
    return f"{content[:limit]}..."


def report_title(template: str, product_name: str) -> str:
    """Format a report title, shortening the product name to fit the title limit."""
    title = template.format(product_name=product_name)
    if len(title) <= MAX_TITLE_LENGTH:
        return title
    room = MAX_TITLE_LENGTH - len(template.format(product_name="")) - 3
    return template.format(product_name=product_name[:max(room, 0)] + "...")


# =============================================================================
# Initial Report Bodies
# =============================================================================

PROJECT_ONLY_TITLE = "Project Overview - {product_name}"

PROJECT_ONLY_TEMPLATE = """# Project Overview - {product_name}

## Product Information
- **Name:** {product_name}
- **Website:** {website}
- **Description:** {description}

## Competitive Analysis Status
No competitors have been assigned to this project yet.

## Recommendations
1. Add competitor companies to enable comprehensive competitive analysis
2. Ensure competitor websites are accessible for data collection
3. Re-run report generation after adding competitors"""


FALLBACK_OVERVIEW_TITLE = "Basic Project Overview - {product_name}"

FALLBACK_OVERVIEW_TEMPLATE = """# Initial Project Overview - {product_name}

## Executive Summary
This is a basic project overview generated without AI analysis due to service unavailability.

## Project Information
- **Product Name:** {product_name}
- **Website:** {website}
- **Competitors:** {competitor_count} identified

## Status
This report was generated in fallback mode. For comprehensive competitive analysis, ensure AI services are available and retry."""


INITIAL_ANALYSIS_TITLE = "Initial Competitive Analysis - {product_name}"

RULE_BASED_ANALYSIS_TEMPLATE = """# Competitive Analysis - {product_name}

## Executive Summary
This analysis was generated using template-based processing due to AI service unavailability.

## Product Overview
- **Name:** {product_name}
- **Website:** {website}

## Competitive Landscape
{competitor_count} competitors identified:
{competitor_lines}

## Analysis Limitations
This report was generated in fallback mode. For comprehensive AI-powered insights:
1. Ensure AI analysis services are properly configured
2. Verify network connectivity to analysis endpoints
3. Re-run the report generation process

## Next Steps
- Configure AI analysis services
- Collect fresh competitor data
- Generate comprehensive AI-powered analysis

*Generated using fallback template processing*"""


def render_project_only(product: Product) -> tuple[str, str]:
    """Return (title, content) for a project without competitors."""
    title = report_title(PROJECT_ONLY_TITLE, product.name)
    content = PROJECT_ONLY_TEMPLATE.format(
        product_name=product.name,
        website=product.website or NOT_SPECIFIED,
        description=product.description or "No description available",
    )
    return title, content


def render_fallback_overview(product: Product, competitor_count: int) -> tuple[str, str]:
    """Return (title, content) for the AI-unavailable overview."""
    title = report_title(FALLBACK_OVERVIEW_TITLE, product.name)
    content = FALLBACK_OVERVIEW_TEMPLATE.format(
        product_name=product.name,
        website=product.website or NOT_SPECIFIED,
        competitor_count=competitor_count,
    )
    return title, content


def render_rule_based_analysis(product: Product, competitors: list[Competitor]) -> str:
    """Deterministic analysis body listing data-ready competitors and capture times."""
    lines = []
    for index, competitor in enumerate(competitors, 1):
        snapshot = competitor.latest_snapshot
        captured = snapshot.created_at.isoformat() if snapshot else "no data captured"
        lines.append(f"{index}. **{competitor.name}** - Data collected on {captured}")

    return RULE_BASED_ANALYSIS_TEMPLATE.format(
        product_name=product.name,
        website=product.website or NOT_SPECIFIED,
        competitor_count=len(competitors),
        competitor_lines="\n".join(lines) if lines else "No competitor data captured yet.",
    )


# =============================================================================
# AI Prompts
# =============================================================================

COMPETITIVE_ANALYSIS_PROMPT = """Generate a comprehensive competitive analysis for "{product_name}" ({website}) against the following competitors:

{competitor_blocks}

Please provide:
1. Executive Summary
2. Competitive Positioning
3. Key Strengths and Weaknesses
4. Market Opportunities
5. Strategic Recommendations

Format the response in markdown."""

COMPETITOR_BLOCK = """{index}. {name} ({url})
   Key data: {excerpt}"""


def format_competitive_analysis_prompt(
    product: Product,
    competitors: list[Competitor],
    excerpt_chars: int = 500,
) -> str:
    """Build the initial-report prompt from each competitor's newest snapshot."""
    blocks = []
    for index, competitor in enumerate(competitors, 1):
        snapshot = competitor.latest_snapshot
        blocks.append(
            COMPETITOR_BLOCK.format(
                index=index,
                name=competitor.name,
                url=(snapshot.url if snapshot and snapshot.url else competitor.website) or "unknown",
                excerpt=excerpt(snapshot.content if snapshot else None, excerpt_chars),
            )
        )

    return COMPETITIVE_ANALYSIS_PROMPT.format(
        product_name=product.name,
        website=product.website or NOT_SPECIFIED,
        competitor_blocks="\n\n".join(blocks),
    )


ENHANCED_REPORT_PROMPT = """Generate enhanced insights for a {template} comparative analysis report.
Focus on actionable recommendations and strategic insights.
Include market positioning analysis and competitive advantages.
{charts}
Provide content in markdown format only."""


def format_enhanced_report_prompt(template: str, include_charts: bool = False) -> str:
    return ENHANCED_REPORT_PROMPT.format(
        template=template,
        charts="Include suggestions for data visualizations." if include_charts else "",
    )


# =============================================================================
# Comparative Report Templates
# =============================================================================

@dataclass(frozen=True)
class SectionTemplate:
    """A single comparative report section."""
    title: str
    section_type: str
    order: int
    template: str


@dataclass(frozen=True)
class ReportTemplate:
    """A named set of sections rendered from one comparative analysis."""
    name: str
    display_name: str
    description: str
    focus_areas: tuple[str, ...] = ()
    sections: tuple[SectionTemplate, ...] = field(default_factory=tuple)


EXECUTIVE_SUMMARY_SECTION = SectionTemplate(
    title="Executive Summary",
    section_type="executive_summary",
    order=1,
    template="""## Executive Summary

**{product_name}** was analyzed against {competitor_count} competitors.

- **Market Position:** {market_position}
- **Opportunity Score:** {opportunity_score}/100
- **Threat Level:** {threat_level}
- **Confidence:** {confidence_score}%

### Key Strengths
{key_strengths}

### Key Weaknesses
{key_weaknesses}""",
)

FEATURE_COMPARISON_SECTION = SectionTemplate(
    title="Feature Comparison",
    section_type="feature_comparison",
    order=2,
    template="""## Feature Comparison

### {product_name} Features
{product_features}

### Unique to {product_name}
{unique_features}

### Feature Gaps
{feature_gaps}

### Competitor Features
{competitor_features}""",
)

POSITIONING_SECTION = SectionTemplate(
    title="Positioning Analysis",
    section_type="positioning_analysis",
    order=3,
    template="""## Positioning Analysis

### Competitor Positioning
{competitor_positioning}

### Competitive Advantages
{competitive_advantages}

### Key Threats
{key_threats}""",
)

OPPORTUNITIES_SECTION = SectionTemplate(
    title="Market Opportunities",
    section_type="market_opportunities",
    order=4,
    template="""## Market Opportunities

{market_opportunities}""",
)

RECOMMENDATIONS_SECTION = SectionTemplate(
    title="Strategic Recommendations",
    section_type="recommendations",
    order=5,
    template="""## Strategic Recommendations

**Priority Score:** {priority_score}/100

### Immediate Actions
{immediate_actions}

### Short-Term Actions
{short_term_actions}

### Long-Term Actions
{long_term_actions}""",
)


REPORT_TEMPLATES: dict[str, ReportTemplate] = {
    ReportTemplateName.COMPREHENSIVE.value: ReportTemplate(
        name=ReportTemplateName.COMPREHENSIVE.value,
        display_name="Comprehensive Analysis",
        description="Complete competitive analysis across features, positioning and strategy",
        focus_areas=("features", "positioning", "opportunities", "recommendations"),
        sections=(
            EXECUTIVE_SUMMARY_SECTION,
            FEATURE_COMPARISON_SECTION,
            POSITIONING_SECTION,
            OPPORTUNITIES_SECTION,
            RECOMMENDATIONS_SECTION,
        ),
    ),
    ReportTemplateName.EXECUTIVE.value: ReportTemplate(
        name=ReportTemplateName.EXECUTIVE.value,
        display_name="Executive Summary",
        description="High-level competitive summary for leadership",
        focus_areas=("positioning", "recommendations"),
        sections=(EXECUTIVE_SUMMARY_SECTION, RECOMMENDATIONS_SECTION),
    ),
    ReportTemplateName.TECHNICAL.value: ReportTemplate(
        name=ReportTemplateName.TECHNICAL.value,
        display_name="Technical Analysis",
        description="Feature-level comparison for product and engineering teams",
        focus_areas=("features",),
        sections=(EXECUTIVE_SUMMARY_SECTION, FEATURE_COMPARISON_SECTION, RECOMMENDATIONS_SECTION),
    ),
    ReportTemplateName.STRATEGIC.value: ReportTemplate(
        name=ReportTemplateName.STRATEGIC.value,
        display_name="Strategic Analysis",
        description="Market positioning and opportunity analysis",
        focus_areas=("positioning", "opportunities", "recommendations"),
        sections=(
            EXECUTIVE_SUMMARY_SECTION,
            POSITIONING_SECTION,
            OPPORTUNITIES_SECTION,
            RECOMMENDATIONS_SECTION,
        ),
    ),
}


def get_report_template(name: str) -> ReportTemplate:
    """
    Get a comparative report template by name.

    Raises:
        KeyError: If the template is not registered
    """
    if name not in REPORT_TEMPLATES:
        raise KeyError(f"Template not found: {name}")
    return REPORT_TEMPLATES[name]


def list_report_templates() -> list[str]:
    """List all available comparative report templates."""
    return list(REPORT_TEMPLATES)


def build_report_context(analysis: ComparativeAnalysis, product: Product) -> dict[str, Any]:
    """Flatten a comparative analysis into template fields."""
    competitor_features = [f for c in analysis.competitors for f in c.features]
    unique = [f for f in analysis.product_features if f not in competitor_features]
    gaps = sorted({f for f in competitor_features if f not in analysis.product_features})
    threats = [
        f"{c.name}: {c.primary_message}"
        for c in analysis.competitors
        if "threat" in c.primary_message.lower()
    ]

    return {
        "product_name": product.name,
        "competitor_count": len(analysis.competitors),
        "market_position": analysis.market_position,
        "opportunity_score": round(analysis.opportunity_score),
        "threat_level": analysis.threat_level,
        "confidence_score": round(analysis.confidence_score),
        "priority_score": round(analysis.priority_score),
        "key_strengths": bullet_list(analysis.key_strengths),
        "key_weaknesses": bullet_list(analysis.key_weaknesses),
        "product_features": bullet_list(analysis.product_features),
        "unique_features": bullet_list(unique),
        "feature_gaps": bullet_list(gaps),
        "competitor_features": bullet_list(
            f"**{c.name}:** {', '.join(c.features) or 'No features captured'}"
            for c in analysis.competitors
        ),
        "competitor_positioning": bullet_list(
            f"**{c.name}:** {c.primary_message or 'No messaging captured'}"
            for c in analysis.competitors
        ),
        "competitive_advantages": bullet_list(analysis.competitive_advantages),
        "key_threats": bullet_list(threats),
        "market_opportunities": bullet_list(analysis.market_opportunities),
        "immediate_actions": numbered_list(analysis.immediate_recommendations),
        "short_term_actions": numbered_list(analysis.short_term_recommendations),
        "long_term_actions": numbered_list(analysis.long_term_recommendations),
    }


def render_sections(template: ReportTemplate, context: dict[str, Any]) -> list[ReportSection]:
    """Render every section of a template in display order."""
    return [
        ReportSection(
            title=section.title,
            content=section.template.format(**context),
            section_type=section.section_type,
            order=section.order,
        )
        for section in sorted(template.sections, key=lambda s: s.order)
    ]


__all__ = [
    "SectionTemplate",
    "ReportTemplate",
    "REPORT_TEMPLATES",
    "INITIAL_ANALYSIS_TITLE",
    "bullet_list",
    "numbered_list",
    "excerpt",
    "render_project_only",
    "render_fallback_overview",
    "render_rule_based_analysis",
    "format_competitive_analysis_prompt",
    "format_enhanced_report_prompt",
    "get_report_template",
    "list_report_templates",
    "build_report_context",
    "render_sections",
]
