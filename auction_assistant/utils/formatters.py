"""
Listing report formatting utilities.

Renders a pipeline ``ListingResult`` as a seller-facing report in Markdown,
HTML (via markdown2) or JSON.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import markdown2

from auction_assistant.config.settings import get_settings
from auction_assistant.models.schemas import (
    AttributeConfidence,
    DataSources,
    GeneratedPost,
    ListingResult,
    PostVariant,
    ProductAnalysis,
)
from auction_assistant.utils.confidence_scoring import score_to_confidence_level
from auction_assistant.utils.logger import get_logger

logger = get_logger(__name__)

REPORT_FORMATS = ("markdown", "html", "json")

CONFIDENCE_ROWS = (
    ("Product Type", "product_type"),
    ("Category", "category"),
    ("Brand", "brand"),
    ("Condition", "condition"),
    ("Attributes", "attributes"),
    ("Visual Quality", "visual_quality"),
)

PROVENANCE_ROWS = (
    ("Product Type", "product_type"),
    ("Brand", "brand"),
    ("Condition", "condition"),
    ("Attributes", "attributes"),
    ("Description", "description"),
    ("Title", "title"),
)

SOURCE_LABELS = {"ai": "🤖 AI", "user": "👤 User", "merged": "🔀 Merged"}

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>{title}</title>
<style>
body {{ font-family: -apple-system, system-ui, sans-serif; max-width: 900px; margin: 0 auto; padding: 40px; line-height: 1.6; color: #333; }}
table {{ border-collapse: collapse; width: 100%; margin: 20px 0; }}
th, td {{ border: 1px solid #ddd; padding: 12px; text-align: left; }}
th {{ background-color: #f5f5f5; }}
h1, h2, h3 {{ color: #2c3e50; margin-top: 30px; }}
h1 {{ border-bottom: 2px solid #2c3e50; padding-bottom: 10px; }}
blockquote {{ border-left: 4px solid #ddd; margin: 0; padding-left: 16px; color: #555; }}
</style>
</head>
<body>
{body}
</body>
</html>
"""


def _cell(value: object) -> str:
    """Table cell text with pipes escaped."""
    return str(value).replace("|", "-").replace("\n", " ")


def format_confidence_table(scores: AttributeConfidence) -> str:
    """
    Markdown table of per-attribute confidence.

    | Attribute | Score | Level |
    |-----------|-------|-------|
    | Brand | 85 | high |
    """
    header = "| Attribute | Score | Level |\n|-----------|-------|-------|"
    rows = [
        f"| {label} | {getattr(scores, name)} | {score_to_confidence_level(getattr(scores, name)).value} |"
        for label, name in CONFIDENCE_ROWS
    ]
    rows.append(
        f"| **Overall** | **{scores.overall}** | **{score_to_confidence_level(scores.overall).value}** |"
    )
    return header + "\n" + "\n".join(rows)


def format_provenance_table(sources: DataSources) -> str:
    header = "| Field | Source |\n|-------|--------|"
    rows = [
        f"| {label} | {SOURCE_LABELS[getattr(sources, name).value]} |"
        for label, name in PROVENANCE_ROWS
    ]
    return header + "\n" + "\n".join(rows)


def format_product_details(analysis: ProductAnalysis) -> str:
    attrs = analysis.attributes
    lines = [
        f"- **Product:** {analysis.product_type}",
        f"- **Category:** {' > '.join(c for c in (analysis.category.primary, analysis.category.secondary, analysis.category.tertiary) if c)}",
        f"- **Brand:** {analysis.brand.name if analysis.brand else 'Not identified'}",
        f"- **Condition:** {analysis.condition.value.replace('_', ' ').title()}",
    ]
    if attrs.model:
        lines.append(f"- **Model:** {attrs.model}")
    if attrs.color:
        lines.append(f"- **Color:** {', '.join(attrs.color)}")
    if attrs.material:
        lines.append(f"- **Material:** {', '.join(attrs.material)}")
    if attrs.size:
        lines.append(f"- **Size:** {attrs.size}")
    if attrs.year:
        lines.append(f"- **Year:** {attrs.year}")
    for key, value in (attrs.custom_attributes or {}).items():
        lines.append(f"- **{key}:** {value}")
    return "\n".join(lines)


def format_post_section(post: GeneratedPost) -> str:
    metadata = post.metadata
    lines = [
        f"### {post.title}",
        "",
        post.description,
        "",
    ]
    if post.selling_points:
        lines.append("**Key Selling Points:**")
        lines.extend(f"- {point}" for point in post.selling_points)
        lines.append("")

    lines.append(
        f"*Tone: {post.tone.value} | Style: {post.style.value} | "
        f"{metadata.word_count} words | {metadata.character_count} characters | "
        f"{metadata.emoji_count} emojis*"
    )

    issues = [
        *post.validation.title.errors,
        *post.validation.title.warnings,
        *post.validation.description.errors,
        *post.validation.description.warnings,
    ]
    if issues:
        lines.append("")
        lines.append("**Formatting Checks:**")
        lines.extend(f"- ⚠️ {issue}" for issue in issues)

    return "\n".join(lines)


def format_variants_section(variants: list[PostVariant]) -> str:
    if not variants:
        return "*No variants generated.*"
    blocks = []
    for variant in variants:
        blocks.append(
            f"### {variant.differentiating_factor} (`{variant.variant_id}`)\n\n"
            f"**{variant.title}**\n\n{variant.description}"
        )
    return "\n\n".join(blocks)


def generate_listing_report(result: ListingResult) -> str:
    """
    Generate the complete Markdown listing report.

    Structure:
    # Listing Report: {product}
    ## Product Details
    ## Confidence
    ## Data Sources
    ## Warnings
    ## Marketplace Post
    ## A/B Variants
    """
    enriched = result.enriched
    enrichment = enriched.enrichment_data
    timestamp = result.completed_at.strftime("%Y-%m-%d %H:%M UTC")

    warnings = list(dict.fromkeys([
        *result.merged.validation_status.warnings,
        *result.enrichment_validation.errors,
        *result.enrichment_validation.warnings,
    ]))
    warnings_text = "\n".join(f"- {w}" for w in warnings) if warnings else "*No warnings.*"

    sentiment = (
        f"{enrichment.sentiment_score:+.2f}" if enrichment.sentiment_score is not None else "N/A"
    )

    if result.post and result.post.success and result.post.primary_post:
        post_text = format_post_section(result.post.primary_post)
    elif result.post and result.post.error:
        post_text = f"*Post generation failed: {result.post.error.message}*"
    else:
        post_text = "*Post generation skipped.*"

    sections = [
        f"# Listing Report: {enriched.product_type}",
        f"## Product Details\n{format_product_details(enriched)}",
        (
            f"## Confidence\n{format_confidence_table(enrichment.confidence_scores)}\n\n"
            f"**Completeness:** {enrichment.completeness_score}% | **Condition Sentiment:** {sentiment}"
        ),
        f"## Data Sources\n{format_provenance_table(result.merged.data_sources)}",
        f"## Warnings\n{warnings_text}",
        f"## Marketplace Post\n{post_text}",
    ]
    if result.post and result.post.variants:
        sections.append(f"## A/B Variants\n{format_variants_section(result.post.variants)}")

    sections.append(f"---\nGenerated on: {timestamp}\nRun ID: {result.run_id}")
    return "\n\n".join(sections) + "\n"


def render_html(report: str, title: str = "Listing Report") -> str:
    body = markdown2.markdown(
        report,
        extras=["tables", "fenced-code-blocks", "header-ids", "break-on-newline"],
    )
    return HTML_TEMPLATE.format(title=title, body=body)


def save_report(report: str, output_path: Path, format: str = "markdown") -> Path:
    """
    Save a Markdown report to file, optionally converting it to HTML.

    Args:
        report: Markdown content
        output_path: Destination path (extension is replaced)
        format: 'markdown' or 'html'
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    base_path = output_path.with_suffix("")

    if format == "markdown":
        file_path = base_path.with_suffix(".md")
        file_path.write_text(report, encoding="utf-8")
    elif format == "html":
        file_path = base_path.with_suffix(".html")
        file_path.write_text(render_html(report), encoding="utf-8")
    else:
        raise ValueError(f"Unsupported format: {format}")

    logger.info("Saved listing report", path=str(file_path), format=format)
    return file_path


class ListingFormatter:
    """Writes listing reports to the configured output directory."""

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = Path(output_dir or get_settings().output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def filename_for(self, result: ListingResult) -> str:
        stem = Path(result.image).stem.lower().replace(" ", "_") or "listing"
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        return f"{stem}_{timestamp}"

    def save(self, result: ListingResult, format_type: str = "markdown") -> Path:
        if format_type not in REPORT_FORMATS:
            raise ValueError(f"Unsupported format: {format_type}")

        output_path = self.output_dir / self.filename_for(result)

        if format_type == "json":
            file_path = output_path.with_suffix(".json")
            file_path.write_text(result.to_json(), encoding="utf-8")
            logger.info("Saved listing report", path=str(file_path), format="json")
            return file_path

        return save_report(generate_listing_report(result), output_path, format_type)
