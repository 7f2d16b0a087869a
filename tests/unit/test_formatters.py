import json
from unittest.mock import patch

import pytest

from auction_assistant.models.schemas import (
    AnalysisError,
    ListingResult,
    PostGenerationResult,
)
from auction_assistant.utils.formatters import (
    ListingFormatter,
    format_confidence_table,
    format_provenance_table,
    generate_listing_report,
    render_html,
    save_report,
)


def test_format_confidence_table(listing_result):
    table = format_confidence_table(listing_result.enriched.enrichment_data.confidence_scores)
    assert "| Attribute | Score | Level |" in table
    assert "| Category | 90 | high |" in table
    assert "| **Overall** | **95** | **high** |" in table


def test_format_provenance_table(listing_result):
    table = format_provenance_table(listing_result.merged.data_sources)
    assert "| Condition | 👤 User |" in table
    assert "| Attributes | 🔀 Merged |" in table
    assert "| Brand | 🤖 AI |" in table


def test_generate_listing_report_content(listing_result):
    report = generate_listing_report(listing_result)

    assert report.startswith("# Listing Report: Apple iPhone 13 Pro")
    assert "- **Category:** Electronics > Smartphones" in report
    assert "- **Condition:** Like New" in report
    assert "- **storage:** 128GB" in report
    assert "**Completeness:** 100% | **Condition Sentiment:** +0.80" in report
    assert "- Consider adding dimensions" in report
    assert "### Apple iPhone 13 Pro 128GB Graphite - Like New, Unlocked" in report
    assert "- Battery health 98%" in report
    assert "*Tone: enthusiastic | Style: feature_focused | 15 words | 90 characters | 1 emojis*" in report
    assert "- ⚠️ Description too short: 15 words (minimum 200)" in report
    assert "## A/B Variants" in report
    assert "### Benefit-focused approach (`variant-benefit-focused`)" in report
    assert "Run ID: run-123" in report


def test_report_without_post(listing_result):
    report = generate_listing_report(listing_result.model_copy(update={"post": None}))
    assert "*Post generation skipped.*" in report
    assert "## A/B Variants" not in report


def test_report_with_failed_post(listing_result):
    failed = PostGenerationResult(
        success=False,
        error=AnalysisError(code="GENERATION_ERROR", message="boom"),
    )
    report = generate_listing_report(listing_result.model_copy(update={"post": failed}))
    assert "*Post generation failed: boom*" in report


def test_render_html_uses_markdown_tables(listing_result):
    html = render_html(generate_listing_report(listing_result), title="iPhone")
    assert html.startswith("<!DOCTYPE html>")
    assert "<title>iPhone</title>" in html
    assert "<table>" in html
    assert "<h1" in html


def test_save_report_markdown(tmp_path):
    saved = save_report("# Test Report", tmp_path / "nested" / "report.txt", "markdown")

    assert saved == tmp_path / "nested" / "report.md"
    assert saved.read_text(encoding="utf-8") == "# Test Report"


@patch("auction_assistant.utils.formatters.markdown2")
def test_save_report_html(mock_markdown, tmp_path):
    mock_markdown.markdown.return_value = "<h1>Test</h1>"

    saved = save_report("# Test", tmp_path / "report", "html")

    assert saved.suffix == ".html"
    assert "<h1>Test</h1>" in saved.read_text(encoding="utf-8")
    mock_markdown.markdown.assert_called_once()


def test_save_report_invalid_format(tmp_path):
    with pytest.raises(ValueError, match="Unsupported format: pdf"):
        save_report("# Test", tmp_path / "report", "pdf")


def test_listing_formatter_json(listing_result, tmp_path):
    formatter = ListingFormatter(tmp_path / "out")

    saved = formatter.save(listing_result, "json")

    assert saved.parent == tmp_path / "out"
    assert saved.name.startswith("my_phone_")
    assert saved.suffix == ".json"
    data = json.loads(saved.read_text(encoding="utf-8"))
    assert data["runId"] == "run-123"
    assert data["merged"]["dataSources"]["condition"] == "user"
    assert ListingResult.model_validate(data) == listing_result


def test_listing_formatter_markdown(listing_result, tmp_path):
    saved = ListingFormatter(tmp_path).save(listing_result, "markdown")
    assert saved.suffix == ".md"
    assert "# Listing Report" in saved.read_text(encoding="utf-8")


def test_listing_formatter_defaults_to_settings_dir(listing_result, mock_settings):
    formatter = ListingFormatter()
    assert formatter.output_dir == mock_settings.output_dir
    assert formatter.output_dir.is_dir()


def test_listing_formatter_rejects_unknown_format(listing_result, tmp_path):
    with pytest.raises(ValueError):
        ListingFormatter(tmp_path).save(listing_result, "pdf")
