import pytest

from auction_assistant.models.schemas import (
    DescriptionStyle,
    MarketplaceTone,
    ParsedSellingPoints,
    RawSellingPoints,
)
from auction_assistant.prompts.marketplace_prompts import (
    DESCRIPTION_CONFIG,
    SELLING_POINTS_CONFIG,
    TITLE_CONFIG,
)
from auction_assistant.services.post_generation_service import (
    DEFAULT_POST_CTA,
    Generation,
    PostGenerationOptions,
    PostGenerationService,
    SellingPointsGeneration,
    parse_selling_points,
)
from auction_assistant.utils.errors import ConfigurationError, UnknownElementError

TITLE = "apple iPhone 13 Pro 128GB Graphite - good condition, unlocked!!"
DESCRIPTION = "Great phone. Works perfectly."
POINTS = '["Unlocked for any carrier", "Battery health 90%"]'


@pytest.fixture
def service(mock_settings, mock_anthropic_client):
    return PostGenerationService(settings=mock_settings, client=mock_anthropic_client)


def replies(message_factory, *texts):
    return [message_factory(text) if isinstance(text, str) else text for text in texts]


# =============================================================================
# parse_selling_points
# =============================================================================

def test_parse_selling_points_json_array():
    result = parse_selling_points('```json\n["Fast", "Light"]\n```')
    assert isinstance(result, ParsedSellingPoints)
    assert result.points == ["Fast", "Light"]


def test_parse_selling_points_empty_reply():
    assert parse_selling_points("   ") == ParsedSellingPoints(points=[])


@pytest.mark.parametrize(
    "text,reason",
    [
        ("Here are some points: fast and light", "Invalid JSON"),
        ('{"points": ["Fast"]}', "Expected a JSON array of strings"),
        ('[1, "Fast"]', "JSON array contains non-string items"),
    ],
)
def test_parse_selling_points_keeps_raw_reply(text, reason):
    result = parse_selling_points(text)
    assert isinstance(result, RawSellingPoints)
    assert result.raw == text
    assert result.reason.startswith(reason)


def test_raw_selling_points_have_no_points():
    generation = SellingPointsGeneration(response=RawSellingPoints(raw="x", reason="y"))
    assert generation.points == []


# =============================================================================
# generate_post
# =============================================================================

def test_requires_api_key(mock_settings):
    mock_settings.anthropic_api_key.get_secret_value.return_value = ""
    with pytest.raises(ConfigurationError):
        PostGenerationService(settings=mock_settings)


@pytest.mark.asyncio
async def test_generate_post(service, mock_anthropic_client, message_factory, sample_analysis):
    mock_anthropic_client.messages.create.side_effect = replies(
        message_factory, TITLE, DESCRIPTION, POINTS
    )

    result = await service.generate_post(sample_analysis)

    assert result.success
    post = result.primary_post
    assert post.title == "Apple iPhone 13 Pro 128GB Graphite - good condition, unlocked!"
    assert post.description.startswith("Great phone.")
    assert post.description.endswith(DEFAULT_POST_CTA)
    assert post.emojis == ["📱", "💻", "✅"]
    assert "📱" in post.description
    assert post.selling_points == ["Unlocked for any carrier", "Battery health 90%"]
    # Electronics in good condition
    assert post.tone == MarketplaceTone.ENTHUSIASTIC
    assert post.style == DescriptionStyle.FEATURE_FOCUSED
    assert post.validation.title.valid
    assert not post.validation.description.valid
    assert post.metadata.tokens_used == 450
    assert result.total_tokens_used == 450
    assert result.variants is None

    calls = mock_anthropic_client.messages.create.call_args_list
    assert [c.kwargs["system"] for c in calls] == [
        TITLE_CONFIG.system,
        DESCRIPTION_CONFIG.system,
        SELLING_POINTS_CONFIG.system,
    ]
    assert all(c.kwargs["model"] == "claude-post-test" for c in calls)
    assert calls[1].kwargs["max_tokens"] == 1000
    assert calls[2].kwargs["temperature"] == 0.5


@pytest.mark.asyncio
async def test_generate_post_explicit_tone_without_decoration(service, mock_anthropic_client, message_factory, sample_analysis):
    mock_anthropic_client.messages.create.side_effect = replies(
        message_factory, TITLE, DESCRIPTION, POINTS
    )

    result = await service.generate_post(
        sample_analysis,
        PostGenerationOptions(tone="casual", style="concise", include_emojis=False, add_cta=False),
    )

    post = result.primary_post
    assert post.tone == MarketplaceTone.CASUAL
    assert post.style == DescriptionStyle.CONCISE
    assert post.emojis == []
    assert post.description == DESCRIPTION


@pytest.mark.asyncio
async def test_unparseable_selling_points_do_not_fail_the_post(service, mock_anthropic_client, message_factory, sample_analysis):
    mock_anthropic_client.messages.create.side_effect = replies(
        message_factory, TITLE, DESCRIPTION, "It's fast and it's light."
    )

    result = await service.generate_post(sample_analysis)

    assert result.success
    assert result.primary_post.selling_points == []


@pytest.mark.asyncio
async def test_generate_post_failure(service, mock_anthropic_client, sample_analysis):
    mock_anthropic_client.messages.create.side_effect = RuntimeError("boom")

    result = await service.generate_post(sample_analysis)

    assert not result.success
    assert result.primary_post is None
    assert result.error.code == "GENERATION_ERROR"
    assert result.error.message == "boom"
    assert result.error.retryable is False


# =============================================================================
# Variants
# =============================================================================

@pytest.mark.asyncio
async def test_variants_skip_primary_style(service, mock_anthropic_client, message_factory, sample_analysis):
    mock_anthropic_client.messages.create.side_effect = replies(
        message_factory,
        TITLE, DESCRIPTION, POINTS,
        "Graphite iPhone 13 Pro, unlocked and ready", "Bought it for travel photos.",
    )

    result = await service.generate_post(
        sample_analysis,
        PostGenerationOptions(style=DescriptionStyle.BENEFIT_FOCUSED, generate_variants=True),
    )

    assert result.success
    assert [v.variant_id for v in result.variants] == ["variant-story-based"]
    variant = result.variants[0]
    assert variant.title == "Graphite iPhone 13 Pro, unlocked and ready"
    assert variant.description == "Bought it for travel photos."
    assert variant.differentiating_factor == "Story-based approach"
    assert result.total_tokens_used == 750


@pytest.mark.asyncio
async def test_failing_variant_is_skipped(service, mock_anthropic_client, message_factory, sample_analysis):
    mock_anthropic_client.messages.create.side_effect = replies(
        message_factory,
        TITLE, DESCRIPTION, POINTS,
        RuntimeError("overloaded"),
        "Story title", "Story description.",
    )

    result = await service.generate_post(
        sample_analysis, PostGenerationOptions(generate_variants=True)
    )

    assert result.success
    assert [v.variant_id for v in result.variants] == ["variant-story-based"]


@pytest.mark.asyncio
async def test_variant_count_is_capped(service, mock_anthropic_client, message_factory, sample_analysis):
    mock_anthropic_client.messages.create.side_effect = [message_factory("text")] * 8
    primary = (await service.generate_post(
        sample_analysis, PostGenerationOptions(style=DescriptionStyle.FEATURE_FOCUSED)
    )).primary_post
    mock_anthropic_client.messages.create.side_effect = [message_factory("text")] * 8

    variants, tokens = await service.generate_ab_testing_variants(sample_analysis, primary, variant_count=10)

    assert len(variants) == 4
    assert tokens == 8 * 150


# =============================================================================
# regenerate_element
# =============================================================================

@pytest.mark.asyncio
async def test_regenerate_title(service, mock_anthropic_client, message_factory, sample_analysis):
    mock_anthropic_client.messages.create.return_value = message_factory("  New title  ")

    result = await service.regenerate_element(sample_analysis, "title")

    assert isinstance(result, Generation)
    assert result.content == "New title"
    assert mock_anthropic_client.messages.create.call_args.kwargs["system"] == TITLE_CONFIG.system


@pytest.mark.asyncio
async def test_regenerate_selling_points(service, mock_anthropic_client, message_factory, sample_analysis):
    mock_anthropic_client.messages.create.return_value = message_factory(POINTS)

    result = await service.regenerate_element(sample_analysis, "selling_points")

    assert isinstance(result, SellingPointsGeneration)
    assert result.points == ["Unlocked for any carrier", "Battery health 90%"]


@pytest.mark.asyncio
async def test_regenerate_unknown_element(service, mock_anthropic_client, sample_analysis):
    with pytest.raises(UnknownElementError, match="Unknown element: price"):
        await service.regenerate_element(sample_analysis, "price")
    mock_anthropic_client.messages.create.assert_not_called()
