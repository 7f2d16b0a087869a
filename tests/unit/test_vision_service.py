"""
Unit tests for VisionService.

The Anthropic client is always a mock; no request leaves the process.
"""

import base64
from unittest.mock import MagicMock

import anthropic
import httpx
import pytest

from auction_assistant.models.schemas import (
    Clarity,
    ConfidenceLevel,
    ImageQuality,
    ProductCondition,
)
from auction_assistant.prompts.vision_prompts import AnalysisOptions
from auction_assistant.services.vision_service import (
    VisionService,
    create_vision_service,
    extract_json,
    media_type_from_bytes,
    media_type_from_name,
    parse_analysis_response,
)
from auction_assistant.utils.errors import ConfigurationError, ResponseParseError

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
def service(mock_settings, mock_anthropic_client):
    return VisionService(settings=mock_settings, client=mock_anthropic_client)


# =============================================================================
# Parsing
# =============================================================================

def test_extract_json_from_code_block():
    text = 'Here you go:\n```json\n{"productType": "Chair"}\n```\nThanks'
    assert extract_json(text) == '{"productType": "Chair"}'


def test_extract_json_bare_object():
    assert extract_json('Result: {"a": {"b": 1}} done') == '{"a": {"b": 1}}'


def test_parse_full_response(analysis_json):
    analysis = parse_analysis_response(analysis_json)

    assert analysis.product_type == "Apple iPhone 13 Pro"
    assert analysis.category.secondary == "Smartphones"
    assert analysis.brand.verified is True
    assert analysis.condition == ProductCondition.GOOD
    assert analysis.attributes.year == "2021"
    assert analysis.attributes.custom_attributes == {"storage": "128", "unlocked": "true"}
    assert analysis.extracted_text[0].location == "back"
    assert analysis.visual_quality.clarity == Clarity.SHARP
    assert analysis.suggested_keywords == ["iPhone", "Apple", "smartphone"]


def test_parse_minimal_response_uses_defaults():
    analysis = parse_analysis_response("{}")

    assert analysis.product_type == "Unknown Product"
    assert analysis.category.primary == "Unknown"
    assert analysis.category.confidence == ConfidenceLevel.LOW
    assert analysis.brand is None
    assert analysis.condition == ProductCondition.UNKNOWN
    assert analysis.condition_confidence == ConfidenceLevel.LOW
    assert analysis.overall_confidence == ConfidenceLevel.MEDIUM
    assert analysis.visual_quality.image_quality == ImageQuality.FAIR
    assert analysis.visual_quality.clarity == Clarity.SLIGHTLY_BLURRY
    assert analysis.defects is None
    assert analysis.suggested_title == ""


def test_parse_invalid_enums_fall_back():
    analysis = parse_analysis_response(
        '{"productType": "Lamp", "condition": "battered", "overallConfidence": "certain",'
        ' "visualQuality": {"imageQuality": "stunning"}, "brand": {"name": ""}}'
    )

    assert analysis.condition == ProductCondition.UNKNOWN
    assert analysis.overall_confidence == ConfidenceLevel.MEDIUM
    assert analysis.visual_quality.image_quality == ImageQuality.FAIR
    assert analysis.brand is None
    assert analysis.suggested_title == "Lamp"


def test_parse_defects():
    analysis = parse_analysis_response(
        '{"defects": {"scratches": true, "missingParts": true, "severity": "moderate",'
        ' "description": "Missing a knob"}}'
    )

    assert analysis.defects.scratches is True
    assert analysis.defects.missing_parts is True
    assert analysis.defects.severity.value == "moderate"


@pytest.mark.parametrize("content", ["not json at all", "[1, 2, 3]"])
def test_parse_rejects_non_objects(content):
    with pytest.raises(ResponseParseError) as exc:
        parse_analysis_response(content)
    assert exc.value.raw_response == content


def test_media_type_detection():
    assert media_type_from_name("photo.PNG") == "image/png"
    assert media_type_from_name("photo.webp") == "image/webp"
    assert media_type_from_name("photo.jpeg") == "image/jpeg"
    assert media_type_from_name("photo") == "image/jpeg"
    assert media_type_from_bytes(PNG_BYTES) == "image/png"
    assert media_type_from_bytes(b"RIFF\x00\x00\x00\x00WEBPVP8") == "image/webp"
    assert media_type_from_bytes(b"GIF89a...") == "image/gif"
    assert media_type_from_bytes(b"\xff\xd8\xff") == "image/jpeg"


# =============================================================================
# Service
# =============================================================================

def test_requires_api_key(mock_settings):
    mock_settings.anthropic_api_key.get_secret_value.return_value = ""
    with pytest.raises(ConfigurationError):
        VisionService(settings=mock_settings)


def test_factory_builds_client_without_sdk_retries(mock_settings, mocker):
    client_cls = mocker.patch("auction_assistant.services.vision_service.anthropic.AsyncAnthropic")

    service = create_vision_service(mock_settings)

    assert service.client is client_cls.return_value
    client_cls.assert_called_once_with(
        api_key="sk-ant-api-mock-key",
        timeout=30.0,
        max_retries=0,
    )


@pytest.mark.asyncio
async def test_analyze_product_from_path(service, mock_anthropic_client, message_factory, analysis_json, sample_image):
    mock_anthropic_client.messages.create.return_value = message_factory(
        f"```json\n{analysis_json}\n```", input_tokens=1200, output_tokens=300
    )

    result = await service.analyze_product(sample_image)

    assert result.success
    assert result.data.product_type == "Apple iPhone 13 Pro"
    assert result.tokens_used == 1500

    kwargs = mock_anthropic_client.messages.create.call_args.kwargs
    assert kwargs["model"] == "claude-vision-test"
    assert kwargs["max_tokens"] == 1500
    assert kwargs["temperature"] == 0.3
    image_block, text_block = kwargs["messages"][0]["content"]
    assert image_block["source"]["media_type"] == "image/jpeg"
    assert base64.b64decode(image_block["source"]["data"]) == sample_image.read_bytes()
    assert text_block["text"].startswith("Analyze this product image")

    assert service.get_usage_stats() == {
        "total_requests": 1,
        "total_input_tokens": 1200,
        "total_output_tokens": 300,
        "total_tokens": 1500,
    }


@pytest.mark.asyncio
async def test_analyze_product_from_bytes_with_max_tokens(service, mock_anthropic_client, message_factory, analysis_json):
    mock_anthropic_client.messages.create.return_value = message_factory(analysis_json)

    result = await service.analyze_product(PNG_BYTES, AnalysisOptions(max_tokens=800))

    assert result.success
    kwargs = mock_anthropic_client.messages.create.call_args.kwargs
    assert kwargs["max_tokens"] == 800
    assert kwargs["messages"][0]["content"][0]["source"]["media_type"] == "image/png"


@pytest.mark.asyncio
async def test_analyze_product_from_url(mock_settings, mock_anthropic_client, message_factory, analysis_json):
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "https://example.com/chair.webp"
        return httpx.Response(200, content=b"RIFFxxxxWEBP", headers={"content-type": "image/webp"})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    service = VisionService(settings=mock_settings, client=mock_anthropic_client, http_client=http_client)
    mock_anthropic_client.messages.create.return_value = message_factory(analysis_json)

    result = await service.analyze_product("https://example.com/chair.webp")

    assert result.success
    kwargs = mock_anthropic_client.messages.create.call_args.kwargs
    assert kwargs["messages"][0]["content"][0]["source"]["media_type"] == "image/webp"
    await http_client.aclose()


@pytest.mark.asyncio
async def test_download_failure_is_classified(mock_settings, mock_anthropic_client):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    service = VisionService(settings=mock_settings, client=mock_anthropic_client, http_client=http_client)

    result = await service.analyze_product("https://example.com/missing.jpg")

    assert not result.success
    assert result.error.code == "IMAGE_FETCH_ERROR"
    assert result.error.retryable is False
    mock_anthropic_client.messages.create.assert_not_called()
    await http_client.aclose()


@pytest.mark.asyncio
async def test_missing_file_is_an_analysis_error(service, tmp_path):
    result = await service.analyze_product(tmp_path / "nope.jpg")

    assert not result.success
    assert result.error.code == "ANALYSIS_ERROR"
    assert result.error.message.startswith("Failed to read image file")


@pytest.mark.asyncio
async def test_unparseable_reply(service, mock_anthropic_client, message_factory):
    mock_anthropic_client.messages.create.return_value = message_factory("I cannot see a product.")

    result = await service.analyze_product(PNG_BYTES)

    assert not result.success
    assert result.error.code == "ANALYSIS_ERROR"
    assert result.error.retryable is False


@pytest.mark.asyncio
async def test_empty_reply(service, mock_anthropic_client):
    response = MagicMock()
    response.content = []
    mock_anthropic_client.messages.create.return_value = response

    result = await service.analyze_product(PNG_BYTES)

    assert not result.success
    assert result.error.message == "No response content from vision model"


@pytest.mark.asyncio
async def test_rate_limit_is_retryable(service, mock_anthropic_client):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    mock_anthropic_client.messages.create.side_effect = anthropic.RateLimitError(
        "Rate limited",
        response=httpx.Response(429, request=request),
        body={"type": "error", "error": {"type": "rate_limit_error", "message": "Rate limited"}},
    )

    result = await service.analyze_product(PNG_BYTES)

    assert not result.success
    assert result.error.code == "rate_limit_error"
    assert result.error.retryable is True
    assert mock_anthropic_client.messages.create.await_count == 1


@pytest.mark.asyncio
async def test_analyze_multiple_products_fail_independently(service, mock_anthropic_client, message_factory, analysis_json):
    mock_anthropic_client.messages.create.side_effect = [
        message_factory(analysis_json),
        message_factory("garbage"),
    ]

    results = await service.analyze_multiple_products([PNG_BYTES, PNG_BYTES])

    assert [r.success for r in results] == [True, False]


@pytest.mark.asyncio
async def test_close_closes_owned_clients(mock_settings, mock_anthropic_client):
    async with VisionService(settings=mock_settings, client=mock_anthropic_client):
        pass
    mock_anthropic_client.close.assert_awaited_once()
