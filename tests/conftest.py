import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from auction_assistant.models.schemas import (
    AttributeConfidence,
    BrandIdentification,
    Clarity,
    ConfidenceLevel,
    DescriptionStyle,
    DetectedDefects,
    EnrichedProductAnalysis,
    EnrichmentData,
    ExtractedText,
    GeneratedPost,
    ImageQuality,
    Lighting,
    ListingResult,
    MarketplaceTone,
    PostGenerationResult,
    PostMetadata,
    PostValidation,
    PostVariant,
    ProductAnalysis,
    ProductAttributes,
    ProductCategory,
    ProductCondition,
    UserProvidedDetails,
    ValidationResult,
    VisualQuality,
)
from auction_assistant.services.description_merger import merge_product_data


@pytest.fixture
def mock_settings(tmp_path):
    """Create mock settings for testing."""
    settings = MagicMock()
    settings.anthropic_api_key.get_secret_value.return_value = "sk-ant-api-mock-key"

    settings.app_env = "development"
    settings.debug = False
    settings.log_level = "INFO"
    settings.vision_model = "claude-vision-test"
    settings.vision_max_tokens = 1500
    settings.vision_temperature = 0.3
    settings.post_model = "claude-post-test"
    settings.post_max_tokens = 1000
    settings.post_temperature = 0.7
    settings.request_timeout_seconds = 30
    settings.max_retries = 2
    settings.max_concurrent_analyses = 2
    settings.min_confidence_threshold = 50
    settings.max_upload_size_bytes = 10 * 1024 * 1024
    settings.output_dir = tmp_path / "listings"
    settings.log_dir = tmp_path / "logs"
    settings.report_format = "json"

    return settings


@pytest.fixture(autouse=True)
def patch_get_settings(mock_settings):
    """Globally patch get_settings to return mock_settings."""
    with patch("auction_assistant.config.settings.get_settings", return_value=mock_settings):
        # Also patch the modules that import get_settings directly
        with patch("auction_assistant.services.vision_service.get_settings", return_value=mock_settings):
            with patch("auction_assistant.services.post_generation_service.get_settings", return_value=mock_settings):
                with patch("auction_assistant.pipeline.orchestrator.get_settings", return_value=mock_settings):
                    with patch("auction_assistant.utils.formatters.get_settings", return_value=mock_settings):
                        with patch("auction_assistant.main.get_settings", return_value=mock_settings):
                            yield mock_settings


def make_message(text: str, input_tokens: int = 100, output_tokens: int = 50) -> MagicMock:
    """Build an object shaped like an Anthropic Messages API response."""
    response = MagicMock()
    response.content = [MagicMock(type="text", text=text)]
    response.usage.input_tokens = input_tokens
    response.usage.output_tokens = output_tokens
    return response


@pytest.fixture
def message_factory():
    return make_message


@pytest.fixture
def mock_anthropic_client():
    client = MagicMock()
    client.messages.create = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def sample_analysis():
    """A well-identified phone in good condition."""
    return ProductAnalysis(
        product_type="Apple iPhone 13 Pro",
        category=ProductCategory(
            primary="Electronics",
            secondary="Smartphones",
            confidence=ConfidenceLevel.HIGH,
        ),
        brand=BrandIdentification(name="Apple", confidence=ConfidenceLevel.HIGH, verified=True),
        condition=ProductCondition.GOOD,
        condition_confidence=ConfidenceLevel.MEDIUM,
        attributes=ProductAttributes(
            color=["Graphite"],
            material=["Aluminum", "Glass"],
            size="6.1 inch",
            model="A2483",
            year="2021",
        ),
        extracted_text=[
            ExtractedText(text="Apple iPhone", location="back", confidence=ConfidenceLevel.HIGH),
        ],
        features=["Triple camera", "ProMotion display"],
        visual_quality=VisualQuality(
            image_quality=ImageQuality.GOOD,
            lighting=Lighting.GOOD,
            clarity=Clarity.SHARP,
        ),
        description="Apple iPhone 13 Pro in graphite with light signs of use on the frame.",
        suggested_title="Apple iPhone 13 Pro 128GB Graphite - Good Condition",
        suggested_keywords=["iPhone", "Apple"],
        overall_confidence=ConfidenceLevel.HIGH,
    )


@pytest.fixture
def empty_analysis():
    """What the parser produces when the model recognised nothing."""
    return ProductAnalysis(
        product_type="Unknown Product",
        category=ProductCategory(primary="Unknown", confidence=ConfidenceLevel.LOW),
        condition=ProductCondition.UNKNOWN,
        condition_confidence=ConfidenceLevel.LOW,
        overall_confidence=ConfidenceLevel.LOW,
    )


@pytest.fixture
def damaged_analysis(sample_analysis):
    return sample_analysis.model_copy(update={
        "condition": ProductCondition.POOR,
        "defects": DetectedDefects(
            scratches=True,
            dents=True,
            stains=True,
            severity="severe",
            description="Deep scratches and a dented corner",
        ),
        "description": "Broken screen, scratched and dented housing.",
    })


@pytest.fixture
def sample_image(tmp_path) -> Path:
    path = tmp_path / "phone.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0" + b"0" * 64)
    return path


ANALYSIS_JSON = """{
  "productType": "Apple iPhone 13 Pro",
  "category": {"primary": "Electronics", "secondary": "Smartphones", "confidence": "high"},
  "brand": {"name": "Apple", "confidence": "high", "verified": true},
  "condition": "good",
  "conditionConfidence": "medium",
  "attributes": {"color": ["Graphite"], "model": "A2483", "year": 2021, "customAttributes": {"storage": 128, "unlocked": true}},
  "extractedText": [{"text": "Apple iPhone", "location": "back", "confidence": "high"}],
  "features": ["Triple camera"],
  "visualQuality": {"imageQuality": "good", "lighting": "good", "clarity": "sharp", "background": "clean"},
  "description": "Apple iPhone 13 Pro in graphite.",
  "suggestedTitle": "Apple iPhone 13 Pro 128GB Graphite - Good Condition",
  "suggestedKeywords": ["iPhone", "Apple", "smartphone"],
  "overallConfidence": "high"
}"""


@pytest.fixture
def analysis_json() -> str:
    return ANALYSIS_JSON


@pytest.fixture
def generated_post():
    return GeneratedPost(
        title="Apple iPhone 13 Pro 128GB Graphite - Like New, Unlocked",
        description="Barely used iPhone 13 Pro. Always kept in a case. 📱\n\nMessage me for more details!",
        selling_points=["Unlocked", "Battery health 98%"],
        emojis=["📱"],
        tone=MarketplaceTone.ENTHUSIASTIC,
        style=DescriptionStyle.FEATURE_FOCUSED,
        validation=PostValidation(
            title=ValidationResult(valid=True),
            description=ValidationResult(
                valid=False,
                errors=["Description too short: 15 words (minimum 200)"],
            ),
        ),
        metadata=PostMetadata(word_count=15, character_count=90, emoji_count=1, tokens_used=450),
    )


@pytest.fixture
def listing_result(sample_analysis, generated_post):
    """A finished run: seller details merged, enriched and posted."""
    merged = merge_product_data(
        sample_analysis,
        UserProvidedDetails(condition=ProductCondition.LIKE_NEW, category_specific_details={"storage": "128GB"}),
    )
    enriched = EnrichedProductAnalysis(
        **merged.analysis_fields(),
        enrichment_data=EnrichmentData(
            confidence_scores=AttributeConfidence(
                product_type=100, category=90, brand=100, condition=95,
                attributes=95, visual_quality=95, overall=95,
            ),
            recommendations=["Consider adding dimensions"],
            completeness_score=100,
            sentiment_score=0.8,
        ),
    )
    post = PostGenerationResult(
        success=True,
        primary_post=generated_post,
        variants=[
            PostVariant(
                variant_id="variant-benefit-focused",
                title="Like-new iPhone 13 Pro for your next trip",
                description="Shoot pro photos anywhere.",
                differentiating_factor="Benefit-focused approach",
            )
        ],
        total_tokens_used=750,
    )
    return ListingResult(
        run_id="run-123",
        image="photos/My Phone.jpg",
        merged=merged,
        enriched=enriched,
        enrichment_validation=ValidationResult(valid=True, warnings=["Consider adding dimensions"]),
        post=post,
        step_timings={"validate_input": 1, "analyze_image": 1200},
    )
