from datetime import datetime

import pytest

from auction_assistant.models.schemas import (
    ConfidenceLevel,
    DataSource,
    ImageQuality,
    ProductCondition,
    UserProvidedDetails,
    VisualQuality,
    Background,
)
from auction_assistant.services.description_merger import (
    MergeOptions,
    merge_product_data,
    validate_product_data,
    validate_user_input,
)


# =============================================================================
# Merge
# =============================================================================

def test_user_condition_and_colors_override_ai(sample_analysis):
    details = UserProvidedDetails(
        condition=ProductCondition.EXCELLENT,
        color=["Sierra Blue", "Silver"],
    )

    merged = merge_product_data(sample_analysis, details)

    assert merged.condition == ProductCondition.EXCELLENT
    assert merged.condition_confidence == ConfidenceLevel.HIGH
    assert merged.data_sources.condition == DataSource.USER
    assert merged.attributes.color == ["Sierra Blue", "Silver"]
    assert merged.attributes.model == "A2483"
    assert merged.data_sources.attributes == DataSource.MERGED
    assert merged.data_sources.brand == DataSource.AI
    assert merged.user_provided_details == details

    # The AI analysis is not modified
    assert sample_analysis.condition == ProductCondition.GOOD
    assert sample_analysis.attributes.color == ["Graphite"]


def test_empty_details_keep_ai_provenance(sample_analysis):
    merged = merge_product_data(sample_analysis, UserProvidedDetails())

    for source in merged.data_sources.model_dump().values():
        assert source == DataSource.AI
    assert merged.product_type == sample_analysis.product_type
    assert merged.description == sample_analysis.description


def test_missing_details_behave_like_empty(sample_analysis):
    merged = merge_product_data(sample_analysis)
    assert merged.data_sources.title == DataSource.AI
    assert merged.suggested_title == sample_analysis.suggested_title


def test_keywords_are_deduplicated_in_order(sample_analysis):
    details = UserProvidedDetails(custom_keywords=["smartphone", "iPhone"])

    merged = merge_product_data(sample_analysis, details)

    assert merged.suggested_keywords == ["iPhone", "Apple", "smartphone"]


def test_user_brand_and_title_take_priority(sample_analysis):
    details = UserProvidedDetails(
        brand="Apple Inc.",
        product_type="iPhone 13 Pro Max",
        description="Bought last year, always in a case.",
        custom_title="iPhone 13 Pro Max - Mint",
    )

    merged = merge_product_data(sample_analysis, details)

    assert merged.brand.name == "Apple Inc."
    assert merged.brand.verified is True
    assert merged.brand.confidence == ConfidenceLevel.HIGH
    assert merged.product_type == "iPhone 13 Pro Max"
    assert merged.description == "Bought last year, always in a case."
    assert merged.suggested_title == "iPhone 13 Pro Max - Mint"
    assert merged.data_sources.brand == DataSource.USER
    assert merged.data_sources.product_type == DataSource.USER
    assert merged.data_sources.description == DataSource.USER
    assert merged.data_sources.title == DataSource.USER


def test_without_priority_ai_values_mostly_win(sample_analysis):
    details = UserProvidedDetails(
        brand="Apple Inc.",
        condition=ProductCondition.NEW,
        product_type="Phone",
        description="Always in a case.",
        custom_title="My title",
    )

    merged = merge_product_data(sample_analysis, details, MergeOptions(prioritize_user=False))

    assert merged.condition == ProductCondition.GOOD
    assert merged.product_type == sample_analysis.product_type
    assert merged.suggested_title == sample_analysis.suggested_title
    assert merged.description == f"Always in a case.\n\n{sample_analysis.description}"
    # The user's brand is adopted even without priority
    assert merged.brand.name == "Apple Inc."
    assert merged.data_sources.brand == DataSource.MERGED
    assert merged.data_sources.condition == DataSource.MERGED
    assert merged.data_sources.product_type == DataSource.MERGED
    assert merged.data_sources.description == DataSource.MERGED
    assert merged.data_sources.title == DataSource.MERGED


def test_without_priority_brand_is_not_added_when_ai_found_none(empty_analysis):
    merged = merge_product_data(
        empty_analysis,
        UserProvidedDetails(brand="IKEA"),
        MergeOptions(prioritize_user=False),
    )
    assert merged.brand is None
    assert merged.data_sources.brand == DataSource.AI


def test_without_priority_or_enhancement_description_is_untouched(sample_analysis):
    merged = merge_product_data(
        sample_analysis,
        UserProvidedDetails(description="Seller notes"),
        MergeOptions(prioritize_user=False, enhance_description=False),
    )
    assert merged.description == sample_analysis.description
    assert merged.data_sources.description == DataSource.AI


def test_category_specific_details_extend_custom_attributes(sample_analysis):
    analysis = sample_analysis.model_copy(update={
        "attributes": sample_analysis.attributes.model_copy(update={
            "custom_attributes": {"storage": "128GB", "carrier": "Verizon"},
        }),
    })
    details = UserProvidedDetails(category_specific_details={"carrier": "Unlocked", "battery": 88})

    merged = merge_product_data(analysis, details)

    assert merged.attributes.custom_attributes == {
        "storage": "128GB",
        "carrier": "Unlocked",
        "battery": "88",
    }


def test_empty_category_specific_details_mark_attributes_merged(sample_analysis):
    merged = merge_product_data(sample_analysis, UserProvidedDetails(category_specific_details={}))

    assert merged.data_sources.attributes == DataSource.MERGED
    assert merged.attributes.custom_attributes == (sample_analysis.attributes.custom_attributes or {})


def test_validation_status_attached(empty_analysis):
    merged = merge_product_data(empty_analysis, UserProvidedDetails(condition="good"))

    assert merged.validation_status.missing_fields == ["productType", "category"]
    assert not merged.validation_status.is_complete


def test_validation_can_be_skipped(empty_analysis):
    merged = merge_product_data(empty_analysis, None, MergeOptions(validate_completeness=False))
    assert merged.validation_status.missing_fields == []


# =============================================================================
# Product Validation
# =============================================================================

def test_validate_product_data_empty(empty_analysis):
    status = validate_product_data(empty_analysis)

    assert not status.is_complete
    assert status.missing_fields == ["productType", "condition", "category"]
    assert "Overall AI confidence is low - consider reviewing results" in status.warnings
    assert "Condition assessment confidence is low" in status.warnings
    assert "Category classification confidence is low" in status.warnings
    assert "Brand not identified - consider adding manually" in status.warnings
    assert "Color not identified" in status.warnings


def test_validate_product_data_photo_warnings(sample_analysis):
    analysis = sample_analysis.model_copy(update={
        "visual_quality": VisualQuality(image_quality=ImageQuality.POOR, background=Background.CLUTTERED),
    })
    status = validate_product_data(analysis)

    assert status.is_complete
    assert status.warnings == [
        "Image quality is poor - consider uploading better photos",
        "Background is distracting - cleaner photos may improve analysis",
    ]


# =============================================================================
# User Input Validation
# =============================================================================

def test_validate_user_input_valid():
    result = validate_user_input(UserProvidedDetails(brand="Apple", year="2021", color=["Black"]))
    assert result.valid
    assert result.errors == []


def test_validate_user_input_invalid_condition():
    result = validate_user_input({"condition": "broken"})
    assert not result.valid
    assert result.errors == [
        "Invalid condition value. Must be one of: "
        "new, like_new, excellent, good, fair, poor, for_parts, unknown"
    ]


def test_validate_user_input_length_limits():
    result = validate_user_input({
        "brand": "b" * 101,
        "model": "m" * 101,
        "productType": "p" * 201,
        "description": "d" * 5001,
        "customTitle": "t" * 201,
    })
    assert result.errors == [
        "Brand name must be 100 characters or less",
        "Model must be 100 characters or less",
        "Product type must be 200 characters or less",
        "Description must be 5000 characters or less",
        "Custom title must be 200 characters or less",
    ]


@pytest.mark.parametrize("year,valid", [
    ("2021", True),
    ("2021 model", True),
    (1999, True),
    ("1700", False),
    ("vintage", False),
    (str(datetime.now().year + 2), False),
])
def test_validate_user_input_year(year, valid):
    result = validate_user_input({"year": year})
    assert result.valid is valid
    if not valid:
        assert result.errors[0].startswith("Invalid year. Must be between 1800 and ")


def test_validate_user_input_count_limits():
    result = validate_user_input({
        "color": ["c"] * 11,
        "material": ["m"] * 11,
        "customKeywords": ["k"] * 21,
    })
    assert result.errors == [
        "Maximum 10 colors allowed",
        "Maximum 10 materials allowed",
        "Maximum 20 custom keywords allowed",
    ]


@pytest.mark.parametrize("payload,error", [
    ({"color": 5}, "color must be a list"),
    ({"material": True}, "material must be a list"),
    ({"customKeywords": 7}, "customKeywords must be a list"),
    ({"custom_keywords": "vintage"}, "customKeywords must be a list"),
])
def test_validate_user_input_rejects_non_list_collections(payload, error):
    result = validate_user_input(payload)

    assert not result.valid
    assert result.errors == [error]
