"""
Description merger.

Combines the AI analysis of a product image with details supplied by the
seller. User input takes precedence over AI predictions when
``prioritize_user`` is set; every merged field records its provenance
(``ai`` / ``user`` / ``merged``).

Neither ``merge_product_data`` nor the validators raise: problems are
reported through ``ValidationStatus`` and ``InputValidationResult``.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from auction_assistant.models.schemas import (
    BrandIdentification,
    ConfidenceLevel,
    DataSource,
    DataSources,
    ImageQuality,
    Background,
    InputValidationResult,
    MergedProductData,
    ProductAnalysis,
    ProductCondition,
    UserProvidedDetails,
    ValidationStatus,
)

UNKNOWN_PRODUCT = "Unknown Product"
UNKNOWN_CATEGORY = "Unknown"

MAX_BRAND_LENGTH = 100
MAX_MODEL_LENGTH = 100
MAX_PRODUCT_TYPE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
MAX_CUSTOM_TITLE_LENGTH = 200
MIN_YEAR = 1800
MAX_COLORS = 10
MAX_MATERIALS = 10
MAX_CUSTOM_KEYWORDS = 20

_LEADING_INT = re.compile(r"^\s*[+-]?\d+", re.ASCII)


@dataclass(frozen=True)
class MergeOptions:
    """Controls how AI and user data are combined."""
    prioritize_user: bool = True
    validate_completeness: bool = True
    enhance_description: bool = True


# =============================================================================
# Merge
# =============================================================================

def merge_product_data(
    ai_analysis: ProductAnalysis,
    user_details: Optional[UserProvidedDetails] = None,
    options: Optional[MergeOptions] = None,
) -> MergedProductData:
    """
    Merge AI analysis with user-provided details.

    Args:
        ai_analysis: Analysis produced by the vision service.
        user_details: Seller-supplied facts (all optional).
        options: Merge options; defaults prioritise the user.

    Returns:
        A new MergedProductData. ``ai_analysis`` is left untouched.
    """
    user = user_details or UserProvidedDetails()
    options = options or MergeOptions()
    prioritize = options.prioritize_user
    sources: dict[str, DataSource] = {}

    # Product type
    product_type = ai_analysis.product_type
    if user.product_type:
        if prioritize:
            product_type = user.product_type
        sources["product_type"] = DataSource.USER if prioritize else DataSource.MERGED

    # Brand. Without priority the value still adopts the user's brand while the
    # provenance reads "merged".
    brand = ai_analysis.brand
    if user.brand and (prioritize or ai_analysis.brand):
        brand = BrandIdentification(
            name=user.brand,
            confidence=ConfidenceLevel.HIGH,
            verified=True,
        )
        sources["brand"] = DataSource.USER if prioritize else DataSource.MERGED

    # Condition
    condition = ai_analysis.condition
    condition_confidence = ai_analysis.condition_confidence
    if user.condition:
        if prioritize:
            condition = user.condition
            condition_confidence = ConfidenceLevel.HIGH
        sources["condition"] = DataSource.USER if prioritize else DataSource.MERGED

    # Attributes
    attribute_updates: dict[str, Any] = {}
    if user.color:
        attribute_updates["color"] = list(user.color)
    if user.material:
        attribute_updates["material"] = list(user.material)
    if user.size:
        attribute_updates["size"] = user.size
    if user.year:
        attribute_updates["year"] = user.year
    if user.model:
        attribute_updates["model"] = user.model
    if user.category_specific_details is not None:
        attribute_updates["custom_attributes"] = {
            **(ai_analysis.attributes.custom_attributes or {}),
            **user.category_specific_details,
        }
    attributes = ai_analysis.attributes
    if attribute_updates:
        attributes = attributes.model_copy(update=attribute_updates)
        sources["attributes"] = DataSource.MERGED

    # Description
    description = ai_analysis.description
    if prioritize and user.description:
        description = user.description
        sources["description"] = DataSource.USER
    elif options.enhance_description and user.description:
        description = f"{user.description}\n\n{ai_analysis.description}"
        sources["description"] = DataSource.MERGED

    # Title
    suggested_title = ai_analysis.suggested_title
    if prioritize and user.custom_title:
        suggested_title = user.custom_title
        sources["title"] = DataSource.USER
    elif not prioritize and user.custom_title and ai_analysis.suggested_title:
        sources["title"] = DataSource.MERGED

    # Keywords, first occurrence wins
    keywords = list(dict.fromkeys(
        [*ai_analysis.suggested_keywords, *(user.custom_keywords or [])]
    ))

    merged = MergedProductData(
        **{
            **ai_analysis.analysis_fields(),
            "product_type": product_type,
            "brand": brand,
            "condition": condition,
            "condition_confidence": condition_confidence,
            "attributes": attributes,
            "description": description,
            "suggested_title": suggested_title,
            "suggested_keywords": keywords,
        },
        data_sources=DataSources(**sources),
        user_provided_details=user,
    )

    if options.validate_completeness:
        merged = merged.model_copy(
            update={"validation_status": validate_product_data(merged)}
        )

    return merged


# =============================================================================
# Validation
# =============================================================================

def validate_product_data(
    data: Union[ProductAnalysis, MergedProductData],
) -> ValidationStatus:
    """Report missing required fields and low-confidence warnings."""
    missing_fields: list[str] = []
    warnings: list[str] = []

    if not data.product_type or data.product_type == UNKNOWN_PRODUCT:
        missing_fields.append("productType")
    if data.condition == ProductCondition.UNKNOWN:
        missing_fields.append("condition")
    if data.category.primary == UNKNOWN_CATEGORY:
        missing_fields.append("category")

    if data.overall_confidence == ConfidenceLevel.LOW:
        warnings.append("Overall AI confidence is low - consider reviewing results")
    if data.condition_confidence == ConfidenceLevel.LOW:
        warnings.append("Condition assessment confidence is low")
    if data.category.confidence == ConfidenceLevel.LOW:
        warnings.append("Category classification confidence is low")

    if not data.brand:
        warnings.append("Brand not identified - consider adding manually")
    if not data.attributes.color:
        warnings.append("Color not identified")

    quality = data.visual_quality
    if quality.image_quality == ImageQuality.POOR:
        warnings.append("Image quality is poor - consider uploading better photos")
    if quality.background in (Background.CLUTTERED, Background.DISTRACTING):
        warnings.append("Background is distracting - cleaner photos may improve analysis")

    return ValidationStatus(
        is_complete=not missing_fields,
        missing_fields=missing_fields,
        warnings=warnings,
    )


def _parse_leading_int(value: Any) -> Optional[int]:
    """Read the leading integer of a value the way a lenient form parser would."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(0)) if match else None


def _read(details: Union[UserProvidedDetails, dict[str, Any]], name: str, alias: str) -> Any:
    if isinstance(details, UserProvidedDetails):
        return getattr(details, name)
    if name in details:
        return details[name]
    return details.get(alias)


def validate_user_input(
    details: Union[UserProvidedDetails, dict[str, Any]],
) -> InputValidationResult:
    """
    Check seller input against the accepted limits.

    Accepts either a constructed ``UserProvidedDetails`` or the raw payload
    (snake_case or camelCase keys), so invalid condition values can be
    reported before the model is built. Never raises.
    """
    errors: list[str] = []

    condition = _read(details, "condition", "condition")
    if condition:
        valid_conditions = [c.value for c in ProductCondition]
        if str(getattr(condition, "value", condition)) not in valid_conditions:
            errors.append(
                f"Invalid condition value. Must be one of: {', '.join(valid_conditions)}"
            )

    length_limits = [
        ("brand", "brand", MAX_BRAND_LENGTH, "Brand name must be 100 characters or less"),
        ("model", "model", MAX_MODEL_LENGTH, "Model must be 100 characters or less"),
        ("product_type", "productType", MAX_PRODUCT_TYPE_LENGTH,
         "Product type must be 200 characters or less"),
        ("description", "description", MAX_DESCRIPTION_LENGTH,
         "Description must be 5000 characters or less"),
        ("custom_title", "customTitle", MAX_CUSTOM_TITLE_LENGTH,
         "Custom title must be 200 characters or less"),
    ]
    for name, alias, limit, message in length_limits:
        value = _read(details, name, alias)
        if value and len(str(value)) > limit:
            errors.append(message)

    year = _read(details, "year", "year")
    if year:
        max_year = datetime.now().year + 1
        year_number = _parse_leading_int(year)
        if year_number is None or year_number < MIN_YEAR or year_number > max_year:
            errors.append(f"Invalid year. Must be between {MIN_YEAR} and {max_year}")

    count_limits = [
        ("color", "color", MAX_COLORS, "Maximum 10 colors allowed"),
        ("material", "material", MAX_MATERIALS, "Maximum 10 materials allowed"),
        ("custom_keywords", "customKeywords", MAX_CUSTOM_KEYWORDS,
         "Maximum 20 custom keywords allowed"),
    ]
    for name, alias, limit, message in count_limits:
        value = _read(details, name, alias)
        if value is None:
            continue
        if not isinstance(value, (list, tuple)):
            errors.append(f"{alias} must be a list")
        elif len(value) > limit:
            errors.append(message)

    return InputValidationResult(valid=not errors, errors=errors)
