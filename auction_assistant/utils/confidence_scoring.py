"""
Heuristic confidence scoring for product analyses.

Projects the coarse HIGH/MEDIUM/LOW labels returned by the vision model onto
0-100 scores, adjusts them with evidence found elsewhere in the analysis
(verified brand, OCR text, image quality...) and folds the per-attribute
scores into a weighted overall score.

All functions are pure and never raise.
"""

from typing import Optional

from auction_assistant.models.schemas import (
    AttributeConfidence,
    Background,
    Clarity,
    ConfidenceLevel,
    ImageQuality,
    Lighting,
    ProductAnalysis,
    ProductCondition,
)


# =============================================================================
# Score Tables
# =============================================================================

LEVEL_SCORES: dict[ConfidenceLevel, int] = {
    ConfidenceLevel.HIGH: 85,
    ConfidenceLevel.MEDIUM: 60,
    ConfidenceLevel.LOW: 30,
}
DEFAULT_LEVEL_SCORE = 30

HIGH_THRESHOLD = 75
MEDIUM_THRESHOLD = 50

# Weights sum to 1.0
OVERALL_WEIGHTS: dict[str, float] = {
    "product_type": 0.25,
    "category": 0.15,
    "brand": 0.15,
    "condition": 0.20,
    "attributes": 0.15,
    "visual_quality": 0.10,
}

IMAGE_QUALITY_ADJUSTMENTS: dict[ImageQuality, int] = {
    ImageQuality.EXCELLENT: 30,
    ImageQuality.GOOD: 20,
    ImageQuality.FAIR: 10,
    ImageQuality.POOR: -20,
}

LIGHTING_ADJUSTMENTS: dict[Lighting, int] = {
    Lighting.GOOD: 10,
    Lighting.FAIR: 5,
    Lighting.POOR: -15,
}

CLARITY_ADJUSTMENTS: dict[Clarity, int] = {
    Clarity.SHARP: 10,
    Clarity.SLIGHTLY_BLURRY: 0,
    Clarity.BLURRY: -15,
}

BACKGROUND_ADJUSTMENTS: dict[Background, int] = {
    Background.CLEAN: 5,
    Background.CLUTTERED: 0,
    Background.DISTRACTING: -10,
}

UNKNOWN_CONDITION_CAP = 20


def _clamp(score: float) -> int:
    return int(max(0, min(100, score)))


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


# =============================================================================
# Level <-> Score
# =============================================================================

def confidence_level_to_score(level: Optional[ConfidenceLevel]) -> int:
    """HIGH -> 85, MEDIUM -> 60, LOW -> 30; anything else -> 30."""
    try:
        return LEVEL_SCORES[ConfidenceLevel(level)]
    except ValueError:
        return DEFAULT_LEVEL_SCORE


def score_to_confidence_level(score: float) -> ConfidenceLevel:
    """>=75 HIGH, >=50 MEDIUM, otherwise LOW."""
    if score >= HIGH_THRESHOLD:
        return ConfidenceLevel.HIGH
    if score >= MEDIUM_THRESHOLD:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


# =============================================================================
# Per-Attribute Scores
# =============================================================================

def _texts_lower(analysis: ProductAnalysis) -> list[str]:
    return [entry.text.lower() for entry in analysis.extracted_text]


def calculate_product_type_confidence(analysis: ProductAnalysis) -> int:
    score = confidence_level_to_score(analysis.category.confidence)

    if analysis.brand and analysis.brand.verified:
        score += 10
    if analysis.attributes.model:
        score += 5

    product_type = analysis.product_type.lower()
    if "unknown" in product_type or "generic" in product_type:
        score -= 20

    return _clamp(score)


def calculate_category_confidence(analysis: ProductAnalysis) -> int:
    category = analysis.category
    score = confidence_level_to_score(category.confidence)

    if category.secondary:
        score += 5
    if category.tertiary:
        score += 5

    primary = category.primary.lower()
    if any(primary in text for text in _texts_lower(analysis)):
        score += 10

    return _clamp(score)


def calculate_brand_confidence(analysis: ProductAnalysis) -> int:
    brand = analysis.brand
    if not brand:
        return 0

    score = confidence_level_to_score(brand.confidence)

    if brand.verified:
        score += 20

    name = brand.name.lower()
    if any(name in text for text in _texts_lower(analysis)):
        score += 15

    return _clamp(score)


def calculate_condition_confidence(analysis: ProductAnalysis) -> int:
    score = confidence_level_to_score(analysis.condition_confidence)

    if analysis.condition == ProductCondition.UNKNOWN:
        return _clamp(min(score, UNKNOWN_CONDITION_CAP))

    quality = analysis.visual_quality
    if quality.image_quality == ImageQuality.EXCELLENT:
        score += 15
    elif quality.image_quality == ImageQuality.GOOD:
        score += 10
    if quality.clarity == Clarity.SHARP:
        score += 10
    if quality.image_quality == ImageQuality.POOR:
        score -= 20

    if analysis.defects and analysis.defects.description:
        score += 5

    return _clamp(score)


def calculate_attributes_confidence(analysis: ProductAnalysis) -> int:
    attrs = analysis.attributes
    score = 50

    populated = [
        bool(attrs.color),
        bool(attrs.material),
        bool(attrs.size),
        bool(attrs.style),
        bool(attrs.model),
        bool(attrs.year),
        attrs.dimensions is not None,
        bool(attrs.weight),
    ]
    score += 5 * sum(populated)

    if analysis.extracted_text:
        score += 10
        if any(entry.confidence == ConfidenceLevel.HIGH for entry in analysis.extracted_text):
            score += 10

    return _clamp(score)


def calculate_visual_quality_confidence(analysis: ProductAnalysis) -> int:
    quality = analysis.visual_quality
    score = 50
    score += IMAGE_QUALITY_ADJUSTMENTS[quality.image_quality]
    score += LIGHTING_ADJUSTMENTS[quality.lighting]
    score += CLARITY_ADJUSTMENTS[quality.clarity]
    score += BACKGROUND_ADJUSTMENTS[quality.background]
    return _clamp(score)


# =============================================================================
# Aggregates
# =============================================================================

def _attribute_scores(analysis: ProductAnalysis) -> dict[str, int]:
    return {
        "product_type": calculate_product_type_confidence(analysis),
        "category": calculate_category_confidence(analysis),
        "brand": calculate_brand_confidence(analysis),
        "condition": calculate_condition_confidence(analysis),
        "attributes": calculate_attributes_confidence(analysis),
        "visual_quality": calculate_visual_quality_confidence(analysis),
    }


def _weighted_overall(scores: dict[str, int]) -> int:
    total = sum(scores[name] * weight for name, weight in OVERALL_WEIGHTS.items())
    return _clamp(_round_half_up(total))


def calculate_overall_confidence(analysis: ProductAnalysis) -> int:
    """Weighted mean of the six attribute scores, rounded to an int."""
    return _weighted_overall(_attribute_scores(analysis))


def get_confidence_breakdown(analysis: ProductAnalysis) -> AttributeConfidence:
    scores = _attribute_scores(analysis)
    return AttributeConfidence(**scores, overall=_weighted_overall(scores))


def get_confidence_recommendations(analysis: ProductAnalysis) -> list[str]:
    """
    Suggest what the seller can do to raise low scores.

    Visual-quality advice is only given when the visual score is below 50;
    recommendations from the vision model are appended as-is.
    """
    breakdown = get_confidence_breakdown(analysis)
    quality = analysis.visual_quality
    recommendations: list[str] = []

    if breakdown.visual_quality < 50:
        if quality.image_quality == ImageQuality.POOR:
            recommendations.append("Upload higher quality images for better analysis accuracy")
        if quality.lighting == Lighting.POOR:
            recommendations.append("Use better lighting when photographing the product")
        if quality.clarity == Clarity.BLURRY:
            recommendations.append(
                "Ensure images are in focus and not blurry for better recognition"
            )
        if quality.background != Background.CLEAN:
            recommendations.append(
                "Use a clean, uncluttered background to improve product identification"
            )

    if breakdown.product_type < 60:
        recommendations.append(
            "Consider providing additional details about the product type manually"
        )
    if breakdown.brand < 60:
        recommendations.append("If the brand is known, provide it manually to improve accuracy")
    if breakdown.condition < 60:
        recommendations.append("Provide detailed condition information for more accurate listings")
    if breakdown.attributes < 50:
        recommendations.append(
            "Add missing product attributes (color, size, model, etc.) manually"
        )

    if quality.recommendations:
        recommendations.extend(quality.recommendations)

    return recommendations
