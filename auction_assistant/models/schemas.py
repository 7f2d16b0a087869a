"""
Pydantic models and schemas for the Auction Assistant.

This module defines all data structures used throughout the listing pipeline,
ensuring type safety, validation, and serialization consistency. Models that
mirror the vision-model JSON accept and emit camelCase aliases
(``productType``, ``visualQuality``...) while exposing snake_case attributes.

Models:
    - ProductAnalysis: Structured result of a single image analysis
    - UserProvidedDetails: Optional facts supplied by the seller
    - MergedProductData: Analysis + user facts + provenance
    - EnrichedProductAnalysis: Analysis + confidence / completeness / sentiment
    - FormattedPost / GeneratedPost: Marketplace post output
    - AnalysisError / AnalysisResult: Service result wrappers
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Self, Union

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Base Configuration
# =============================================================================

class BaseModel(PydanticBaseModel):
    """Base model with common configuration for all schemas."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=False,
        ser_json_timedelta="iso8601",
    )

    def to_json(self, **kwargs) -> str:
        """Serialize model to camelCase JSON string."""
        kwargs.setdefault("by_alias", True)
        return self.model_dump_json(indent=2, **kwargs)

    def to_dict(self, **kwargs) -> dict[str, Any]:
        """Serialize model to dictionary."""
        return self.model_dump(**kwargs)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize model from JSON string."""
        return cls.model_validate_json(json_str)


class FrozenModel(BaseModel):
    """Immutable record. Use ``model_copy(update=...)`` to derive a changed copy."""

    model_config = ConfigDict(frozen=True)


def _stringify_scalar(value: Any) -> Any:
    """Numbers and booleans coming back from a model are stored as text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


def coerce_string_map(value: Any) -> Optional[dict[str, str]]:
    """
    Coerce a loose JSON object into ``dict[str, str]``.

    Scalars are stringified; nested objects, lists and nulls are dropped.
    Anything that is not a mapping yields ``None``.
    """
    if value is None or not isinstance(value, dict):
        return None
    result: dict[str, str] = {}
    for key, item in value.items():
        item = _stringify_scalar(item)
        if isinstance(item, str):
            result[str(key)] = item
    return result


# =============================================================================
# Enums
# =============================================================================

class ConfidenceLevel(str, Enum):
    """Coarse confidence label attached to an AI-derived field."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ProductCondition(str, Enum):
    """Resale condition grades."""
    NEW = "new"
    LIKE_NEW = "like_new"
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    FOR_PARTS = "for_parts"
    UNKNOWN = "unknown"


class ImageQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class Lighting(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class Clarity(str, Enum):
    SHARP = "sharp"
    SLIGHTLY_BLURRY = "slightly_blurry"
    BLURRY = "blurry"


class Background(str, Enum):
    CLEAN = "clean"
    CLUTTERED = "cluttered"
    DISTRACTING = "distracting"


class DefectSeverity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"


class DataSource(str, Enum):
    """Provenance of a merged field."""
    AI = "ai"
    USER = "user"
    MERGED = "merged"


class MarketplaceTone(str, Enum):
    """Writing tone for generated posts."""
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    ENTHUSIASTIC = "enthusiastic"
    LUXURY = "luxury"
    BARGAIN = "bargain"


class DescriptionStyle(str, Enum):
    """Description style variants used for A/B testing."""
    FEATURE_FOCUSED = "feature_focused"
    BENEFIT_FOCUSED = "benefit_focused"
    STORY_BASED = "story_based"
    CONCISE = "concise"
    DETAILED = "detailed"


class EmojiStrategy(str, Enum):
    START = "start"
    END = "end"
    DISTRIBUTED = "distributed"


class Marketplace(str, Enum):
    FACEBOOK = "facebook"
    EBAY = "ebay"
    CRAIGSLIST = "craigslist"
    OFFERUP = "offerup"
    GENERIC = "generic"


class PostElement(str, Enum):
    """Parts of a post that can be regenerated on their own."""
    TITLE = "title"
    DESCRIPTION = "description"
    SELLING_POINTS = "selling_points"


# =============================================================================
# Analysis Components
# =============================================================================

class ProductCategory(FrozenModel):
    """Category path with the model's confidence in it."""

    primary: str = Field(
        ...,
        description="Top-level category",
        examples=["Electronics", "Furniture"],
    )
    secondary: Optional[str] = Field(default=None, examples=["Smartphones"])
    tertiary: Optional[str] = Field(default=None)
    confidence: ConfidenceLevel = Field(default=ConfidenceLevel.LOW)


class BrandIdentification(FrozenModel):
    name: str = Field(..., description="Brand name", examples=["Apple", "IKEA"])
    confidence: ConfidenceLevel = Field(default=ConfidenceLevel.LOW)
    verified: bool = Field(
        default=False,
        description="True when a logo or printed brand name was seen",
    )


class Dimensions(FrozenModel):
    width: Optional[str] = None
    height: Optional[str] = None
    depth: Optional[str] = None

    @field_validator("width", "height", "depth", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Any:
        return _stringify_scalar(v)


class ProductAttributes(FrozenModel):
    """Physical attributes of the product. Every field is optional."""

    color: Optional[list[str]] = Field(default=None, examples=[["Black", "Silver"]])
    material: Optional[list[str]] = Field(default=None, examples=[["Aluminum"]])
    size: Optional[str] = None
    style: Optional[str] = None
    model: Optional[str] = Field(default=None, examples=["A2633"])
    year: Optional[str] = Field(default=None, examples=["2021"])
    dimensions: Optional[Dimensions] = None
    weight: Optional[str] = None
    custom_attributes: Optional[dict[str, str]] = Field(
        default=None,
        description="Free-form attributes; values are always strings",
    )

    @field_validator("size", "style", "model", "year", "weight", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Any:
        return _stringify_scalar(v)

    @field_validator("custom_attributes", mode="before")
    @classmethod
    def coerce_custom_attributes(cls, v: Any) -> Optional[dict[str, str]]:
        return coerce_string_map(v)


class ExtractedText(FrozenModel):
    """Text read from the image (labels, tags, packaging)."""

    text: str
    location: Optional[str] = None
    confidence: ConfidenceLevel = ConfidenceLevel.LOW


class VisualQuality(FrozenModel):
    image_quality: ImageQuality = ImageQuality.FAIR
    lighting: Lighting = Lighting.FAIR
    clarity: Clarity = Clarity.SLIGHTLY_BLURRY
    background: Background = Background.CLEAN
    recommendations: Optional[list[str]] = None


class DetectedDefects(FrozenModel):
    scratches: bool = False
    dents: bool = False
    stains: bool = False
    tears: bool = False
    missing_parts: bool = False
    wear: bool = False
    description: Optional[str] = None
    severity: Optional[DefectSeverity] = None


# =============================================================================
# Product Analysis
# =============================================================================

class ProductAnalysis(FrozenModel):
    """
    Structured result of analysing one product image.

    Produced once per image and never mutated; the merge and enrichment steps
    derive new records from it.

    Example:
        >>> analysis = ProductAnalysis(
        ...     product_type="Apple iPhone 13 Pro",
        ...     category=ProductCategory(primary="Electronics", confidence=ConfidenceLevel.HIGH),
        ...     condition=ProductCondition.GOOD,
        ...     condition_confidence=ConfidenceLevel.MEDIUM,
        ...     overall_confidence=ConfidenceLevel.HIGH,
        ... )
    """

    product_type: str = Field(
        ...,
        description="What the product is",
        examples=["Apple iPhone 13 Pro", "IKEA Office Chair"],
    )
    category: ProductCategory
    brand: Optional[BrandIdentification] = None
    condition: ProductCondition = ProductCondition.UNKNOWN
    condition_confidence: ConfidenceLevel = ConfidenceLevel.LOW
    attributes: ProductAttributes = Field(default_factory=ProductAttributes)
    extracted_text: list[ExtractedText] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    defects: Optional[DetectedDefects] = None
    visual_quality: VisualQuality = Field(default_factory=VisualQuality)
    description: str = ""
    suggested_title: str = ""
    suggested_keywords: list[str] = Field(default_factory=list)
    overall_confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM
    analysis_timestamp: datetime = Field(default_factory=_utcnow)

    def analysis_fields(self) -> dict[str, Any]:
        """Field values of the base analysis, as model instances (no dumping)."""
        return {name: getattr(self, name) for name in ProductAnalysis.model_fields}


# =============================================================================
# User Details & Merge Output
# =============================================================================

class UserProvidedDetails(FrozenModel):
    """Facts supplied by the seller. Every field is optional."""

    condition: Optional[ProductCondition] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    product_type: Optional[str] = None
    description: Optional[str] = None
    color: Optional[list[str]] = None
    material: Optional[list[str]] = None
    size: Optional[str] = None
    year: Optional[str] = None
    category_specific_details: Optional[dict[str, str]] = None
    notes: Optional[str] = None
    custom_title: Optional[str] = None
    custom_keywords: Optional[list[str]] = None

    @field_validator("year", "size", "model", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> Any:
        return _stringify_scalar(v)

    @field_validator("category_specific_details", mode="before")
    @classmethod
    def coerce_details(cls, v: Any) -> Optional[dict[str, str]]:
        return coerce_string_map(v)


class DataSources(FrozenModel):
    """Which source determined each merged field."""

    product_type: DataSource = DataSource.AI
    brand: DataSource = DataSource.AI
    condition: DataSource = DataSource.AI
    attributes: DataSource = DataSource.AI
    description: DataSource = DataSource.AI
    title: DataSource = DataSource.AI


class ValidationStatus(FrozenModel):
    is_complete: bool = False
    missing_fields: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class MergedProductData(ProductAnalysis):
    """ProductAnalysis combined with seller facts, plus per-field provenance."""

    data_sources: DataSources = Field(default_factory=DataSources)
    user_provided_details: UserProvidedDetails = Field(default_factory=UserProvidedDetails)
    validation_status: ValidationStatus = Field(default_factory=ValidationStatus)


# =============================================================================
# Enrichment Models
# =============================================================================

class AttributeConfidence(FrozenModel):
    """Numeric 0-100 confidence per attribute group."""

    product_type: int = Field(..., ge=0, le=100)
    category: int = Field(..., ge=0, le=100)
    brand: int = Field(..., ge=0, le=100)
    condition: int = Field(..., ge=0, le=100)
    attributes: int = Field(..., ge=0, le=100)
    visual_quality: int = Field(..., ge=0, le=100)
    overall: int = Field(..., ge=0, le=100)


class ProductDatabaseEntry(FrozenModel):
    """A known product, looked up by UPC / EAN / brand:model."""

    upc: Optional[str] = Field(default=None, examples=["194252707098"])
    ean: Optional[str] = None
    isbn: Optional[str] = None
    asin: Optional[str] = None
    product_name: str
    brand: str
    category: str
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    attributes: Optional[dict[str, str]] = None
    last_updated: datetime = Field(default_factory=_utcnow)

    @field_validator("attributes", mode="before")
    @classmethod
    def coerce_attributes(cls, v: Any) -> Optional[dict[str, str]]:
        return coerce_string_map(v)


class EnrichmentData(FrozenModel):
    confidence_scores: AttributeConfidence
    recommendations: list[str] = Field(default_factory=list)
    completeness_score: int = Field(..., ge=0, le=100)
    missing_critical_info: list[str] = Field(default_factory=list)
    database_match: Optional[ProductDatabaseEntry] = None
    sentiment_score: Optional[float] = Field(default=None, ge=-1.0, le=1.0)


class EnrichedProductAnalysis(ProductAnalysis):
    enrichment_data: EnrichmentData


# =============================================================================
# Validation Results
# =============================================================================

class InputValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class FileValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None


# =============================================================================
# Post Models
# =============================================================================

class PostValidation(BaseModel):
    title: ValidationResult
    description: ValidationResult


class PostMetadata(BaseModel):
    word_count: int
    character_count: int
    emoji_count: int
    tokens_used: Optional[int] = None


class FormattedPost(BaseModel):
    """Cleaned title and description with validation and counts."""

    title: str
    description: str
    validation: PostValidation
    metadata: PostMetadata


class ParsedSellingPoints(BaseModel):
    """The model replied with a JSON array of strings."""

    kind: Literal["parsed"] = "parsed"
    points: list[str] = Field(default_factory=list)


class RawSellingPoints(BaseModel):
    """The reply could not be read as a JSON array of strings; kept verbatim."""

    kind: Literal["raw"] = "raw"
    raw: str
    reason: str


SellingPointsResponse = Annotated[
    Union[ParsedSellingPoints, RawSellingPoints],
    Field(discriminator="kind"),
]


class GeneratedPost(BaseModel):
    title: str
    description: str
    selling_points: list[str] = Field(default_factory=list)
    emojis: list[str] = Field(default_factory=list)
    tone: MarketplaceTone
    style: DescriptionStyle
    validation: PostValidation
    metadata: PostMetadata


class PostVariant(BaseModel):
    """Alternative post for A/B testing."""

    variant_id: str = Field(..., examples=["variant-benefit-focused"])
    title: str
    description: str
    differentiating_factor: str = Field(..., examples=["Benefit-focused approach"])


# =============================================================================
# Service Results
# =============================================================================

class AnalysisError(BaseModel):
    """Classified upstream failure."""

    code: str = Field(..., examples=["rate_limit_error", "ANALYSIS_ERROR"])
    message: str
    retryable: bool = False
    details: Optional[dict[str, Any]] = None


class AnalysisResult(BaseModel):
    success: bool
    data: Optional[ProductAnalysis] = None
    error: Optional[AnalysisError] = None
    tokens_used: Optional[int] = None


class PostGenerationResult(BaseModel):
    success: bool
    primary_post: Optional[GeneratedPost] = None
    variants: Optional[list[PostVariant]] = None
    error: Optional[AnalysisError] = None
    total_tokens_used: Optional[int] = None


class ListingResult(BaseModel):
    """Final output of one pipeline run."""

    run_id: str
    image: str
    merged: MergedProductData
    enriched: EnrichedProductAnalysis
    enrichment_validation: ValidationResult
    post: Optional[PostGenerationResult] = None
    errors: list[str] = Field(default_factory=list)
    step_timings: dict[str, int] = Field(default_factory=dict)
    completed_at: datetime = Field(default_factory=_utcnow)
