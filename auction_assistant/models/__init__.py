"""Data models module for the Auction Assistant."""

from auction_assistant.models.schemas import (
    # Base Models
    BaseModel,
    FrozenModel,

    # Enums
    ConfidenceLevel,
    ProductCondition,
    ImageQuality,
    Lighting,
    Clarity,
    Background,
    DefectSeverity,
    DataSource,
    MarketplaceTone,
    DescriptionStyle,
    EmojiStrategy,
    Marketplace,
    PostElement,

    # Analysis Models
    ProductCategory,
    BrandIdentification,
    Dimensions,
    ProductAttributes,
    ExtractedText,
    VisualQuality,
    DetectedDefects,
    ProductAnalysis,

    # Merge Models
    UserProvidedDetails,
    DataSources,
    ValidationStatus,
    MergedProductData,

    # Enrichment Models
    AttributeConfidence,
    ProductDatabaseEntry,
    EnrichmentData,
    EnrichedProductAnalysis,

    # Validation Results
    InputValidationResult,
    ValidationResult,
    FileValidationResult,

    # Post Models
    PostValidation,
    PostMetadata,
    FormattedPost,
    ParsedSellingPoints,
    RawSellingPoints,
    SellingPointsResponse,
    GeneratedPost,
    PostVariant,

    # Service Results
    AnalysisError,
    AnalysisResult,
    PostGenerationResult,
    ListingResult,
)

__all__ = [
    "BaseModel",
    "FrozenModel",
    "ConfidenceLevel",
    "ProductCondition",
    "ImageQuality",
    "Lighting",
    "Clarity",
    "Background",
    "DefectSeverity",
    "DataSource",
    "MarketplaceTone",
    "DescriptionStyle",
    "EmojiStrategy",
    "Marketplace",
    "PostElement",
    "ProductCategory",
    "BrandIdentification",
    "Dimensions",
    "ProductAttributes",
    "ExtractedText",
    "VisualQuality",
    "DetectedDefects",
    "ProductAnalysis",
    "UserProvidedDetails",
    "DataSources",
    "ValidationStatus",
    "MergedProductData",
    "AttributeConfidence",
    "ProductDatabaseEntry",
    "EnrichmentData",
    "EnrichedProductAnalysis",
    "InputValidationResult",
    "ValidationResult",
    "FileValidationResult",
    "PostValidation",
    "PostMetadata",
    "FormattedPost",
    "ParsedSellingPoints",
    "RawSellingPoints",
    "SellingPointsResponse",
    "GeneratedPost",
    "PostVariant",
    "AnalysisError",
    "AnalysisResult",
    "PostGenerationResult",
    "ListingResult",
]
