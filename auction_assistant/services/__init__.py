"""Services module for the Auction Assistant."""

from auction_assistant.services.vision_service import VisionService, create_vision_service
from auction_assistant.services.post_generation_service import (
    PostGenerationOptions,
    PostGenerationService,
    create_post_generation_service,
)
from auction_assistant.services.product_enrichment import (
    EnrichmentOptions,
    ProductCache,
    ProductEnrichmentService,
    create_product_enrichment_service,
)
from auction_assistant.services.description_merger import (
    MergeOptions,
    merge_product_data,
    validate_product_data,
    validate_user_input,
)
from auction_assistant.services.validation_service import ValidationService

__all__ = [
    "VisionService",
    "create_vision_service",
    "PostGenerationOptions",
    "PostGenerationService",
    "create_post_generation_service",
    "EnrichmentOptions",
    "ProductCache",
    "ProductEnrichmentService",
    "create_product_enrichment_service",
    "MergeOptions",
    "merge_product_data",
    "validate_product_data",
    "validate_user_input",
    "ValidationService",
]
