"""Pipeline module for the Auction Assistant."""

from auction_assistant.pipeline.orchestrator import (
    ListingPipeline,
    PipelineError,
    PipelineStateDict,
    PipelineStatus,
    ProgressTracker,
    create_listing,
)

__all__ = [
    "ListingPipeline",
    "PipelineError",
    "PipelineStateDict",
    "PipelineStatus",
    "ProgressTracker",
    "create_listing",
]
