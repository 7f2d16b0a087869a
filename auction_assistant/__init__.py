"""
Auction Assistant.

Turns a product photo and optional seller details into a ready-to-post
marketplace listing using Claude vision, LangGraph and Pydantic.
"""

__version__ = "1.0.0"
__author__ = "Auction Assistant Team"

# Lazy imports to avoid circular dependencies
def get_pipeline():
    """Get the ListingPipeline class (lazy import)."""
    from auction_assistant.pipeline.orchestrator import ListingPipeline
    return ListingPipeline

__all__ = ["get_pipeline", "__version__"]
