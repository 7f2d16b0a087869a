"""Configuration for the Auction Assistant."""

from auction_assistant.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
