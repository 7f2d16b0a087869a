"""Utils module for the Auction Assistant."""

from auction_assistant.utils.logger import LogContext, get_logger, setup_logging
from auction_assistant.utils.errors import (
    AppError,
    ConfigurationError,
    ImageLoadError,
    ResponseParseError,
    UnknownElementError,
    classify_error,
)
from auction_assistant.utils.formatters import ListingFormatter

__all__ = [
    "LogContext",
    "get_logger",
    "setup_logging",
    "AppError",
    "ConfigurationError",
    "ImageLoadError",
    "ResponseParseError",
    "UnknownElementError",
    "classify_error",
    "ListingFormatter",
]
