"""
Validation service for uploaded images and seller-supplied details.

Checks image files against the accepted upload constraints and turns raw
``userDetails`` payloads (JSON strings or dicts) into ``UserProvidedDetails``.
Nothing here raises for bad input: failures come back as messages.
"""

import json
import mimetypes
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from auction_assistant.models.schemas import FileValidationResult, UserProvidedDetails
from auction_assistant.services.description_merger import validate_user_input
from auction_assistant.utils.logger import get_logger

logger = get_logger(__name__)

ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp")
ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")
MAX_FILE_SIZE = 10 * 1024 * 1024

# Checked before the platform mimetypes table, which may lack webp
EXTENSION_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

INVALID_DETAILS_JSON = "Invalid JSON format for userDetails"


def guess_mime_type(filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix in EXTENSION_MIME_TYPES:
        return EXTENSION_MIME_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


class ValidationService:
    """Validates image uploads and user detail payloads."""

    def __init__(self, max_file_size: int = MAX_FILE_SIZE):
        self.max_file_size = max_file_size

    def is_allowed_file_type(self, mimetype: str) -> bool:
        return mimetype in ALLOWED_MIME_TYPES

    def is_valid_file_size(self, size: int) -> bool:
        return 0 < size <= self.max_file_size

    def has_allowed_extension(self, filename: str) -> bool:
        return filename.lower().endswith(ALLOWED_EXTENSIONS)

    def validate_file(self, mimetype: str, size: int, filename: str) -> FileValidationResult:
        """Return the first failed constraint: type, then size, then extension."""
        if not self.is_allowed_file_type(mimetype):
            return FileValidationResult(
                valid=False,
                error=f"Invalid file type. Allowed types: {', '.join(ALLOWED_MIME_TYPES)}",
            )

        if not self.is_valid_file_size(size):
            megabytes = self.max_file_size / 1024 / 1024
            return FileValidationResult(
                valid=False,
                error=f"File size must be between 1 byte and {megabytes:g}MB",
            )

        if not self.has_allowed_extension(filename):
            return FileValidationResult(
                valid=False,
                error=f"Invalid file extension. Allowed extensions: {', '.join(ALLOWED_EXTENSIONS)}",
            )

        return FileValidationResult(valid=True)

    def validate_image_path(self, path: Union[str, Path]) -> FileValidationResult:
        """Validate a local image file, guessing its MIME type from the name."""
        path = Path(path)
        if not path.is_file():
            return FileValidationResult(valid=False, error=f"File not found: {path}")

        return self.validate_file(
            mimetype=guess_mime_type(path.name),
            size=path.stat().st_size,
            filename=path.name,
        )

    def parse_user_details(
        self,
        payload: Union[str, dict[str, Any], UserProvidedDetails, None],
    ) -> tuple[Optional[UserProvidedDetails], list[str]]:
        """
        Parse and validate a ``userDetails`` payload.

        Returns:
            (details, errors). ``details`` is None whenever ``errors`` is non-empty.
            An empty payload yields empty details.
        """
        if payload is None or payload == "":
            return UserProvidedDetails(), []

        if isinstance(payload, UserProvidedDetails):
            data: Any = payload
        elif isinstance(payload, str):
            try:
                data = json.loads(payload)
            except json.JSONDecodeError:
                logger.warning("User details are not valid JSON")
                return None, [INVALID_DETAILS_JSON]
        else:
            data = payload

        if not isinstance(data, (dict, UserProvidedDetails)):
            return None, [INVALID_DETAILS_JSON]

        validation = validate_user_input(data)
        if not validation.valid:
            logger.warning("User details rejected", errors=validation.errors)
            return None, validation.errors

        if isinstance(data, UserProvidedDetails):
            return data, []

        try:
            return UserProvidedDetails.model_validate(data), []
        except PydanticValidationError as e:
            logger.warning("User details failed schema validation", error=str(e))
            return None, [
                f"Invalid user details: {err['loc'][0] if err['loc'] else 'payload'} - {err['msg']}"
                for err in e.errors()
            ]


_default_service = ValidationService()


def validate_file(mimetype: str, size: int, filename: str) -> FileValidationResult:
    return _default_service.validate_file(mimetype, size, filename)


def validate_image_path(path: Union[str, Path]) -> FileValidationResult:
    return _default_service.validate_image_path(path)


def parse_user_details(
    payload: Union[str, dict[str, Any], UserProvidedDetails, None],
) -> tuple[Optional[UserProvidedDetails], list[str]]:
    return _default_service.parse_user_details(payload)
