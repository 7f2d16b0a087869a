"""
Claude vision service for product image analysis.

Sends a product photo (local file, http(s) URL or raw bytes) to the Anthropic
Messages API as a base64 image block and turns the JSON reply into a
``ProductAnalysis``.

The service never raises for analysis failures: every problem is folded into
``AnalysisResult(success=False, error=...)`` with a classified error code and
a ``retryable`` flag. Retrying is left to the caller (see the pipeline).

Example:
    >>> async with VisionService() as service:
    ...     result = await service.analyze_product("photos/chair.jpg")
    ...     if result.success:
    ...         print(result.data.product_type)
"""

import asyncio
import base64
import json
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

import anthropic
import httpx

from auction_assistant.config.settings import Settings, get_settings
from auction_assistant.models.schemas import (
    AnalysisResult,
    Background,
    BrandIdentification,
    Clarity,
    ConfidenceLevel,
    DefectSeverity,
    DetectedDefects,
    Dimensions,
    ExtractedText,
    ImageQuality,
    Lighting,
    ProductAnalysis,
    ProductAttributes,
    ProductCategory,
    ProductCondition,
    VisualQuality,
)
from auction_assistant.prompts.vision_prompts import AnalysisOptions, build_analysis_prompt
from auction_assistant.utils.errors import (
    ANALYSIS_ERROR_CODE,
    ConfigurationError,
    ImageLoadError,
    ResponseParseError,
    classify_error,
)
from auction_assistant.utils.logger import get_logger

logger = get_logger(__name__)

ImageSource = Union[str, Path, bytes]

UNKNOWN_PRODUCT = "Unknown Product"
UNKNOWN_CATEGORY = "Unknown"

EXTENSION_MEDIA_TYPES = {
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}
DEFAULT_MEDIA_TYPE = "image/jpeg"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class TokenUsage:
    """Token usage for a single vision request."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    model: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# Media Type Detection
# =============================================================================

def media_type_from_name(name: str) -> str:
    """png / webp / gif by extension, JPEG for everything else."""
    extension = name.lower().rsplit(".", 1)[-1] if "." in name else ""
    return EXTENSION_MEDIA_TYPES.get(extension, DEFAULT_MEDIA_TYPE)


def media_type_from_bytes(data: bytes) -> str:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return DEFAULT_MEDIA_TYPE


# =============================================================================
# Response Parsing
# =============================================================================

def extract_json(text: str) -> str:
    """Extract JSON from text that may contain markdown or other content."""
    code_block_pattern = r"```(?:json)?\s*([\s\S]*?)```"
    matches = re.findall(code_block_pattern, text)
    if matches:
        return matches[0].strip()

    json_pattern = r"(\{[\s\S]*\}|\[[\s\S]*\])"
    matches = re.findall(json_pattern, text)
    if matches:
        return max(matches, key=len)

    return text.strip()


def _coerce_enum(enum_cls: Any, value: Any, default: Any) -> Any:
    """Enum member for ``value``, or ``default`` when missing or unrecognised."""
    if not value:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.debug("Unrecognised enum value", enum=enum_cls.__name__, value=value)
        return default


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _string_list(value: Any) -> Optional[list[str]]:
    if not isinstance(value, list):
        return None
    return [str(item) for item in value if isinstance(item, (str, int, float)) and item != ""]


def _parse_category(raw: Any) -> ProductCategory:
    if isinstance(raw, dict):
        return ProductCategory(
            primary=_optional_str(raw.get("primary")) or UNKNOWN_CATEGORY,
            secondary=_optional_str(raw.get("secondary")),
            tertiary=_optional_str(raw.get("tertiary")),
            confidence=_coerce_enum(ConfidenceLevel, raw.get("confidence"), ConfidenceLevel.LOW),
        )
    return ProductCategory(primary=UNKNOWN_CATEGORY, confidence=ConfidenceLevel.LOW)


def _parse_brand(raw: Any) -> Optional[BrandIdentification]:
    if not isinstance(raw, dict):
        return None
    name = _optional_str(raw.get("name"))
    if not name:
        return None
    return BrandIdentification(
        name=name,
        confidence=_coerce_enum(ConfidenceLevel, raw.get("confidence"), ConfidenceLevel.LOW),
        verified=bool(raw.get("verified")),
    )


def _parse_attributes(raw: Any) -> ProductAttributes:
    if not isinstance(raw, dict):
        return ProductAttributes()

    dimensions = raw.get("dimensions")
    return ProductAttributes(
        color=_string_list(raw.get("color")),
        material=_string_list(raw.get("material")),
        size=_optional_str(raw.get("size")),
        style=_optional_str(raw.get("style")),
        model=_optional_str(raw.get("model")),
        year=_optional_str(raw.get("year")),
        dimensions=(
            Dimensions(**{k: _optional_str(dimensions.get(k)) for k in ("width", "height", "depth")})
            if isinstance(dimensions, dict) else None
        ),
        weight=_optional_str(raw.get("weight")),
        custom_attributes=raw.get("customAttributes"),
    )


def _parse_extracted_text(raw: Any) -> list[ExtractedText]:
    if not isinstance(raw, list):
        return []
    return [
        ExtractedText(
            text=str(item["text"]),
            location=_optional_str(item.get("location")),
            confidence=_coerce_enum(ConfidenceLevel, item.get("confidence"), ConfidenceLevel.LOW),
        )
        for item in raw
        if isinstance(item, dict) and item.get("text")
    ]


def _parse_defects(raw: Any) -> Optional[DetectedDefects]:
    if not isinstance(raw, dict):
        return None
    return DetectedDefects(
        scratches=bool(raw.get("scratches")),
        dents=bool(raw.get("dents")),
        stains=bool(raw.get("stains")),
        tears=bool(raw.get("tears")),
        missing_parts=bool(raw.get("missingParts")),
        wear=bool(raw.get("wear")),
        description=_optional_str(raw.get("description")),
        severity=_coerce_enum(DefectSeverity, raw.get("severity"), None),
    )


def _parse_visual_quality(raw: Any) -> VisualQuality:
    if not isinstance(raw, dict):
        return VisualQuality()
    return VisualQuality(
        image_quality=_coerce_enum(ImageQuality, raw.get("imageQuality"), ImageQuality.FAIR),
        lighting=_coerce_enum(Lighting, raw.get("lighting"), Lighting.FAIR),
        clarity=_coerce_enum(Clarity, raw.get("clarity"), Clarity.SLIGHTLY_BLURRY),
        background=_coerce_enum(Background, raw.get("background"), Background.CLEAN),
        recommendations=_string_list(raw.get("recommendations")),
    )


def parse_analysis_response(content: str) -> ProductAnalysis:
    """
    Turn the vision model's reply into a ProductAnalysis.

    Accepts bare or code-fenced JSON. Missing fields and unrecognised enum
    values fall back to conservative defaults rather than failing.

    Raises:
        ResponseParseError: If the reply holds no JSON object.
    """
    try:
        parsed = json.loads(extract_json(content))
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Failed to parse AI response: {e}", raw_response=content)

    if not isinstance(parsed, dict):
        raise ResponseParseError(
            "Failed to parse AI response: expected a JSON object", raw_response=content
        )

    product_type = _optional_str(parsed.get("productType")) or UNKNOWN_PRODUCT

    return ProductAnalysis(
        product_type=product_type,
        category=_parse_category(parsed.get("category")),
        brand=_parse_brand(parsed.get("brand")),
        condition=_coerce_enum(ProductCondition, parsed.get("condition"), ProductCondition.UNKNOWN),
        condition_confidence=_coerce_enum(
            ConfidenceLevel, parsed.get("conditionConfidence"), ConfidenceLevel.LOW
        ),
        attributes=_parse_attributes(parsed.get("attributes")),
        extracted_text=_parse_extracted_text(parsed.get("extractedText")),
        features=_string_list(parsed.get("features")) or [],
        defects=_parse_defects(parsed.get("defects")),
        visual_quality=_parse_visual_quality(parsed.get("visualQuality")),
        description=_optional_str(parsed.get("description")) or "",
        suggested_title=(
            _optional_str(parsed.get("suggestedTitle"))
            or _optional_str(parsed.get("productType"))
            or ""
        ),
        suggested_keywords=_string_list(parsed.get("suggestedKeywords")) or [],
        overall_confidence=_coerce_enum(
            ConfidenceLevel, parsed.get("overallConfidence"), ConfidenceLevel.MEDIUM
        ),
    )


# =============================================================================
# Vision Service
# =============================================================================

class VisionService:
    """
    Product image analysis backed by a Claude vision model.

    Attributes:
        settings: Application settings
        client: Anthropic async client
        token_usage_history: Usage records for every successful request
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the vision service.

        Args:
            settings: Application settings instance
            client: Pre-built Anthropic client (tests inject a mock here)
            http_client: Client used to download images given by URL

        Raises:
            ConfigurationError: If no API key is configured and no client is given.
        """
        self.settings = settings or get_settings()

        if client is None:
            api_key = self.settings.anthropic_api_key.get_secret_value()
            if not api_key:
                raise ConfigurationError(
                    "ANTHROPIC_API_KEY is required to create the vision service"
                )
            # Retries happen in the pipeline, not in the SDK
            client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=float(self.settings.request_timeout_seconds),
                max_retries=0,
            )

        self.client = client
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self.token_usage_history: list[TokenUsage] = []

        logger.info(
            "VisionService initialized",
            model=self.settings.vision_model,
            max_tokens=self.settings.vision_max_tokens,
        )

    async def __aenter__(self) -> "VisionService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the API client and any HTTP client this service created."""
        await self.client.close()
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.info("VisionService closed", total_requests=len(self.token_usage_history))

    # =========================================================================
    # Public API
    # =========================================================================

    async def analyze_product(
        self,
        image: ImageSource,
        options: Optional[AnalysisOptions] = None,
        media_type: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Analyze a single product image.

        Args:
            image: Local path, http(s) URL or raw image bytes.
            options: What to extract; everything is enabled by default.
            media_type: Override the detected image media type.

        Returns:
            AnalysisResult carrying the analysis or a classified error.
        """
        options = options or AnalysisOptions()
        source = image if isinstance(image, (str, Path)) else f"<{len(image)} bytes>"

        try:
            data, detected_type = await self._load_image(image)
            prompt = build_analysis_prompt(options)
            text, usage = await self._call_api(
                prompt=prompt,
                image_data=data,
                media_type=media_type or detected_type,
                max_tokens=options.max_tokens or self.settings.vision_max_tokens,
            )
            analysis = parse_analysis_response(text)
        except Exception as e:
            error = classify_error(
                e,
                fallback_code=ANALYSIS_ERROR_CODE,
                unknown_message="An unknown error occurred during analysis",
            )
            logger.error(
                "Vision analysis failed",
                image=str(source),
                code=error.code,
                retryable=error.retryable,
                error=error.message,
            )
            return AnalysisResult(success=False, error=error)

        logger.info(
            "Vision analysis complete",
            image=str(source),
            product_type=analysis.product_type,
            tokens=usage.total_tokens,
        )
        return AnalysisResult(success=True, data=analysis, tokens_used=usage.total_tokens)

    async def analyze_multiple_products(
        self,
        images: list[ImageSource],
        options: Optional[AnalysisOptions] = None,
    ) -> list[AnalysisResult]:
        """Analyze images concurrently; results keep input order and fail independently."""
        results = await asyncio.gather(
            *(self.analyze_product(image, options) for image in images),
            return_exceptions=True,
        )
        return [
            result if isinstance(result, AnalysisResult)
            else AnalysisResult(success=False, error=classify_error(result))
            for result in results
        ]

    def get_usage_stats(self) -> dict[str, Any]:
        total_input = sum(u.input_tokens for u in self.token_usage_history)
        total_output = sum(u.output_tokens for u in self.token_usage_history)
        return {
            "total_requests": len(self.token_usage_history),
            "total_input_tokens": total_input,
            "total_output_tokens": total_output,
            "total_tokens": total_input + total_output,
        }

    # =========================================================================
    # Internals
    # =========================================================================

    async def _load_image(self, image: ImageSource) -> tuple[bytes, str]:
        """Read the image bytes and guess their media type."""
        if isinstance(image, bytes):
            return image, media_type_from_bytes(image)

        source = str(image)
        if source.startswith(("http://", "https://")):
            return await self._download_image(source)

        path = Path(source)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise ImageLoadError(f"Failed to read image file: {e}") from e
        return data, media_type_from_name(path.name)

    async def _download_image(self, url: str) -> tuple[bytes, str]:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=float(self.settings.request_timeout_seconds),
                follow_redirects=True,
            )
        response = await self._http_client.get(url)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type.startswith("image/"):
            content_type = media_type_from_name(httpx.URL(url).path)
        return response.content, content_type

    async def _call_api(
        self,
        prompt: str,
        image_data: bytes,
        media_type: str,
        max_tokens: int,
    ) -> tuple[str, TokenUsage]:
        """
        Send one image + prompt to the Messages API.

        Returns:
            Tuple of (response_text, token_usage)
        """
        start_time = time.time()
        response = await self.client.messages.create(
            model=self.settings.vision_model,
            max_tokens=max_tokens,
            temperature=self.settings.vision_temperature,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": base64.b64encode(image_data).decode("ascii"),
                            },
                        },
                        {"type": "text", "text": prompt},
                    ],
                }
            ],
        )
        elapsed = time.time() - start_time

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text:
            raise ResponseParseError("No response content from vision model")

        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            model=self.settings.vision_model,
        )
        self.token_usage_history.append(usage)

        logger.debug(
            "Vision API call successful",
            elapsed_seconds=f"{elapsed:.2f}",
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return text, usage


def create_vision_service(settings: Optional[Settings] = None) -> VisionService:
    """Factory function to create a configured VisionService."""
    return VisionService(settings=settings)


__all__ = [
    "AnalysisOptions",
    "TokenUsage",
    "VisionService",
    "create_vision_service",
    "extract_json",
    "parse_analysis_response",
]
