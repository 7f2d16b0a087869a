"""
Marketplace post generation service.

Uses a Claude text model to write the listing title, description and selling
points for an analysed product, then formats the result with
``utils.post_formatter`` (cleanup, emojis, call-to-action, validation).
Optionally produces A/B testing variants in alternative description styles.

Like the vision service, ``generate_post`` never raises: failures come back
as ``PostGenerationResult(success=False, error=...)``.

Example:
    >>> service = PostGenerationService()
    >>> result = await service.generate_post(analysis, PostGenerationOptions(generate_variants=True))
    >>> print(result.primary_post.title)
"""

import json
from dataclasses import dataclass
from typing import Optional, Union

import anthropic

from auction_assistant.config.settings import Settings, get_settings
from auction_assistant.models.schemas import (
    DescriptionStyle,
    EmojiStrategy,
    GeneratedPost,
    MarketplaceTone,
    ParsedSellingPoints,
    PostElement,
    PostGenerationResult,
    PostVariant,
    ProductAnalysis,
    RawSellingPoints,
    SellingPointsResponse,
)
from auction_assistant.prompts.marketplace_prompts import (
    DESCRIPTION_CONFIG,
    SELLING_POINTS_CONFIG,
    TITLE_CONFIG,
    VARIANT_TITLE_CONFIG,
    get_ab_testing_prompt,
    get_description_prompt,
    get_recommended_tone,
    get_selling_points_prompt,
    get_title_prompt,
)
from auction_assistant.services.vision_service import extract_json
from auction_assistant.utils.errors import (
    GENERATION_ERROR_CODE,
    ConfigurationError,
    UnknownElementError,
    classify_error,
)
from auction_assistant.utils.logger import get_logger
from auction_assistant.utils.post_formatter import (
    FormatOptions,
    format_marketplace_post,
    suggest_emojis,
)

logger = get_logger(__name__)

DEFAULT_POST_CTA = "💬 Message me for more details or to arrange pickup/delivery!"
DEFAULT_WORD_COUNT = (200, 500)
DEFAULT_SELLING_POINTS = 5
SUGGESTED_EMOJI_COUNT = 3


@dataclass(frozen=True)
class VariantApproach:
    variant_id: str
    description: str
    style: DescriptionStyle


VARIANT_APPROACHES = (
    VariantApproach("variant-benefit-focused", "Benefit-focused approach", DescriptionStyle.BENEFIT_FOCUSED),
    VariantApproach("variant-story-based", "Story-based approach", DescriptionStyle.STORY_BASED),
    VariantApproach("variant-concise", "Concise approach", DescriptionStyle.CONCISE),
    VariantApproach("variant-detailed", "Detailed approach", DescriptionStyle.DETAILED),
)


@dataclass
class PostGenerationOptions:
    """
    Options for ``generate_post``.

    ``tone=None`` picks a tone from the product's condition and category.
    """
    tone: Optional[MarketplaceTone] = None
    style: DescriptionStyle = DescriptionStyle.FEATURE_FOCUSED
    word_count: tuple[int, int] = DEFAULT_WORD_COUNT
    include_emojis: bool = True
    add_cta: bool = True
    cta: str = DEFAULT_POST_CTA
    generate_variants: bool = False
    variant_count: int = 2


@dataclass
class Generation:
    """Text produced by one model call."""
    content: str
    tokens_used: int = 0


@dataclass
class SellingPointsGeneration:
    response: SellingPointsResponse
    tokens_used: int = 0

    @property
    def points(self) -> list[str]:
        if isinstance(self.response, ParsedSellingPoints):
            return self.response.points
        return []


def parse_selling_points(text: str) -> SellingPointsResponse:
    """
    Read the model's selling-point reply.

    A JSON array of strings becomes ``ParsedSellingPoints``; anything else is
    kept verbatim as ``RawSellingPoints`` together with the reason.
    """
    if not text.strip():
        return ParsedSellingPoints(points=[])

    try:
        parsed = json.loads(extract_json(text))
    except json.JSONDecodeError as e:
        return RawSellingPoints(raw=text, reason=f"Invalid JSON: {e.msg}")

    if not isinstance(parsed, list):
        return RawSellingPoints(raw=text, reason="Expected a JSON array of strings")
    if not all(isinstance(point, str) for point in parsed):
        return RawSellingPoints(raw=text, reason="JSON array contains non-string items")

    return ParsedSellingPoints(points=parsed)


class PostGenerationService:
    """
    Writes marketplace posts with a Claude text model.

    Attributes:
        settings: Application settings
        client: Anthropic async client
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        self.settings = settings or get_settings()

        if client is None:
            api_key = self.settings.anthropic_api_key.get_secret_value()
            if not api_key:
                raise ConfigurationError(
                    "ANTHROPIC_API_KEY is required to create the post generation service"
                )
            client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=float(self.settings.request_timeout_seconds),
                max_retries=0,
            )

        self.client = client
        logger.info("PostGenerationService initialized", model=self.settings.post_model)

    async def __aenter__(self) -> "PostGenerationService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.close()

    # =========================================================================
    # Complete Post
    # =========================================================================

    async def generate_post(
        self,
        analysis: ProductAnalysis,
        options: Optional[PostGenerationOptions] = None,
    ) -> PostGenerationResult:
        """
        Generate a complete marketplace post.

        Args:
            analysis: Product analysis (merged or enriched analyses work too).
            options: Tone, style, emoji, CTA and variant settings.

        Returns:
            PostGenerationResult with the primary post and optional variants.
        """
        options = options or PostGenerationOptions()
        tone = (
            MarketplaceTone(options.tone) if options.tone
            else get_recommended_tone(analysis.condition, analysis.category.primary)
        )
        style = DescriptionStyle(options.style)

        try:
            title = await self.generate_title(analysis, tone)
            description = await self.generate_description(
                analysis, tone, style, options.word_count
            )
            selling_points = await self.generate_selling_points(analysis)
            if isinstance(selling_points.response, RawSellingPoints):
                logger.warning(
                    "Selling points reply was not a JSON array",
                    reason=selling_points.response.reason,
                )

            total_tokens = title.tokens_used + description.tokens_used + selling_points.tokens_used

            emojis = (
                suggest_emojis(analysis.category.primary, analysis.condition, SUGGESTED_EMOJI_COUNT)
                if options.include_emojis else []
            )

            formatted = format_marketplace_post(
                title.content,
                description.content,
                FormatOptions(
                    clean_text=True,
                    add_emojis=options.include_emojis,
                    emojis=emojis,
                    emoji_strategy=EmojiStrategy.DISTRIBUTED,
                    add_cta=options.add_cta,
                    cta=options.cta,
                ),
            )

            primary_post = GeneratedPost(
                title=formatted.title,
                description=formatted.description,
                selling_points=selling_points.points,
                emojis=emojis,
                tone=tone,
                style=style,
                validation=formatted.validation,
                metadata=formatted.metadata.model_copy(update={"tokens_used": total_tokens}),
            )

            variants: Optional[list[PostVariant]] = None
            if options.generate_variants:
                variants, variant_tokens = await self.generate_ab_testing_variants(
                    analysis, primary_post, options.variant_count
                )
                total_tokens += variant_tokens

        except Exception as e:
            error = classify_error(
                e,
                fallback_code=GENERATION_ERROR_CODE,
                unknown_message="An unknown error occurred during post generation",
            )
            logger.error(
                "Post generation failed",
                code=error.code,
                retryable=error.retryable,
                error=error.message,
            )
            return PostGenerationResult(success=False, error=error)

        logger.info(
            "Post generated",
            tone=tone.value,
            style=style.value,
            title_valid=primary_post.validation.title.valid,
            description_valid=primary_post.validation.description.valid,
            variants=len(variants or []),
            tokens=total_tokens,
        )
        return PostGenerationResult(
            success=True,
            primary_post=primary_post,
            variants=variants,
            total_tokens_used=total_tokens,
        )

    # =========================================================================
    # Individual Elements
    # =========================================================================

    async def generate_title(
        self,
        analysis: ProductAnalysis,
        tone: MarketplaceTone = MarketplaceTone.PROFESSIONAL,
    ) -> Generation:
        return await self._generate(
            system=TITLE_CONFIG.system,
            prompt=get_title_prompt(analysis, tone),
            temperature=self.settings.post_temperature,
            max_tokens=TITLE_CONFIG.max_tokens,
        )

    async def generate_description(
        self,
        analysis: ProductAnalysis,
        tone: MarketplaceTone = MarketplaceTone.PROFESSIONAL,
        style: DescriptionStyle = DescriptionStyle.FEATURE_FOCUSED,
        word_count: tuple[int, int] = DEFAULT_WORD_COUNT,
    ) -> Generation:
        return await self._generate(
            system=DESCRIPTION_CONFIG.system,
            prompt=get_description_prompt(analysis, tone, style, word_count),
            temperature=self.settings.post_temperature,
            max_tokens=self.settings.post_max_tokens,
        )

    async def generate_selling_points(
        self,
        analysis: ProductAnalysis,
        max_points: int = DEFAULT_SELLING_POINTS,
    ) -> SellingPointsGeneration:
        generation = await self._generate(
            system=SELLING_POINTS_CONFIG.system,
            prompt=get_selling_points_prompt(analysis, max_points),
            temperature=SELLING_POINTS_CONFIG.temperature,
            max_tokens=SELLING_POINTS_CONFIG.max_tokens,
        )
        return SellingPointsGeneration(
            response=parse_selling_points(generation.content),
            tokens_used=generation.tokens_used,
        )

    async def generate_ab_testing_variants(
        self,
        analysis: ProductAnalysis,
        primary_post: GeneratedPost,
        variant_count: int = 2,
    ) -> tuple[list[PostVariant], int]:
        """
        Generate alternative title / description pairs.

        Takes the first ``variant_count`` approaches (at most four) and skips
        the one matching the primary post's style, so fewer variants than
        requested may be returned. A failing variant is logged and skipped.

        Returns:
            (variants, tokens used)
        """
        variants: list[PostVariant] = []
        total_tokens = 0

        for approach in VARIANT_APPROACHES[: min(variant_count, len(VARIANT_APPROACHES))]:
            if approach.style == primary_post.style:
                continue

            try:
                title = await self._generate(
                    system=VARIANT_TITLE_CONFIG.system,
                    prompt=get_ab_testing_prompt(analysis, "title", primary_post.title),
                    temperature=VARIANT_TITLE_CONFIG.temperature,
                    max_tokens=VARIANT_TITLE_CONFIG.max_tokens,
                )
                total_tokens += title.tokens_used

                description = await self.generate_description(
                    analysis, primary_post.tone, approach.style, DEFAULT_WORD_COUNT
                )
                total_tokens += description.tokens_used
            except Exception as e:
                logger.warning(
                    "Failed to generate variant",
                    variant_id=approach.variant_id,
                    error=str(e),
                )
                continue

            variants.append(
                PostVariant(
                    variant_id=approach.variant_id,
                    title=title.content,
                    description=description.content,
                    differentiating_factor=approach.description,
                )
            )

        return variants, total_tokens

    async def regenerate_element(
        self,
        analysis: ProductAnalysis,
        element: Union[PostElement, str],
        tone: Optional[MarketplaceTone] = None,
        style: Optional[DescriptionStyle] = None,
    ) -> Union[Generation, SellingPointsGeneration]:
        """
        Regenerate one part of a post.

        Raises:
            UnknownElementError: If ``element`` is not title, description or selling_points.
        """
        try:
            target = PostElement(element)
        except ValueError:
            raise UnknownElementError(element) from None

        tone = tone or MarketplaceTone.PROFESSIONAL
        style = style or DescriptionStyle.FEATURE_FOCUSED

        if target == PostElement.TITLE:
            return await self.generate_title(analysis, tone)
        if target == PostElement.DESCRIPTION:
            return await self.generate_description(analysis, tone, style, DEFAULT_WORD_COUNT)
        return await self.generate_selling_points(analysis)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _generate(
        self,
        system: str,
        prompt: str,
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Generation:
        response = await self.client.messages.create(
            model=self.settings.post_model,
            max_tokens=max_tokens or self.settings.post_max_tokens,
            temperature=temperature if temperature is not None else self.settings.post_temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )

        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()
        tokens = response.usage.input_tokens + response.usage.output_tokens

        return Generation(content=content, tokens_used=tokens)


def create_post_generation_service(settings: Optional[Settings] = None) -> PostGenerationService:
    """Factory function to create a configured PostGenerationService."""
    return PostGenerationService(settings=settings)
