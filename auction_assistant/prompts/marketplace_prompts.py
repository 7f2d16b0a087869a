"""
Prompt templates for marketplace post generation.

Prompt Categories:
    1. Title - catchy 50-80 character listing title
    2. Description - tone and style aware listing body
    3. Selling Points - JSON array of short selling points
    4. A/B Testing - alternative title / description
    5. Emoji Suggestion - JSON array of emojis
    6. Tone & Marketplace Guidance - recommended tone, per-marketplace formatting notes

Every template returns plain text ready to send as the user message; the
system prompts and sampling settings for each call live in ``PromptConfig``.
"""

import json
from dataclasses import dataclass
from typing import Optional

from auction_assistant.models.schemas import (
    DescriptionStyle,
    Marketplace,
    MarketplaceTone,
    ProductAnalysis,
    ProductCondition,
)


# =============================================================================
# Prompt Configuration
# =============================================================================

@dataclass
class PromptConfig:
    """System prompt and sampling settings for one generation call."""
    name: str
    system: str
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    def __repr__(self) -> str:
        return f"PromptConfig({self.name}, temp={self.temperature})"


TITLE_CONFIG = PromptConfig(
    name="listing_title",
    system=(
        "You are an expert marketplace listing writer who creates compelling, "
        "concise titles that drive engagement and sales."
    ),
    max_tokens=100,
)

# Temperature and max tokens come from settings
DESCRIPTION_CONFIG = PromptConfig(
    name="listing_description",
    system=(
        "You are an expert marketplace listing writer who creates engaging, honest, "
        "and persuasive product descriptions that highlight key features and benefits "
        "while building trust with potential buyers."
    ),
)

SELLING_POINTS_CONFIG = PromptConfig(
    name="selling_points",
    system="You are an expert at identifying the most compelling selling points for products.",
    temperature=0.5,
    max_tokens=200,
)

VARIANT_TITLE_CONFIG = PromptConfig(
    name="ab_variant_title",
    system="You are an expert at creating alternative marketplace listing titles for A/B testing.",
    temperature=0.8,
    max_tokens=100,
)


# =============================================================================
# Guideline Tables
# =============================================================================

STYLE_GUIDELINES: dict[DescriptionStyle, str] = {
    DescriptionStyle.FEATURE_FOCUSED:
        "Emphasize technical specifications, features, and what the product includes",
    DescriptionStyle.BENEFIT_FOCUSED:
        "Focus on how the product will improve the buyer's life and solve their problems",
    DescriptionStyle.STORY_BASED:
        "Tell a story about the product, its history, or how it can be used in daily life",
    DescriptionStyle.CONCISE:
        "Be brief and direct, highlighting only the most essential information",
    DescriptionStyle.DETAILED:
        "Provide comprehensive information covering all aspects of the product",
}

TONE_GUIDELINES: dict[MarketplaceTone, str] = {
    MarketplaceTone.PROFESSIONAL:
        "Professional, clear, and trustworthy. Use proper grammar and formal language.",
    MarketplaceTone.CASUAL:
        "Friendly and conversational. Use everyday language like talking to a friend.",
    MarketplaceTone.ENTHUSIASTIC:
        "Energetic and exciting! Show passion and enthusiasm for the product.",
    MarketplaceTone.LUXURY:
        "Sophisticated and premium. Emphasize quality, exclusivity, and prestige.",
    MarketplaceTone.BARGAIN:
        "Value-focused and deal-oriented. Highlight savings and great price.",
}

MARKETPLACE_GUIDELINES: dict[Marketplace, str] = {
    Marketplace.FACEBOOK:
        "Facebook Marketplace: Use casual tone, emojis welcome, focus on local pickup/delivery",
    Marketplace.EBAY:
        "eBay: Professional tone, detailed specs, mention shipping, include item specifics",
    Marketplace.CRAIGSLIST:
        "Craigslist: Simple format, no emojis, focus on price and condition, include contact info",
    Marketplace.OFFERUP:
        "OfferUp: Casual friendly tone, use emojis, highlight condition and price, mention meetup",
    Marketplace.GENERIC:
        "General Marketplace: Balanced professional-casual tone, universal appeal",
}

LUXURY_CATEGORIES = ("jewelry", "watches", "designer", "luxury", "high-end")
TECH_CATEGORIES = ("electronics", "tech", "computer", "phone", "gaming")


# =============================================================================
# Helpers
# =============================================================================

def _brand_name(analysis: ProductAnalysis) -> str:
    return analysis.brand.name if analysis.brand else "Unknown"


def _condition(analysis: ProductAnalysis) -> str:
    return analysis.condition.value


def _lines(*lines: Optional[str]) -> str:
    """Join the lines that are present."""
    return "\n".join(line for line in lines if line)


def get_style_guidelines(style: DescriptionStyle) -> str:
    return STYLE_GUIDELINES[DescriptionStyle(style)]


def get_tone_guidelines(tone: MarketplaceTone) -> str:
    return TONE_GUIDELINES[MarketplaceTone(tone)]


# =============================================================================
# PROMPT 1: Title
# =============================================================================

def get_title_prompt(
    analysis: ProductAnalysis,
    tone: MarketplaceTone = MarketplaceTone.PROFESSIONAL,
) -> str:
    attrs = analysis.attributes
    details = _lines(
        f"Product Type: {analysis.product_type}",
        f"Brand: {_brand_name(analysis)}",
        f"Condition: {_condition(analysis)}",
        f"Color: {', '.join(attrs.color)}" if attrs.color else None,
        f"Size: {attrs.size}" if attrs.size else None,
        f"Model: {attrs.model}" if attrs.model else None,
        f"Year: {attrs.year}" if attrs.year else None,
    )

    return f"""Create a catchy, engaging marketplace listing title for the following product:

{details}

Requirements:
- Length: 50-80 characters
- Tone: {MarketplaceTone(tone).value}
- Include the most important details (brand, model, condition)
- Be attention-grabbing and clear
- Use power words that drive engagement
- Avoid ALL CAPS (except acronyms)
- Do NOT use excessive punctuation (!!!, ???)

Return ONLY the title text, nothing else."""


# =============================================================================
# PROMPT 2: Description
# =============================================================================

def get_description_prompt(
    analysis: ProductAnalysis,
    tone: MarketplaceTone = MarketplaceTone.PROFESSIONAL,
    style: DescriptionStyle = DescriptionStyle.FEATURE_FOCUSED,
    word_count: tuple[int, int] = (200, 500),
) -> str:
    """
    Build the description request.

    Args:
        analysis: Product being listed.
        tone: Voice of the listing.
        style: Structural approach of the description.
        word_count: (min, max) words requested.
    """
    tone = MarketplaceTone(tone)
    style = DescriptionStyle(style)
    attrs = analysis.attributes
    defects = analysis.defects

    header = _lines(
        f"Product Type: {analysis.product_type}",
        f"Brand: {_brand_name(analysis)}",
        f"Condition: {_condition(analysis)}",
        f"AI Analysis: {analysis.description}" if analysis.description else None,
    )

    attributes = _lines(
        f"- Color: {', '.join(attrs.color)}" if attrs.color else None,
        f"- Material: {', '.join(attrs.material)}" if attrs.material else None,
        f"- Size: {attrs.size}" if attrs.size else None,
        f"- Model: {attrs.model}" if attrs.model else None,
        f"- Year: {attrs.year}" if attrs.year else None,
        (
            f"- Dimensions: {json.dumps(attrs.dimensions.model_dump(exclude_none=True))}"
            if attrs.dimensions else None
        ),
    )

    sections = [
        f"Create an engaging marketplace listing description for the following product:\n\n{header}",
        f"Attributes:\n{attributes}" if attributes else "Attributes:",
    ]
    if analysis.features:
        features = "\n".join(f"- {feature}" for feature in analysis.features)
        sections.append(f"Key Features:\n{features}")

    condition_notes = _lines(
        f"Condition Notes: {defects.description}" if defects and defects.description else None,
        f"Defect Severity: {defects.severity.value}" if defects and defects.severity else None,
    )
    if condition_notes:
        sections.append(condition_notes)

    base_context = "\n\n".join(sections)
    min_words, max_words = word_count

    return f"""{base_context}

Requirements:
- Length: {min_words}-{max_words} words
- Tone: {tone.value} - {get_tone_guidelines(tone)}
- Style: {style.value} - {get_style_guidelines(style)}
- Include relevant emojis naturally (2-4 emojis total)
- Use bullet points or numbered lists for key information
- Highlight unique selling points
- Be honest about condition and any defects
- Include a compelling call-to-action at the end
- Format for easy readability with paragraphs and spacing

Structure:
1. Opening hook (1-2 sentences)
2. Main features and benefits (2-3 paragraphs)
3. Condition details (if applicable)
4. Call-to-action

Return ONLY the description text with formatting, nothing else."""


# =============================================================================
# PROMPT 3: Selling Points
# =============================================================================

def get_selling_points_prompt(analysis: ProductAnalysis, max_points: int = 5) -> str:
    attrs = analysis.attributes
    details = _lines(
        f"Product Type: {analysis.product_type}",
        f"Brand: {_brand_name(analysis)}",
        f"Condition: {_condition(analysis)}",
        f"Features: {', '.join(analysis.features)}",
        f"Color: {', '.join(attrs.color)}" if attrs.color else None,
        f"Model: {attrs.model}" if attrs.model else None,
    )

    return f"""Identify the {max_points} most compelling selling points for this product:

{details}

Requirements:
- List exactly {max_points} selling points
- Each point should be 5-15 words
- Focus on what makes this product desirable
- Include both features and benefits
- Prioritize unique or standout qualities
- Be specific and factual

Return ONLY a JSON array of strings, e.g., ["selling point 1", "selling point 2", ...]"""


# =============================================================================
# PROMPT 4: A/B Testing
# =============================================================================

def get_ab_testing_prompt(
    analysis: ProductAnalysis,
    variant_type: str,
    original_content: str,
) -> str:
    """Alternative ``"title"`` or ``"description"`` for A/B testing."""
    if variant_type == "title":
        return f"""Create an alternative version of this marketplace listing title for A/B testing:

Original Title: {original_content}

Product: {analysis.product_type}
Brand: {_brand_name(analysis)}

Requirements:
- Same length constraint (50-80 characters)
- Different wording and approach than the original
- Equally compelling but with a different angle
- Test a different emphasis (e.g., if original emphasizes brand, emphasize feature instead)

Return ONLY the alternative title text, nothing else."""

    return f"""Create an alternative version of this marketplace listing description for A/B testing:

Original Description:
{original_content}

Product: {analysis.product_type}

Requirements:
- Similar length to original
- Different style and approach (e.g., if original is feature-focused, make this benefit-focused)
- Maintain accuracy and key information
- Test a different tone or structure
- Include different but appropriate emojis

Return ONLY the alternative description text, nothing else."""


# =============================================================================
# PROMPT 5: Emoji Suggestion
# =============================================================================

def get_emoji_suggestion_prompt(product_type: str, context: str) -> str:
    return f"""Suggest 3-5 relevant emojis for a marketplace listing:

Product Type: {product_type}
Context: {context}

Requirements:
- Emojis should be relevant to the product or context
- Common and widely recognized emojis
- Not overly playful for serious products
- Enhance the message without being distracting

Return ONLY a JSON array of emoji characters, e.g., ["✨", "🎯", "💫"]"""


# =============================================================================
# Tone & Marketplace Guidance
# =============================================================================

def get_recommended_tone(condition: ProductCondition, category: str) -> MarketplaceTone:
    """
    Pick a tone from condition and category.

    Luxury categories in new / like-new condition read best as luxury; poor
    and for-parts items as bargains; fair items as casual; tech categories as
    enthusiastic. Everything else is professional.
    """
    condition = ProductCondition(condition)
    category_lower = category.lower()

    if any(name in category_lower for name in LUXURY_CATEGORIES) and condition in (
        ProductCondition.NEW,
        ProductCondition.LIKE_NEW,
    ):
        return MarketplaceTone.LUXURY

    if condition in (ProductCondition.POOR, ProductCondition.FOR_PARTS):
        return MarketplaceTone.BARGAIN

    if condition == ProductCondition.FAIR:
        return MarketplaceTone.CASUAL

    if any(name in category_lower for name in TECH_CATEGORIES):
        return MarketplaceTone.ENTHUSIASTIC

    return MarketplaceTone.PROFESSIONAL


def get_formatting_prompt(marketplace: Marketplace = Marketplace.GENERIC) -> str:
    return MARKETPLACE_GUIDELINES[Marketplace(marketplace)]
