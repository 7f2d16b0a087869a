"""
Post formatting utilities.

Helpers for turning generated text into marketplace-ready posts: emoji
placement and suggestion, whitespace / punctuation cleanup, list formatting,
and title / description validation against marketplace length limits.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from auction_assistant.models.schemas import (
    EmojiStrategy,
    FormattedPost,
    PostMetadata,
    PostValidation,
    ValidationResult,
)

# =============================================================================
# Limits & Emoji Tables
# =============================================================================

# Titles are measured in characters, descriptions in words
TITLE_LIMITS = (50, 80)
DESCRIPTION_LIMITS = (200, 500)
SHORT_DESCRIPTION_LIMITS = (50, 150)

MAX_EMOJIS_IN_DESCRIPTION = 10

DEFAULT_CTA = "Message me for more details!"

EMOJI_CATEGORIES: dict[str, list[str]] = {
    # General
    "attention": ["✨", "⭐", "💫", "🌟", "🎯"],
    "quality": ["👌", "💎", "🏆", "✅", "⚡"],
    "deal": ["💰", "💵", "🤑", "💸", "🔥"],
    "new": ["🆕", "✨", "🎁", "📦", "🌟"],
    # Product categories
    "electronics": ["📱", "💻", "🖥️", "⌚", "🎧", "📷", "🔌", "⚡"],
    "clothing": ["👕", "👗", "👔", "👖", "👠", "👟", "🧥", "👜"],
    "furniture": ["🛋️", "🪑", "🛏️", "🚪", "🪟", "🏠"],
    "sports": ["⚽", "🏀", "🏈", "⚾", "🎾", "🏋️", "🚴", "⛳"],
    "toys": ["🧸", "🎮", "🎯", "🎲", "🧩", "🎨", "🎪"],
    "books": ["📚", "📖", "📝", "✏️", "🔖"],
    "automotive": ["🚗", "🚙", "🏎️", "🔧", "⚙️", "🛞"],
    "home": ["🏡", "🏠", "🛋️", "🍽️", "🧹", "🔨"],
    "beauty": ["💄", "💅", "💇", "🧴", "✨"],
    "jewelry": ["💍", "💎", "⌚", "👑", "✨"],
    # Condition indicators
    "excellent": ["✨", "💯", "⭐", "🌟", "👌"],
    "good": ["✅", "👍", "😊"],
    "fair": ["📦", "🔧"],
    # Actions / CTA
    "buy": ["🛒", "💳", "🛍️", "💰"],
    "contact": ["📞", "📧", "💬", "📱"],
    "shipping": ["📦", "🚚", "✈️", "🌍"],
    "local": ["📍", "🗺️", "🏠"],
}

EMOJI_PATTERN = re.compile(
    "["
    "\U0001F600-\U0001F64F"
    "\U0001F300-\U0001F5FF"
    "\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "\u231A-\u231B"
    "\u23E9-\u23EC"
    "\u25AA-\u25AB"
    "\u25B6"
    "\u25C0"
    "\u2934-\u2935"
    "]"
)

SENTENCE_SPLIT_PATTERN = re.compile(r"([.!?]+\s+)", re.ASCII)
SENTENCE_START_PATTERN = re.compile(r"(^\w|[.!?]\s+\w)", re.ASCII)

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}


# =============================================================================
# Validation
# =============================================================================

def text_length(text: str) -> int:
    """Length in UTF-16 code units, so an emoji outside the BMP counts as two."""
    return len(text.encode("utf-16-le")) // 2


def validate_title(title: str) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    min_chars, max_chars = TITLE_LIMITS
    length = text_length(title)
    if length < min_chars:
        errors.append(f"Title too short: {length} characters (minimum {min_chars})")
    if length > max_chars:
        errors.append(f"Title too long: {length} characters (maximum {max_chars})")

    upper = len(re.findall(r"[A-Z]", title))
    letters = len(re.findall(r"[a-zA-Z]", title))
    if letters > 0 and upper / letters > 0.5:
        warnings.append("Excessive capitalization detected")

    if re.search(r"[!?]{2,}", title):
        warnings.append("Excessive punctuation detected (!!!, ???)")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_description(
    description: str,
    min_words: int = DESCRIPTION_LIMITS[0],
    max_words: int = DESCRIPTION_LIMITS[1],
) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    word_count = count_words(description)
    if word_count < min_words:
        errors.append(f"Description too short: {word_count} words (minimum {min_words})")
    if word_count > max_words:
        errors.append(f"Description too long: {word_count} words (maximum {max_words})")

    emoji_count = count_emojis(description)
    if emoji_count > MAX_EMOJIS_IN_DESCRIPTION:
        warnings.append(f"Too many emojis: {emoji_count} (recommended: 2-4)")

    if "\n" not in description and word_count > 100:
        warnings.append("Consider adding paragraph breaks for readability")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def count_words(text: str) -> int:
    return len(text.split())


def count_emojis(text: str) -> int:
    """Count characters in the common emoji ranges (variation selectors excluded)."""
    return len(EMOJI_PATTERN.findall(text))


# =============================================================================
# Emojis
# =============================================================================

def insert_emojis(
    text: str,
    emojis: list[str],
    strategy: Union[EmojiStrategy, str] = EmojiStrategy.DISTRIBUTED,
) -> str:
    """
    Place emojis at the start, the end, or after sentence boundaries.

    The distributed strategy splits on sentence punctuation (keeping the
    separators) and appends one emoji after every ``len(segments) // len(emojis)``
    segments. When there are more emojis than segments nothing is inserted.
    """
    if not emojis:
        return text

    strategy = EmojiStrategy(strategy)
    joined = " ".join(emojis)

    if strategy == EmojiStrategy.START:
        return f"{joined} {text}"
    if strategy == EmojiStrategy.END:
        return f"{text} {joined}"

    segments = SENTENCE_SPLIT_PATTERN.split(text)
    interval = len(segments) // len(emojis)
    if interval == 0:
        return text.strip()

    parts: list[str] = []
    emoji_index = 0
    for index, segment in enumerate(segments):
        parts.append(segment)
        if emoji_index < len(emojis) and index > 0 and index % interval == 0:
            parts.append(f" {emojis[emoji_index]}")
            emoji_index += 1

    return "".join(parts).strip()


def suggest_emojis(
    product_category: str,
    condition: Optional[str] = None,
    count: int = 3,
) -> list[str]:
    """Pick emojis whose table name appears in the category, then pad with attention emojis."""
    suggested: list[str] = []
    category_lower = product_category.lower()

    for name, emojis in EMOJI_CATEGORIES.items():
        if name in category_lower:
            suggested.extend(emojis[:2])

    if condition:
        condition_lower = str(getattr(condition, "value", condition)).lower()
        if "new" in condition_lower or "excellent" in condition_lower:
            suggested.extend(EMOJI_CATEGORIES["excellent"][:1])
        elif "good" in condition_lower:
            suggested.extend(EMOJI_CATEGORIES["good"][:1])

    if len(suggested) < count:
        suggested.extend(EMOJI_CATEGORIES["attention"][: count - len(suggested)])

    return list(dict.fromkeys(suggested))[:count]


# =============================================================================
# Text Formatting
# =============================================================================

def format_bullet_points(items: list[str]) -> str:
    return "\n".join(f"• {item}" for item in items)


def format_numbered_list(items: list[str]) -> str:
    return "\n".join(f"{index}. {item}" for index, item in enumerate(items, 1))


def format_paragraphs(text: str) -> str:
    """Collapse runs of blank lines and drop empty paragraphs."""
    paragraphs = [p.strip() for p in re.split(r"\n\n+", text)]
    return "\n\n".join(p for p in paragraphs if p)


def capitalize_first_letter(text: str) -> str:
    """Uppercase the first letter of every sentence."""
    return SENTENCE_START_PATTERN.sub(lambda m: m.group(0).upper(), text)


def normalize_exclamation(text: str) -> str:
    return re.sub(r"\?{2,}", "?", re.sub(r"!{2,}", "!", text))


def truncate_to_word_limit(text: str, max_words: int) -> str:
    """
    Cut ``text`` to ``max_words`` words.

    If a sentence ends within the last 20% of the cut text, cut there;
    otherwise append an ellipsis.
    """
    words = re.split(r"\s+", text, flags=re.ASCII)
    if len(words) <= max_words:
        return text

    truncated = " ".join(words[:max_words])
    last_sentence_end = max(truncated.rfind("."), truncated.rfind("!"), truncated.rfind("?"))

    if last_sentence_end > len(truncated) * 0.8:
        return truncated[: last_sentence_end + 1]
    return truncated + "..."


def clean_text(text: str) -> str:
    cleaned = re.sub(r"[ \t]+", " ", text)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    cleaned = normalize_exclamation(cleaned)
    cleaned = capitalize_first_letter(cleaned)
    return cleaned.strip()


def format_price(price: float, currency: str = "USD") -> str:
    """Whole-unit price with thousands separators, e.g. ``$1,235``."""
    currency = currency.upper()
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    rounded = math.floor(abs(price) + 0.5)
    sign = "-" if price < 0 and rounded else ""
    return f"{sign}{symbol}{rounded:,}"


def add_call_to_action(description: str, cta: str = DEFAULT_CTA) -> str:
    return f"{description}\n\n{cta}"


# =============================================================================
# Complete Post
# =============================================================================

@dataclass
class FormatOptions:
    """Options for ``format_marketplace_post``."""
    clean_text: bool = True
    add_emojis: bool = False
    emojis: list[str] = field(default_factory=list)
    emoji_strategy: EmojiStrategy = EmojiStrategy.DISTRIBUTED
    add_cta: bool = False
    cta: Optional[str] = None


def format_marketplace_post(
    title: str,
    description: str,
    options: Optional[FormatOptions] = None,
) -> FormattedPost:
    """Clean, decorate and validate a title / description pair."""
    options = options or FormatOptions()

    formatted_title = clean_text(title) if options.clean_text else title
    formatted_description = clean_text(description) if options.clean_text else description

    if options.add_emojis and options.emojis:
        formatted_description = insert_emojis(
            formatted_description, options.emojis, options.emoji_strategy
        )

    if options.add_cta:
        formatted_description = add_call_to_action(
            formatted_description, options.cta or DEFAULT_CTA
        )

    return FormattedPost(
        title=formatted_title,
        description=formatted_description,
        validation=PostValidation(
            title=validate_title(formatted_title),
            description=validate_description(formatted_description),
        ),
        metadata=PostMetadata(
            word_count=count_words(formatted_description),
            character_count=text_length(formatted_description),
            emoji_count=count_emojis(formatted_description),
        ),
    )
