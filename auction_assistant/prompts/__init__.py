"""Prompt templates for image analysis and post writing."""

from auction_assistant.prompts.vision_prompts import AnalysisOptions, build_analysis_prompt
from auction_assistant.prompts.marketplace_prompts import (
    PromptConfig,
    get_ab_testing_prompt,
    get_description_prompt,
    get_emoji_suggestion_prompt,
    get_formatting_prompt,
    get_recommended_tone,
    get_selling_points_prompt,
    get_title_prompt,
)

__all__ = [
    "AnalysisOptions",
    "build_analysis_prompt",
    "PromptConfig",
    "get_ab_testing_prompt",
    "get_description_prompt",
    "get_emoji_suggestion_prompt",
    "get_formatting_prompt",
    "get_recommended_tone",
    "get_selling_points_prompt",
    "get_title_prompt",
]
