"""
Prompt for the product image analysis call.

The vision model is asked for a single JSON object mirroring
``ProductAnalysis`` (camelCase keys). Sections 10-13 of the request are only
included when the matching analysis option is enabled.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class AnalysisOptions:
    """What the vision model should extract from the image."""
    include_ocr: bool = True
    detailed_analysis: bool = True
    generate_title: bool = True
    generate_keywords: bool = True
    max_tokens: Optional[int] = None


# =============================================================================
# Prompt Sections
# =============================================================================

ANALYSIS_INTRO = """Analyze this product image and provide detailed information in JSON format. Be thorough and accurate.

Required information:
1. Product Type: Identify what the product is (e.g., "Apple iPhone 13 Pro", "IKEA Office Chair")
2. Category: Primary, secondary, and tertiary categories with confidence levels
3. Brand: Brand name with confidence level and whether it was verified through visible logos/text
4. Condition: Assess the condition (new, like_new, excellent, good, fair, poor, for_parts, unknown)
5. Condition Confidence: How confident you are in the condition assessment (high, medium, low)
6. Attributes: Extract color, material, size, style, model, year, dimensions, and other relevant attributes
7. Features: List notable features and specifications
8. Description: Natural language description (2-3 sentences)
9. Visual Quality: Assess image quality, lighting, clarity, and background
"""

OCR_SECTION = "10. Extracted Text: Any text visible in the image (labels, tags, packaging) with location and confidence\n"
DEFECTS_SECTION = "11. Defects: Identify any visible defects, damage, wear, or issues with severity\n"
TITLE_SECTION = "12. Suggested Title: Create an engaging listing title (50-80 characters)\n"
KEYWORDS_SECTION = "13. Suggested Keywords: Generate 5-10 relevant SEO keywords\n"

ANALYSIS_OUTPUT_SCHEMA = """
Return ONLY a valid JSON object with this exact structure:
{
  "productType": "string",
  "category": {
    "primary": "string",
    "secondary": "string (optional)",
    "tertiary": "string (optional)",
    "confidence": "high|medium|low"
  },
  "brand": {
    "name": "string",
    "confidence": "high|medium|low",
    "verified": boolean
  },
  "condition": "new|like_new|excellent|good|fair|poor|for_parts|unknown",
  "conditionConfidence": "high|medium|low",
  "attributes": {
    "color": ["string"],
    "material": ["string"],
    "size": "string",
    "style": "string",
    "model": "string",
    "year": "string",
    "dimensions": { "width": "string", "height": "string", "depth": "string" },
    "weight": "string",
    "customAttributes": {}
  },
  "extractedText": [
    { "text": "string", "location": "string", "confidence": "high|medium|low" }
  ],
  "features": ["string"],
  "defects": {
    "scratches": boolean,
    "dents": boolean,
    "stains": boolean,
    "tears": boolean,
    "missingParts": boolean,
    "wear": boolean,
    "description": "string",
    "severity": "minor|moderate|severe"
  },
  "visualQuality": {
    "imageQuality": "excellent|good|fair|poor",
    "lighting": "good|fair|poor",
    "clarity": "sharp|slightly_blurry|blurry",
    "background": "clean|cluttered|distracting",
    "recommendations": ["string"]
  },
  "description": "string",
  "suggestedTitle": "string",
  "suggestedKeywords": ["string"],
  "overallConfidence": "high|medium|low"
}

Note: Include all fields. Use null or empty arrays if information is not available. Be specific and detailed."""


def build_analysis_prompt(options: Optional[AnalysisOptions] = None) -> str:
    """Assemble the analysis request for the given options."""
    options = options or AnalysisOptions()

    sections = [ANALYSIS_INTRO]
    if options.include_ocr:
        sections.append(OCR_SECTION)
    if options.detailed_analysis:
        sections.append(DEFECTS_SECTION)
    if options.generate_title:
        sections.append(TITLE_SECTION)
    if options.generate_keywords:
        sections.append(KEYWORDS_SECTION)
    sections.append(ANALYSIS_OUTPUT_SCHEMA)

    return "".join(sections)
