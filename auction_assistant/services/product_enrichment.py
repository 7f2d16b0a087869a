"""
Product enrichment service.

Enhances a product analysis with:
    - Per-attribute confidence scores and improvement recommendations
    - A lookup against known products (UPC / EAN / brand:model)
    - A heuristic condition sentiment score
    - A weighted completeness score with the list of missing fields

Known products live in a ``ProductCache`` owned by (or injected into) the
service, so tests and concurrent pipelines can keep isolated caches.

Example:
    >>> cache = ProductCache()
    >>> service = ProductEnrichmentService(cache=cache)
    >>> enriched = await service.enrich_product_analysis(analysis)
    >>> enriched.enrichment_data.completeness_score
    82
"""

import re
from dataclasses import dataclass
from typing import Iterator, Optional

from auction_assistant.models.schemas import (
    BrandIdentification,
    ConfidenceLevel,
    DefectSeverity,
    EnrichedProductAnalysis,
    EnrichmentData,
    ImageQuality,
    ProductAnalysis,
    ProductCategory,
    ProductCondition,
    ProductDatabaseEntry,
    ValidationResult,
)
from auction_assistant.utils.confidence_scoring import (
    calculate_overall_confidence,
    get_confidence_breakdown,
    get_confidence_recommendations,
    score_to_confidence_level,
)
from auction_assistant.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

# UPC-A is 12 digits, EAN-13 is 13. No checksum is verified.
UPC_PATTERN = re.compile(r"\b\d{12,13}\b", re.ASCII)

CONDITION_SENTIMENT: dict[ProductCondition, float] = {
    ProductCondition.NEW: 1.0,
    ProductCondition.LIKE_NEW: 0.8,
    ProductCondition.EXCELLENT: 0.6,
    ProductCondition.GOOD: 0.4,
    ProductCondition.FAIR: 0.2,
    ProductCondition.POOR: -0.4,
    ProductCondition.FOR_PARTS: -0.8,
    ProductCondition.UNKNOWN: 0.0,
}

SEVERITY_PENALTY: dict[DefectSeverity, float] = {
    DefectSeverity.MINOR: 0.05,
    DefectSeverity.MODERATE: 0.15,
    DefectSeverity.SEVERE: 0.3,
}

DEFECT_PENALTY = 0.1
KEYWORD_WEIGHT = 0.05

POSITIVE_KEYWORDS = (
    "excellent", "perfect", "pristine", "mint", "flawless",
    "new", "unused", "original", "warranty", "certified",
)
NEGATIVE_KEYWORDS = (
    "damage", "broken", "worn", "scratched", "dented",
    "stained", "missing", "defect", "crack", "chip",
)

# Values that count as "not filled in" for completeness
PLACEHOLDER_VALUES = (ProductCondition.UNKNOWN.value, "Unknown", "Unknown Product")

MIN_DESCRIPTION_CHARS = 20
INCOMPLETE_THRESHOLD = 60
DATABASE_MATCH_SCORE = 85
DEFAULT_MIN_CONFIDENCE = 50


@dataclass(frozen=True)
class EnrichmentOptions:
    """Which enrichment steps to run."""
    enable_database_lookup: bool = True
    enable_sentiment_analysis: bool = True
    enable_completeness_check: bool = True


# =============================================================================
# Product Cache
# =============================================================================

class ProductCache:
    """
    In-memory map of lookup keys to known products.

    An entry is indexed under its UPC, its EAN and ``"{brand}:{model}"``.
    There is no eviction and no locking: callers that share one cache across
    threads must serialise access themselves.
    """

    def __init__(self, entries: Optional[list[ProductDatabaseEntry]] = None):
        self._entries: dict[str, ProductDatabaseEntry] = {}
        for entry in entries or []:
            self.add(entry)

    @staticmethod
    def keys_for(entry: ProductDatabaseEntry) -> list[str]:
        keys = []
        if entry.upc:
            keys.append(entry.upc)
        if entry.ean:
            keys.append(entry.ean)
        if entry.brand and entry.model:
            keys.append(f"{entry.brand}:{entry.model}")
        return keys

    def add(self, entry: ProductDatabaseEntry) -> None:
        for key in self.keys_for(entry):
            self._entries[key] = entry

    def get(self, key: str) -> Optional[ProductDatabaseEntry]:
        return self._entries.get(key)

    def entries(self) -> list[ProductDatabaseEntry]:
        """Distinct entries, in insertion order."""
        seen: dict[int, ProductDatabaseEntry] = {}
        for entry in self._entries.values():
            seen.setdefault(id(entry), entry)
        return list(seen.values())

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


# =============================================================================
# Service
# =============================================================================

class ProductEnrichmentService:
    """
    Adds confidence, lookup, sentiment and completeness data to an analysis.

    Attributes:
        cache: Known products used for database matching.
    """

    def __init__(self, cache: Optional[ProductCache] = None):
        self.cache = cache if cache is not None else ProductCache()

    async def enrich_product_analysis(
        self,
        analysis: ProductAnalysis,
        options: Optional[EnrichmentOptions] = None,
    ) -> EnrichedProductAnalysis:
        """
        Enrich an analysis with confidence, lookup, sentiment and completeness data.

        Args:
            analysis: Analysis (or merged analysis) to enrich.
            options: Steps to run; all enabled by default.

        Returns:
            EnrichedProductAnalysis carrying the original fields plus enrichment_data.
        """
        options = options or EnrichmentOptions()

        confidence_scores = get_confidence_breakdown(analysis)
        recommendations = get_confidence_recommendations(analysis)

        database_match: Optional[ProductDatabaseEntry] = None
        if options.enable_database_lookup:
            database_match = self.lookup_product(analysis)
            if database_match:
                recommendations.append(
                    f"Product matched in database: {database_match.product_name}"
                )

        sentiment_score: Optional[float] = None
        if options.enable_sentiment_analysis:
            sentiment_score = self.analyze_sentiment(analysis)

        if options.enable_completeness_check:
            completeness_score, missing_critical_info = self.check_completeness(analysis)
        else:
            completeness_score, missing_critical_info = 100, []

        logger.debug(
            "Analysis enriched",
            overall=confidence_scores.overall,
            completeness=completeness_score,
            sentiment=sentiment_score,
            database_match=bool(database_match),
        )

        return EnrichedProductAnalysis(
            **analysis.analysis_fields(),
            enrichment_data=EnrichmentData(
                confidence_scores=confidence_scores,
                recommendations=recommendations,
                completeness_score=completeness_score,
                missing_critical_info=missing_critical_info,
                database_match=database_match,
                sentiment_score=sentiment_score,
            ),
        )

    # =========================================================================
    # Lookup
    # =========================================================================

    @staticmethod
    def extract_upc(texts: list[str]) -> Optional[str]:
        """First 12-13 digit run found in the OCR texts."""
        for text in texts:
            match = UPC_PATTERN.search(text)
            if match:
                return match.group(0)
        return None

    def lookup_product(self, analysis: ProductAnalysis) -> Optional[ProductDatabaseEntry]:
        upc = self.extract_upc([entry.text for entry in analysis.extracted_text])
        if upc:
            cached = self.cache.get(upc)
            if cached:
                return cached

        if analysis.brand and analysis.attributes.model:
            cached = self.cache.get(f"{analysis.brand.name}:{analysis.attributes.model}")
            if cached:
                return cached

        return None

    # =========================================================================
    # Heuristics
    # =========================================================================

    def analyze_sentiment(self, analysis: ProductAnalysis) -> float:
        """Score from -1 (poor condition) to 1 (excellent condition)."""
        score = CONDITION_SENTIMENT[analysis.condition]

        defects = analysis.defects
        if defects:
            flags = [
                defects.scratches,
                defects.dents,
                defects.stains,
                defects.tears,
                defects.missing_parts,
                defects.wear,
            ]
            score -= DEFECT_PENALTY * sum(flags)
            if defects.severity:
                score -= SEVERITY_PENALTY[defects.severity]

        description = analysis.description.lower()
        score += KEYWORD_WEIGHT * sum(1 for word in POSITIVE_KEYWORDS if word in description)
        score -= KEYWORD_WEIGHT * sum(1 for word in NEGATIVE_KEYWORDS if word in description)

        return max(-1.0, min(1.0, score))

    def check_completeness(self, analysis: ProductAnalysis) -> tuple[int, list[str]]:
        """
        Weighted share of populated fields.

        Returns:
            (completeness score 0-100, names of missing fields)
        """
        missing: list[str] = []
        total = 0.0
        completed = 0.0

        description_ok = len(analysis.description) > MIN_DESCRIPTION_CHARS
        critical_fields = [
            ("productType", analysis.product_type, 3),
            ("condition", analysis.condition, 3),
            ("category", analysis.category.primary, 2),
            ("description", description_ok, 2),
            ("suggestedTitle", analysis.suggested_title, 2),
        ]
        for name, value, weight in critical_fields:
            total += weight
            if value and value not in PLACEHOLDER_VALUES:
                completed += weight
            else:
                missing.append(name)

        attrs = analysis.attributes
        optional_fields = [
            ("brand", analysis.brand.name if analysis.brand else None, 1.5),
            ("color", attrs.color, 1),
            ("model", attrs.model, 1.5),
            ("size", attrs.size, 1),
            ("material", attrs.material, 1),
        ]
        for name, value, weight in optional_fields:
            total += weight
            if value:
                completed += weight
            elif name not in missing:
                missing.append(name)

        total += 1
        if analysis.visual_quality.image_quality in (ImageQuality.EXCELLENT, ImageQuality.GOOD):
            completed += 1

        total += 1
        if analysis.features:
            completed += 1

        score = int(completed / total * 100 + 0.5)
        return score, missing

    # =========================================================================
    # Cache Management
    # =========================================================================

    def add_product_to_cache(self, entry: ProductDatabaseEntry) -> None:
        self.cache.add(entry)
        logger.debug("Product cached", product=entry.product_name, keys=ProductCache.keys_for(entry))

    def get_cached_products(self) -> list[ProductDatabaseEntry]:
        return self.cache.entries()

    def clear_cache(self) -> None:
        self.cache.clear()

    # =========================================================================
    # Validation & Database Merge
    # =========================================================================

    def validate_enriched_product(
        self,
        enriched: EnrichedProductAnalysis,
        min_confidence: int = DEFAULT_MIN_CONFIDENCE,
    ) -> ValidationResult:
        """Check an enriched analysis against the minimum listing requirements."""
        data = enriched.enrichment_data
        errors: list[str] = []
        warnings: list[str] = []

        overall = data.confidence_scores.overall
        if overall < min_confidence:
            errors.append(
                f"Overall confidence score ({overall}) is below minimum required ({min_confidence})"
            )

        if data.completeness_score < INCOMPLETE_THRESHOLD:
            warnings.append(
                f"Product data is incomplete ({data.completeness_score}% complete)"
            )

        if data.missing_critical_info:
            warnings.append(
                f"Missing critical information: {', '.join(data.missing_critical_info)}"
            )

        if enriched.visual_quality.image_quality == ImageQuality.POOR:
            warnings.append("Image quality is poor - may affect analysis accuracy")

        if enriched.condition == ProductCondition.UNKNOWN:
            errors.append("Product condition could not be determined")

        for recommendation in data.recommendations:
            if recommendation not in warnings:
                warnings.append(recommendation)

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def merge_with_database_entry(
        self,
        analysis: ProductAnalysis,
        entry: ProductDatabaseEntry,
    ) -> ProductAnalysis:
        """Overlay a known product record onto an analysis; the match raises confidence."""
        updates = {
            "product_type": entry.product_name or analysis.product_type,
            "attributes": analysis.attributes.model_copy(update={
                "model": entry.model or analysis.attributes.model,
                "custom_attributes": {
                    **(analysis.attributes.custom_attributes or {}),
                    **(entry.attributes or {}),
                },
            }),
            "overall_confidence": score_to_confidence_level(
                max(calculate_overall_confidence(analysis), DATABASE_MATCH_SCORE)
            ),
        }
        if entry.brand:
            updates["brand"] = BrandIdentification(
                name=entry.brand,
                confidence=ConfidenceLevel.HIGH,
                verified=True,
            )
        if entry.category:
            updates["category"] = ProductCategory(
                primary=entry.category,
                confidence=ConfidenceLevel.HIGH,
            )
        return analysis.model_copy(update=updates)


def create_product_enrichment_service(
    cache: Optional[ProductCache] = None,
) -> ProductEnrichmentService:
    """Factory function to create a ProductEnrichmentService."""
    return ProductEnrichmentService(cache=cache)
