"""
Listing pipeline orchestrator using LangGraph.

Turns one product photo (plus optional seller details) into a marketplace
listing:

    validate_input -> analyze_image -> merge_details -> enrich -> generate_post

Features:
    - Stateful execution with LangGraph StateGraph
    - Conditional edges to an error node after validation and analysis
    - tenacity retries for retryable vision failures (the services never retry)
    - Progress tracking and per-node timing
    - Testing hooks (mock nodes, single-step execution)
"""

import asyncio
import operator
import time
from datetime import datetime, timezone
from enum import Enum
from functools import wraps
from pathlib import Path
from typing import Annotated, Any, Callable, Literal, Optional, TypedDict, Union
from uuid import uuid4

from langgraph.graph import END, StateGraph
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from auction_assistant.config.settings import Settings, get_settings
from auction_assistant.models.schemas import (
    AnalysisResult,
    EnrichedProductAnalysis,
    ListingResult,
    MergedProductData,
    PostGenerationResult,
    ProductAnalysis,
    UserProvidedDetails,
    ValidationResult,
)
from auction_assistant.services.description_merger import MergeOptions, merge_product_data
from auction_assistant.services.post_generation_service import (
    PostGenerationOptions,
    PostGenerationService,
)
from auction_assistant.services.product_enrichment import (
    ProductCache,
    ProductEnrichmentService,
)
from auction_assistant.services.validation_service import ValidationService
from auction_assistant.services.vision_service import ImageSource, VisionService
from auction_assistant.prompts.vision_prompts import AnalysisOptions
from auction_assistant.utils.errors import AppError
from auction_assistant.utils.logger import LogContext, get_logger

logger = get_logger(__name__)


# =============================================================================
# Constants and Configuration
# =============================================================================

class PipelineStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class RouteDecision(str, Enum):
    """Decision after a node that can fail the run."""
    PROCEED = "proceed"
    ERROR = "error"


# =============================================================================
# Pipeline State Definition (TypedDict for LangGraph)
# =============================================================================

class PipelineStateDict(TypedDict, total=False):
    """
    TypedDict-based pipeline state for LangGraph.

    Step outputs are stored as plain dicts (``model_dump``) and rebuilt into
    models by the node that consumes them. ``errors`` accumulates across nodes.
    """
    # Identifiers
    run_id: str

    # Input
    image: str
    image_bytes: Optional[bytes]
    user_details_input: Any
    generate_post: bool

    # Step outputs
    user_details: Optional[dict]
    analysis: Optional[dict]
    merged: Optional[dict]
    enriched: Optional[dict]
    enrichment_validation: Optional[dict]
    post_result: Optional[dict]

    # Status tracking
    status: str
    decision: str

    # Error handling (uses operator.add for accumulation)
    errors: Annotated[list[str], operator.add]

    # Metadata
    metadata: dict
    step_timings: dict

    # Progress
    progress_percent: int
    started_at: str
    completed_at: Optional[str]


# =============================================================================
# Error Classes
# =============================================================================

class PipelineError(AppError):
    """Raised when a listing run fails."""

    def __init__(
        self,
        message: str,
        errors: Optional[list[str]] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.errors = errors or []
        self.details = details or {}


# =============================================================================
# Decorators for Node Execution
# =============================================================================

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def track_timing(func: Callable):
    """Decorator to track node execution timing."""
    @wraps(func)
    async def wrapper(self, state: PipelineStateDict) -> dict[str, Any]:
        start_time = time.time()
        node_name = func.__name__.lstrip("_").replace("_node", "")

        logger.info("Starting node", node=node_name, run_id=state.get("run_id"))

        try:
            result = await func(self, state)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "Node failed",
                node=node_name,
                run_id=state.get("run_id"),
                duration_ms=duration_ms,
                error=str(e),
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        step_timings = dict(state.get("step_timings") or {})
        step_timings[node_name] = duration_ms
        result["step_timings"] = step_timings

        if "progress_percent" in result:
            self.progress.report(result["progress_percent"], f"Completed {node_name}")

        logger.info(
            "Completed node",
            node=node_name,
            run_id=state.get("run_id"),
            duration_ms=duration_ms,
        )
        return result

    return wrapper


def _is_retryable_failure(result: AnalysisResult) -> bool:
    return not result.success and result.error is not None and result.error.retryable


def _return_last_result(retry_state: RetryCallState) -> AnalysisResult:
    """Hand back the final failed result instead of raising RetryError."""
    return retry_state.outcome.result()


# =============================================================================
# Progress Tracker
# =============================================================================

class ProgressTracker:
    """Tracks and reports pipeline progress."""

    STEP_WEIGHTS = {
        "validate_input": 5,
        "analyze_image": 50,
        "merge_details": 5,
        "enrich": 10,
        "generate_post": 30,
    }

    def __init__(self, callback: Optional[Callable[[int, str], None]] = None):
        """
        Args:
            callback: Optional callback(progress_percent, message) for progress updates
        """
        self.callback = callback

    @classmethod
    def progress_after(cls, step: str) -> int:
        """Cumulative progress once ``step`` and every step before it are done."""
        total = 0
        for name, weight in cls.STEP_WEIGHTS.items():
            total += weight
            if name == step:
                break
        return total

    def report(self, progress: int, message: str) -> None:
        if not self.callback:
            return
        try:
            self.callback(progress, message)
        except Exception as e:
            logger.warning("Progress callback failed", error=str(e))


# =============================================================================
# Main Pipeline Class
# =============================================================================

class ListingPipeline:
    """
    LangGraph-based pipeline producing a marketplace listing from a photo.

    Example:
        >>> async with ListingPipeline() as pipeline:
        ...     result = await pipeline.run("photos/chair.jpg", {"condition": "good"})
        ...     print(result.post.primary_post.title)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        vision_service: Optional[VisionService] = None,
        post_service: Optional[PostGenerationService] = None,
        enrichment_service: Optional[ProductEnrichmentService] = None,
        product_cache: Optional[ProductCache] = None,
        progress_callback: Optional[Callable[[int, str], None]] = None,
        analysis_options: Optional[AnalysisOptions] = None,
        merge_options: Optional[MergeOptions] = None,
        post_options: Optional[PostGenerationOptions] = None,
        max_retries: Optional[int] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Application settings (uses defaults if not provided)
            vision_service: Pre-configured VisionService (created lazily if not provided)
            post_service: Pre-configured PostGenerationService (created lazily if not provided)
            enrichment_service: Enrichment service; built around ``product_cache`` if not provided
            product_cache: Known products used for database matching
            progress_callback: Callback for progress updates
            analysis_options: Options passed to the vision service
            merge_options: How AI and seller data are combined
            post_options: Options passed to post generation
            max_retries: Retries for retryable analysis failures (default: settings.max_retries)
            retry_wait: tenacity wait strategy between retries
        """
        self.settings = settings or get_settings()
        self.progress = ProgressTracker(progress_callback)
        self.analysis_options = analysis_options or AnalysisOptions()
        self.merge_options = merge_options or MergeOptions()
        self.post_options = post_options or PostGenerationOptions()
        self.max_retries = self.settings.max_retries if max_retries is None else max_retries
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)

        self._vision_service = vision_service
        self._post_service = post_service
        self._owns_vision = vision_service is None
        self._owns_post = post_service is None

        self.enrichment = enrichment_service or ProductEnrichmentService(cache=product_cache)
        self.validator = ValidationService(max_file_size=self.settings.max_upload_size_bytes)

        self._graph = self._build_graph()

        # Testing hooks
        self._mock_nodes: dict[str, Callable] = {}

    async def __aenter__(self) -> "ListingPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def vision_service(self) -> VisionService:
        if self._vision_service is None:
            self._vision_service = VisionService(self.settings)
        return self._vision_service

    @property
    def post_service(self) -> PostGenerationService:
        if self._post_service is None:
            self._post_service = PostGenerationService(self.settings)
        return self._post_service

    def _build_graph(self):
        """
        Build the LangGraph state machine with all nodes and edges.

        Graph structure:
            validate_input --error--> handle_error -> END
                  |
                  v
            analyze_image --error--> handle_error -> END
                  |
                  v
            merge_details -> enrich -> generate_post -> END
        """
        graph = StateGraph(PipelineStateDict)

        graph.add_node("validate_input", self._validate_input_node)
        graph.add_node("analyze_image", self._analyze_image_node)
        graph.add_node("merge_details", self._merge_details_node)
        graph.add_node("enrich", self._enrich_node)
        graph.add_node("generate_post", self._generate_post_node)
        graph.add_node("handle_error", self._handle_error_node)

        graph.set_entry_point("validate_input")

        graph.add_conditional_edges(
            "validate_input",
            self._route_on_decision,
            {"proceed": "analyze_image", "error": "handle_error"},
        )
        graph.add_conditional_edges(
            "analyze_image",
            self._route_on_decision,
            {"proceed": "merge_details", "error": "handle_error"},
        )
        graph.add_edge("merge_details", "enrich")
        graph.add_edge("enrich", "generate_post")
        graph.add_edge("generate_post", END)
        graph.add_edge("handle_error", END)

        return graph.compile()

    def _route_on_decision(self, state: PipelineStateDict) -> Literal["proceed", "error"]:
        if state.get("decision") == RouteDecision.ERROR.value:
            return "error"
        return "proceed"

    # =========================================================================
    # Node Implementations
    # =========================================================================

    @track_timing
    async def _validate_input_node(self, state: PipelineStateDict) -> dict[str, Any]:
        """
        Node 1: Validate the image and parse seller details.

        URLs and in-memory images skip the file checks; their problems surface
        during analysis.
        """
        image = state.get("image", "")
        errors: list[str] = []

        if not state.get("image_bytes") and not image.startswith(("http://", "https://")):
            file_check = self.validator.validate_image_path(image)
            if not file_check.valid:
                errors.append(f"Input validation failed: {file_check.error}")

        details, detail_errors = self.validator.parse_user_details(state.get("user_details_input"))
        errors.extend(f"Input validation failed: {e}" for e in detail_errors)

        if errors:
            logger.warning("Input rejected", image=image, errors=errors)
            return {
                "errors": errors,
                "decision": RouteDecision.ERROR.value,
            }

        return {
            "user_details": details.model_dump() if details else None,
            "status": PipelineStatus.IN_PROGRESS.value,
            "decision": RouteDecision.PROCEED.value,
            "progress_percent": ProgressTracker.progress_after("validate_input"),
        }

    @track_timing
    async def _analyze_image_node(self, state: PipelineStateDict) -> dict[str, Any]:
        """
        Node 2: Analyze the image with the vision model.

        Retryable failures (rate limits, 5xx, connection errors) are retried
        up to ``max_retries`` times; the last result is kept when they run out.
        """
        image: ImageSource = state.get("image_bytes") or state.get("image", "")
        attempts = 0

        async def analyze() -> AnalysisResult:
            nonlocal attempts
            attempts += 1
            if "analyze_image" in self._mock_nodes:
                return await self._mock_nodes["analyze_image"](state)
            return await self.vision_service.analyze_product(image, self.analysis_options)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self.retry_wait,
            retry=retry_if_result(_is_retryable_failure),
            retry_error_callback=_return_last_result,
            reraise=True,
        )
        result: AnalysisResult = await retrying(analyze)

        metadata = {
            **(state.get("metadata") or {}),
            "analysis_attempts": attempts,
            "analysis_tokens": result.tokens_used,
        }

        if not result.success or result.data is None:
            error = result.error
            message = f"{error.code}: {error.message}" if error else "no analysis returned"
            return {
                "errors": [f"Image analysis failed: {message}"],
                "decision": RouteDecision.ERROR.value,
                "metadata": metadata,
            }

        return {
            "analysis": result.data.model_dump(),
            "decision": RouteDecision.PROCEED.value,
            "metadata": metadata,
            "progress_percent": ProgressTracker.progress_after("analyze_image"),
        }

    @track_timing
    async def _merge_details_node(self, state: PipelineStateDict) -> dict[str, Any]:
        """Node 3: Combine the AI analysis with the seller's details."""
        analysis = ProductAnalysis.model_validate(state["analysis"])
        details_data = state.get("user_details")
        details = UserProvidedDetails.model_validate(details_data) if details_data else None

        merged = merge_product_data(analysis, details, self.merge_options)

        return {
            "merged": merged.model_dump(),
            "progress_percent": ProgressTracker.progress_after("merge_details"),
        }

    @track_timing
    async def _enrich_node(self, state: PipelineStateDict) -> dict[str, Any]:
        """Node 4: Score confidence and completeness, then check listing readiness."""
        merged = MergedProductData.model_validate(state["merged"])

        enriched = await self.enrichment.enrich_product_analysis(merged)
        validation = self.enrichment.validate_enriched_product(
            enriched, self.settings.min_confidence_threshold
        )

        if not validation.valid:
            logger.warning(
                "Listing below quality bar",
                run_id=state.get("run_id"),
                errors=validation.errors,
            )

        return {
            "enriched": enriched.model_dump(),
            "enrichment_validation": validation.model_dump(),
            "progress_percent": ProgressTracker.progress_after("enrich"),
        }

    @track_timing
    async def _generate_post_node(self, state: PipelineStateDict) -> dict[str, Any]:
        """
        Node 5: Write the marketplace post.

        A failed generation does not fail the run: the error is recorded and
        the analysis is still returned.
        """
        update: dict[str, Any] = {
            "status": PipelineStatus.COMPLETED.value,
            "completed_at": _now(),
            "progress_percent": 100,
        }

        if not state.get("generate_post", True):
            logger.info("Post generation disabled", run_id=state.get("run_id"))
            return {**update, "post_result": None}

        merged = MergedProductData.model_validate(state["merged"])

        if "generate_post" in self._mock_nodes:
            result: PostGenerationResult = await self._mock_nodes["generate_post"](state)
        else:
            result = await self.post_service.generate_post(merged, self.post_options)

        update["post_result"] = result.model_dump()
        if not result.success and result.error:
            update["errors"] = [f"Post generation failed: {result.error.code}: {result.error.message}"]

        return update

    @track_timing
    async def _handle_error_node(self, state: PipelineStateDict) -> dict[str, Any]:
        """Aggregate errors and attach recovery suggestions."""
        errors = state.get("errors", [])
        run_id = state.get("run_id", "unknown")

        logger.warning("Handling pipeline errors", run_id=run_id, error_count=len(errors))

        suggestions: list[str] = []
        for error in errors:
            error_lower = error.lower()
            if "file" in error_lower or "extension" in error_lower:
                suggestions.append("Use a JPEG, PNG or WebP image under the upload size limit")
            elif "userdetails" in error_lower or "input validation" in error_lower:
                suggestions.append("Check the seller details for invalid values")
            elif "rate_limit" in error_lower or "overloaded" in error_lower:
                suggestions.append("Try again later - the vision model is busy")
            elif "analysis" in error_lower:
                suggestions.append("Retry with a clearer, well-lit photo")

        return {
            "status": PipelineStatus.FAILED.value,
            "completed_at": _now(),
            "metadata": {
                **(state.get("metadata") or {}),
                "error_summary": {
                    "run_id": run_id,
                    "image": state.get("image"),
                    "error_count": len(errors),
                    "errors": errors,
                    "recovery_suggestions": list(dict.fromkeys(suggestions)),
                },
            },
        }

    # =========================================================================
    # Public API
    # =========================================================================

    def _initial_state(
        self,
        image: Union[str, Path, bytes],
        user_details: Any,
        run_id: str,
        generate_post: bool,
    ) -> PipelineStateDict:
        is_bytes = isinstance(image, bytes)
        return {
            "run_id": run_id,
            "image": "<bytes>" if is_bytes else str(image),
            "image_bytes": image if is_bytes else None,
            "user_details_input": user_details,
            "generate_post": generate_post,
            "user_details": None,
            "analysis": None,
            "merged": None,
            "enriched": None,
            "enrichment_validation": None,
            "post_result": None,
            "status": PipelineStatus.PENDING.value,
            "decision": RouteDecision.PROCEED.value,
            "errors": [],
            "metadata": {"started_at": _now()},
            "step_timings": {},
            "progress_percent": 0,
            "started_at": _now(),
            "completed_at": None,
        }

    async def run(
        self,
        image: Union[str, Path, bytes],
        user_details: Union[str, dict, UserProvidedDetails, None] = None,
        run_id: Optional[str] = None,
        generate_post: bool = True,
    ) -> ListingResult:
        """
        Produce a listing for one product photo.

        Args:
            image: Local path, URL or raw image bytes
            user_details: Seller details as a JSON string, dict or model
            run_id: Optional run ID for tracking
            generate_post: Set False to stop after enrichment

        Returns:
            ListingResult with merged, enriched data and the post

        Raises:
            PipelineError: If validation or analysis fails
        """
        run_id = run_id or str(uuid4())
        initial_state = self._initial_state(image, user_details, run_id, generate_post)

        with LogContext(run_id=run_id, image=initial_state["image"]):
            logger.info("Starting listing run")

            try:
                final_state = await self._graph.ainvoke(initial_state)
            except Exception as e:
                logger.error("Pipeline failed with unexpected error", error=str(e))
                raise PipelineError(
                    message=f"Unexpected pipeline error: {e}",
                    details={"run_id": run_id},
                ) from e

            errors = final_state.get("errors", [])
            if final_state.get("status") == PipelineStatus.FAILED.value:
                raise PipelineError(
                    message=f"Pipeline failed: {'; '.join(errors) or 'Unknown error'}",
                    errors=errors,
                    details={"run_id": run_id, **final_state.get("metadata", {})},
                )

            result = ListingResult(
                run_id=run_id,
                image=final_state["image"],
                merged=MergedProductData.model_validate(final_state["merged"]),
                enriched=EnrichedProductAnalysis.model_validate(final_state["enriched"]),
                enrichment_validation=ValidationResult.model_validate(
                    final_state["enrichment_validation"]
                ),
                post=(
                    PostGenerationResult.model_validate(final_state["post_result"])
                    if final_state.get("post_result") else None
                ),
                errors=errors,
                step_timings=final_state.get("step_timings", {}),
            )

            logger.info(
                "Listing run completed",
                duration_ms=sum(result.step_timings.values()),
                overall_confidence=result.enriched.enrichment_data.confidence_scores.overall,
            )
            return result

    async def run_batch(
        self,
        images: list[Union[str, Path]],
        user_details: Union[str, dict, UserProvidedDetails, None] = None,
        generate_post: bool = True,
    ) -> list[Union[ListingResult, PipelineError]]:
        """
        Run several images concurrently (bounded by settings.max_concurrent_analyses).

        Results keep input order; a failed image yields its PipelineError.
        """
        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent_analyses))

        async def run_one(image: Union[str, Path]) -> Union[ListingResult, PipelineError]:
            async with semaphore:
                try:
                    return await self.run(image, user_details, generate_post=generate_post)
                except PipelineError as e:
                    return e

        return list(await asyncio.gather(*(run_one(image) for image in images)))

    async def run_step(
        self,
        step_name: str,
        state: PipelineStateDict,
    ) -> PipelineStateDict:
        """
        Execute a single pipeline step (for testing/debugging).

        Returns:
            Updated pipeline state (errors are appended, other keys replaced)
        """
        node_methods = {
            "validate_input": self._validate_input_node,
            "analyze_image": self._analyze_image_node,
            "merge_details": self._merge_details_node,
            "enrich": self._enrich_node,
            "generate_post": self._generate_post_node,
            "handle_error": self._handle_error_node,
        }

        if step_name not in node_methods:
            raise ValueError(f"Unknown step: {step_name}")

        result = await node_methods[step_name](state)
        updated_state = {**state, **result}
        updated_state["errors"] = [*state.get("errors", []), *result.get("errors", [])]
        return updated_state

    # =========================================================================
    # Testing Hooks
    # =========================================================================

    def mock_node(self, node_name: str, mock_func: Callable) -> None:
        """
        Register a mock for a service-backed node (testing).

        ``analyze_image`` mocks return an AnalysisResult; ``generate_post``
        mocks return a PostGenerationResult.
        """
        self._mock_nodes[node_name] = mock_func

    def clear_mocks(self) -> None:
        self._mock_nodes.clear()

    # =========================================================================
    # Cleanup
    # =========================================================================

    async def close(self) -> None:
        """Close the services this pipeline created."""
        if self._vision_service is not None and self._owns_vision:
            await self._vision_service.close()
        if self._post_service is not None and self._owns_post:
            await self._post_service.close()


# =============================================================================
# Convenience Functions
# =============================================================================

async def create_listing(
    image: Union[str, Path, bytes],
    user_details: Union[str, dict, UserProvidedDetails, None] = None,
    settings: Optional[Settings] = None,
    progress_callback: Optional[Callable[[int, str], None]] = None,
) -> ListingResult:
    """
    Convenience function to produce one listing.

    Example:
        >>> result = await create_listing("photos/chair.jpg", {"condition": "good"})
        >>> print(result.post.primary_post.title)
    """
    async with ListingPipeline(settings=settings, progress_callback=progress_callback) as pipeline:
        return await pipeline.run(image, user_details)
