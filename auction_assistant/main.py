"""
Auction Assistant - CLI Entry Point.
Turns product photos into marketplace listings from the command line using Click and Rich.
"""

import sys
import asyncio
import json
from pathlib import Path
from functools import wraps
from typing import Any, Optional

import click
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.panel import Panel
from rich.table import Table

from auction_assistant import __version__
from auction_assistant.config.settings import get_settings, Settings
from auction_assistant.models.schemas import (
    DescriptionStyle,
    ListingResult,
    MarketplaceTone,
    ProductAnalysis,
    ProductCondition,
)
from auction_assistant.pipeline.orchestrator import ListingPipeline, PipelineError
from auction_assistant.services.post_generation_service import (
    PostGenerationOptions,
    PostGenerationService,
)
from auction_assistant.services.validation_service import ALLOWED_EXTENSIONS
from auction_assistant.utils.formatters import REPORT_FORMATS, ListingFormatter
from auction_assistant.utils.logger import setup_logging

# Initialize Rich Console
console = Console()

# =============================================================================
# Helper Functions
# =============================================================================

def async_command(f):
    """Decorator to run async click commands."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return wrapper


LOG_FILE_NAME = "auction_assistant.log"


def setup_logger(verbose: bool):
    """Configure logging from LOG_LEVEL and LOG_DIR; --verbose or DEBUG=true force DEBUG."""
    settings = get_settings()
    level = "DEBUG" if verbose or settings.debug else settings.log_level
    setup_logging(
        level=level,
        json_format=False,
        log_file=str(Path(settings.log_dir) / LOG_FILE_NAME),
    )


def load_settings(output_dir: Optional[str] = None, report_format: Optional[str] = None) -> Settings:
    """Cached settings with CLI overrides applied to a copy."""
    settings = get_settings()
    update: dict[str, Any] = {}
    if output_dir:
        update["output_dir"] = Path(output_dir)
    if report_format:
        update["report_format"] = report_format
    return settings.model_copy(update=update) if update else settings


def build_user_details(
    details: Optional[str],
    condition: Optional[str],
    brand: Optional[str],
) -> Optional[dict[str, Any]]:
    """
    Combine --details JSON with the --condition/--brand shortcuts.

    Shortcut flags win over the same keys in the JSON payload.
    """
    payload: dict[str, Any] = {}
    if details:
        try:
            parsed = json.loads(details)
        except json.JSONDecodeError:
            raise click.BadParameter("Invalid JSON format for userDetails", param_hint="--details")
        if not isinstance(parsed, dict):
            raise click.BadParameter("Invalid JSON format for userDetails", param_hint="--details")
        payload.update(parsed)
    if condition:
        payload["condition"] = condition
    if brand:
        payload["brand"] = brand
    return payload or None


def load_analysis(path: Path) -> ProductAnalysis:
    """
    Load a ProductAnalysis from a JSON file.

    Accepts a bare analysis or a saved listing (uses its ``merged`` section).
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        for key in ("merged", "enriched", "analysis"):
            if isinstance(data.get(key), dict):
                data = data[key]
                break
    return ProductAnalysis.model_validate(data)


def find_images(directory: Path) -> list[Path]:
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() in ALLOWED_EXTENSIONS
    )


def print_summary(result: ListingResult, output_path: Optional[Path], duration: float) -> None:
    enrichment = result.enriched.enrichment_data

    table = Table(title="Listing Summary", show_header=False)
    table.add_row("Product", result.enriched.product_type)
    table.add_row("Brand", result.enriched.brand.name if result.enriched.brand else "-")
    table.add_row("Condition", result.enriched.condition.value)
    table.add_row("Confidence", f"{enrichment.confidence_scores.overall}/100")
    table.add_row("Completeness", f"{enrichment.completeness_score}%")
    table.add_row("Run ID", result.run_id)
    table.add_row("Duration", f"{duration:.2f}s")
    if output_path:
        table.add_row("Output", str(output_path))
    console.print(table)

    post = result.post.primary_post if result.post and result.post.success else None
    if post:
        console.print(Panel(post.description, title=f"[bold]{post.title}[/bold]"))

    for message in [*result.errors, *result.enrichment_validation.errors]:
        console.print(f"[yellow]⚠ {message}[/yellow]")

# =============================================================================
# CLI Group
# =============================================================================

@click.group()
@click.version_option(version=__version__)
def cli():
    """Auction Assistant - marketplace listings from product photos"""
    pass

# =============================================================================
# Commands
# =============================================================================

@cli.command()
@click.argument('image')
@click.option('--details', default=None, help='Seller details as a JSON object')
@click.option('--condition', type=click.Choice([c.value for c in ProductCondition]), default=None, help='Item condition')
@click.option('--brand', default=None, help='Brand name')
@click.option('--no-post', is_flag=True, help='Stop after analysis and enrichment')
@click.option('--variants', is_flag=True, help='Also generate A/B testing variants')
@click.option('--output-dir', default=None, help='Custom output directory')
@click.option('--format', type=click.Choice(list(REPORT_FORMATS)), default=None, help='Output format')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def analyze(
    image: str,
    details: Optional[str],
    condition: Optional[str],
    brand: Optional[str],
    no_post: bool,
    variants: bool,
    output_dir: Optional[str],
    format: Optional[str],
    verbose: bool,
):
    """
    Create a listing from one product photo.

    IMAGE: Path or http(s) URL of the product photo
    """
    console.print(Panel.fit(f"[bold blue]Auction Assistant[/bold blue]\nImage: [cyan]{image}[/cyan]"))

    start_time = asyncio.get_event_loop().time()

    try:
        user_details = build_user_details(details, condition, brand)
        settings = load_settings(output_dir, format)
        setup_logger(verbose)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task = progress.add_task("[cyan]Running pipeline...", total=None)

            def update_progress(pct, msg):
                progress.update(task, description=f"[cyan]{msg} ({pct}%)")

            async with ListingPipeline(
                settings=settings,
                progress_callback=update_progress,
                post_options=PostGenerationOptions(generate_variants=variants),
            ) as pipeline:
                result = await pipeline.run(image, user_details, generate_post=not no_post)

            progress.update(task, completed=True, description="[green]Listing complete!")

        output_path = ListingFormatter(settings.output_dir).save(result, settings.report_format)

        duration = asyncio.get_event_loop().time() - start_time
        print_summary(result, output_path, duration)
        console.print("[green]✓[/green] Listing generated successfully.")

    except click.BadParameter:
        raise
    except PipelineError as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        for message in e.details.get("error_summary", {}).get("recovery_suggestions", []):
            console.print(f"[dim]- {message}[/dim]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {str(e)}")
        if verbose:
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.argument('analysis_file', type=click.Path(exists=True))
@click.option('--tone', type=click.Choice([t.value for t in MarketplaceTone]), default=None, help='Post tone (recommended when omitted)')
@click.option('--style', type=click.Choice([s.value for s in DescriptionStyle]), default=DescriptionStyle.FEATURE_FOCUSED.value, help='Description style')
@click.option('--variants', is_flag=True, help='Also generate A/B testing variants')
@async_command
async def generate(analysis_file: str, tone: Optional[str], style: str, variants: bool):
    """
    Write a post from a saved analysis.

    ANALYSIS_FILE: JSON file holding a ProductAnalysis or a saved listing.
    Outputs the PostGenerationResult JSON to stdout.
    """
    try:
        analysis = load_analysis(Path(analysis_file))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        console.print(f"[bold red]Invalid analysis file:[/bold red] {e}")
        sys.exit(1)

    try:
        settings = get_settings()
        setup_logger(False)
        async with PostGenerationService(settings) as service:
            console.print(f"[dim]Writing post for {analysis.product_type}...[/dim]", style="italic")
            result = await service.generate_post(
                analysis,
                PostGenerationOptions(tone=tone, style=style, generate_variants=variants),
            )

        console.print_json(result.to_json())
        if not result.success:
            sys.exit(1)

    except Exception as e:
        console.print(f"[bold red]Post Generation Failed:[/bold red] {e}")
        sys.exit(1)


@cli.command()
@click.argument('directory', type=click.Path(exists=True, file_okay=False))
@click.option('--details', default=None, help='Seller details applied to every image (JSON)')
@click.option('--no-post', is_flag=True, help='Stop after analysis and enrichment')
@click.option('--output-dir', default=None, help='Output directory')
@click.option('--format', type=click.Choice(list(REPORT_FORMATS)), default=None, help='Output format')
@click.option('--concurrency', default=None, type=int, help='Max concurrent analyses')
@async_command
async def batch(
    directory: str,
    details: Optional[str],
    no_post: bool,
    output_dir: Optional[str],
    format: Optional[str],
    concurrency: Optional[int],
):
    """
    Create listings for every image in a directory.

    DIRECTORY: Folder of .jpg/.jpeg/.png/.webp photos.
    """
    images = find_images(Path(directory))

    if not images:
        console.print("[red]No images found in directory.[/red]")
        sys.exit(1)

    user_details = build_user_details(details, None, None)
    settings = load_settings(output_dir, format)
    setup_logger(False)
    concurrency = concurrency or settings.max_concurrent_analyses

    console.print(f"[bold]Batch Processing [cyan]{len(images)}[/cyan] images with concurrency [cyan]{concurrency}[/cyan][/bold]")

    semaphore = asyncio.Semaphore(concurrency)
    formatter = ListingFormatter(settings.output_dir)

    async with ListingPipeline(settings=settings) as pipeline:

        async def process_one(image: Path):
            async with semaphore:
                try:
                    result = await pipeline.run(image, user_details, generate_post=not no_post)
                    formatter.save(result, settings.report_format)
                    return image, True, None
                except Exception as e:
                    return image, False, str(e)

        with Progress(console=console) as progress:
            task = progress.add_task("[cyan]Processing...", total=len(images))

            results = []
            tasks = [process_one(image) for image in images]

            for coro in asyncio.as_completed(tasks):
                image, success, error = await coro
                progress.advance(task)
                results.append((image, success, error))

                if success:
                    console.print(f"[green]✓ {image.name}[/green]")
                else:
                    console.print(f"[red]✗ {image.name}: {error}[/red]")

    # Summary
    success_count = sum(1 for r in results if r[1])
    console.print(Panel(f"Batch Complete\nSuccess: [green]{success_count}[/green]\nFailed: [red]{len(images) - success_count}[/red]"))
    if success_count < len(images):
        sys.exit(1)


@cli.command()
def validate_setup():
    """Check API keys and environment configuration."""
    console.print("[bold]Validating Setup...[/bold]")

    try:
        settings = get_settings()

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Check")
        table.add_column("Status")
        table.add_column("Details")

        key = settings.anthropic_api_key.get_secret_value()
        key_ok = key.startswith("sk-")
        status = "[green]Pass[/green]" if key_ok else "[red]Fail[/red]"
        table.add_row("Anthropic API Key", status, f"configured ({len(key)} chars)")

        table.add_row("Vision Model", "[blue]Info[/blue]", settings.vision_model)
        table.add_row("Post Model", "[blue]Info[/blue]", settings.post_model)
        table.add_row("Output Dir", "[green]Pass[/green]", str(settings.output_dir))
        table.add_row("Environment", "[blue]Info[/blue]", settings.app_env)

        console.print(table)

        if not key_ok:
            sys.exit(1)

    except PydanticValidationError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
