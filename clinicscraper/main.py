"""Main entry point for the clinic-scraper application.

Sets up the Typer CLI application, performs dependency injection (Composition
Root), and delegates execution to the CommandHandler.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import typer
from typing_extensions import Annotated

from clinicscraper import __version__
from clinicscraper.core.command_handler import EXIT_FAILURE, CommandHandler
from clinicscraper.core.services.classification_service import ClassificationService
from clinicscraper.infrastructure.ai.groq.groq_client import GroqClient
from clinicscraper.infrastructure.cli.display import ConsoleDisplay
from clinicscraper.infrastructure.config.settings import (
    MissingCredentialError, get_config, get_groq_api_key, get_groq_model,
    get_max_concurrency, get_request_timeout, get_serpapi_api_key,
    load_configuration, require_credential,
)
from clinicscraper.infrastructure.filesystem.lead_writer import LocalLeadWriter
from clinicscraper.infrastructure.monitoring.logger_setup import DEFAULT_LOG_FORMAT, setup_logging
from clinicscraper.infrastructure.scraping.serpapi_source import SerpApiListingSource

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def configure_logging(verbose: bool = False) -> None:
    log_level_name = "DEBUG" if verbose else str(get_config("logging.level", "INFO")).upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    setup_logging(
        log_level=log_level,
        log_format=get_config("logging.format", DEFAULT_LOG_FORMAT),
        log_file=get_config("logging.file", coerce=False),
    )


def create_dependencies(concurrency: int) -> Dict[str, Any]:
    """Creates and wires up all dependencies for one run.

    This acts as the Composition Root.

    Raises:
        MissingCredentialError: If SERPAPI_API_KEY or GROQ_API_KEY is unset.
    """
    serpapi_api_key = require_credential("SERPAPI_API_KEY", get_serpapi_api_key())
    groq_api_key = require_credential("GROQ_API_KEY", get_groq_api_key())

    dependencies: Dict[str, Any] = {}
    dependencies["ui"] = ConsoleDisplay()
    dependencies["listing_source"] = SerpApiListingSource(api_key=serpapi_api_key)
    dependencies["ai_model"] = GroqClient(
        api_key=groq_api_key,
        model=get_groq_model(),
        timeout_s=get_request_timeout(),
    )
    dependencies["classification_service"] = ClassificationService(
        ai_model=dependencies["ai_model"],
        concurrency=concurrency,
    )
    dependencies["lead_writer"] = LocalLeadWriter()
    dependencies["command_handler"] = CommandHandler(
        listing_source=dependencies["listing_source"],
        classification_service=dependencies["classification_service"],
        lead_writer=dependencies["lead_writer"],
        ui=dependencies["ui"],
    )
    logger.debug("All dependencies initialized successfully.")
    return dependencies


# --- Typer App Definition ---
app = typer.Typer(
    name="clinic-scraper",
    help="Scrapes Google Maps for private clinics in Egypt, filters with AI, and outputs clean lead data.",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"clinic-scraper {__version__}")
        raise typer.Exit()


@app.command()
def scrape(
    query: Annotated[str, typer.Option("--query", "-q", help='Search query (e.g., "Dermatologist in Maadi").')],
    output: Annotated[str, typer.Option("--output", "-o", help="Output directory for leads files.")] = "output",
    concurrency: Annotated[
        Optional[int],
        typer.Option("--concurrency", "-c", min=1, help="Max parallel LLM requests [default: MAX_CONCURRENCY or 2]."),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version and exit."),
    ] = None,
):
    """Scrape, classify and export private clinic leads for a query."""
    load_configuration()
    configure_logging(verbose)
    effective_concurrency = concurrency or get_max_concurrency()

    ui = ConsoleDisplay()
    try:
        dependencies = create_dependencies(effective_concurrency)
    except MissingCredentialError as e:
        logger.error(str(e))
        ui.display_error(str(e))
        raise typer.Exit(code=EXIT_FAILURE)

    dependencies["ui"].display_run_header(query, output, effective_concurrency)
    handler: CommandHandler = dependencies["command_handler"]
    try:
        exit_code = asyncio.run(handler.handle_scrape(query, output))
    except Exception as e:
        logger.error(f"Fatal error: {type(e).__name__}: {e}", exc_info=True)
        dependencies["ui"].display_error(f"Fatal error: {e}")
        raise typer.Exit(code=EXIT_FAILURE)
    raise typer.Exit(code=exit_code)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
