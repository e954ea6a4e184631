"""Command Handler: Orchestrates the scrape command.

Receives the parsed CLI arguments from main.py and runs the pipeline:
scrape Google Maps -> classify with the LLM -> format phones -> write output.
Batch-level empty results short-circuit with exit code 0; setup failures
(listing source errors) propagate to the caller.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from clinicscraper.core.services.classification_service import ClassificationService
from clinicscraper.domain.interfaces.lead_writer import LeadWriter
from clinicscraper.domain.interfaces.listing_source import ListingSource
from clinicscraper.domain.interfaces.user_interface import UserInterface
from clinicscraper.domain.models.classification import AggregateResult, ClassifiedLead, Verdict
from clinicscraper.domain.models.common import OutputDir, SearchQuery
from clinicscraper.domain.models.listing import RawPlace
from clinicscraper.infrastructure.contact.phone import format_egyptian_phone

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


@dataclass
class RunSummary:
    """What a completed run produced, for reporting."""
    scraped: int = 0
    accepted: int = 0
    rejected: int = 0
    failed: int = 0
    csv_path: Optional[Path] = None
    json_path: Optional[Path] = None


def build_lead(place: RawPlace, verdict: Verdict) -> ClassifiedLead:
    """Maps an accepted place and its verdict to an output record."""
    return ClassifiedLead(
        clinic_name=place.name,
        doctor_name=verdict.extracted_label or "",
        phone_number=format_egyptian_phone(place.phone) or place.phone or "",
        address=place.address or "",
        maps_link=place.maps_link or "",
        confidence_score=verdict.confidence.value,
    )


def build_leads(result: AggregateResult) -> List[ClassifiedLead]:
    return [build_lead(place, verdict) for place, verdict in result.accepted]


class CommandHandler:
    """Handles the scrape command and delegates to the pipeline services."""

    def __init__(
        self,
        listing_source: ListingSource,
        classification_service: ClassificationService,
        lead_writer: LeadWriter,
        ui: UserInterface,
    ):
        """Initializes the CommandHandler with required services."""
        self.listing_source = listing_source
        self.classification_service = classification_service
        self.lead_writer = lead_writer
        self.ui = ui
        self.last_summary: Optional[RunSummary] = None

    async def handle_scrape(self, query: str, output_dir: str) -> int:
        """Runs the full pipeline for one query.

        Returns:
            The process exit code (0 for success and for graceful empty results).

        Raises:
            Exception: Listing source and writer failures propagate unchanged.
        """
        summary = RunSummary()
        self.last_summary = summary

        self.ui.display_info("Step 1/3: Scraping Google Maps...", style="bold")
        places = await self.listing_source.search(SearchQuery(query))
        summary.scraped = len(places)
        if not places:
            logger.warning("No results found. Exiting.")
            self.ui.display_warning("No results found. Exiting.")
            return EXIT_OK

        self.ui.display_info("Step 2/3: Classifying with Groq Llama-3...", style="bold")
        result = await self.classification_service.classify_places(places)
        summary.accepted = len(result.accepted)
        summary.rejected = result.rejected_count
        summary.failed = result.failed_count
        if not result.accepted:
            logger.warning("No private clinics found after classification. Exiting.")
            self.ui.display_warning("No private clinics found after classification. Exiting.")
            return EXIT_OK

        self.ui.display_info("Step 3/3: Formatting and writing output...", style="bold")
        leads = build_leads(result)
        csv_path, json_path = await self.lead_writer.write_leads(leads, OutputDir(output_dir))
        summary.csv_path, summary.json_path = csv_path, json_path

        self.ui.display_leads(leads)
        self._report(summary)
        return EXIT_OK

    def _report(self, summary: RunSummary) -> None:
        lines: Tuple[str, ...] = (
            "Scraping complete!",
            f"   Total scraped:     {summary.scraped}",
            f"   Private clinics:   {summary.accepted}",
            f"   Filtered out:      {summary.scraped - summary.accepted}",
            f"   Failed:            {summary.failed}",
            f"   CSV output:        {summary.csv_path}",
            f"   JSON output:       {summary.json_path}",
        )
        for line in lines:
            logger.info(line)
        self.ui.display_info("\n".join(lines), style="green")
