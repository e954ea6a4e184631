import logging
from typing import Any, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from clinicscraper.domain.interfaces.user_interface import UserInterface
from clinicscraper.domain.models.classification import ClassifiedLead

logger = logging.getLogger(__name__)

_CONFIDENCE_STYLES = {"High": "green", "Medium": "yellow", "Low": "red"}


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {error_message}")

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        self.console.print(f"[yellow]Warning:[/yellow] {warning_message}")

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        style = kwargs.get("style")
        if style:
            self.console.print(info_message, style=style)
        else:
            self.console.print(info_message)

    def display_run_header(self, query: str, output_dir: str, concurrency: int) -> None:
        body = (
            f"[bold]Query:[/bold] \"{query}\"\n"
            f"[bold]LLM:[/bold] Groq Llama-3\n"
            f"[bold]Output:[/bold] {output_dir}/\n"
            f"[bold]Concurrency:[/bold] {concurrency}"
        )
        self.console.print(Panel(body, title="Clinic Scraper", title_align="left", border_style="blue"))

    def display_leads(self, leads: List[ClassifiedLead]) -> None:
        """Renders the accepted leads as a table."""
        logger.debug(f"display_leads called with {len(leads)} leads")
        table = Table(title=f"Private clinics ({len(leads)})", show_lines=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Clinic")
        table.add_column("Doctor")
        table.add_column("Phone")
        table.add_column("Confidence")

        for i, lead in enumerate(leads, start=1):
            style = _CONFIDENCE_STYLES.get(lead.confidence_score, "white")
            table.add_row(
                str(i),
                lead.clinic_name,
                lead.doctor_name or "-",
                lead.phone_number or "-",
                f"[{style}]{lead.confidence_score}[/{style}]",
            )
        self.console.print(table)
