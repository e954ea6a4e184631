"""Writes classified leads to CSV and JSON files on the local disk.

Uses `aiofiles` for async I/O. Both files receive the same records in the
same order.
"""

import csv
import io
import json
import logging
from pathlib import Path
from typing import Dict, List, Tuple

import aiofiles

from clinicscraper.domain.interfaces.lead_writer import LeadWriter
from clinicscraper.domain.models.classification import ClassifiedLead
from clinicscraper.domain.models.common import OutputDir

logger = logging.getLogger(__name__)

CSV_FILE_NAME = "leads.csv"
JSON_FILE_NAME = "leads.json"

# Output column -> ClassifiedLead attribute
LEAD_COLUMNS: Dict[str, str] = {
    "clinic_name": "clinic_name",
    "doctor_name": "doctor_name",
    "phone_number": "phone_number",
    "address": "address",
    "Maps_link": "maps_link",
    "confidence_score": "confidence_score",
}


def lead_to_row(lead: ClassifiedLead) -> Dict[str, str]:
    return {column: getattr(lead, attr) for column, attr in LEAD_COLUMNS.items()}


def render_csv(leads: List[ClassifiedLead]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(LEAD_COLUMNS), lineterminator="\n")
    writer.writeheader()
    for lead in leads:
        writer.writerow(lead_to_row(lead))
    return buffer.getvalue()


def render_json(leads: List[ClassifiedLead]) -> str:
    return json.dumps([lead_to_row(lead) for lead in leads], indent=2, ensure_ascii=False)


class LocalLeadWriter(LeadWriter):
    """LeadWriter implementation for the local file system."""

    async def _write_file(self, path: Path, content: str) -> None:
        logger.debug(f"Attempting to write {len(content)} characters to file: {path}")
        try:
            async with aiofiles.open(path, mode="w", encoding="utf-8", newline="") as f:
                await f.write(content)
        except PermissionError as e:
            logger.error(f"Permission denied writing file: {path}")
            raise PermissionError(f"Permission denied: {path}") from e
        except OSError as e:
            logger.error(f"Error writing file {path}: {e}", exc_info=True)
            raise IOError(f"Failed to write file {path}: {e}") from e

    async def write_leads(self, leads: List[ClassifiedLead], output_dir: OutputDir) -> Tuple[Path, Path]:
        """Writes ``leads.csv`` and ``leads.json`` into ``output_dir``."""
        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)

        csv_path = directory / CSV_FILE_NAME
        json_path = directory / JSON_FILE_NAME

        await self._write_file(csv_path, render_csv(leads))
        logger.info(f"CSV written: {csv_path} ({len(leads)} leads)")

        await self._write_file(json_path, render_json(leads))
        logger.info(f"JSON written: {json_path} ({len(leads)} leads)")

        return csv_path, json_path
