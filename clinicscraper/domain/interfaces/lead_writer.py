"""Interface for persisting classified leads.

Allows the command handler to stay independent of the storage backend
(local CSV/JSON files today).
"""

import abc
from pathlib import Path
from typing import List, Tuple

from ..models.classification import ClassifiedLead
from ..models.common import OutputDir


class LeadWriter(abc.ABC):
    """Abstract Base Class for lead persistence."""

    @abc.abstractmethod
    async def write_leads(self, leads: List[ClassifiedLead], output_dir: OutputDir) -> Tuple[Path, Path]:
        """Writes the leads as a CSV table and a JSON document.

        Args:
            leads: Records to write, in the order they must appear.
            output_dir: Target directory; created if missing.

        Returns:
            Tuple of (csv_path, json_path).

        Raises:
            PermissionError: If write permissions are denied.
            IOError: For other file system errors.
        """
        pass
