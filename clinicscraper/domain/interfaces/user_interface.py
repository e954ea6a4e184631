"""Interface for interacting with the user (output only).

Defines the contract for displaying information, errors, warnings and the
run summary, allowing different UI implementations.
"""

import abc
from typing import Any, List

from clinicscraper.domain.models.classification import ClassifiedLead


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_leads(self, leads: List[ClassifiedLead]) -> None:
        """Displays the accepted leads as a table."""
        pass

    def display_run_header(self, query: str, output_dir: str, concurrency: int) -> None:
        """Displays a banner describing the run about to start."""
        pass
