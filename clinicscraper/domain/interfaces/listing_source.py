"""Interface for sources of candidate places."""

import abc
from typing import List

from ..models.common import SearchQuery
from ..models.listing import RawPlace


class ListingSource(abc.ABC):
    """Abstract Base Class for place discovery."""

    @abc.abstractmethod
    async def search(self, query: SearchQuery) -> List[RawPlace]:
        """Returns places matching the query, in provider order.

        An empty list means the provider found nothing. A provider-reported
        error must raise instead of returning an empty list.
        """
        pass
