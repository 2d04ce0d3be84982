"""Base document store interface."""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Tuple

from libs.common.models import Chunk, DocumentRef


class DocumentStore(ABC):
    """Batched, read-only chunk lookup.

    Ids missing from the returned mapping no longer exist (typically
    superseded by re-ingestion of their document).
    """

    @abstractmethod
    async def fetch_chunks(
        self,
        chunk_ids: Sequence[str]
    ) -> Dict[str, Tuple[Chunk, Optional[DocumentRef]]]:
        """Fetch chunks and their document references in one round trip."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        pass

    async def close(self) -> None:
        return None
