# cuemap/store.py

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .grounding import assemble
from .models import RecallResult, VerifiedContextArtifact
from .sync_client import CueMap

logger = logging.getLogger(__name__)


class MemoryStore(ABC):
    """Abstract interface for an agent's long-term memory.

    Agent code talks to this add/search interface and stays unaware of the
    concrete backend.
    """

    @abstractmethod
    def add_interaction(
        self,
        user_text: str,
        assistant_text: str,
        *,
        cues: Optional[List[str]] = None,
        extra_metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Store a single user/assistant turn and return its memory id."""

    @abstractmethod
    def search(self, query: str, *, limit: int = 5) -> List[RecallResult]:
        """Retrieve up to `limit` relevant memories for the given query."""
        raise NotImplementedError


class CueMapStore(MemoryStore):
    """MemoryStore backed by a CueMap engine through the blocking client.

    Turns are stored as a single "User: ... / Assistant: ..." memory. When no
    cues are given the engine derives them from the content itself.
    """

    def __init__(self, client: Optional[CueMap] = None) -> None:
        self.client = client or CueMap()

    @classmethod
    def from_env(cls) -> "CueMapStore":
        return cls(CueMap.from_env())

    def add_interaction(
        self,
        user_text: str,
        assistant_text: str,
        *,
        cues: Optional[List[str]] = None,
        extra_metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        content = f"User: {user_text}\nAssistant: {assistant_text}"

        metadata: Dict[str, Any] = extra_metadata.copy() if extra_metadata else {}
        metadata.setdefault("kind", "interaction")

        memory_id = self.client.add(content, cues or [], metadata)
        logger.debug("Stored interaction as memory %s", memory_id)
        return memory_id

    def search(self, query: str, *, limit: int = 5) -> List[RecallResult]:
        query = (query or "").strip()
        if not query:
            return []
        response = self.client.recall(query_text=query, limit=limit)
        return [item for item in response.results if item.content.strip()]

    def grounded_context(self, query: str, token_budget: int = 500) -> VerifiedContextArtifact:
        """Fetch a token-budgeted verified context for `query`."""
        return assemble(self.client.recall_grounded(query, token_budget))
