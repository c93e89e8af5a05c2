# cuemap/client.py

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

from . import endpoints
from .config import ClientConfig, ClientContext, resolve_context
from .endpoints import ApiCall, FileSource
from .errors import CueMapError, ErrorKind
from .models import (
    Alias,
    GroundedResponse,
    IngestJob,
    JobStatus,
    Memory,
    RecallOptions,
    RecallResponse,
)
from .transport import AsyncInvoker

logger = logging.getLogger(__name__)


class AsyncCueMap:
    """Asyncio client for a CueMap engine.

    Every method is an independent request: calls may run concurrently from
    the same instance, nothing is cached, and a failed call is never retried.
    Errors surface as `CueMapError`, except for the best-effort mutations
    (`reinforce`, `delete_project`, `add_alias`, `merge_aliases`,
    `lexicon_delete`) which report failure as `False`.

    Example:
        client = AsyncCueMap(url="http://localhost:8080", project_id="support")
        memory_id = await client.add("The server password is abc123", [])
        response = await client.recall(cues=["server", "password"])
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        project_id: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        *,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._context = resolve_context(
            ClientConfig(url=url, api_key=api_key, project_id=project_id, timeout_ms=timeout_ms)
        )
        self._invoker = AsyncInvoker(self._context, session=session)

    @classmethod
    def from_config(
        cls, config: Optional[ClientConfig] = None, *, session: Optional[aiohttp.ClientSession] = None
    ) -> "AsyncCueMap":
        config = config or ClientConfig()
        return cls(
            url=config.url,
            api_key=config.api_key,
            project_id=config.project_id,
            timeout_ms=config.timeout_ms,
            session=session,
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env") -> "AsyncCueMap":
        """Construct a client from CUEMAP_* environment variables."""
        return cls.from_config(ClientConfig.from_env(env_file))

    @property
    def context(self) -> ClientContext:
        return self._context

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def execute(self, call: ApiCall) -> Any:
        """Run `call` and return its decoded result, raising on any failure.

        This is also the strict form of the best-effort methods, e.g.
        `await client.execute(endpoints.reinforce(memory_id, cues))`.
        """
        data = await self._invoker.invoke(call)
        return call.decode(data)

    async def _call(self, call: ApiCall) -> Any:
        if not call.best_effort:
            return await self.execute(call)
        try:
            await self.execute(call)
        except CueMapError as e:
            logger.warning("CueMap %s %s failed (%s): %s", call.method, call.path, e.kind.value, e)
            return False
        return True

    # ------------------------------------------------------------------
    # Memories and recall
    # ------------------------------------------------------------------

    async def add(
        self,
        content: str,
        cues: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        disable_temporal_chunking: bool = False,
    ) -> str:
        """Store a memory and return its engine-assigned id."""
        return await self._call(endpoints.add(content, cues, metadata, disable_temporal_chunking))

    async def recall(self, options: Optional[RecallOptions] = None, **fields: Any) -> RecallResponse:
        """Recall memories by cues and/or natural-language text.

        Accepts a `RecallOptions` value, keyword fields of `RecallOptions`,
        or both (keywords win):

            await client.recall(cues=["meeting", "john"], min_intersection=2)
            await client.recall(RecallOptions(query_text="who did I meet?"), explain=True)
        """
        options = dataclasses.replace(options or RecallOptions(), **fields)
        return await self._call(endpoints.recall(options))

    async def recall_grounded(
        self,
        query: str,
        token_budget: int = 500,
        *,
        limit: int = 10,
        projects: Optional[List[str]] = None,
        disable_pattern_completion: bool = False,
        disable_salience_bias: bool = False,
        disable_systems_consolidation: bool = False,
    ) -> GroundedResponse:
        """Recall with a token-budgeted verified context and its proof.

        Pass the result to `cuemap.grounding.assemble` to get a prompt-ready
        artifact.
        """
        return await self._call(
            endpoints.recall_grounded(
                query,
                token_budget,
                limit=limit,
                projects=projects,
                disable_pattern_completion=disable_pattern_completion,
                disable_salience_bias=disable_salience_bias,
                disable_systems_consolidation=disable_systems_consolidation,
            )
        )

    async def reinforce(self, memory_id: str, cues: List[str]) -> bool:
        """Strengthen a memory on the given cue pathways (best-effort)."""
        return await self._call(endpoints.reinforce(memory_id, cues))

    async def get(self, memory_id: str) -> Memory:
        return await self._call(endpoints.get(memory_id))

    async def stats(self) -> Dict[str, Any]:
        return await self._call(endpoints.stats())

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def list_projects(self) -> List[str]:
        return await self._call(endpoints.list_projects())

    async def delete_project(self, project_id: str) -> bool:
        return await self._call(endpoints.delete_project(project_id))

    # ------------------------------------------------------------------
    # Aliases and lexicon
    # ------------------------------------------------------------------

    async def add_alias(self, from_cue: str, to_cue: str, weight: float = 1.0) -> bool:
        return await self._call(endpoints.add_alias(from_cue, to_cue, weight))

    async def get_aliases(self, cue: Optional[str] = None) -> List[Alias]:
        return await self._call(endpoints.get_aliases(cue))

    async def merge_aliases(self, cues: List[str], to_cue: str) -> bool:
        return await self._call(endpoints.merge_aliases(cues, to_cue))

    async def lexicon_wire(self, token: str, canonical: str) -> Any:
        return await self._call(endpoints.lexicon_wire(token, canonical))

    async def lexicon_inspect(self, cue: str) -> Any:
        return await self._call(endpoints.lexicon_inspect(cue))

    async def lexicon_graph(self) -> Any:
        return await self._call(endpoints.lexicon_graph())

    async def lexicon_synonyms(self, cue: str) -> Any:
        return await self._call(endpoints.lexicon_synonyms(cue))

    async def lexicon_delete(self, memory_id: str) -> bool:
        return await self._call(endpoints.lexicon_delete(memory_id))

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest_url(self, url: str) -> IngestJob:
        return await self._call(endpoints.ingest_url(url))

    async def ingest_content(self, content: str, filename: str = "content.txt") -> IngestJob:
        return await self._call(endpoints.ingest_content(content, filename))

    async def ingest_file(self, file: FileSource, filename: Optional[str] = None) -> IngestJob:
        """Upload a file for ingestion as multipart form data."""
        return await self._call(endpoints.ingest_file(file, filename))

    async def jobs_status(self) -> JobStatus:
        return await self._call(endpoints.jobs_status())

    async def wait_for_jobs(
        self,
        poll_interval: float = 0.5,
        max_wait: Optional[float] = None,
    ) -> JobStatus:
        """Poll `jobs_status` until all queued writes have completed."""
        deadline = time.monotonic() + max_wait if max_wait is not None else None
        while True:
            status = await self.jobs_status()
            if status.done:
                return status
            if deadline is not None and time.monotonic() + poll_interval > deadline:
                raise CueMapError(
                    ErrorKind.TIMEOUT,
                    f"Ingestion still running after {max_wait}s "
                    f"({status.writes_completed}/{status.writes_total} writes)",
                )
            await asyncio.sleep(poll_interval)
