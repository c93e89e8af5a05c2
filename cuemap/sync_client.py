# cuemap/sync_client.py

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Any, Dict, List, Optional

import requests

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
from .transport import SyncInvoker

logger = logging.getLogger(__name__)


class CueMap:
    """Blocking client for a CueMap engine.

    Same operations and error contract as `AsyncCueMap`, for scripts and
    synchronous frameworks. An optional `requests.Session` can be passed in
    for connection reuse; the client never closes it.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        project_id: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._context = resolve_context(
            ClientConfig(url=url, api_key=api_key, project_id=project_id, timeout_ms=timeout_ms)
        )
        self._invoker = SyncInvoker(self._context, session=session)

    @classmethod
    def from_config(
        cls, config: Optional[ClientConfig] = None, *, session: Optional[requests.Session] = None
    ) -> "CueMap":
        config = config or ClientConfig()
        return cls(
            url=config.url,
            api_key=config.api_key,
            project_id=config.project_id,
            timeout_ms=config.timeout_ms,
            session=session,
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env") -> "CueMap":
        return cls.from_config(ClientConfig.from_env(env_file))

    @property
    def context(self) -> ClientContext:
        return self._context

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def execute(self, call: ApiCall) -> Any:
        """Run `call` and return its decoded result, raising on any failure."""
        return call.decode(self._invoker.invoke(call))

    def _call(self, call: ApiCall) -> Any:
        if not call.best_effort:
            return self.execute(call)
        try:
            self.execute(call)
        except CueMapError as e:
            logger.warning("CueMap %s %s failed (%s): %s", call.method, call.path, e.kind.value, e)
            return False
        return True

    # ------------------------------------------------------------------
    # Memories and recall
    # ------------------------------------------------------------------

    def add(
        self,
        content: str,
        cues: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        disable_temporal_chunking: bool = False,
    ) -> str:
        return self._call(endpoints.add(content, cues, metadata, disable_temporal_chunking))

    def recall(self, options: Optional[RecallOptions] = None, **fields: Any) -> RecallResponse:
        options = dataclasses.replace(options or RecallOptions(), **fields)
        return self._call(endpoints.recall(options))

    def recall_grounded(
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
        return self._call(
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

    def reinforce(self, memory_id: str, cues: List[str]) -> bool:
        return self._call(endpoints.reinforce(memory_id, cues))

    def get(self, memory_id: str) -> Memory:
        return self._call(endpoints.get(memory_id))

    def stats(self) -> Dict[str, Any]:
        return self._call(endpoints.stats())

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self) -> List[str]:
        return self._call(endpoints.list_projects())

    def delete_project(self, project_id: str) -> bool:
        return self._call(endpoints.delete_project(project_id))

    # ------------------------------------------------------------------
    # Aliases and lexicon
    # ------------------------------------------------------------------

    def add_alias(self, from_cue: str, to_cue: str, weight: float = 1.0) -> bool:
        return self._call(endpoints.add_alias(from_cue, to_cue, weight))

    def get_aliases(self, cue: Optional[str] = None) -> List[Alias]:
        return self._call(endpoints.get_aliases(cue))

    def merge_aliases(self, cues: List[str], to_cue: str) -> bool:
        return self._call(endpoints.merge_aliases(cues, to_cue))

    def lexicon_wire(self, token: str, canonical: str) -> Any:
        return self._call(endpoints.lexicon_wire(token, canonical))

    def lexicon_inspect(self, cue: str) -> Any:
        return self._call(endpoints.lexicon_inspect(cue))

    def lexicon_graph(self) -> Any:
        return self._call(endpoints.lexicon_graph())

    def lexicon_synonyms(self, cue: str) -> Any:
        return self._call(endpoints.lexicon_synonyms(cue))

    def lexicon_delete(self, memory_id: str) -> bool:
        return self._call(endpoints.lexicon_delete(memory_id))

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest_url(self, url: str) -> IngestJob:
        return self._call(endpoints.ingest_url(url))

    def ingest_content(self, content: str, filename: str = "content.txt") -> IngestJob:
        return self._call(endpoints.ingest_content(content, filename))

    def ingest_file(self, file: FileSource, filename: Optional[str] = None) -> IngestJob:
        return self._call(endpoints.ingest_file(file, filename))

    def jobs_status(self) -> JobStatus:
        return self._call(endpoints.jobs_status())

    def wait_for_jobs(
        self,
        poll_interval: float = 0.5,
        max_wait: Optional[float] = None,
    ) -> JobStatus:
        deadline = time.monotonic() + max_wait if max_wait is not None else None
        while True:
            status = self.jobs_status()
            if status.done:
                return status
            if deadline is not None and time.monotonic() + poll_interval > deadline:
                raise CueMapError(
                    ErrorKind.TIMEOUT,
                    f"Ingestion still running after {max_wait}s "
                    f"({status.writes_completed}/{status.writes_total} writes)",
                )
            time.sleep(poll_interval)
