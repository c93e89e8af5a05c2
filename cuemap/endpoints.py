# cuemap/endpoints.py

"""Request builders for every engine capability.

Each function returns an `ApiCall` describing the HTTP request and how to
decode its response. No I/O happens here, so the async and blocking clients
share one definition of the wire contract.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Union
from urllib.parse import quote

from .errors import CueMapError, ErrorKind
from .models import (
    Alias,
    GroundedResponse,
    IngestJob,
    JobStatus,
    Memory,
    RecallOptions,
    RecallResponse,
    unwrap_list,
)

FileSource = Union[str, "os.PathLike[str]", BinaryIO]


def _identity(data: Any) -> Any:
    return data


def _require_object(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise TypeError(f"expected {what} object, got {type(data).__name__}")
    return data


def _parse_memory_id(data: Any) -> str:
    memory_id = _require_object(data, "an add-memory").get("id")
    if memory_id in (None, ""):
        raise ValueError("response has no 'id'")
    return str(memory_id)


def _succeeded(_data: Any) -> bool:
    return True


@dataclass
class Upload:
    """A file to send as a multipart form field."""

    source: FileSource
    field_name: str = "file"
    filename: Optional[str] = None


@dataclass
class ApiCall:
    """One HTTP request against the engine plus the decoder for its reply.

    `best_effort` calls are reported as True/False by the clients instead of
    raising; `parse` is then expected to return True.
    """

    method: str
    path: str
    body: Optional[Any] = None
    params: Optional[Dict[str, str]] = None
    upload: Optional[Upload] = None
    parse: Callable[[Any], Any] = field(default=_identity)
    best_effort: bool = False

    @property
    def is_multipart(self) -> bool:
        return self.upload is not None

    def decode(self, data: Any) -> Any:
        """Apply `parse` to a decoded body; a malformed body fails the call."""
        try:
            return self.parse(data)
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            raise CueMapError(
                ErrorKind.TRANSPORT,
                f"Request failed: unexpected response from {self.method} {self.path}: {e}",
                cause=e,
            ) from e


def _segment(value: str) -> str:
    return quote(str(value), safe="")


# ----------------------------------------------------------------------
# Memories and recall
# ----------------------------------------------------------------------


def add(
    content: str,
    cues: Optional[List[str]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    disable_temporal_chunking: bool = False,
) -> ApiCall:
    """Store a memory. Empty `cues` lets the engine generate its own."""
    return ApiCall(
        "POST",
        "/memories",
        body={
            "content": content,
            "cues": list(cues or []),
            "metadata": dict(metadata or {}),
            "disable_temporal_chunking": disable_temporal_chunking,
        },
        parse=_parse_memory_id,
    )


def recall(options: RecallOptions) -> ApiCall:
    return ApiCall("POST", "/recall", body=options.to_payload(), parse=RecallResponse.from_payload)


def recall_grounded(
    query: str,
    token_budget: int = 500,
    *,
    limit: int = 10,
    projects: Optional[List[str]] = None,
    disable_pattern_completion: bool = False,
    disable_salience_bias: bool = False,
    disable_systems_consolidation: bool = False,
) -> ApiCall:
    body: Dict[str, Any] = {
        "query_text": query,
        "token_budget": token_budget,
        "limit": limit,
    }
    if projects is not None:
        body["projects"] = list(projects)
    body["disable_pattern_completion"] = disable_pattern_completion
    body["disable_salience_bias"] = disable_salience_bias
    body["disable_systems_consolidation"] = disable_systems_consolidation
    return ApiCall(
        "POST",
        "/recall/grounded",
        body=body,
        parse=lambda data: GroundedResponse.from_dict(_require_object(data, "a grounded recall")),
    )


def reinforce(memory_id: str, cues: List[str]) -> ApiCall:
    return ApiCall(
        "PATCH",
        f"/memories/{_segment(memory_id)}/reinforce",
        body={"cues": list(cues)},
        parse=_succeeded,
        best_effort=True,
    )


def get(memory_id: str) -> ApiCall:
    return ApiCall(
        "GET",
        f"/memories/{_segment(memory_id)}",
        parse=lambda data: Memory.from_dict(_require_object(data, "a memory")),
    )


def stats() -> ApiCall:
    return ApiCall("GET", "/stats", parse=lambda data: dict(_require_object(data, "a stats")))


# ----------------------------------------------------------------------
# Projects
# ----------------------------------------------------------------------


def _parse_projects(data: Any) -> List[str]:
    projects: List[str] = []
    for item in unwrap_list(data, ("projects", "items", "data")):
        if isinstance(item, dict):
            pid = item.get("project_id") or item.get("id")
            if pid:
                projects.append(str(pid))
        elif item is not None:
            projects.append(str(item))
    return projects


def list_projects() -> ApiCall:
    return ApiCall("GET", "/projects", parse=_parse_projects)


def delete_project(project_id: str) -> ApiCall:
    return ApiCall(
        "DELETE",
        f"/projects/{_segment(project_id)}",
        parse=_succeeded,
        best_effort=True,
    )


# ----------------------------------------------------------------------
# Aliases
# ----------------------------------------------------------------------


def add_alias(from_cue: str, to_cue: str, weight: float = 1.0) -> ApiCall:
    return ApiCall(
        "POST",
        "/aliases",
        body={"from": from_cue, "to": to_cue, "weight": weight},
        parse=_succeeded,
        best_effort=True,
    )


def get_aliases(cue: Optional[str] = None) -> ApiCall:
    return ApiCall(
        "GET",
        "/aliases",
        params={"cue": cue} if cue is not None else None,
        parse=lambda data: [
            Alias.from_dict(raw)
            for raw in unwrap_list(data, ("aliases", "results", "items"))
            if isinstance(raw, dict)
        ],
    )


def merge_aliases(cues: List[str], to_cue: str) -> ApiCall:
    return ApiCall(
        "POST",
        "/aliases/merge",
        body={"cues": list(cues), "to": to_cue},
        parse=_succeeded,
        best_effort=True,
    )


# ----------------------------------------------------------------------
# Lexicon
# ----------------------------------------------------------------------


def lexicon_wire(token: str, canonical: str) -> ApiCall:
    return ApiCall("POST", "/lexicon/wire", body={"token": token, "canonical": canonical})


def lexicon_inspect(cue: str) -> ApiCall:
    return ApiCall("GET", f"/lexicon/inspect/{_segment(cue)}")


def lexicon_graph() -> ApiCall:
    return ApiCall("GET", "/lexicon/graph")


def lexicon_synonyms(cue: str) -> ApiCall:
    return ApiCall("GET", f"/lexicon/synonyms/{_segment(cue)}")


def lexicon_delete(memory_id: str) -> ApiCall:
    return ApiCall(
        "DELETE",
        f"/lexicon/entry/{_segment(memory_id)}",
        parse=_succeeded,
        best_effort=True,
    )


# ----------------------------------------------------------------------
# Ingestion
# ----------------------------------------------------------------------


def ingest_url(url: str) -> ApiCall:
    return ApiCall("POST", "/ingest/url", body={"url": url}, parse=IngestJob.from_payload)


def ingest_content(content: str, filename: str = "content.txt") -> ApiCall:
    return ApiCall(
        "POST",
        "/ingest/content",
        body={"content": content, "filename": filename},
        parse=IngestJob.from_payload,
    )


def ingest_file(source: FileSource, filename: Optional[str] = None) -> ApiCall:
    """Upload a file (path or binary file object) as multipart field `file`."""
    return ApiCall(
        "POST",
        "/ingest/file",
        upload=Upload(source=source, filename=filename),
        parse=IngestJob.from_payload,
    )


def jobs_status() -> ApiCall:
    return ApiCall("GET", "/jobs/status", parse=JobStatus.from_payload)
