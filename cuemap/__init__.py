# cuemap/__init__.py

from .client import AsyncCueMap
from .config import ClientConfig, ClientContext, load_config_file, resolve_context
from .errors import CueMapError, ErrorKind
from .grounding import assemble, build_grounded_prompt, format_recall_context
from .models import (
    Alias,
    ExcludedMemory,
    ExpandedCue,
    GroundedResponse,
    GroundingProof,
    IngestJob,
    JobStatus,
    Memory,
    RecallOptions,
    RecallResponse,
    RecallResult,
    SelectedMemory,
    VerifiedContextArtifact,
)
from .store import CueMapStore, MemoryStore
from .sync_client import CueMap

__all__ = [
    "AsyncCueMap",
    "CueMap",
    "ClientConfig",
    "ClientContext",
    "load_config_file",
    "resolve_context",
    "CueMapError",
    "ErrorKind",
    "assemble",
    "build_grounded_prompt",
    "format_recall_context",
    "Alias",
    "ExcludedMemory",
    "ExpandedCue",
    "GroundedResponse",
    "GroundingProof",
    "IngestJob",
    "JobStatus",
    "Memory",
    "RecallOptions",
    "RecallResponse",
    "RecallResult",
    "SelectedMemory",
    "VerifiedContextArtifact",
    "CueMapStore",
    "MemoryStore",
]
