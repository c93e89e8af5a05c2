# cuemap/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class Memory:
    """A stored memory as returned by `GET /memories/{id}`.

    Created by the engine on `add`; the client never edits these.
    """

    id: str
    content: str
    cues: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[float] = None
    last_accessed: Optional[float] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Memory":
        return cls(
            id=str(raw.get("id") or raw.get("memory_id") or ""),
            content=str(raw.get("content") or ""),
            cues=[str(c) for c in raw.get("cues") or []],
            metadata=_as_metadata(raw.get("metadata")),
            created_at=_opt_float(raw.get("created_at")),
            last_accessed=_opt_float(raw.get("last_accessed")),
        )


@dataclass
class RecallResult:
    """A single ranked hit from `/recall`.

    All scores are computed by the engine; `explain` is only populated when
    the recall was made with `explain=True` and is kept as the raw structure.
    """

    memory_id: str
    content: str
    score: float = 0.0
    intersection_count: int = 0
    recency_score: float = 0.0
    reinforcement_score: float = 0.0
    salience_score: float = 0.0
    match_integrity: float = 0.0
    structural_cues: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    explain: Optional[Any] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "RecallResult":
        return cls(
            memory_id=str(raw.get("memory_id") or raw.get("id") or ""),
            content=str(raw.get("content") or ""),
            score=_float(raw.get("score")),
            intersection_count=int(raw.get("intersection_count") or 0),
            recency_score=_float(raw.get("recency_score")),
            reinforcement_score=_float(raw.get("reinforcement_score")),
            salience_score=_float(raw.get("salience_score")),
            match_integrity=_float(raw.get("match_integrity")),
            structural_cues=[str(c) for c in raw.get("structural_cues") or []],
            metadata=_as_metadata(raw.get("metadata")),
            explain=raw.get("explain"),
        )


@dataclass
class RecallResponse:
    """Decoded `/recall` payload.

    `extras` keeps any top-level keys besides `results` (the engine adds a
    few when `explain=True`).
    """

    results: List[RecallResult] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Any) -> "RecallResponse":
        if isinstance(data, list):
            return cls(results=_parse_list(data, RecallResult.from_dict))
        if not isinstance(data, dict):
            raise TypeError(f"expected a recall object or list, got {type(data).__name__}")
        extras = {k: v for k, v in data.items() if k != "results"}
        return cls(
            results=_parse_list(data.get("results") or [], RecallResult.from_dict),
            extras=extras,
        )

    def __iter__(self):
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)


@dataclass
class RecallOptions:
    """All recognised `recall` parameters as one value.

    Leave `min_intersection` unset for OR semantics across cues; set it to
    require that many cues to match. The `disable_*` switches turn off the
    engine's brain-inspired stages and must stay False by default.
    """

    query_text: Optional[str] = None
    cues: Optional[List[str]] = None
    projects: Optional[List[str]] = None
    limit: int = 10
    auto_reinforce: bool = False
    min_intersection: Optional[int] = None
    explain: bool = False
    disable_pattern_completion: bool = False
    disable_salience_bias: bool = False
    disable_systems_consolidation: bool = False

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.query_text is not None:
            payload["query_text"] = self.query_text
        if self.cues is not None:
            payload["cues"] = list(self.cues)
        if self.projects is not None:
            payload["projects"] = list(self.projects)
        payload["limit"] = self.limit
        payload["auto_reinforce"] = self.auto_reinforce
        if self.min_intersection is not None:
            payload["min_intersection"] = self.min_intersection
        payload["explain"] = self.explain
        payload["disable_pattern_completion"] = self.disable_pattern_completion
        payload["disable_salience_bias"] = self.disable_salience_bias
        payload["disable_systems_consolidation"] = self.disable_systems_consolidation
        return payload


@dataclass
class Alias:
    """Directed weighted edge mapping a surface token onto a canonical cue."""

    from_cue: str
    to_cue: str
    weight: float = 1.0
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Alias":
        return cls(
            from_cue=str(raw.get("from") or raw.get("alias") or raw.get("token") or ""),
            to_cue=str(raw.get("to") or raw.get("canonical") or raw.get("cue") or ""),
            weight=_float(raw.get("weight"), default=1.0),
            raw=dict(raw),
        )


@dataclass
class ExpandedCue:
    token: str
    score: float

    @classmethod
    def from_raw(cls, raw: Any) -> "ExpandedCue":
        # Engine sends either [token, score] pairs or {"token", "score"} objects.
        if isinstance(raw, dict):
            return cls(token=str(raw.get("token") or raw.get("cue") or ""), score=_float(raw.get("score")))
        if isinstance(raw, (list, tuple)) and raw:
            return cls(token=str(raw[0]), score=_float(raw[1] if len(raw) > 1 else None))
        return cls(token=str(raw), score=0.0)


@dataclass
class SelectedMemory:
    """A memory the engine placed into the verified context."""

    memory_id: str
    score: float = 0.0
    components: Dict[str, float] = field(default_factory=dict)
    estimated_tokens: int = 0
    reason: str = ""
    content: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SelectedMemory":
        components = raw.get("components") or raw.get("score_components") or {}
        return cls(
            memory_id=str(raw.get("memory_id") or raw.get("id") or ""),
            score=_float(raw.get("score")),
            components={str(k): _float(v) for k, v in components.items()} if isinstance(components, dict) else {},
            estimated_tokens=int(raw.get("estimated_tokens") or 0),
            reason=str(raw.get("reason") or raw.get("justification") or ""),
            content=raw.get("content"),
        )


@dataclass
class ExcludedMemory:
    """A high-scoring memory left out of the context, with the reason why."""

    memory_id: str
    score: float = 0.0
    reason: str = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ExcludedMemory":
        return cls(
            memory_id=str(raw.get("memory_id") or raw.get("id") or ""),
            score=_float(raw.get("score")),
            reason=str(raw.get("reason") or raw.get("exclusion_reason") or ""),
        )


@dataclass
class GroundingProof:
    """Evidence of how the engine built a verified context.

    The engine guarantees that `selected` and `excluded_top` share no memory
    ids and that the selected `estimated_tokens` fit within `token_budget`.
    The client does not enforce this; `violations()` reports any breach.
    """

    trace_id: str = ""
    query_text: str = ""
    query_tokens: List[str] = field(default_factory=list)
    expanded_cues: List[ExpandedCue] = field(default_factory=list)
    token_budget: int = 0
    selected: List[SelectedMemory] = field(default_factory=list)
    excluded_top: List[ExcludedMemory] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "GroundingProof":
        return cls(
            trace_id=str(raw.get("trace_id") or ""),
            query_text=str(raw.get("query_text") or raw.get("query") or ""),
            query_tokens=[str(t) for t in raw.get("query_tokens") or []],
            expanded_cues=[ExpandedCue.from_raw(c) for c in raw.get("expanded_cues") or []],
            token_budget=int(raw.get("token_budget") or 0),
            selected=_parse_list(raw.get("selected") or [], SelectedMemory.from_dict),
            excluded_top=_parse_list(raw.get("excluded_top") or [], ExcludedMemory.from_dict),
        )

    @property
    def total_estimated_tokens(self) -> int:
        return sum(item.estimated_tokens for item in self.selected)

    def violations(self) -> List[str]:
        problems: List[str] = []
        overlap = {s.memory_id for s in self.selected} & {e.memory_id for e in self.excluded_top}
        if overlap:
            problems.append(f"memories both selected and excluded: {sorted(overlap)}")
        if self.token_budget and self.total_estimated_tokens > self.token_budget:
            problems.append(
                f"selected memories use {self.total_estimated_tokens} tokens, "
                f"over the budget of {self.token_budget}"
            )
        return problems


@dataclass
class GroundedResponse:
    verified_context: str
    proof: GroundingProof
    engine_latency_ms: Optional[float] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "GroundedResponse":
        proof = raw.get("proof")
        return cls(
            verified_context=str(raw.get("verified_context") or ""),
            proof=GroundingProof.from_dict(proof if isinstance(proof, dict) else {}),
            engine_latency_ms=_opt_float(raw.get("engine_latency_ms")),
        )


@dataclass
class VerifiedContextArtifact:
    """Prompt-ready bundle derived from a grounded recall.

    Produced by `cuemap.grounding.assemble`; `selected_memories` is exactly
    `proof.selected`.
    """

    context_block: str
    proof: GroundingProof
    selected_memories: List[SelectedMemory]


@dataclass
class IngestJob:
    """Descriptor returned when an ingestion job is queued."""

    job_id: Optional[str] = None
    status: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Any) -> "IngestJob":
        if not isinstance(data, dict):
            raise TypeError(f"expected a job descriptor object, got {type(data).__name__}")
        job_id = data.get("job_id") or data.get("id")
        status = data.get("status")
        return cls(
            job_id=str(job_id) if job_id is not None else None,
            status=str(status) if status is not None else None,
            raw=dict(data),
        )


@dataclass
class JobStatus:
    """Snapshot of the project's ingestion write queue."""

    writes_completed: int = 0
    writes_total: int = 0
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def done(self) -> bool:
        return self.writes_completed >= self.writes_total

    @classmethod
    def from_payload(cls, data: Any) -> "JobStatus":
        if not isinstance(data, dict):
            raise TypeError(f"expected a job status object, got {type(data).__name__}")
        return cls(
            writes_completed=int(data.get("writes_completed") or 0),
            writes_total=int(data.get("writes_total") or 0),
            extras={k: v for k, v in data.items() if k not in ("writes_completed", "writes_total")},
        )


# ----------------------------------------------------------------------
# Parsing helpers
# ----------------------------------------------------------------------


def unwrap_list(data: Any, keys: Tuple[str, ...]) -> List[Any]:
    """Return the list in `data`, looking under `keys` if it is a mapping."""
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            if key in data and isinstance(data[key], list):
                return data[key]
    return []


def _parse_list(items: Any, parse) -> List[Any]:
    if not isinstance(items, list):
        return []
    return [parse(raw) for raw in items if isinstance(raw, dict)]


def _as_metadata(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        return {"raw_metadata": value}
    return dict(value)


def _float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _opt_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return _float(value)
