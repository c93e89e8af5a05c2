# cuemap/grounding.py

from __future__ import annotations

from typing import Iterable, Optional

from .models import GroundedResponse, RecallResult, VerifiedContextArtifact


def assemble(response: GroundedResponse) -> VerifiedContextArtifact:
    """Turn a grounded-recall response into a prompt-ready artifact.

    Pure projection: nothing is re-ranked, trimmed or copied field by field,
    so `artifact.selected_memories == response.proof.selected`.
    """
    return VerifiedContextArtifact(
        context_block=response.verified_context,
        proof=response.proof,
        selected_memories=list(response.proof.selected),
    )


def format_recall_context(results: Iterable[RecallResult]) -> Optional[str]:
    """Render recall hits into a compact numbered block for prompts."""
    lines = []
    for i, item in enumerate(results, start=1):
        score_str = f" (score={item.score:.3f})" if isinstance(item.score, (int, float)) else ""

        # Surface the cues that matched so the model can see why a memory
        # was recalled.
        cue_str = f" [{' | '.join(item.structural_cues)}]" if item.structural_cues else ""

        lines.append(f"[{i}]{score_str}{cue_str} {item.content}")

    if not lines:
        return None
    return "\n".join(lines)


def build_grounded_prompt(user_input: str, artifact: Optional[VerifiedContextArtifact]) -> str:
    """Place the verified context ahead of the raw user input.

    With no artifact (or an empty context block) the input is returned as is.
    """
    if artifact is None or not artifact.context_block.strip():
        return user_input

    return (
        "Verified context:\n"
        f"{artifact.context_block}\n\n"
        "Current input:\n"
        f"{user_input}"
    )
