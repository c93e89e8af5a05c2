"""
Pytest fixtures for the CueMap client tests.
"""

from typing import Any, Dict

import pytest

from stub_engine import StubEngine

# Nothing listens on port 1, so connections are refused straight away.
UNREACHABLE_URL = "http://127.0.0.1:1"


@pytest.fixture(scope="session")
def _engine_server():
    engine = StubEngine()
    engine.start()
    yield engine
    engine.stop()


@pytest.fixture
def engine(_engine_server):
    """Running stub engine with no scripted routes and an empty request log."""
    _engine_server.reset()
    return _engine_server


@pytest.fixture
def unreachable_url() -> str:
    return UNREACHABLE_URL


@pytest.fixture
def grounded_payload() -> Dict[str, Any]:
    """Grounded-recall reply with one selected and one excluded memory."""
    return {
        "verified_context": "[VERIFIED CONTEXT] (1) Payments fail when the issuer times out.",
        "proof": {
            "trace_id": "trace-42",
            "query_text": "Why is payment failing?",
            "query_tokens": ["payment", "failing"],
            "expanded_cues": [["payment", 1.0], {"token": "checkout", "score": 0.6}],
            "token_budget": 500,
            "selected": [
                {
                    "memory_id": "m2",
                    "score": 0.91,
                    "components": {"intersection": 0.5, "recency": 0.3, "salience": 0.11},
                    "estimated_tokens": 120,
                    "reason": "matched 2 of 2 query cues",
                }
            ],
            "excluded_top": [
                {"memory_id": "m7", "score": 0.4, "reason": "over token budget"}
            ],
        },
        "engine_latency_ms": 4,
    }
