"""Tests for the transport invokers: headers, status mapping and failures."""

import io
import time

import pytest

from cuemap import endpoints
from cuemap.config import ClientConfig, resolve_context
from cuemap.endpoints import ApiCall
from cuemap.errors import CueMapError, ErrorKind
from cuemap.transport import AsyncInvoker, SyncInvoker, build_headers, encode_body


def _context(url, **kwargs):
    return resolve_context(ClientConfig(url=url, **kwargs))


class TestBuildHeaders:
    def test_json_with_credentials(self):
        headers = build_headers(_context("http://h", api_key="k", project_id="p"))
        assert headers == {
            "Content-Type": "application/json",
            "X-API-Key": "k",
            "X-Project-ID": "p",
        }

    def test_credentials_omitted_when_unset(self):
        assert build_headers(_context("http://h")) == {"Content-Type": "application/json"}

    def test_multipart_leaves_content_type_to_library(self):
        headers = build_headers(_context("http://h", api_key="k"), multipart=True)
        assert "Content-Type" not in headers
        assert headers["X-API-Key"] == "k"


def test_encode_body_failure_is_transport_error():
    with pytest.raises(CueMapError) as exc_info:
        encode_body({"bad": object()})
    assert exc_info.value.kind is ErrorKind.TRANSPORT
    assert isinstance(exc_info.value.cause, TypeError)


def test_encode_body_none():
    assert encode_body(None) is None


# ============================================================================
# Async invoker
# ============================================================================


class TestAsyncInvoker:
    @pytest.mark.asyncio
    async def test_success_decodes_json_and_sends_headers(self, engine):
        engine.respond("GET", "/stats", {"memories": 3})
        invoker = AsyncInvoker(_context(engine.url, api_key="secret", project_id="sales"))

        assert await invoker.invoke(endpoints.stats()) == {"memories": 3}

        sent = engine.last()
        assert sent["headers"]["x-api-key"] == "secret"
        assert sent["headers"]["x-project-id"] == "sales"
        assert sent["headers"]["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_api_key_header_absent_when_not_configured(self, engine):
        engine.respond("GET", "/stats", {})
        await AsyncInvoker(_context(engine.url)).invoke(endpoints.stats())

        headers = engine.last()["headers"]
        assert "x-api-key" not in headers
        assert "x-project-id" not in headers

    @pytest.mark.asyncio
    async def test_401_is_authentication_error_regardless_of_body(self, engine):
        engine.respond("GET", "/stats", {"error": "anything", "status": 500}, status=401)

        with pytest.raises(CueMapError) as exc_info:
            await AsyncInvoker(_context(engine.url)).invoke(endpoints.stats())
        assert exc_info.value.kind is ErrorKind.AUTHENTICATION
        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == "Invalid API key"

    @pytest.mark.asyncio
    async def test_500_with_json_body_is_request_failed(self, engine):
        engine.respond("GET", "/stats", {"error": "boom"}, status=500)

        with pytest.raises(CueMapError) as exc_info:
            await AsyncInvoker(_context(engine.url)).invoke(endpoints.stats())
        assert exc_info.value.kind is ErrorKind.REQUEST_FAILED
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_refused_connection_is_transport_failure(self, unreachable_url):
        with pytest.raises(CueMapError) as exc_info:
            await AsyncInvoker(_context(unreachable_url)).invoke(endpoints.stats())
        assert exc_info.value.kind is ErrorKind.TRANSPORT
        assert exc_info.value.cause is not None
        assert exc_info.value.__cause__ is exc_info.value.cause

    @pytest.mark.asyncio
    async def test_invalid_json_is_transport_failure(self, engine):
        engine.respond("GET", "/stats", raw="<html>not json</html>")

        with pytest.raises(CueMapError) as exc_info:
            await AsyncInvoker(_context(engine.url)).invoke(endpoints.stats())
        assert exc_info.value.kind is ErrorKind.TRANSPORT

    @pytest.mark.asyncio
    async def test_empty_success_body_decodes_to_none(self, engine):
        engine.respond("PATCH", "/memories/m1/reinforce", None, status=204)
        result = await AsyncInvoker(_context(engine.url)).invoke(endpoints.reinforce("m1", ["a"]))
        assert result is None

    @pytest.mark.asyncio
    async def test_encode_failure_sends_nothing(self, engine):
        call = ApiCall("POST", "/memories", body={"content": object()})

        with pytest.raises(CueMapError) as exc_info:
            await AsyncInvoker(_context(engine.url)).invoke(call)
        assert exc_info.value.kind is ErrorKind.TRANSPORT
        assert engine.requests == []

    @pytest.mark.asyncio
    async def test_timeout_cancels_request(self, engine):
        engine.respond("GET", "/stats", {"late": True}, delay=1.0)
        invoker = AsyncInvoker(_context(engine.url, timeout_ms=50))

        started = time.monotonic()
        with pytest.raises(CueMapError) as exc_info:
            await invoker.invoke(endpoints.stats())
        elapsed = time.monotonic() - started

        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert elapsed < 0.5

    @pytest.mark.asyncio
    async def test_deadline_covers_a_slow_body(self, engine):
        engine.respond("GET", "/stats", {"n": 1234567}, trickle=0.08)
        invoker = AsyncInvoker(_context(engine.url, timeout_ms=200))

        started = time.monotonic()
        with pytest.raises(CueMapError) as exc_info:
            await invoker.invoke(endpoints.stats())
        elapsed = time.monotonic() - started

        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert elapsed < 0.5

    @pytest.mark.asyncio
    async def test_query_params_are_sent(self, engine):
        engine.respond("GET", "/aliases", [])
        await AsyncInvoker(_context(engine.url)).invoke(endpoints.get_aliases("pw"))
        assert engine.last()["args"] == {"cue": "pw"}

    @pytest.mark.asyncio
    async def test_multipart_upload_from_file_object(self, engine):
        engine.respond("POST", "/ingest/file", {"job_id": "j1"})
        fh = io.BytesIO(b"quarterly numbers")
        fh.name = "/data/report.txt"

        invoker = AsyncInvoker(_context(engine.url, api_key="k", project_id="p"))
        assert await invoker.invoke(endpoints.ingest_file(fh)) == {"job_id": "j1"}

        sent = engine.last()
        assert sent["content_type"].startswith("multipart/form-data")
        assert sent["files"]["file"] == ("report.txt", b"quarterly numbers")
        assert sent["headers"]["x-api-key"] == "k"
        assert sent["headers"]["x-project-id"] == "p"

    @pytest.mark.asyncio
    async def test_multipart_upload_from_path(self, engine, tmp_path):
        engine.respond("POST", "/ingest/file", {"job_id": "j2"})
        path = tmp_path / "notes.md"
        path.write_bytes(b"# notes")

        await AsyncInvoker(_context(engine.url)).invoke(endpoints.ingest_file(str(path)))
        assert engine.last()["files"]["file"] == ("notes.md", b"# notes")

    @pytest.mark.asyncio
    async def test_missing_upload_path_is_transport_failure(self, engine, tmp_path):
        with pytest.raises(CueMapError) as exc_info:
            await AsyncInvoker(_context(engine.url)).invoke(
                endpoints.ingest_file(tmp_path / "missing.pdf")
            )
        assert exc_info.value.kind is ErrorKind.TRANSPORT
        assert engine.requests == []


# ============================================================================
# Sync invoker
# ============================================================================


class TestSyncInvoker:
    def test_success_and_headers(self, engine):
        engine.respond("GET", "/stats", {"memories": 1})
        invoker = SyncInvoker(_context(engine.url, api_key="secret"))

        assert invoker.invoke(endpoints.stats()) == {"memories": 1}
        headers = engine.last()["headers"]
        assert headers["x-api-key"] == "secret"
        assert "x-project-id" not in headers

    def test_401(self, engine):
        engine.respond("GET", "/stats", {}, status=401)
        with pytest.raises(CueMapError) as exc_info:
            SyncInvoker(_context(engine.url)).invoke(endpoints.stats())
        assert exc_info.value.kind is ErrorKind.AUTHENTICATION

    def test_404_is_request_failed(self, engine):
        with pytest.raises(CueMapError) as exc_info:
            SyncInvoker(_context(engine.url)).invoke(endpoints.get("nope"))
        assert exc_info.value.kind is ErrorKind.REQUEST_FAILED
        assert exc_info.value.status_code == 404

    def test_refused_connection(self, unreachable_url):
        with pytest.raises(CueMapError) as exc_info:
            SyncInvoker(_context(unreachable_url)).invoke(endpoints.stats())
        assert exc_info.value.kind is ErrorKind.TRANSPORT

    def test_timeout(self, engine):
        engine.respond("GET", "/stats", {}, delay=1.0)
        with pytest.raises(CueMapError) as exc_info:
            SyncInvoker(_context(engine.url, timeout_ms=50)).invoke(endpoints.stats())
        assert exc_info.value.kind is ErrorKind.TIMEOUT

    def test_deadline_covers_a_slow_body(self, engine):
        engine.respond("GET", "/stats", {"n": 1234567}, trickle=0.08)
        invoker = SyncInvoker(_context(engine.url, timeout_ms=200))

        started = time.monotonic()
        with pytest.raises(CueMapError) as exc_info:
            invoker.invoke(endpoints.stats())
        elapsed = time.monotonic() - started

        assert exc_info.value.kind is ErrorKind.TIMEOUT
        assert elapsed < 0.5

    def test_slow_body_within_deadline_is_read_whole(self, engine):
        engine.respond("GET", "/stats", {"n": 1}, trickle=0.01)
        assert SyncInvoker(_context(engine.url, timeout_ms=2000)).invoke(endpoints.stats()) == {"n": 1}

    def test_multipart_upload(self, engine):
        engine.respond("POST", "/ingest/file", {"job_id": "j3"})
        fh = io.BytesIO(b"abc")
        fh.name = "a.bin"

        SyncInvoker(_context(engine.url)).invoke(endpoints.ingest_file(fh))
        sent = engine.last()
        assert sent["content_type"].startswith("multipart/form-data")
        assert sent["files"]["file"] == ("a.bin", b"abc")
