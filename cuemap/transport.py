# cuemap/transport.py

from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from concurrent import futures
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterator, Optional, Tuple

import aiohttp
import requests

from .config import ClientContext
from .endpoints import ApiCall, Upload
from .errors import CueMapError, ErrorKind

logger = logging.getLogger(__name__)


def build_headers(context: ClientContext, multipart: bool = False) -> Dict[str, str]:
    """Headers sent with every request.

    Multipart uploads leave Content-Type to the HTTP library so it can add
    the form boundary. Credentials are only sent when configured.
    """
    headers: Dict[str, str] = {}
    if not multipart:
        headers["Content-Type"] = "application/json"
    if context.api_key:
        headers["X-API-Key"] = context.api_key
    if context.project_id:
        headers["X-Project-ID"] = context.project_id
    return headers


def encode_body(body: Any) -> Optional[bytes]:
    if body is None:
        return None
    try:
        return json.dumps(body).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise CueMapError(
            ErrorKind.TRANSPORT, f"Request failed: could not encode body: {e}", cause=e
        ) from e


@contextmanager
def open_upload(upload: Upload) -> Iterator[Tuple[str, BinaryIO]]:
    """Yield `(filename, binary file object)` for an upload.

    Paths are opened here and closed when the request finishes; file objects
    passed in by the caller are left open.
    """
    source = upload.source
    if isinstance(source, (str, os.PathLike)):
        path = Path(source)
        with open(path, "rb") as fh:
            yield upload.filename or path.name, fh
    else:
        name = upload.filename or os.path.basename(str(getattr(source, "name", "") or ""))
        yield name or "upload.bin", source


def check_status(url: str, status: int, content: bytes) -> None:
    if 200 <= status < 300:
        return

    logger.error(
        "CueMap request to %s failed with status %s: %s",
        url,
        status,
        content[:500].decode("utf-8", errors="replace"),
    )
    if status == 401:
        raise CueMapError(ErrorKind.AUTHENTICATION, "Invalid API key", status_code=status)
    raise CueMapError(ErrorKind.REQUEST_FAILED, f"Request failed: {status}", status_code=status)


def decode_json(url: str, content: bytes) -> Any:
    if not content or not content.strip():
        return None
    try:
        return json.loads(content)
    except ValueError as e:
        logger.error("CueMap response from %s is not valid JSON: %s", url, e)
        raise CueMapError(
            ErrorKind.TRANSPORT, f"Request failed: invalid JSON response: {e}", cause=e
        ) from e


class AsyncInvoker:
    """Runs `ApiCall`s over aiohttp with a per-call deadline.

    The deadline is an `aiohttp.ClientTimeout(total=...)` handed to the
    request itself, so it covers connecting, sending and reading the body and
    is torn down with the request on every exit path. Unless a session is
    injected (and then owned by the caller), each call opens and closes its
    own `ClientSession`.
    """

    def __init__(
        self,
        context: ClientContext,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.context = context
        self._session = session

    async def invoke(self, call: ApiCall) -> Any:
        url = f"{self.context.url}{call.path}"
        headers = build_headers(self.context, multipart=call.is_multipart)
        timeout = aiohttp.ClientTimeout(total=self.context.timeout_seconds)

        logger.debug("CueMap %s %s", call.method, url)
        try:
            with ExitStack() as stack:
                if call.upload is not None:
                    filename, fh = stack.enter_context(open_upload(call.upload))
                    form = aiohttp.FormData()
                    form.add_field(
                        call.upload.field_name,
                        fh,
                        filename=filename,
                        content_type="application/octet-stream",
                    )
                    data: Any = form
                else:
                    data = encode_body(call.body)

                if self._session is not None:
                    status, content = await self._send(self._session, call, url, headers, data, timeout)
                else:
                    async with aiohttp.ClientSession() as session:
                        status, content = await self._send(session, call, url, headers, data, timeout)
        except CueMapError:
            raise
        except asyncio.TimeoutError as e:
            logger.error("CueMap request to %s timed out after %sms", url, self.context.timeout_ms)
            raise CueMapError(
                ErrorKind.TIMEOUT,
                f"Request timed out after {self.context.timeout_ms}ms",
                cause=e,
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            logger.error("CueMap request to %s failed: %s", url, e)
            raise CueMapError(ErrorKind.TRANSPORT, f"Request failed: {e}", cause=e) from e

        check_status(url, status, content)
        return decode_json(url, content)

    @staticmethod
    async def _send(
        session: aiohttp.ClientSession,
        call: ApiCall,
        url: str,
        headers: Dict[str, str],
        data: Any,
        timeout: aiohttp.ClientTimeout,
    ) -> Tuple[int, bytes]:
        async with session.request(
            call.method,
            url,
            data=data,
            params=call.params,
            headers=headers,
            timeout=timeout,
        ) as resp:
            content = await resp.read()
            return resp.status, content


class SyncInvoker:
    """Blocking counterpart of `AsyncInvoker` built on requests.

    requests only bounds connecting and each individual socket read, so a
    server that trickles its body could hold a call open indefinitely. The
    exchange therefore runs on a worker thread and the caller waits on it for
    at most `timeout_ms`; past that the call fails with TIMEOUT and the worker
    drops the response at its next chunk.
    """

    chunk_size = 8192

    def __init__(
        self,
        context: ClientContext,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.context = context
        self._session = session

    def invoke(self, call: ApiCall) -> Any:
        url = f"{self.context.url}{call.path}"
        headers = build_headers(self.context, multipart=call.is_multipart)
        timeout = self.context.timeout_seconds
        cancelled = threading.Event()
        outcome: "futures.Future[Tuple[int, bytes]]" = futures.Future()

        def run() -> None:
            try:
                outcome.set_result(self._exchange(call, url, headers, timeout, cancelled))
            except Exception as e:
                outcome.set_exception(e)

        logger.debug("CueMap %s %s", call.method, url)
        threading.Thread(target=run, name="cuemap-request", daemon=True).start()
        try:
            status, content = outcome.result(timeout=timeout)
        except futures.TimeoutError as e:
            # Checked first: on 3.11+ this is the builtin TimeoutError, an OSError.
            cancelled.set()
            logger.error("CueMap request to %s timed out after %sms", url, self.context.timeout_ms)
            raise CueMapError(
                ErrorKind.TIMEOUT,
                f"Request timed out after {self.context.timeout_ms}ms",
                cause=e,
            ) from e
        except CueMapError:
            raise
        except requests.Timeout as e:
            logger.error("CueMap request to %s timed out after %sms", url, self.context.timeout_ms)
            raise CueMapError(
                ErrorKind.TIMEOUT,
                f"Request timed out after {self.context.timeout_ms}ms",
                cause=e,
            ) from e
        except (requests.RequestException, OSError) as e:
            logger.error("CueMap request to %s failed: %s", url, e)
            raise CueMapError(ErrorKind.TRANSPORT, f"Request failed: {e}", cause=e) from e

        check_status(url, status, content)
        return decode_json(url, content)

    def _exchange(
        self,
        call: ApiCall,
        url: str,
        headers: Dict[str, str],
        timeout: float,
        cancelled: threading.Event,
    ) -> Tuple[int, bytes]:
        http = self._session if self._session is not None else requests
        with ExitStack() as stack:
            files = None
            data = None
            if call.upload is not None:
                filename, fh = stack.enter_context(open_upload(call.upload))
                files = {call.upload.field_name: (filename, fh, "application/octet-stream")}
            else:
                data = encode_body(call.body)

            resp = http.request(
                call.method,
                url,
                data=data,
                files=files,
                params=call.params,
                headers=headers,
                timeout=timeout,
                stream=True,
            )
            try:
                chunks = []
                for chunk in resp.iter_content(chunk_size=self.chunk_size):
                    if cancelled.is_set():
                        break
                    chunks.append(chunk)
                return resp.status_code, b"".join(chunks)
            finally:
                resp.close()
