"""Retrieve hosted assertions from badge issuers.

The issuer is an arbitrary host named by an uploaded file, so every fetch
is bounded:

  - time:      one deadline covers connect, every redirect hop and the
               whole body, however slowly the issuer sends it
  - size:      the body is streamed and abandoned past FETCH_MAX_BYTES
  - redirects: at most FETCH_MAX_REDIRECTS hops

A failed fetch is terminal for the upload.  Nothing here retries; the
user can simply upload again.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any
from urllib.parse import urlparse

import httpx

from backpack.core.config import SETTINGS, Settings
from backpack.core.errors import InvalidAssertionFormat, UnreachableIssuer
from backpack.core.metrics import ASSERTION_FETCH_DURATION
from backpack.models.assertion import Assertion

logger = logging.getLogger(__name__)


class AssertionFetcher:
    def __init__(
        self,
        *,
        timeout: float = 5.0,
        max_bytes: int = 256 * 1024,
        max_redirects: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._max_redirects = max_redirects
        # Tests inject httpx.MockTransport here.
        self._transport = transport

    @staticmethod
    def from_settings(settings: Settings = SETTINGS) -> AssertionFetcher:
        return AssertionFetcher(
            timeout=settings.fetch_timeout_seconds,
            max_bytes=settings.fetch_max_bytes,
            max_redirects=settings.fetch_max_redirects,
        )

    async def fetch(self, url: str) -> Assertion:
        """GET *url* and parse the body into an Assertion.

        Raises UnreachableIssuer for transport failures and non-2xx
        responses, InvalidAssertionFormat for bodies that are not an
        assertion document.
        """
        if urlparse(url).scheme not in ("http", "https"):
            raise UnreachableIssuer(f"unsupported assertion URL scheme: {url!r}")

        start = time.monotonic()
        result = "error"
        try:
            raw = await self._get(url)
            result = "ok"
        finally:
            ASSERTION_FETCH_DURATION.labels(result=result).observe(
                time.monotonic() - start
            )

        return parse_assertion(raw, source=url)

    async def _get(self, url: str) -> bytes:
        try:
            async with asyncio.timeout(self._timeout):
                return await self._stream(url)
        except TimeoutError as e:
            raise UnreachableIssuer(f"timed out fetching {url}") from e

    async def _stream(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                max_redirects=self._max_redirects,
                transport=self._transport,
                headers={"Accept": "application/json"},
            ) as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise UnreachableIssuer(
                            f"issuer returned HTTP {response.status_code} for {url}"
                        )
                    return await self._read_bounded(response, url)
        except httpx.TooManyRedirects as e:
            raise UnreachableIssuer(f"too many redirects fetching {url}") from e
        except httpx.TimeoutException as e:
            raise UnreachableIssuer(f"timed out fetching {url}") from e
        except httpx.HTTPError as e:
            raise UnreachableIssuer(f"could not fetch {url}: {e!r}") from e

    async def _read_bounded(self, response: httpx.Response, url: str) -> bytes:
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self._max_bytes:
            raise InvalidAssertionFormat(
                f"assertion at {url} declares {declared} bytes (max {self._max_bytes})"
            )

        buf = bytearray()
        async for chunk in response.aiter_bytes():
            buf.extend(chunk)
            if len(buf) > self._max_bytes:
                raise InvalidAssertionFormat(
                    f"assertion at {url} exceeds {self._max_bytes} bytes"
                )
        return bytes(buf)


def parse_assertion(raw: bytes, *, source: str = "") -> Assertion:
    try:
        document: Any = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidAssertionFormat(f"assertion at {source} is not JSON") from e

    if not isinstance(document, dict):
        raise InvalidAssertionFormat(f"assertion at {source} is not a JSON object")

    missing = [key for key in ("recipient", "badge") if key not in document]
    if missing:
        raise InvalidAssertionFormat(
            f"assertion at {source} is missing {', '.join(missing)}"
        )

    logger.debug("Parsed assertion from %s", source)
    return Assertion.from_body(document)
