"""Fetch resolution — HTTP transport, response cache and async resolver."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

from . import constants
from .values import FetchKind, FetchState

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Base class for every failure while resolving a fetched body."""


class UnsupportedSchemeError(FetchError):
    pass


class ResponseTooLargeError(FetchError):
    pass


class FetchTimeoutError(FetchError):
    pass


class TransportError(FetchError):
    """Network, HTTP status or body decoding failure."""


@dataclass(frozen=True)
class HttpResponse:
    url: str
    status: int
    content_type: str
    text: str

    @property
    def is_json(self) -> bool:
        media_type = self.content_type.split(";", 1)[0].strip().lower()
        return media_type == "application/json" or media_type.endswith("+json")


@dataclass
class FetchTask:
    """Bookkeeping for one pending slot awaiting a response."""

    task_id: str
    url: str
    kind: FetchKind
    state: FetchState = FetchState.PENDING
    result: str = ""
    created_at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class FetchOutcome:
    """Settled result of fetching one URL, shared by every slot that wants it."""

    url: str
    response: HttpResponse | None = None
    error: str = ""
    from_cache: bool = False

    @property
    def succeeded(self) -> bool:
        return self.response is not None

    def render(self, kind: FetchKind) -> tuple[FetchState, str]:
        if self.response is None:
            return FetchState.FAILED, self.error
        try:
            return FetchState.RESOLVED, render_body(self.response, kind)
        except FetchError as e:
            return FetchState.FAILED, str(e)


def render_body(response: HttpResponse, kind: FetchKind) -> str:
    """Text an awaited ``.json()`` / ``.text()`` would produce for *response*."""
    if not response.is_json:
        return response.text
    try:
        parsed = json.loads(response.text)
    except json.JSONDecodeError as e:
        raise TransportError(f"invalid JSON body: {e.msg}") from e
    if kind == FetchKind.JSON:
        return json.dumps(parsed, indent=2, ensure_ascii=False)
    return response.text


# ── Transport ────────────────────────────────────────────────────


class HttpTransport(ABC):
    """Abstract blocking HTTP GET client."""

    @abstractmethod
    def get(self, url: str, max_bytes: int, timeout: float) -> HttpResponse:
        """Fetch *url*; raise a FetchError subclass on any failure."""
        ...


def check_scheme(url: str) -> None:
    scheme = urllib.parse.urlsplit(url).scheme.lower()
    if scheme not in constants.ALLOWED_URL_SCHEMES:
        raise UnsupportedSchemeError(f"unsupported URL scheme: {scheme or url!r}")


class UrllibTransport(HttpTransport):
    """GET via urllib.request: no cookies, no credentials, bounded body size."""

    def get(self, url: str, max_bytes: int, timeout: float) -> HttpResponse:
        check_scheme(url)
        request = urllib.request.Request(
            url, headers={"User-Agent": constants.USER_AGENT}, method="GET"
        )
        logger.debug("GET %s (max %d bytes, timeout %.1fs)", url, max_bytes, timeout)
        deadline = time.monotonic() + timeout
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                declared = response.headers.get("Content-Length")
                if declared and declared.isdigit() and int(declared) > max_bytes:
                    raise ResponseTooLargeError(
                        f"response is {declared} bytes, limit is {max_bytes}"
                    )
                body = self._read_bounded(response, max_bytes, deadline)
                content_type = response.headers.get("Content-Type", "")
                charset = response.headers.get_content_charset() or "utf-8"
                return HttpResponse(
                    url=url,
                    status=response.status,
                    content_type=content_type,
                    text=body.decode(charset, errors="replace"),
                )
        except urllib.error.HTTPError as e:
            raise TransportError(f"HTTP {e.code} {e.reason}") from e
        except urllib.error.URLError as e:
            raise TransportError(str(e.reason)) from e
        except TimeoutError as e:
            raise FetchTimeoutError(f"timed out after {timeout:.1f}s") from e
        except OSError as e:
            raise TransportError(str(e)) from e

    @staticmethod
    def _read_bounded(
        response, max_bytes: int, deadline: float | None = None
    ) -> bytes:
        """Read the body in chunks, bounded by *max_bytes* and *deadline*."""
        chunks: list[bytes] = []
        total = 0
        while True:
            if deadline is not None and time.monotonic() > deadline:
                raise FetchTimeoutError(
                    f"body incomplete at deadline ({total} bytes read)"
                )
            chunk = response.read(constants.FETCH_CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > max_bytes:
                raise ResponseTooLargeError(f"response exceeds {max_bytes} bytes")
            chunks.append(chunk)
        return b"".join(chunks)


# ── Cache ────────────────────────────────────────────────────────


class ResponseCache:
    """Bounded FIFO cache of successful responses with a time-to-live."""

    def __init__(
        self,
        capacity: int = constants.DEFAULT_CACHE_CAPACITY,
        ttl: float = constants.DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._capacity = capacity
        self._ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, HttpResponse]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: str) -> bool:
        return self.get(url) is not None

    def get(self, url: str) -> HttpResponse | None:
        with self._lock:
            entry = self._entries.get(url)
            if entry is None:
                return None
            stored_at, response = entry
            if self._clock() - stored_at > self._ttl:
                del self._entries[url]
                logger.debug("Cache entry for %s expired", url)
                return None
            return response

    def put(self, url: str, response: HttpResponse) -> None:
        if self._capacity <= 0:
            return
        with self._lock:
            self._entries.pop(url, None)
            while len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache full, evicted %s", evicted)
            self._entries[url] = (self._clock(), response)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# ── Resolver ─────────────────────────────────────────────────────


class FetchResolver:
    """Runs the blocking transport off the event loop, bounded and cached."""

    def __init__(
        self,
        transport: HttpTransport,
        cache: ResponseCache,
        timeout: float = constants.DEFAULT_TIMEOUT_MS / 1000,
        max_bytes: int = constants.DEFAULT_MAX_RESPONSE_BYTES,
    ):
        self._transport = transport
        self._cache = cache
        self._timeout = timeout
        self._max_bytes = max_bytes
        self.requests = 0
        self.cache_hits = 0

    async def fetch(self, url: str) -> FetchOutcome:
        cached = self._cache.get(url)
        if cached is not None:
            self.cache_hits += 1
            logger.debug("Cache hit for %s", url)
            return FetchOutcome(url=url, response=cached, from_cache=True)

        try:
            check_scheme(url)
            self.requests += 1
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self._transport.get, url, self._max_bytes, self._timeout
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            error = FetchTimeoutError(f"timed out after {self._timeout:.1f}s")
            logger.warning("Fetch %s failed: %s", url, error)
            return FetchOutcome(url=url, error=str(error))
        except FetchError as e:
            logger.warning("Fetch %s failed: %s", url, e)
            return FetchOutcome(url=url, error=str(e))
        except Exception as e:
            logger.warning("Fetch %s raised unexpectedly", url, exc_info=True)
            return FetchOutcome(url=url, error=str(e) or type(e).__name__)

        self._cache.put(url, response)
        logger.info("Fetched %s (%d, %d chars)", url, response.status, len(response.text))
        return FetchOutcome(url=url, response=response)
