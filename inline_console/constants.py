"""Named constants — eliminates magic strings across the codebase."""

from __future__ import annotations

LOG_RECEIVER = "console"
LOG_METHODS: frozenset[str] = frozenset(
    {"log", "debug", "info", "warn", "error", "trace"}
)

LOG_CALL_PATTERN = r"\bconsole\.(?:log|debug|info|warn|error|trace)\s*\("

FETCH_FUNCTION = "fetch"
PROMISE_NAME = "Promise"
BODY_ACCESSORS: frozenset[str] = frozenset({"json", "text"})
PROMISE_CHAIN_METHODS: frozenset[str] = frozenset({"then", "catch", "finally"})

COMPLEX_EXPRESSION = "[complex expression]"
COMPLEX_PROPERTY = "[complex property]"
COMPLEX_OBJECT = "[complex object]"
COMPUTED_PROPERTY = "[computed property]"
ASYNC_FUNCTION = "[async function]"
AWAITED_TEMPLATE = "[awaited {value}]"

PROMISE_UNKNOWN = "Promise<unknown>"
PROMISE_RESOLVED_TEMPLATE = "Promise<resolved: {value}>"
PROMISE_REJECTED_TEMPLATE = "Promise<rejected: {value}>"
RESPONSE_PROMISE_TEMPLATE = "Promise<Response: {url}>"
RESPONSE_PENDING_TEMPLATE = "Response: {url} (fetching…)"
BODY_PENDING_TEMPLATE = "fetching {url}…"
FETCH_FAILED_TEMPLATE = "[fetch failed: {error}]"
UNKNOWN_URL = "unknown"

FUNC_TAG_TEMPLATE = "[Function: {name}]"
CLASS_TAG_TEMPLATE = "[class {name}]"

STATUS_INSIDE_FUNCTION = "inside function"
STATUS_INSIDE_CLASS = "inside class method"
STATUS_INSIDE_CALLBACK = "inside callback"
STATUS_NOT_EXECUTED = "not executed"
STATUS_EXECUTION_FAILED = "execution failed"

ELLIPSIS = "..."

ALLOWED_URL_SCHEMES: frozenset[str] = frozenset({"http", "https"})
USER_AGENT = "inline-console/0.1.0"
FETCH_CHUNK_SIZE = 16384

DEFAULT_TIMEOUT_MS = 3000
DEFAULT_MAX_LENGTH = 60
DEFAULT_DEBOUNCE_MS = 500
DEFAULT_MAX_RESPONSE_BYTES = 1024 * 1024
DEFAULT_CACHE_CAPACITY = 50
DEFAULT_CACHE_TTL_SECONDS = 300.0

DEFAULT_LANGUAGE = "javascript"
SUPPORTED_LANGUAGES: tuple[str, ...] = ("javascript", "typescript")
