"""
Python client for the Canvas++ API.

Mirrors how the dashboard fetches data: API failures are normalised into an
AppError with a code the UI can act on, retries back off exponentially, and
responses are cached in memory and snapshotted to disk so a dashboard can
still show the last known data while offline.
"""

import json
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx
from loguru import logger

logger = logger.bind(module="client")

STALE_TIME = 30  # seconds before a cached response is refetched
CACHE_TIME = 5 * 60  # seconds an unused response stays in memory
PERSIST_TIME = 6 * 60 * 60  # seconds a disk snapshot stays valid
MAX_RETRY_DELAY = 30.0
DEFAULT_RETRY_AFTER = 30


class AppError(Exception):
    """Normalised API failure."""

    def __init__(
        self,
        code: str,
        message: str,
        hint: Optional[str] = None,
        status: Optional[int] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.hint = hint
        self.status = status
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "hint": self.hint,
            "status": self.status,
            "retryAfter": self.retry_after,
        }

    def __repr__(self) -> str:
        return f"AppError(code={self.code!r}, message={self.message!r}, status={self.status!r})"


def _not_configured() -> AppError:
    return AppError(
        code="NOT_CONFIGURED",
        message="Canvas API not configured",
        hint="Please configure your Canvas API URL and token.",
        status=500,
    )


def _mentions_not_configured(value: Any) -> bool:
    return isinstance(value, str) and "not configured" in value


def parse_api_error(error: Any, status: Optional[int] = None) -> AppError:
    """
    Turn a transport failure or an error body into an AppError.

    Args:
        error: httpx transport exception, decoded JSON error body, or a plain string
        status: HTTP status of the response, when there was one
    """
    if isinstance(error, AppError):
        return error

    if isinstance(error, httpx.TransportError):
        return AppError(
            code="NETWORK",
            message="Unable to connect to server",
            hint="Check your internet connection and try again.",
        )

    if isinstance(error, dict):
        if error.get("code") == "RATE_LIMIT" or status == 429:
            retry_after = error.get("retryAfter")
            if isinstance(retry_after, bool) or not isinstance(retry_after, (int, float)):
                retry_after = DEFAULT_RETRY_AFTER
            return AppError(
                code="RATE_LIMIT",
                message=error.get("message") or "Rate limited by Canvas",
                hint="Canvas is temporarily limiting requests. Please wait.",
                status=429,
                retry_after=int(retry_after),
            )

        if status in (401, 403) or error.get("code") == "AUTH":
            return AppError(
                code="AUTH",
                message="Authentication failed",
                hint="Your Canvas token may be invalid or expired. Please update it in settings.",
                status=status or 401,
            )

        if status == 500 and (
            _mentions_not_configured(error.get("error"))
            or _mentions_not_configured(error.get("message"))
        ):
            return _not_configured()

        detail = error.get("error") or error.get("message")
        if detail:
            return AppError(
                code="CANVAS_ERROR",
                message=str(detail),
                hint="There was an issue communicating with Canvas.",
                status=status,
            )

    if isinstance(error, str):
        if _mentions_not_configured(error):
            return _not_configured()
        return AppError(code="UNKNOWN", message=error, status=status)

    return AppError(
        code="UNKNOWN",
        message=str(error) if isinstance(error, Exception) else "An unexpected error occurred",
        hint="Please try again or refresh the page.",
        status=status,
    )


def is_retryable_error(error: AppError) -> bool:
    return error.code in ("NETWORK", "RATE_LIMIT")


def is_setup_error(error: AppError) -> bool:
    """Errors the user fixes in settings rather than by waiting."""
    return error.code in ("NOT_CONFIGURED", "AUTH")


def should_retry(failure_count: int, error: AppError) -> bool:
    """
    failure_count is the number of retries already made for this request.
    Auth and configuration errors never retry; network errors retry 3 times; the rest once.
    """
    if error.code in ("AUTH", "NOT_CONFIGURED"):
        return False
    if error.code == "NETWORK":
        return failure_count < 3
    return failure_count < 1


def retry_delay(attempt: int) -> float:
    return min(1.0 * 2 ** attempt, MAX_RETRY_DELAY)


@dataclass
class CacheEntry:
    data: Any
    updated_at: float
    accessed_at: float


class ResponseCache:
    """
    Response cache keyed by request.

    Entries are fresh for `stale_time` seconds and dropped once unused for
    `cache_time` seconds. When `path` is set, a snapshot is written after every
    update and restored on construction if it is younger than `persist_time`.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        stale_time: float = STALE_TIME,
        cache_time: float = CACHE_TIME,
        persist_time: float = PERSIST_TIME,
    ) -> None:
        self.path = path
        self._clock = clock
        self.stale_time = stale_time
        self.cache_time = cache_time
        self.persist_time = persist_time
        self._entries: Dict[str, CacheEntry] = {}
        self.restored = self.restore() if path else False

    def _collect(self) -> None:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.accessed_at > self.cache_time]
        for key in expired:
            del self._entries[key]

    def get(self, key: str) -> Optional[CacheEntry]:
        self._collect()
        entry = self._entries.get(key)
        if entry is not None:
            entry.accessed_at = self._clock()
        return entry

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.updated_at < self.stale_time

    def set(self, key: str, data: Any) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(data=data, updated_at=now, accessed_at=now)
        if self.path:
            self.persist()

    def clear(self) -> None:
        self._entries.clear()
        if self.path and os.path.exists(self.path):
            os.remove(self.path)

    def __len__(self) -> int:
        return len(self._entries)

    def persist(self) -> None:
        snapshot = {
            "timestamp": self._clock(),
            "data": {
                key: {"data": entry.data, "dataUpdatedAt": entry.updated_at}
                for key, entry in self._entries.items()
            },
        }
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(snapshot, f)
        except (OSError, TypeError) as e:
            logger.warning(f"Failed to persist response cache: {e}")

    def restore(self) -> bool:
        """Load the snapshot; an expired or unreadable snapshot is discarded."""
        if not self.path or not os.path.exists(self.path):
            return False
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                snapshot = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to restore response cache: {e}")
            return False

        now = self._clock()
        if now - snapshot.get("timestamp", 0) > self.persist_time:
            os.remove(self.path)
            return False

        for key, value in snapshot.get("data", {}).items():
            try:
                self._entries[key] = CacheEntry(
                    data=value["data"], updated_at=value["dataUpdatedAt"], accessed_at=now
                )
            except (KeyError, TypeError):
                continue
        logger.info(f"Restored {len(self._entries)} cached responses")
        return True

    def age(self) -> Optional[float]:
        """Seconds since the snapshot on disk was written, or None without one."""
        if not self.path or not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return self._clock() - json.load(f)["timestamp"]
        except (OSError, json.JSONDecodeError, KeyError):
            return None


def cache_key(path: str, params: Optional[Dict[str, Any]] = None) -> str:
    clean = {k: v for k, v in (params or {}).items() if v is not None}
    return json.dumps([path, clean], sort_keys=True, default=str)


class DashboardClient:
    """Synchronous client for the dashboard endpoints."""

    def __init__(
        self,
        base_url: str,
        cache: Optional[ResponseCache] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 30.0,
    ) -> None:
        self.cache = cache if cache is not None else ResponseCache()
        self._sleep = sleep
        self._http = httpx.Client(base_url=base_url.rstrip("/"), transport=transport, timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "DashboardClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _send(self, method: str, path: str, params=None, json_body=None) -> Any:
        try:
            response = self._http.request(method, path, params=params, json=json_body)
        except httpx.TransportError as e:
            raise parse_api_error(e)

        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = response.text
        raise parse_api_error(body, response.status_code)

    def _fetch(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET with caching and retries; serves the cached value when offline."""
        params = {k: v for k, v in (params or {}).items() if v is not None}
        key = cache_key(path, params)
        entry = self.cache.get(key)
        if entry is not None and self.cache.is_fresh(entry):
            return entry.data

        failures = 0
        while True:
            try:
                data = self._send("GET", path, params=params)
            except AppError as error:
                if should_retry(failures, error):
                    delay = retry_delay(failures)
                    logger.debug(f"Retrying {path} after {error.code} in {delay:.0f}s")
                    self._sleep(delay)
                    failures += 1
                    continue
                if error.code == "NETWORK" and entry is not None:
                    logger.warning(f"Network unavailable, serving cached {path}")
                    return entry.data
                raise
            self.cache.set(key, data)
            return data

    def health(self) -> Dict[str, Any]:
        return self._send("GET", "/api/health")

    def courses(self) -> List[Dict[str, Any]]:
        return self._fetch("/api/courses")

    def upcoming(self, days: int = 14) -> Dict[str, List[Dict[str, Any]]]:
        return self._fetch("/api/upcoming", {"days": days})

    def assignments(
        self,
        days: int = 14,
        start: Optional[str] = None,
        end: Optional[str] = None,
        status: Optional[str] = None,
        course_id: Optional[str] = None,
        q: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return self._fetch(
            "/api/assignments",
            {
                "days": days,
                "from": start,
                "to": end,
                "status": status,
                "courseId": course_id,
                "q": q,
                "sort": sort,
            },
        )

    def announcements(self, days: int = 14, course_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._fetch("/api/announcements", {"days": days, "courseId": course_id})

    def calendar(self, start: str, end: str) -> List[Dict[str, Any]]:
        return self._fetch("/api/calendar", {"from": start, "to": end})

    def ask_assistant(
        self, message: str, range_name: Optional[str] = None, course_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Questions are never cached or retried."""
        context = {"range": range_name, "courseId": course_id}
        return self._send(
            "POST",
            "/api/assistant",
            json_body={"message": message, "context": {k: v for k, v in context.items() if v}},
        )

    def refresh(self) -> Dict[str, Any]:
        """Drop server and local caches so the next calls refetch from Canvas."""
        result = self._send("POST", "/api/refresh")
        self.cache.clear()
        return result
