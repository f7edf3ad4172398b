"""Security layer — Per-caller sliding window rate limiter.

In-memory limiter keyed by ``(caller_id, method)``.  Every recorded call is
also counted against a per-caller global key, so one call can be limited
both by its method's config and by the global config.

``check()`` and ``record()`` are separate on purpose: the Inspector checks
while evaluating a rule list and records only once the whole list has
passed, so rejected calls never count against the caller.

History older than the largest configured window is discarded by
``cleanup()``, which also runs opportunistically from ``record()`` once
``cleanup_interval`` seconds have passed since the last run.

Usage::

    limiter = RateLimiter(
        global_limit=RateLimitConfig(max_requests=100, window=TimeWindow.hours(1)),
        method_limits={"send_message": RateLimitConfig(max_requests=3)},
    )
    result = limiter.check(caller, "send_message", roles={"user"})
    if result.allowed:
        limiter.record(caller, "send_message")
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from callgate.exceptions import RateLimitExceededError
from callgate.logging import get_logger
from callgate.security.models import Caller

log = get_logger(__name__)

# Key under which every call of a caller is counted for the global limit.
GLOBAL_KEY = "*"

_DEFAULT_RETENTION = 86_400.0


class WindowUnit(str, Enum):
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"

    @property
    def seconds(self) -> float:
        return {
            WindowUnit.SECONDS: 1.0,
            WindowUnit.MINUTES: 60.0,
            WindowUnit.HOURS: 3600.0,
            WindowUnit.DAYS: 86_400.0,
        }[self]


class TimeWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: int = Field(default=1, ge=1)
    unit: WindowUnit = WindowUnit.MINUTES

    @classmethod
    def seconds(cls, amount: int) -> TimeWindow:
        return cls(amount=amount, unit=WindowUnit.SECONDS)

    @classmethod
    def minutes(cls, amount: int) -> TimeWindow:
        return cls(amount=amount, unit=WindowUnit.MINUTES)

    @classmethod
    def hours(cls, amount: int) -> TimeWindow:
        return cls(amount=amount, unit=WindowUnit.HOURS)

    @classmethod
    def days(cls, amount: int) -> TimeWindow:
        return cls(amount=amount, unit=WindowUnit.DAYS)

    @property
    def duration(self) -> float:
        return self.amount * self.unit.seconds

    def __str__(self) -> str:
        return f"{self.amount} {self.unit.value}"


class RateLimitConfig(BaseModel):
    """Threshold for one tracker (a method, or the global limit)."""

    model_config = ConfigDict(frozen=True)

    max_requests: int = Field(ge=1)
    window: TimeWindow = Field(default_factory=TimeWindow)
    exempt_roles: frozenset[str] = Field(default_factory=frozenset)
    exempt_callers: frozenset[str] = Field(default_factory=frozenset)

    def is_exempt(self, caller_id: str, roles: Iterable[str]) -> bool:
        if caller_id in self.exempt_callers:
            return True
        return not self.exempt_roles.isdisjoint(roles)


@dataclass(frozen=True)
class CallEntry:
    timestamp: float
    count: int = 1


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int | None = None
    window: str | None = None
    retry_after: float = 0.0
    scope: str | None = None

    @classmethod
    def allow(cls) -> RateLimitResult:
        return cls(True)

    @classmethod
    def deny(cls, limit: int, window: TimeWindow, retry_after: float, scope: str) -> RateLimitResult:
        return cls(False, limit, str(window), retry_after, scope)


def _caller_id(caller: Caller | str) -> str:
    return caller.id if isinstance(caller, Caller) else caller


class RateLimiter:
    """Sliding-window rate limiter for method calls."""

    def __init__(
        self,
        global_limit: RateLimitConfig | None = None,
        method_limits: dict[str, RateLimitConfig] | None = None,
        *,
        cleanup_interval: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._global_limit = global_limit
        self._method_limits: dict[str, RateLimitConfig] = dict(method_limits or {})
        self._cleanup_interval = cleanup_interval
        self._clock = clock
        self._entries: dict[tuple[str, str], list[CallEntry]] = {}
        # Longest ad-hoc override window seen by check(); cleanup must keep it.
        self._override_window = 0.0
        self._last_cleanup = clock()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def global_limit(self) -> RateLimitConfig | None:
        return self._global_limit

    def set_global_limit(self, config: RateLimitConfig | None) -> None:
        with self._lock:
            self._global_limit = config

    def set_method_limit(self, method: str, config: RateLimitConfig) -> None:
        with self._lock:
            self._method_limits[method] = config

    def remove_method_limit(self, method: str) -> bool:
        with self._lock:
            return self._method_limits.pop(method, None) is not None

    def method_limit(self, method: str) -> RateLimitConfig | None:
        return self._method_limits.get(method)

    @property
    def max_window(self) -> float:
        """Largest window across all trackers; history beyond it is useless."""
        configs = list(self._method_limits.values())
        if self._global_limit is not None:
            configs.append(self._global_limit)
        widest = max((c.window.duration for c in configs), default=_DEFAULT_RETENTION)
        return max(widest, self._override_window)

    # ------------------------------------------------------------------
    # Check / record
    # ------------------------------------------------------------------

    def check(
        self,
        caller: Caller | str,
        method: str,
        *,
        roles: Iterable[str] = (),
        override: RateLimitConfig | None = None,
    ) -> RateLimitResult:
        """Return whether one more call fits.  Does not record anything.

        The method-specific limit (or *override*) is checked before the
        global limit; the first denial wins.
        """
        caller_id = _caller_id(caller)
        role_set = frozenset(roles)
        now = self._clock()

        trackers = (
            ("method", method, override or self._method_limits.get(method)),
            ("global", GLOBAL_KEY, self._global_limit),
        )
        with self._lock:
            if override is not None:
                self._override_window = max(self._override_window, override.window.duration)
            for scope, key, config in trackers:
                if config is None or config.is_exempt(caller_id, role_set):
                    continue
                result = self._check_window(caller_id, key, config, scope, now)
                if not result.allowed:
                    log.info(
                        "rate_limit_denied",
                        caller=caller_id,
                        method=method,
                        scope=scope,
                        limit=result.limit,
                        window=result.window,
                        retry_after=round(result.retry_after, 3),
                    )
                    return result
        return RateLimitResult.allow()

    def check_or_raise(
        self,
        caller: Caller | str,
        method: str,
        *,
        roles: Iterable[str] = (),
        override: RateLimitConfig | None = None,
    ) -> None:
        """Check limits; raise :class:`RateLimitExceededError` if exceeded."""
        result = self.check(caller, method, roles=roles, override=override)
        if not result.allowed:
            raise RateLimitExceededError(
                caller_id=_caller_id(caller),
                method=method,
                limit=result.limit or 0,
                window=result.window or "",
                retry_after=result.retry_after,
            )

    def acquire(
        self,
        caller: Caller | str,
        method: str,
        *,
        roles: Iterable[str] = (),
        override: RateLimitConfig | None = None,
    ) -> RateLimitResult:
        """Check and, when allowed, record in one step."""
        with self._lock:
            result = self.check(caller, method, roles=roles, override=override)
            if result.allowed:
                self.record(caller, method)
        return result

    def record(self, caller: Caller | str, method: str) -> None:
        """Record one admitted call against the method and global trackers."""
        caller_id = _caller_id(caller)
        now = self._clock()
        with self._lock:
            self._append((caller_id, method), now)
            self._append((caller_id, GLOBAL_KEY), now)
            if now - self._last_cleanup > self._cleanup_interval:
                self.cleanup()

    def count(self, caller: Caller | str, method: str, window: TimeWindow) -> int:
        """Number of recorded calls for *method* within *window* of now."""
        start = self._clock() - window.duration
        with self._lock:
            entries = self._entries.get((_caller_id(caller), method), [])
            return sum(e.count for e in entries if e.timestamp >= start)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def cleanup(self) -> int:
        """Discard history older than the largest window.  Returns entries removed."""
        with self._lock:
            now = self._clock()
            cutoff = now - self.max_window
            removed = 0
            for key in list(self._entries):
                kept = [e for e in self._entries[key] if e.timestamp >= cutoff]
                removed += len(self._entries[key]) - len(kept)
                if kept:
                    self._entries[key] = kept
                else:
                    del self._entries[key]
            self._last_cleanup = now
        if removed:
            log.debug("rate_limiter_cleanup", removed=removed, trackers=len(self._entries))
        return removed

    def reset(self, caller: Caller | str | None = None) -> None:
        """Clear history for one caller, or for everyone."""
        with self._lock:
            if caller is None:
                self._entries.clear()
                return
            caller_id = _caller_id(caller)
            for key in [k for k in self._entries if k[0] == caller_id]:
                del self._entries[key]

    def tracked_keys(self) -> list[tuple[str, str]]:
        with self._lock:
            return list(self._entries)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append(self, key: tuple[str, str], now: float) -> None:
        entries = self._entries.setdefault(key, [])
        if entries and entries[-1].timestamp == now:
            entries[-1] = replace(entries[-1], count=entries[-1].count + 1)
        else:
            entries.append(CallEntry(now))

    def _check_window(
        self,
        caller_id: str,
        key: str,
        config: RateLimitConfig,
        scope: str,
        now: float,
    ) -> RateLimitResult:
        duration = config.window.duration
        start = now - duration
        in_window = [e for e in self._entries.get((caller_id, key), []) if e.timestamp >= start]
        total = sum(e.count for e in in_window)
        if total < config.max_requests:
            return RateLimitResult.allow()
        oldest = min(e.timestamp for e in in_window)
        retry_after = max(oldest + duration - now, 0.0)
        return RateLimitResult.deny(config.max_requests, config.window, retry_after, scope)
