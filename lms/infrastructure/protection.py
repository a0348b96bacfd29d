"""
Request guard for mutating actions.

Combines a fixed-window rate limit keyed by a caller fingerprint (the user id)
with a User-Agent heuristic for automated clients. The guard never raises on a
denial; it returns a `Decision` the caller turns into an error result.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

import structlog
from fastapi import Request
from limits import RateLimitItem, parse
from limits.storage import Storage, storage_from_string
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import Settings, settings
from .metrics import guard_denials_total

logger = structlog.get_logger()

# Лимиты на вход/регистрацию по IP (slowapi), ставится в app.state.limiter
auth_limiter = Limiter(key_func=get_remote_address, storage_uri=settings.RATE_LIMIT_STORAGE_URI)

_BOT_AGENT = re.compile(
    r"bot|crawl|spider|slurp|curl|wget|python-requests|scrapy|headless|phantomjs",
    re.IGNORECASE,
)


class DenialReason(str, Enum):
    RATE_LIMIT = "RATE_LIMIT"
    BOT = "BOT"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenialReason | None = None

    def is_denied(self) -> bool:
        return not self.allowed

    def is_rate_limit(self) -> bool:
        return self.reason is DenialReason.RATE_LIMIT


class RequestGuard:
    def __init__(self, storage: Storage, limit: RateLimitItem, detect_bots: bool = True):
        self._limiter = FixedWindowRateLimiter(storage)
        self._limit = limit
        self._detect_bots = detect_bots

    @classmethod
    def from_settings(cls, settings: Settings) -> "RequestGuard":
        return cls(
            storage=storage_from_string(settings.RATE_LIMIT_STORAGE_URI),
            limit=parse(settings.ACTION_RATE_LIMIT),
            detect_bots=settings.BOT_DETECTION_ENABLED,
        )

    def protect(self, request: Request, fingerprint: str) -> Decision:
        if self._detect_bots and self._looks_automated(request.headers.get("user-agent", "")):
            return self._deny(DenialReason.BOT, fingerprint, request)
        if not self._limiter.hit(self._limit, "actions", fingerprint):
            return self._deny(DenialReason.RATE_LIMIT, fingerprint, request)
        return Decision(allowed=True)

    @staticmethod
    def _looks_automated(user_agent: str) -> bool:
        return not user_agent.strip() or bool(_BOT_AGENT.search(user_agent))

    @staticmethod
    def _deny(reason: DenialReason, fingerprint: str, request: Request) -> Decision:
        guard_denials_total.labels(reason=reason.value).inc()
        logger.info("guard_denied", reason=reason.value, fingerprint=fingerprint, path=request.url.path)
        return Decision(allowed=False, reason=reason)
