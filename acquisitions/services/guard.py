"""
In-process abuse guard: shield rules, bot detection, sliding window.

Rules run in that order and the first denial wins.  Rate-limit counters
live in a ``limits`` moving-window store keyed by tier and client
address, so they are per process.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import unquote, unquote_plus

from limits import RateLimitItemPerSecond
from limits.aio.storage import MemoryStorage, Storage
from limits.aio.strategies import MovingWindowRateLimiter

from acquisitions.services.admission import (
    AdmissionDecision,
    AdmissionReason,
    GuardRequest,
    RateTier,
)

logger = logging.getLogger(__name__)

SHIELD_PATTERNS: tuple[re.Pattern[str], ...] = (
    # SQL injection
    re.compile(r"'\s*(?:or|and)\s+'?\w+'?\s*=", re.IGNORECASE),
    re.compile(r"\bunion\s+(?:all\s+)?select\b", re.IGNORECASE),
    re.compile(r";\s*(?:drop|truncate|alter|delete)\s+\w+", re.IGNORECASE),
    re.compile(r"'\s*(?:--|#|/\*)"),
    # XSS
    re.compile(r"<\s*script\b", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"\bon(?:error|load|mouseover)\s*=", re.IGNORECASE),
    # Path traversal
    re.compile(r"(?:^|[/\\])\.\.(?:[/\\]|$)"),
)

# Search engines and link previews are welcome.
ALLOWED_BOTS = re.compile(
    r"googlebot|bingbot|duckduckbot|yandexbot|baiduspider|applebot"
    r"|slackbot|facebookexternalhit|twitterbot|linkedinbot|discordbot|whatsapp",
    re.IGNORECASE,
)
BOT_SIGNATURES = re.compile(
    r"curl/|wget/|python-requests|python-urllib|python-httpx|aiohttp|go-http-client"
    r"|scrapy|headlesschrome|phantomjs|selenium|puppeteer|playwright"
    # "bot" only as a versioned product token or a word of its own
    r"|bot/|\bbot\b|crawler|spider",
    re.IGNORECASE,
)


def is_shielded(request: GuardRequest) -> bool:
    target = unquote(request.path)
    if request.query:
        target = f"{target}?{unquote_plus(request.query)}"
    return any(pattern.search(target) for pattern in SHIELD_PATTERNS)


def is_bot(user_agent: str | None) -> bool:
    if not user_agent or not user_agent.strip():
        return True
    if ALLOWED_BOTS.search(user_agent):
        return False
    return BOT_SIGNATURES.search(user_agent) is not None


class LocalAbuseGuard:
    def __init__(
        self,
        bot_detection: bool = True,
        storage: Storage | None = None,
    ) -> None:
        self._bot_detection = bot_detection
        self._limiter = MovingWindowRateLimiter(storage or MemoryStorage())

    async def protect(self, request: GuardRequest, tier: RateTier) -> AdmissionDecision:
        if is_shielded(request):
            return AdmissionDecision.denied(AdmissionReason.SHIELD)

        if self._bot_detection and is_bot(request.user_agent):
            return AdmissionDecision.denied(AdmissionReason.BOT)

        item = RateLimitItemPerSecond(tier.limit, tier.window_seconds)
        if not await self._limiter.hit(item, tier.name, request.client):
            return AdmissionDecision.denied(AdmissionReason.RATE_LIMIT)

        logger.debug(
            "Admitted %s %s for %s (%s tier)",
            request.method,
            request.path,
            request.client,
            tier.name,
        )
        return AdmissionDecision.allowed()
