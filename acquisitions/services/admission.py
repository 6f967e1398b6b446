"""
Request admission — the gate every ``/api`` request passes first.

The caller's role picks a rate tier, the abuse guard decides, and this
module turns the decision into either "carry on" or an
``AdmissionBlocked`` error.  What happens when the guard itself breaks
is configurable (``ADMISSION_FAILURE_MODE``).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Protocol

from acquisitions.core.exceptions import AdmissionBlocked, AdmissionUnavailable
from acquisitions.schemas.token import Identity

logger = logging.getLogger(__name__)

GUEST = "guest"


class AdmissionReason(str, enum.Enum):
    NONE = "none"
    BOT = "bot"
    RATE_LIMIT = "rate_limit"
    SHIELD = "shield"


class AdmissionFailureMode(str, enum.Enum):
    ERROR = "error"  # answer 500
    OPEN = "open"  # let the request through
    CLOSED = "closed"  # block as if the shield fired


@dataclass(frozen=True)
class AdmissionDecision:
    allow: bool
    reason: AdmissionReason = AdmissionReason.NONE

    def __post_init__(self) -> None:
        if self.allow != (self.reason == AdmissionReason.NONE):
            raise ValueError("an allowed decision has no reason, a denial needs one")

    @classmethod
    def allowed(cls) -> "AdmissionDecision":
        return cls(allow=True)

    @classmethod
    def denied(cls, reason: AdmissionReason) -> "AdmissionDecision":
        return cls(allow=False, reason=reason)


@dataclass(frozen=True)
class RateTier:
    name: str
    limit: int
    window_seconds: int
    message: str


RATE_TIERS: MappingProxyType[str, RateTier] = MappingProxyType(
    {
        "admin": RateTier(
            "admin", 20, 60, "Admin request limit exceeded (20 per minute). Slow down please."
        ),
        "user": RateTier(
            "user", 10, 60, "User request limit exceeded (10 per minute). Slow down please."
        ),
        GUEST: RateTier(
            GUEST, 5, 60, "Guest request limit exceeded (5 per minute). Slow down please."
        ),
    }
)


@dataclass(frozen=True)
class GuardRequest:
    """What the abuse guard gets to see of an inbound request."""

    client: str
    method: str
    path: str
    query: str = ""
    user_agent: str | None = None


class AbuseGuard(Protocol):
    async def protect(self, request: GuardRequest, tier: RateTier) -> AdmissionDecision: ...


def role_for(identity: Identity | None) -> str:
    return GUEST if identity is None else identity.role.value


class RequestAdmission:
    def __init__(
        self,
        guard: AbuseGuard,
        failure_mode: AdmissionFailureMode | str = AdmissionFailureMode.ERROR,
    ) -> None:
        self._guard = guard
        self._failure_mode = AdmissionFailureMode(failure_mode)

    @staticmethod
    def tier_for(role: str) -> RateTier:
        return RATE_TIERS.get(role, RATE_TIERS[GUEST])

    async def evaluate(
        self, request: GuardRequest, identity: Identity | None
    ) -> AdmissionDecision:
        """Return the allowing decision, or raise ``AdmissionBlocked`` / ``AdmissionUnavailable``."""
        role = role_for(identity)
        tier = self.tier_for(role)

        try:
            decision = await self._guard.protect(request, tier)
        except Exception as exc:
            return self._on_guard_failure(exc, request, role)

        if decision.allow:
            return decision

        logger.warning(
            "Request denied (%s): ip=%s role=%s method=%s path=%s user_agent=%s",
            decision.reason.value,
            request.client,
            role,
            request.method,
            request.path,
            request.user_agent,
        )
        if decision.reason == AdmissionReason.RATE_LIMIT:
            raise AdmissionBlocked(decision.reason.value, tier.message)
        raise AdmissionBlocked(decision.reason.value)

    def _on_guard_failure(
        self, exc: Exception, request: GuardRequest, role: str
    ) -> AdmissionDecision:
        logger.error(
            "Abuse guard failed (mode=%s): ip=%s role=%s path=%s",
            self._failure_mode.value,
            request.client,
            role,
            request.path,
            exc_info=exc,
        )
        if self._failure_mode == AdmissionFailureMode.OPEN:
            return AdmissionDecision.allowed()
        if self._failure_mode == AdmissionFailureMode.CLOSED:
            raise AdmissionBlocked(AdmissionReason.SHIELD.value) from exc
        raise AdmissionUnavailable() from exc
