from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
import logging
import math
from typing import Any, Callable

from fastapi import HTTPException, status

from rspoassist.core.config import get_settings
from rspoassist.domain.catalog import TIER_FREE
from rspoassist.domain.models import User


logger = logging.getLogger(__name__)

WEEK_MS = 7 * 24 * 60 * 60 * 1000
TRIAL_MS = 30 * 24 * 60 * 60 * 1000
CHARS_PER_TOKEN = 4

REASON_BUDGET_DEPLETED = "budget_depleted"
REASON_TRIAL_EXPIRED = "trial_expired"
SYSTEM_PREFIX = "System:"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on read; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class UsageSnapshot:
    tier: str
    used: int
    limit: int
    # Raw remaining can go negative after the last charged answer overshoots.
    remaining: int
    remaining_display: int
    week_start: datetime
    next_reset_at: datetime
    time_to_recharge: str
    trial_expired: bool
    limit_reached: bool
    reason: str | None

    def as_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["week_start"] = self.week_start.isoformat()
        payload["next_reset_at"] = self.next_reset_at.isoformat()
        return payload


def token_cost(prompt: str, response: str, *, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    # Billing is a pure function of combined text length.
    return math.ceil((len(prompt) + len(response)) / max(chars_per_token, 1))


def should_reset(week_start: datetime, now: datetime, window: timedelta) -> bool:
    return now - _as_utc(week_start) > window


def is_trial_expired(tier: str, created_at: datetime, now: datetime, trial: timedelta) -> bool:
    return tier == TIER_FREE and now - _as_utc(created_at) > trial


def is_limit_reached(used: int, limit: int, trial_expired: bool = False) -> bool:
    return used >= limit or trial_expired


def time_to_recharge(week_start: datetime, now: datetime, window: timedelta) -> str:
    remaining = window - (now - _as_utc(week_start))
    if remaining.total_seconds() <= 0:
        return "0d 0h"
    total_hours = int(remaining.total_seconds() // 3600)
    return f"{total_hours // 24}d {total_hours % 24}h"


def is_system_message(text: str) -> bool:
    return text.startswith(SYSTEM_PREFIX)


def _payment_required_error(snapshot: UsageSnapshot) -> HTTPException:
    # 402 carries the usage snapshot so clients can open the payment flow.
    message = (
        "Your 1-month trial has concluded. Upgrade to continue."
        if snapshot.reason == REASON_TRIAL_EXPIRED
        else "Intelligence budget depleted. Upgrade or wait for the weekly reset."
    )
    return HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail={
            "code": "TOKEN_LIMIT_REACHED",
            "message": message,
            "action": "show_payment",
            "usage": snapshot.as_payload(),
        },
    )


class UsageService:
    def __init__(self, *, time_provider: Callable[[], datetime] | None = None) -> None:
        # Allow time injection for deterministic window and trial tests.
        self._time_provider = time_provider or _utc_now
        settings = get_settings()
        self._window = timedelta(days=settings.usage_window_days)
        self._trial = timedelta(days=settings.trial_days)
        self._chars_per_token = settings.chars_per_token

    def now(self) -> datetime:
        return self._time_provider()

    def apply_weekly_reset(self, user: User, now: datetime | None = None) -> bool:
        current = now or self.now()
        if not should_reset(user.week_start, current, self._window):
            return False
        logger.info(
            "usage_window_reset user_id=%s used=%s week_start=%s",
            user.id,
            user.tokens_used,
            _as_utc(user.week_start).isoformat(),
        )
        user.tokens_used = 0
        user.week_start = current
        return True

    def tick(self, user: User) -> UsageSnapshot:
        # Every usage read first rolls the window forward when it has elapsed.
        now = self.now()
        self.apply_weekly_reset(user, now)
        return self.snapshot(user, now)

    def snapshot(self, user: User, now: datetime | None = None) -> UsageSnapshot:
        current = now or self.now()
        week_start = _as_utc(user.week_start)
        used = int(user.tokens_used or 0)
        limit = int(user.token_limit)
        trial_expired = is_trial_expired(user.tier, user.created_at, current, self._trial)
        limit_reached = is_limit_reached(used, limit, trial_expired)
        reason = None
        if trial_expired:
            reason = REASON_TRIAL_EXPIRED
        elif limit_reached:
            reason = REASON_BUDGET_DEPLETED
        return UsageSnapshot(
            tier=user.tier,
            used=used,
            limit=limit,
            remaining=limit - used,
            remaining_display=max(limit - used, 0),
            week_start=week_start,
            next_reset_at=week_start + self._window,
            time_to_recharge=time_to_recharge(week_start, current, self._window),
            trial_expired=trial_expired,
            limit_reached=limit_reached,
            reason=reason,
        )

    def ensure_can_send(self, user: User, text: str) -> UsageSnapshot:
        snapshot = self.tick(user)
        if snapshot.limit_reached and not is_system_message(text):
            logger.info(
                "usage_blocked user_id=%s used=%s limit=%s reason=%s",
                user.id,
                snapshot.used,
                snapshot.limit,
                snapshot.reason,
            )
            raise _payment_required_error(snapshot)
        return snapshot

    def cost(self, prompt: str, response: str) -> int:
        return token_cost(prompt, response, chars_per_token=self._chars_per_token)

    def consume(self, user: User, cost: int) -> int:
        charged = max(int(cost), 0)
        user.tokens_used = int(user.tokens_used or 0) + charged
        return charged

    def charge(self, user: User, prompt: str, response: str) -> int:
        charged = self.consume(user, self.cost(prompt, response))
        logger.info(
            "usage_charged user_id=%s cost=%s used=%s limit=%s",
            user.id,
            charged,
            user.tokens_used,
            user.token_limit,
        )
        return charged


_usage_service: UsageService | None = None


def get_usage_service() -> UsageService:
    global _usage_service
    if _usage_service is None:
        _usage_service = UsageService()
    return _usage_service


def reset_usage_service(service: UsageService | None = None) -> None:
    # Tests swap in a clock-controlled service.
    global _usage_service
    _usage_service = service
