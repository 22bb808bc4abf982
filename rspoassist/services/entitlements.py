from __future__ import annotations

import logging

from fastapi import HTTPException, status

from rspoassist.domain.catalog import TIER_ENTERPRISE, TIER_PROFESSIONAL
from rspoassist.domain.models import User


logger = logging.getLogger(__name__)

FEATURE_VAULT = "vault"
FEATURE_CHECKLIST = "checklist"
FEATURE_NC_DRAFTER = "nc-drafter"

# The Digital Toolbox features gated behind the upper tiers.
PREMIUM_FEATURES = frozenset({FEATURE_VAULT, FEATURE_CHECKLIST, FEATURE_NC_DRAFTER})
PREMIUM_TIERS = frozenset({TIER_PROFESSIONAL, TIER_ENTERPRISE})


def has_premium_access(tier: str) -> bool:
    return tier in PREMIUM_TIERS


def is_feature_enabled(tier: str, feature_key: str) -> bool:
    if feature_key not in PREMIUM_FEATURES:
        return True
    return has_premium_access(tier)


def _feature_not_enabled_error(feature_key: str) -> HTTPException:
    # Use a stable 403 payload; clients offer the payment flow in response.
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "code": "FEATURE_NOT_ENABLED",
            "message": "The Digital Toolbox is exclusive to Professional & Enterprise plans.",
            "feature_key": feature_key,
            "action": "show_payment",
        },
    )


def require_feature(user: User, feature_key: str) -> None:
    if is_feature_enabled(user.tier, feature_key):
        return
    logger.info("feature_blocked user_id=%s tier=%s feature=%s", user.id, user.tier, feature_key)
    raise _feature_not_enabled_error(feature_key)


def entitlements_for(tier: str) -> dict[str, bool]:
    return {feature: is_feature_enabled(tier, feature) for feature in sorted(PREMIUM_FEATURES)}
