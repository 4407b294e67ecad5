from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum

UNLIMITED = -1


class PlanTier(str, Enum):
    FREE = "FREE"
    PREMIUM = "PREMIUM"
    BUSINESS = "BUSINESS"


@dataclass(frozen=True)
class PlanLimits:
    max_forms: int
    max_responses_per_month: int
    has_advanced_analytics: bool
    has_sheets_export: bool
    has_team_collaboration: bool
    has_custom_branding: bool
    has_api_access: bool

    def as_dict(self) -> dict:
        return asdict(self)


PLAN_LIMITS: dict[PlanTier, PlanLimits] = {
    PlanTier.FREE: PlanLimits(
        max_forms=3,
        max_responses_per_month=100,
        has_advanced_analytics=False,
        has_sheets_export=False,
        has_team_collaboration=False,
        has_custom_branding=False,
        has_api_access=False,
    ),
    PlanTier.PREMIUM: PlanLimits(
        max_forms=UNLIMITED,
        max_responses_per_month=10000,
        has_advanced_analytics=True,
        has_sheets_export=True,
        has_team_collaboration=False,
        has_custom_branding=False,
        has_api_access=False,
    ),
    PlanTier.BUSINESS: PlanLimits(
        max_forms=UNLIMITED,
        max_responses_per_month=UNLIMITED,
        has_advanced_analytics=True,
        has_sheets_export=True,
        has_team_collaboration=True,
        has_custom_branding=True,
        has_api_access=True,
    ),
}

# Minor currency units charged by the payment gateway.
PLAN_PRICES: dict[PlanTier, int] = {
    PlanTier.PREMIUM: 999,
    PlanTier.BUSINESS: 2999,
}


def limits_for(tier: PlanTier | str) -> PlanLimits:
    """Return the limits row for ``tier``.

    Tiers outside the catalog are a programming error and raise ``ValueError``;
    callers never turn that into a user-facing rejection.
    """
    return PLAN_LIMITS[PlanTier(tier)]


def is_valid_plan(raw: str | None) -> bool:
    return str(raw or "") in {tier.value for tier in PlanTier}


def is_upgradeable_plan(raw: str | None) -> bool:
    return str(raw or "") in {PlanTier.PREMIUM.value, PlanTier.BUSINESS.value}


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


def can_create_form(limits: PlanLimits, current_form_count: int) -> bool:
    if is_unlimited(limits.max_forms):
        return True
    return int(current_form_count) < limits.max_forms


def can_accept_response(limits: PlanLimits, current_month_responses: int) -> bool:
    if is_unlimited(limits.max_responses_per_month):
        return True
    return int(current_month_responses) < limits.max_responses_per_month
