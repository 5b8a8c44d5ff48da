# Overview: Immutable plan table (limits, features, prices) consulted on every plan change.

"""
Plan Catalog

Single source of truth for what each subscription plan grants. The catalog is
built once by create_app() and stored on app.extensions["plan_catalog"];
services take an explicit `catalog` argument and fall back to the app's copy.

Limits use -1 for "unlimited". Feature and limit keys are snake_case and
match the Subscription columns / features JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Iterator, Mapping

from flask import current_app

from ..validation import ConflictError, ValidationError

PLAN_FREE_TRIAL = "free_trial"
PLAN_BASIC = "basic"
PLAN_PROFESSIONAL = "professional"
PLAN_ENTERPRISE = "enterprise"

TRIAL_DAYS = 5

FEATURE_NAMES = (
    "basic_features",
    "kitchen_display",
    "analytics",
    "table_management",
    "staff_management",
    "payment_integration",
    "custom_branding",
    "api_access",
    "priority_support",
    "dedicated_manager",
)

LIMIT_NAMES = (
    "max_restaurants",
    "max_orders",
    "max_staff",
    "max_tables",
    "max_menu_items",
)


@dataclass(frozen=True)
class PlanDefinition:
    key: str
    display_name: str
    monthly_price: Decimal
    limits: Mapping[str, int]
    features: Mapping[str, bool]
    trial_days: int = 0
    duration: str = "per month"
    description: str = ""
    highlights: tuple = ()
    popular: bool = False
    requires_payment: bool = True

    def to_public_dict(self) -> dict:
        return {
            "id": self.key,
            "name": self.display_name,
            "price": str(self.monthly_price),
            "duration": self.duration,
            "description": self.description,
            "features": list(self.highlights),
            "limits": dict(self.limits),
            "feature_flags": dict(self.features),
            "trial_days": self.trial_days,
            "popular": self.popular,
            "requires_payment": self.requires_payment,
        }


@dataclass(frozen=True)
class PlanCatalog:
    plans: Mapping[str, PlanDefinition] = field(default_factory=dict)

    def __post_init__(self):
        for key, plan in self.plans.items():
            missing = set(LIMIT_NAMES) - set(plan.limits)
            if missing:
                raise ValueError(f"Plan {key} is missing limits: {sorted(missing)}")
        object.__setattr__(self, "plans", MappingProxyType(dict(self.plans)))

    def __contains__(self, plan: str) -> bool:
        return plan in self.plans

    def __iter__(self) -> Iterator[PlanDefinition]:
        return iter(self.plans.values())

    def names(self) -> list[str]:
        return list(self.plans.keys())

    def require(self, plan) -> PlanDefinition:
        """
        Look up a plan by key.

        Raises:
            ValidationError: plan is not a non-empty string
            ConflictError: plan is well-formed but not in the catalog
        """
        if not isinstance(plan, str) or not plan.strip():
            raise ValidationError("plan must be a non-empty string")
        definition = self.plans.get(plan.strip())
        if definition is None:
            raise ConflictError(f"Unknown plan: {plan}. Must be one of {self.names()}")
        return definition

    def pricing_plans(self) -> list[dict]:
        return [plan.to_public_dict() for plan in self.plans.values()]


def _features(*enabled: str) -> Mapping[str, bool]:
    on = {"basic_features", *enabled}
    return MappingProxyType({name: name in on for name in FEATURE_NAMES})


def _limits(restaurants: int, orders: int, staff: int, tables: int, menu_items: int) -> Mapping[str, int]:
    return MappingProxyType({
        "max_restaurants": restaurants,
        "max_orders": orders,
        "max_staff": staff,
        "max_tables": tables,
        "max_menu_items": menu_items,
    })


def build_default_catalog() -> PlanCatalog:
    plans = [
        PlanDefinition(
            key=PLAN_FREE_TRIAL,
            display_name="FREE_TRIAL",
            monthly_price=Decimal("0"),
            limits=_limits(1, 50, 5, 10, 50),
            features=_features(),
            trial_days=TRIAL_DAYS,
            duration=f"{TRIAL_DAYS} days only",
            description=f"Try all features free for {TRIAL_DAYS} days",
            highlights=(
                "Full access to all features",
                "Test all premium tools",
                "No payment required",
                f"{TRIAL_DAYS} days to explore",
                "Email support",
            ),
            requires_payment=False,
        ),
        PlanDefinition(
            key=PLAN_BASIC,
            display_name="BASIC",
            monthly_price=Decimal("999"),
            limits=_limits(1, 500, 10, 20, 100),
            features=_features("kitchen_display", "payment_integration"),
            description="Perfect for small restaurants",
            highlights=(
                "1 restaurant",
                "500 orders/month",
                "All core features",
                "Kitchen display",
                "Payment integration",
                "Email support",
            ),
        ),
        PlanDefinition(
            key=PLAN_PROFESSIONAL,
            display_name="PROFESSIONAL",
            monthly_price=Decimal("2999"),
            limits=_limits(3, -1, 50, 100, 500),
            features=_features(
                "kitchen_display",
                "analytics",
                "table_management",
                "staff_management",
                "payment_integration",
                "custom_branding",
                "priority_support",
            ),
            description="For growing restaurant businesses",
            highlights=(
                "3 restaurants",
                "Unlimited orders",
                "All features",
                "Analytics dashboard",
                "Table management",
                "Staff management",
                "Priority support",
                "Custom branding",
            ),
            popular=True,
        ),
        PlanDefinition(
            key=PLAN_ENTERPRISE,
            display_name="ENTERPRISE",
            monthly_price=Decimal("9999"),
            limits=_limits(-1, -1, -1, -1, -1),
            features=_features(*FEATURE_NAMES),
            description="For large restaurant chains",
            highlights=(
                "Unlimited restaurants",
                "Unlimited orders",
                "All features",
                "Multi-branch support",
                "API access",
                "Dedicated account manager",
                "Custom development",
                "24/7 support",
            ),
        ),
    ]
    return PlanCatalog({plan.key: plan for plan in plans})


def get_plan_catalog(catalog: PlanCatalog | None = None) -> PlanCatalog:
    if catalog is not None:
        return catalog
    return current_app.extensions["plan_catalog"]


def get_pricing_plans(catalog: PlanCatalog | None = None) -> list[dict]:
    """Static catalog contents, safe for public display."""
    return get_plan_catalog(catalog).pricing_plans()
