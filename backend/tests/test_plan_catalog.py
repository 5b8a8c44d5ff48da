# Overview: Pytest coverage for the static plan catalog.

from decimal import Decimal

import pytest

from restobill.services.plan_catalog import (
    FEATURE_NAMES,
    LIMIT_NAMES,
    PlanCatalog,
    PlanDefinition,
    build_default_catalog,
    get_plan_catalog,
    get_pricing_plans,
)
from restobill.validation import ConflictError, ValidationError


@pytest.fixture
def catalog():
    return build_default_catalog()


class TestDefaultCatalog:
    def test_plan_names(self, catalog):
        assert catalog.names() == ["free_trial", "basic", "professional", "enterprise"]

    def test_prices(self, catalog):
        prices = {plan.key: plan.monthly_price for plan in catalog}
        assert prices == {
            "free_trial": Decimal("0"),
            "basic": Decimal("999"),
            "professional": Decimal("2999"),
            "enterprise": Decimal("9999"),
        }

    def test_every_plan_defines_every_limit_and_feature(self, catalog):
        for plan in catalog:
            assert set(plan.limits) == set(LIMIT_NAMES)
            assert set(plan.features) == set(FEATURE_NAMES)
            assert plan.features["basic_features"] is True

    def test_enterprise_unlimited(self, catalog):
        enterprise = catalog.require("enterprise")
        assert set(enterprise.limits.values()) == {-1}
        assert all(enterprise.features.values())

    def test_professional_orders_unlimited(self, catalog):
        professional = catalog.require("professional")
        assert professional.limits["max_orders"] == -1
        assert professional.limits["max_restaurants"] == 3
        assert professional.features["api_access"] is False

    def test_only_free_trial_has_trial_days(self, catalog):
        assert {plan.key: plan.trial_days for plan in catalog if plan.trial_days} == {"free_trial": 5}


class TestLookup:
    def test_require_unknown(self, catalog):
        with pytest.raises(ConflictError):
            catalog.require("platinum")

    @pytest.mark.parametrize("bad", [None, "", "   ", 3])
    def test_require_malformed(self, catalog, bad):
        with pytest.raises(ValidationError):
            catalog.require(bad)

    def test_contains(self, catalog):
        assert "basic" in catalog
        assert "gold" not in catalog


class TestImmutability:
    def test_limits_read_only(self, catalog):
        with pytest.raises(TypeError):
            catalog.require("basic").limits["max_staff"] = 1000

    def test_plans_read_only(self, catalog):
        with pytest.raises(TypeError):
            catalog.plans["gold"] = catalog.require("basic")

    def test_plan_missing_limit_rejected(self, catalog):
        basic = catalog.require("basic")
        broken = PlanDefinition(
            key="broken",
            display_name="BROKEN",
            monthly_price=Decimal("1"),
            limits={"max_staff": 1},
            features=basic.features,
        )
        with pytest.raises(ValueError):
            PlanCatalog({"broken": broken})


class TestPricing:
    def test_pricing_plans_shape(self, catalog):
        plans = get_pricing_plans(catalog)
        by_id = {plan["id"]: plan for plan in plans}

        assert by_id["professional"]["popular"] is True
        assert by_id["free_trial"]["requires_payment"] is False
        assert by_id["basic"]["price"] == "999"
        assert "Kitchen display" in by_id["basic"]["features"]

    def test_app_catalog_shared(self, app):
        assert get_plan_catalog() is app.extensions["plan_catalog"]
