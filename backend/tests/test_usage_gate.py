# Overview: Pytest coverage for the subscription / feature / quota request decorators.

"""
Usage Gate Tests

Decorated handlers are called directly inside a request context with
g.restaurant_id set, the way the POS request pipeline sets it after
authentication.
"""

from datetime import timedelta

from flask import g

from restobill.decorators import require_active_subscription, require_feature, require_usage_limit
from restobill.models import SubscriptionNotification
from restobill.services import subscription_service as subs
from restobill.time_utils import utcnow


@require_active_subscription
def open_register():
    return "ok"


@require_feature("kitchenDisplay")
def kitchen_screen():
    return "ok"


@require_usage_limit("maxStaff")
def add_staff():
    return "ok"


def _call(app, handler, restaurant_id):
    with app.test_request_context():
        if restaurant_id is not None:
            g.restaurant_id = restaurant_id
        result = handler()
        if isinstance(result, tuple):
            response, status = result
            return status, response.get_json()
        return 200, result


class TestRequireActiveSubscription:
    def test_trial_passes(self, app, db_session, restaurant_a):
        subs.create_subscription(restaurant_a.id)
        assert _call(app, open_register, restaurant_a.id) == (200, "ok")

    def test_lapsed_refused(self, app, db_session, restaurant_a):
        subs.create_subscription(restaurant_a.id, now=utcnow() - timedelta(days=40))

        status, body = _call(app, open_register, restaurant_a.id)

        assert status == 403
        assert body["error"] == "Subscription inactive"
        assert body["subscription_status"] == "active"

    def test_missing_subscription_created_on_first_request(self, app, db_session, restaurant_a):
        assert _call(app, open_register, restaurant_a.id) == (200, "ok")
        assert subs.get_subscription(restaurant_a.id).plan == "free_trial"

    def test_no_restaurant_context(self, app, db_session):
        status, body = _call(app, open_register, None)
        assert status == 401
        assert body["error"] == "Restaurant context required"


class TestRequireFeature:
    def test_feature_missing_on_trial(self, app, db_session, restaurant_a):
        subs.create_subscription(restaurant_a.id)

        status, body = _call(app, kitchen_screen, restaurant_a.id)

        assert status == 403
        assert body["feature"] == "kitchen_display"
        assert body["current_plan"] == "free_trial"

    def test_feature_on_paid_plan(self, app, db_session, restaurant_a):
        subs.create_subscription(restaurant_a.id)
        subs.upgrade_plan(restaurant_a.id, "basic")

        assert _call(app, kitchen_screen, restaurant_a.id) == (200, "ok")


class TestRequireUsageLimit:
    def test_below_limit_passes(self, app, db_session, restaurant_a):
        subs.create_subscription(restaurant_a.id)
        subs.increment_usage(restaurant_a.id, "staffCount", 4)

        with app.test_request_context():
            g.restaurant_id = restaurant_a.id
            assert add_staff() == "ok"
            assert g.limit_check.remaining == 1

    def test_limit_reached_refused_and_notified(self, app, db_session, restaurant_a):
        subs.create_subscription(restaurant_a.id)
        subs.increment_usage(restaurant_a.id, "staffCount", 5)

        status, body = _call(app, add_staff, restaurant_a.id)

        assert status == 403
        assert body["error"] == "Usage limit reached"
        assert body["limit"] == 5
        assert body["current"] == 5
        assert body["message"].startswith("You have reached your staff limit (5).")

        notes = db_session.query(SubscriptionNotification).filter_by(
            restaurant_id=restaurant_a.id, type="limit_reached"
        ).all()
        assert len(notes) == 1

    def test_unlimited_plan(self, app, db_session, restaurant_a):
        subs.create_subscription(restaurant_a.id)
        subs.upgrade_plan(restaurant_a.id, "enterprise")
        subs.increment_usage(restaurant_a.id, "staffCount", 500)

        assert _call(app, add_staff, restaurant_a.id) == (200, "ok")
