# Overview: UsageGate decorators for request handlers (subscription access, features, quotas).

from functools import wraps
from flask import g, jsonify

from .services import subscription_service
from .models.subscriptions import has_access
from .time_utils import utcnow


def _current_subscription():
    """Subscription for g.restaurant_id, cached on g for the rest of the request."""
    sub = getattr(g, 'subscription', None)
    if sub is None:
        sub = subscription_service.get_or_create_subscription(g.restaurant_id)
        g.subscription = sub
    return sub


def _has_restaurant_context() -> bool:
    return getattr(g, 'restaurant_id', None) is not None


def require_active_subscription(f):
    """
    Require a usable subscription: a valid trial, or active with the period running.

    Sets g.subscription. Returns 403 when access has lapsed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _has_restaurant_context():
            return jsonify({"error": "Restaurant context required"}), 401

        sub = _current_subscription()
        if not has_access(sub, utcnow()):
            return jsonify({
                "error": "Subscription inactive",
                "message": "Your subscription has expired. Please renew to continue.",
                "subscription_status": sub.status,
            }), 403

        return f(*args, **kwargs)

    return decorated_function


def require_feature(feature_name: str):
    """
    Require a plan feature (e.g. "kitchen_display" or "kitchenDisplay").
    """
    feature = subscription_service.normalize_feature(feature_name)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _has_restaurant_context():
                return jsonify({"error": "Restaurant context required"}), 401

            sub = _current_subscription()
            if not (sub.features or {}).get(feature):
                return jsonify({
                    "error": "Feature not available",
                    "message": (
                        "This feature is not available in your current plan. "
                        f"Please upgrade to access {feature.replace('_', ' ')}."
                    ),
                    "current_plan": sub.plan,
                    "feature": feature,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_usage_limit(limit_type: str):
    """
    Refuse the request when the quota for `limit_type` is used up.

    A refusal also appends a limit_reached notification. On success the
    LimitCheck is left on g.limit_check for the handler.
    """
    limit_key = subscription_service.normalize_limit_type(limit_type)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _has_restaurant_context():
                return jsonify({"error": "Restaurant context required"}), 401

            sub = _current_subscription()
            check = subscription_service.evaluate_limit(sub, limit_key)
            if not check.allowed:
                subscription_service.notify_limit_reached(g.restaurant_id, limit_key)
                return jsonify({
                    "error": "Usage limit reached",
                    "message": (
                        f"You have reached your {subscription_service.limit_label(limit_key)} limit ({check.limit}). "
                        "Please upgrade your plan to add more."
                    ),
                    "current_plan": sub.plan,
                    "limit": check.limit,
                    "current": check.current,
                }), 403

            g.limit_check = check
            return f(*args, **kwargs)

        return decorated_function
    return decorator
