# Overview: Flask CLI commands for the periodic billing jobs and admin inspection.

# backend/restobill/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to restobill (PowerShell: $env:FLASK_APP="restobill").
# - Use: python -m flask billing <command> [options]
#
# Scheduled jobs:
# - python -m flask billing sweep-expired
#   Expire active subscriptions whose billing period has ended (safe to overlap).
# - python -m flask billing trials-ending --days 3 [--notify]
#   List trials ending within N days; --notify also appends trial_ending notifications.
# - python -m flask billing reset-monthly-usage
#   Zero orders_this_month for every subscription (run on the 1st).
#
# Inspection:
# - python -m flask billing stats
#   Subscription counts and revenue across all restaurants.
# - python -m flask billing plans
#   Print the plan catalog.

import click
from flask.cli import with_appcontext

from .services import subscription_service
from .services.plan_catalog import get_plan_catalog
from .time_utils import to_utc_z


@click.group('billing')
def billing_group():
    """Subscription sweeps, usage resets and billing inspection."""


@billing_group.command('sweep-expired')
@with_appcontext
def sweep_expired_cli():
    """Transition active subscriptions past their period end to expired."""
    expired = subscription_service.sweep_expired()
    if not expired:
        click.echo("PASS No subscriptions to expire")
        return
    for sub in expired:
        click.echo(f"  restaurant_id={sub.restaurant_id} plan={sub.plan} period_end={to_utc_z(sub.current_period_end)}")
    click.echo(f"PASS Expired {len(expired)} subscription(s)")


@billing_group.command('trials-ending')
@click.option('--days', type=int, default=None, help='Threshold in days (default: TRIAL_ENDING_THRESHOLD_DAYS)')
@click.option('--notify', is_flag=True, help='Append a trial_ending notification to each')
@with_appcontext
def trials_ending_cli(days, notify):
    """List (and optionally notify) trials ending soon."""
    if notify:
        subs = subscription_service.notify_trials_ending(days)
    else:
        subs = subscription_service.sweep_trials_ending(days)

    for sub in subs:
        click.echo(f"  restaurant_id={sub.restaurant_id} trial_end={to_utc_z(sub.trial_end)}")
    verb = "Notified" if notify else "Found"
    click.echo(f"PASS {verb} {len(subs)} trial(s) ending soon")


@billing_group.command('reset-monthly-usage')
@with_appcontext
def reset_monthly_usage_cli():
    """Reset the monthly order counter for every subscription."""
    count = subscription_service.reset_monthly_usage()
    click.echo(f"PASS Reset monthly usage for {count} subscription(s)")


@billing_group.command('stats')
@with_appcontext
def stats_cli():
    """Show subscription statistics across all restaurants."""
    stats = subscription_service.statistics()
    click.echo(f"Total: {stats['total']}")
    click.echo(f"Active: {stats['active']}")
    click.echo(f"Trials: {stats['trials']}")
    click.echo(f"Cancelled: {stats['cancelled']}")
    click.echo(f"Expired: {stats['expired']}")
    click.echo(f"Monthly revenue: {stats['monthly_revenue']}")
    for plan, row in sorted(stats["plan_breakdown"].items()):
        click.echo(f"  {plan:<14} count={row['count']} revenue={row['revenue']}")


@billing_group.command('plans')
@with_appcontext
def plans_cli():
    """Print the plan catalog."""
    for plan in get_plan_catalog():
        limits = ", ".join(f"{k}={v}" for k, v in plan.limits.items())
        features = ", ".join(k for k, on in plan.features.items() if on)
        click.echo(f"{plan.key} ({plan.display_name}) price={plan.monthly_price}")
        click.echo(f"  limits: {limits}")
        click.echo(f"  features: {features}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(billing_group)
