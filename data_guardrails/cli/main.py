"""Command-line interface for managing and exercising the guardrails."""

import json
import sys
from datetime import timedelta
from typing import Optional, Tuple
import click
from pydantic import ValidationError

from data_guardrails.core.data_quality import DataQualityService
from data_guardrails.database.store import StorageError, create_store
from data_guardrails.models.config import GuardrailSettings
from data_guardrails.models.guardrails import (
    CustomValidationRule,
    GuardrailMode,
    MetricClass,
    RuleAction,
)
from data_guardrails.utils.logging import setup_logging
from data_guardrails.utils.report import format_provenance_markdown
from data_guardrails.utils.time import get_current_utc


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _metric_class_for(metric: str) -> MetricClass:
    name = metric.lower()
    for metric_class in (MetricClass.PRICE, MetricClass.SUPPLY, MetricClass.VOLUME):
        if metric_class.value in name:
            return metric_class
    return MetricClass.PRICE


def _parse_assignment(assignment: str) -> Tuple[str, object]:
    if '=' not in assignment:
        raise click.BadParameter(f"expected key=value, got '{assignment}'")
    key, raw = assignment.split('=', 1)
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return key.strip(), value


@click.group()
@click.option('--database-url', '-d', default=None,
              help='SQLAlchemy URL of the guardrail store (default: GUARDRAILS_DATABASE_URL)')
@click.option('--log-level', '-l', default='WARNING',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level')
@click.pass_context
def cli(ctx, database_url: Optional[str], log_level: str):
    """Crypto data quality guardrails CLI."""
    ctx.ensure_object(dict)

    try:
        overrides = {'storage_backend': 'sql', 'log_level': log_level}
        if database_url:
            overrides['database_url'] = database_url
        settings = GuardrailSettings(**overrides)

        setup_logging(settings)
        ctx.obj['service'] = DataQualityService(create_store(settings), settings)

    except (StorageError, ValidationError) as e:
        click.echo(f"Error initializing guardrails: {e}", err=True)
        sys.exit(1)


# ============================================================
# Configuration
# ============================================================

@cli.command('show-config')
@click.pass_context
def show_config(ctx):
    """Print the active guardrail configuration."""
    service: DataQualityService = ctx.obj['service']
    _echo_json(service.get_config().model_dump(mode='json'))


@cli.command('set-mode')
@click.argument('mode', type=click.Choice([m.value for m in GuardrailMode]))
@click.pass_context
def set_mode(ctx, mode: str):
    """Switch guardrail mode and apply its preset."""
    service: DataQualityService = ctx.obj['service']
    service.set_mode(GuardrailMode(mode))
    click.echo(f"Guardrail mode set to {mode}")


@cli.command('update')
@click.option('--set', 'assignments', multiple=True, required=True,
              help='Field assignment, e.g. --set max_price_age=20 (repeatable)')
@click.pass_context
def update(ctx, assignments: Tuple[str, ...]):
    """Update individual thresholds without changing mode."""
    service: DataQualityService = ctx.obj['service']
    updates = dict(_parse_assignment(a) for a in assignments)

    try:
        service.update_config(updates)
    except (ValidationError, ValueError) as e:
        click.echo(f"Invalid update: {e}", err=True)
        sys.exit(1)

    click.echo(f"Updated: {', '.join(sorted(updates))}")


@cli.command('add-rule')
@click.option('--name', '-n', required=True, help='Rule name')
@click.option('--condition', '-c', required=True, help="Condition, e.g. 'volume < 500000'")
@click.option('--action', '-a', default=RuleAction.WARNING.value,
              type=click.Choice([a.value for a in RuleAction]), help='Rule action')
@click.option('--disabled', is_flag=True, help='Create the rule disabled')
@click.pass_context
def add_rule(ctx, name: str, condition: str, action: str, disabled: bool):
    """Add a custom validation rule."""
    service: DataQualityService = ctx.obj['service']

    try:
        rule = service.add_custom_rule(
            CustomValidationRule(name=name, condition=condition,
                                 action=RuleAction(action), enabled=not disabled)
        )
    except (ValidationError, ValueError) as e:
        click.echo(f"Invalid rule: {e}", err=True)
        sys.exit(1)

    click.echo(rule.id)


@cli.command('remove-rule')
@click.argument('rule_id')
@click.pass_context
def remove_rule(ctx, rule_id: str):
    """Remove a custom validation rule."""
    service: DataQualityService = ctx.obj['service']
    service.remove_custom_rule(rule_id)
    click.echo(f"Removed rule {rule_id}")


@cli.command('toggle-rule')
@click.argument('rule_id')
@click.option('--enable/--disable', default=True, help='Enable or disable the rule')
@click.pass_context
def toggle_rule(ctx, rule_id: str, enable: bool):
    """Enable or disable a custom validation rule."""
    service: DataQualityService = ctx.obj['service']
    if service.update_custom_rule(rule_id, enabled=enable) is None:
        click.echo(f"Rule {rule_id} not found", err=True)
        sys.exit(1)
    click.echo(f"Rule {rule_id} {'enabled' if enable else 'disabled'}")


# ============================================================
# Source tracking
# ============================================================

@cli.command('blacklist')
@click.argument('source')
@click.pass_context
def blacklist(ctx, source: str):
    """Blacklist a data source."""
    ctx.obj['service'].blacklist_source(source)
    click.echo(f"Blacklisted {source.lower()}")


@cli.command('unblacklist')
@click.argument('source')
@click.pass_context
def unblacklist(ctx, source: str):
    """Remove a data source from the blacklist."""
    ctx.obj['service'].unblacklist_source(source)
    click.echo(f"Unblacklisted {source.lower()}")


@cli.command('blacklisted')
@click.pass_context
def blacklisted(ctx):
    """List blacklisted data sources."""
    for source in ctx.obj['service'].get_blacklisted_sources():
        click.echo(source)


@cli.command('track-stale')
@click.argument('source')
@click.pass_context
def track_stale(ctx, source: str):
    """Record a staleness event for a data source."""
    service: DataQualityService = ctx.obj['service']
    count = service.track_stale_source(source)
    click.echo(f"{source}: stale count {count}")
    if service.ledger.is_blacklisted(source):
        click.echo(f"{source} is blacklisted")


@cli.command('reset-tracking')
@click.confirmation_option(prompt='Reset all source tracking and blacklists? This cannot be undone.')
@click.pass_context
def reset_tracking(ctx):
    """Clear the blacklist and every stale counter."""
    ctx.obj['service'].reset_source_tracking()
    click.echo("Source tracking reset")


# ============================================================
# Validation
# ============================================================

@cli.command('validate')
@click.argument('metric')
@click.argument('values', nargs=-1, type=float, required=True)
@click.option('--source', '-s', 'source_names', multiple=True,
              help='Source name for each value, in order (repeatable)')
@click.option('--age-minutes', type=int, default=0,
              help='Age of every observation in minutes')
@click.option('--volume', type=float, default=None,
              help='24h volume used by custom rule conditions')
@click.option('--markdown', is_flag=True, help='Print a markdown report instead of JSON')
@click.pass_context
def validate(ctx, metric: str, values: Tuple[float, ...], source_names: Tuple[str, ...],
             age_minutes: int, volume: Optional[float], markdown: bool):
    """Validate one metric observed by several sources."""
    service: DataQualityService = ctx.obj['service']

    now = get_current_utc()
    observed_at = now - timedelta(minutes=age_minutes)
    metric_class = _metric_class_for(metric)

    names = list(source_names) + [f"Source {i + 1}" for i in range(len(source_names), len(values))]
    sources = [
        service.create_data_source(name, observed_at, metric_class=metric_class, now=now)
        for name in names[:len(values)]
    ]

    context = {'volume': volume} if volume is not None else None
    provenance = service.evaluate_metric(
        metric,
        values[0] if len(values) == 1 else list(values),
        sources,
        numeric_values=list(values),
        context=context
    )
    if provenance.consensus is not None:
        provenance.value = provenance.consensus.value

    if markdown:
        click.echo(format_provenance_markdown([provenance]))
    else:
        _echo_json(provenance.to_dict())


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == '__main__':
    main()
