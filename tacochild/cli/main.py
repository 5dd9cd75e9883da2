"""
tacochild CLI - Command Line Interface for the child application registry

Main entry point for all CLI commands.
"""

import json
import logging
import time
from contextlib import contextmanager
from pathlib import Path

import click
from pydantic import ValidationError

from tacochild.utils.logger import setup_logging


@contextmanager
def open_registry(ctx):
    """Open the persisted registry described by the CLI config; storage is closed on exit."""
    from tacochild.core.collaborators import deploy_child_application
    from tacochild.core.storage import StorageManager

    config = ctx.obj["config"]
    storage = StorageManager(config.data_dir, db_name=config.db_name)
    try:
        try:
            deployed = deploy_child_application(
                minimum_authorization=config.minimum_authorization,
                storage_manager=storage,
                registry_address=config.registry_address,
                root_address=config.root_application_address,
                coordinator_address=config.coordinator_address,
            )
        except (ValueError, RuntimeError) as e:
            raise click.ClickException(str(e))
        yield deployed
    finally:
        storage.close()


def _outcome(label: str, success: bool, err: str) -> None:
    if success:
        click.echo(f"  ✓ {label}")
    else:
        click.echo(f"  ✗ {label}: {err}")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (overrides TACO_DATA_DIR)")
@click.option("--env-file", default=None, type=click.Path(dir_okay=False), help=".env file with TACO_* settings")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, env_file):
    """TACo child application - staking authorization registry"""
    from tacochild.core.config import load_config

    level = logging.DEBUG if debug else logging.INFO
    setup_logging(level=level)

    ctx.ensure_object(dict)
    try:
        config = load_config(env_file, data_dir=Path(data_dir) if data_dir else None)
    except ValueError as e:
        raise click.ClickException(str(e))
    ctx.obj["config"] = config


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--minimum", default=50, type=int, help="Minimum authorization")
def demo(minimum):
    """Run the confirmation and deauthorization scenarios in memory"""
    from tacochild.crypto import generate_address
    from tacochild.core.collaborators import deploy_child_application

    clock_now = [1_700_000_000]
    registry, relay, coordinator = deploy_child_application(
        minimum_authorization=minimum, clock=lambda: clock_now[0]
    )

    click.echo("=" * 60)
    click.echo("  TACO CHILD APPLICATION - DEMO")
    click.echo("=" * 60)
    click.echo(f"  Registry:    {registry.address}")
    click.echo(f"  Root relay:  {relay.address}")
    click.echo(f"  Coordinator: {coordinator.address}")
    click.echo()

    provider = generate_address()
    operator = generate_address()

    click.echo("🔗 Root application binds operator and authorizes 100...")
    _outcome("operator bound", *relay.push_operator(provider, operator))
    _outcome("authorization set", *relay.push_authorization(provider, 100))
    total, active = registry.get_active_staking_providers(0)
    click.echo(f"  Active before confirmation: {len(active)} (total {total})")
    click.echo()

    click.echo("✅ Coordinator confirms operator...")
    _outcome("operator confirmed", *coordinator.confirm_operator(operator))
    total, active = registry.get_active_staking_providers(0)
    for entry in active:
        click.echo(f"  {entry.staking_provider}: {entry.amount}")
    click.echo(f"  Total: {total}")
    click.echo()

    click.echo("⏳ Root application starts deauthorizing 40...")
    end = clock_now[0] + 3600
    _outcome("deauthorization pending", *relay.push_authorization(provider, 100, 40, end))
    click.echo(f"  Eligible for window ending before:  {registry.eligible_stake(provider, end - 1)}")
    click.echo(f"  Eligible for window ending after:   {registry.eligible_stake(provider, end + 1)}")
    click.echo()

    click.echo("📊 Final Statistics:")
    for key, value in registry.stats().items():
        click.echo(f"  {key}: {value}")
    click.echo()
    click.echo("✅ Demo complete!")


# =============================================================================
# Registry Commands
# =============================================================================


@cli.command("apply")
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def apply_batch(ctx, batch_file):
    """Apply a JSON batch of relay updates and confirmations"""
    from tacochild.core.schema import UpdateBatch

    try:
        batch = UpdateBatch.model_validate_json(Path(batch_file).read_text())
    except ValidationError as e:
        raise click.ClickException(f"Invalid batch file: {e}")

    failures = 0
    with open_registry(ctx) as (registry, relay, coordinator):
        click.echo(f"Applying {batch_file} to {registry.address}")
        for update in batch.operators:
            success, err = relay.push_operator(update.staking_provider, update.operator)
            _outcome(f"operator {update.staking_provider} -> {update.operator}", success, err)
            failures += not success

        for update in batch.authorizations:
            success, err = relay.push_authorization(
                update.staking_provider,
                update.authorized,
                update.deauthorizing,
                update.end_deauthorization,
            )
            _outcome(f"authorization {update.staking_provider} = {update.authorized}", success, err)
            failures += not success

        for operator in batch.confirmations:
            success, err = coordinator.confirm_operator(operator)
            _outcome(f"confirm {operator}", success, err)
            failures += not success

    if failures:
        raise click.ClickException(f"{failures} update(s) rejected")


@cli.command("force-update")
@click.argument("staking_provider")
@click.option("--operator", default=None, help="Operator to bind")
@click.option("--authorized", default=None, type=int, help="Authorized amount")
@click.option("--deauthorizing", default=0, type=int, help="Amount pending deauthorization")
@click.option("--end-deauthorization", default=0, type=int, help="Deauthorization end timestamp")
@click.option("--caller", default=None, help="Updater address (default: updater owner)")
@click.pass_context
def force_update(ctx, staking_provider, operator, authorized, deauthorizing, end_deauthorization, caller):
    """Force an operator or authorization update (non-production only)"""
    from tacochild.core.registry import ForceUpdateGate

    if operator is None and authorized is None:
        raise click.UsageError("Nothing to update: pass --operator and/or --authorized")

    config = ctx.obj["config"]
    caller = caller or config.updater_owner_address

    failures = 0
    with open_registry(ctx) as (registry, _, _):
        gate = ForceUpdateGate(registry, config.updater_owner_address)
        gate.grant_updater(config.updater_owner_address, config.updater_owner_address)

        if operator is not None:
            success, err = gate.force_update_operator(caller, staking_provider, operator)
            _outcome(f"operator {staking_provider} -> {operator}", success, err)
            failures += not success
        if authorized is not None:
            success, err = gate.force_update_authorization(
                caller, staking_provider, authorized, deauthorizing, end_deauthorization
            )
            _outcome(f"authorization {staking_provider} = {authorized}", success, err)
            failures += not success

    if failures:
        raise click.ClickException(f"{failures} update(s) rejected")


@cli.command("providers")
@click.option("--start", default=0, type=int, help="First enumeration index")
@click.option("--max", "max_count", default=0, type=int, help="Positions to scan (0 = all)")
@click.option("--cohort-duration", default=0, type=int, help="Cohort duration in seconds")
@click.option("--json", "as_json", is_flag=True, help="Print a JSON export")
@click.pass_context
def providers(ctx, start, max_count, cohort_duration, as_json):
    """List active staking providers"""
    from tacochild.core.schema import ActiveProviderEntry, ActiveProvidersExport

    with open_registry(ctx) as (registry, _, _):
        if registry.get_staking_providers_length() == 0:
            click.echo("No staking providers.")
            return

        try:
            total, active = registry.get_active_staking_providers(start, max_count, cohort_duration)
        except (IndexError, ValueError) as e:
            raise click.ClickException(str(e))
        now = registry.now
        address = registry.address

    if as_json:
        export = ActiveProvidersExport(
            registry=address,
            timestamp=now,
            start_index=start,
            max_staking_providers=max_count,
            cohort_duration=cohort_duration,
            total=total,
            providers=[
                ActiveProviderEntry(staking_provider=e.staking_provider, amount=e.amount)
                for e in active
            ],
        )
        click.echo(export.model_dump_json(indent=2))
        return

    click.echo(f"Active staking providers ({len(active)})")
    click.echo("-" * 60)
    for entry in active:
        click.echo(f"  {entry.staking_provider}  {entry.amount}")
    click.echo(f"  Total: {total}")


@cli.command("eligible")
@click.argument("staking_provider")
@click.option("--end-date", default=None, type=int, help="Window end timestamp (default: now)")
@click.pass_context
def eligible(ctx, staking_provider, end_date):
    """Show eligible stake of a provider"""
    end_date = int(time.time()) if end_date is None else end_date
    with open_registry(ctx) as (registry, _, _):
        try:
            amount = registry.eligible_stake(staking_provider, end_date)
        except ValueError as e:
            raise click.ClickException(str(e))
        info = registry.get_staking_provider_info(staking_provider)

    click.echo(f"Provider:  {staking_provider}")
    click.echo(f"Operator:  {info.operator} ({'confirmed' if info.operator_confirmed else 'unconfirmed'})")
    click.echo(f"Authorized: {info.authorized}")
    click.echo(f"Eligible at {end_date}: {amount}")


@cli.command("events")
@click.option("--provider", default=None, help="Only events for this provider")
@click.pass_context
def events(ctx, provider):
    """Print committed notifications as JSON lines"""
    from tacochild.crypto import to_checksum_address

    if provider:
        try:
            provider = to_checksum_address(provider)
        except ValueError as e:
            raise click.ClickException(str(e))

    with open_registry(ctx) as (registry, _, _):
        for event in registry.event_log.filter(staking_provider=provider):
            click.echo(json.dumps(event.to_dict()))


@cli.command("stats")
@click.pass_context
def stats(ctx):
    """Show registry statistics"""
    with open_registry(ctx) as (registry, _, _):
        registry_stats = registry.stats()

    click.echo("Registry Statistics")
    click.echo("-" * 40)
    for key, value in registry_stats.items():
        click.echo(f"  {key}: {value}")


if __name__ == "__main__":
    cli()
