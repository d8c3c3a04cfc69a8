"""
Command-line interface for the Presence Monitor API
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Optional

import click
from pydantic import ValidationError

from presence_monitor.config.settings import Settings, get_settings, load_settings_from_file, validate_settings
from presence_monitor.core.exceptions import PresenceMonitorError
from presence_monitor.core.models import SensorState
from presence_monitor.core.rules import describe_state, evaluate, format_clock
from presence_monitor.logger import setup_logging
from presence_monitor.sensing.rule_store import RuleStore

logger = logging.getLogger(__name__)


def get_settings_with_config(config_file: Optional[str] = None) -> Settings:
    """Get settings with optional config file."""
    try:
        if config_file:
            return load_settings_from_file(config_file)
        return get_settings()
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")


def _rule_store(ctx) -> RuleStore:
    path = ctx.obj.get('rules_file') or get_settings_with_config(ctx.obj.get('config_file')).rules_file
    return RuleStore(path)


@click.group()
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration (.env) file'
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging'
)
@click.option(
    '--debug',
    is_flag=True,
    help='Enable debug mode'
)
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool, debug: bool):
    """Presence Monitor command line interface."""
    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['verbose'] = verbose
    ctx.obj['debug'] = debug

    if debug:
        logging.basicConfig(level=logging.DEBUG)
    elif verbose:
        logging.basicConfig(level=logging.INFO)


@cli.command()
@click.option('--host', default=None, help='Host to bind to (default: from settings)')
@click.option('--port', default=None, type=int, help='Port to bind to (default: from settings)')
@click.option('--workers', default=None, type=int, help='Number of worker processes')
@click.option('--reload', is_flag=True, help='Enable auto-reload for development')
@click.pass_context
def start(ctx, host: Optional[str], port: Optional[int], workers: Optional[int], reload: bool):
    """Start the API server."""
    import uvicorn

    settings = get_settings_with_config(ctx.obj.get('config_file'))
    setup_logging(settings)
    for issue in validate_settings(settings):
        logger.warning(f"Configuration issue: {issue}")

    reload = reload or settings.reload
    uvicorn.run(
        "presence_monitor.api.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        workers=1 if reload else (workers or settings.workers),
        reload=reload,
        env_file=ctx.obj.get('config_file'),
        log_level=settings.log_level.lower(),
    )


@cli.command()
@click.pass_context
def listen(ctx):
    """Run only the MQTT listener (no HTTP server)."""
    from presence_monitor.services.orchestrator import ServiceOrchestrator

    settings = get_settings_with_config(ctx.obj.get('config_file'))
    setup_logging(settings)

    async def run_listener():
        orchestrator = ServiceOrchestrator(settings)
        async with orchestrator.service_context(with_listener=True):
            logger.info(f"Listening on {settings.mqtt_host}:{settings.mqtt_port} topic {settings.mqtt_topic}")
            await orchestrator.listener.start()

    try:
        asyncio.run(run_listener())
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        sys.exit(0)


# ---------------------------------------------------------------------------
# Alert rules
# ---------------------------------------------------------------------------

@cli.group()
@click.option('--file', 'rules_file', type=click.Path(dir_okay=False), help='Rule file (default: from settings)')
@click.pass_context
def rules(ctx, rules_file: Optional[str]):
    """Alert rule management commands."""
    ctx.obj['rules_file'] = rules_file


@rules.command('list')
@click.option('--format', 'output_format', type=click.Choice(['text', 'json']), default='text')
@click.pass_context
def list_rules(ctx, output_format: str):
    """List configured rules."""
    store = _rule_store(ctx)
    current = store.rules

    if output_format == 'json':
        click.echo(json.dumps([rule.to_dict() for rule in current], indent=2))
        return

    if not current:
        click.echo("No rules configured")
        return
    for rule in current:
        flag = "on " if rule.enabled else "off"
        mac = rule.mac or "*"
        click.echo(f"[{flag}] {rule.id}  {rule.name}  mac={mac} state={rule.state.value} {rule.start_time}-{rule.end_time}")


@rules.command('add')
@click.option('--name', default=None, help='Rule name')
@click.option('--mac', default='', help='Device MAC; empty matches every device')
@click.option('--state', type=click.Choice([s.value for s in SensorState]), default=SensorState.MOVE.value)
@click.option('--start', 'start_time', default=None, help='Window start, HH:MM')
@click.option('--end', 'end_time', default=None, help='Window end, HH:MM')
@click.option('--disabled', is_flag=True, help='Create the rule disabled')
@click.pass_context
def add_rule(ctx, name, mac, state, start_time, end_time, disabled):
    """Add a rule."""
    try:
        rule = _rule_store(ctx).add(
            name=name,
            mac=mac,
            state=state,
            start_time=start_time,
            end_time=end_time,
            enabled=not disabled,
        )
    except PresenceMonitorError as e:
        raise click.ClickException(e.message)
    click.echo(f"Added rule {rule.id}")


@rules.command('delete')
@click.argument('rule_id')
@click.pass_context
def delete_rule(ctx, rule_id: str):
    """Delete a rule."""
    try:
        _rule_store(ctx).delete(rule_id)
    except PresenceMonitorError as e:
        raise click.ClickException(e.message)
    click.echo(f"Deleted rule {rule_id}")


@rules.command('toggle')
@click.argument('rule_id')
@click.pass_context
def toggle_rule(ctx, rule_id: str):
    """Enable or disable a rule."""
    try:
        rule = _rule_store(ctx).toggle(rule_id)
    except PresenceMonitorError as e:
        raise click.ClickException(e.message)
    click.echo(f"Rule {rule.id} {'enabled' if rule.enabled else 'disabled'}")


@rules.command('evaluate')
@click.argument('mac')
@click.argument('state', type=click.Choice([s.value for s in SensorState]))
@click.option('--time', 'at_time', default=None, help='HH:MM to evaluate at (default: now)')
@click.pass_context
def evaluate_rules(ctx, mac: str, state: str, at_time: Optional[str]):
    """Show which rules a state message would match."""
    now = at_time or format_clock(datetime.now())
    matched = evaluate(_rule_store(ctx).rules, mac, state, now)

    click.echo(describe_state(state, mac))
    if not matched:
        click.echo(f"No rules match at {now}")
        return
    for rule in matched:
        click.echo(f"Matched {rule.id}  {rule.name} at {now}")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command()
@click.pass_context
def show(ctx):
    """Show current configuration."""
    settings = get_settings_with_config(ctx.obj.get('config_file'))

    # Excluding sensitive data
    config_dict = {
        "app_name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "debug": settings.debug,
        "host": settings.host,
        "port": settings.port,
        "api_prefix": settings.api_prefix,
        "log_level": settings.log_level,
        "log_file": settings.log_file,
        "store_backend": settings.store_backend,
        "rules_file": settings.rules_file,
        "mqtt": {
            "enabled": settings.mqtt_enabled,
            "host": settings.mqtt_host,
            "port": settings.mqtt_port,
            "topic": settings.mqtt_topic,
            "reconnect_interval": settings.mqtt_reconnect_interval,
            "persist_samples": settings.mqtt_persist_samples,
        },
    }
    click.echo(json.dumps(config_dict, indent=2))


@config.command()
@click.pass_context
def check(ctx):
    """Validate configuration."""
    settings = get_settings_with_config(ctx.obj.get('config_file'))
    issues = validate_settings(settings)

    if not issues:
        click.echo("✓ Configuration validation passed")
        return

    for issue in issues:
        click.echo(f"✗ {issue}")
    sys.exit(1)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == '__main__':
    main()
