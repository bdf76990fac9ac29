"""CLI entry point for filesentry."""

from __future__ import annotations

import asyncio
import signal

import click

from . import __version__
from .config import Channel, FileSentryConfig, load_config
from .exceptions import ConfigError, TranslationError


def _load(ctx: click.Context) -> FileSentryConfig:
    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def _daemon(ctx: click.Context):
    from .daemon import Daemon

    try:
        return Daemon(_load(ctx))
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


# ── CLI Commands ─────────────────────────────────────────


@click.group()
@click.version_option(version=__version__, prog_name="filesentry")
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """filesentry: get notified when files change the way you care about."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


@main.command()
@click.option("--root", default=None, help="Directory to watch (overrides config)")
@click.pass_context
def run(ctx: click.Context, root: str | None) -> None:
    """Watch files and dispatch rule matches until interrupted."""
    from .daemon import Daemon
    from .logging_setup import configure_logging

    config = _load(ctx)
    if root:
        config.watch.root = root
    configure_logging(ctx.obj["verbose"], log_dir=f"{config.data_dir}/logs")
    try:
        daemon = Daemon(config)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    async def _serve() -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except (NotImplementedError, RuntimeError):
                pass  # Windows: KeyboardInterrupt ends asyncio.run instead
        if hasattr(signal, "SIGHUP"):
            loop.add_signal_handler(signal.SIGHUP, daemon.reload_rules)
        await daemon.start()
        click.echo(f"Watching {config.watch.root} with {len(daemon.engine.snapshot())} active rules")
        try:
            await stop.wait()
        finally:
            await daemon.stop()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        pass


# ── Rules ────────────────────────────────────────────────


@main.group()
def rules() -> None:
    """Manage rules."""


@rules.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include inactive rules")
@click.pass_context
def rules_list(ctx: click.Context, show_all: bool) -> None:
    from .rules.store import RulesStore

    store = RulesStore(_load(ctx).rules_file)
    items = store.load() if show_all else store.list_active()
    if not items:
        click.echo("No rules.")
        return
    for rule in items:
        p = rule.predicate
        flag = "" if rule.active else " (inactive)"
        click.echo(f"{rule.id}{flag}  {rule.natural_language}")
        click.echo(
            f"    event={p.event_type.value} path={p.path_pattern} "
            f"content={p.content_pattern or '-'} negation={p.negation}"
        )


@rules.command("add")
@click.argument("text")
@click.option("--path-pattern", default=None, help="Glob; skips LLM translation")
@click.option("--content-pattern", default=None, help="Substring or /regex/")
@click.option(
    "--event-type",
    type=click.Choice(["create", "update", "delete", "move", "any"]),
    default="any",
)
@click.option("--negate", is_flag=True, help="Fire when the content is absent")
@click.pass_context
def rules_add(
    ctx: click.Context,
    text: str,
    path_pattern: str | None,
    content_pattern: str | None,
    event_type: str,
    negate: bool,
) -> None:
    """Add a rule from natural-language TEXT."""
    from .rules.models import Predicate

    if path_pattern is None and (content_pattern is not None or event_type != "any" or negate):
        raise click.UsageError(
            "--content-pattern, --event-type and --negate require --path-pattern"
        )

    daemon = _daemon(ctx)
    predicate = None
    if path_pattern is not None:
        predicate = Predicate(
            path_pattern=path_pattern,
            content_pattern=content_pattern,
            event_type=event_type,
            negation=negate,
        )

    async def _create():
        try:
            return await daemon.create_rule(text, predicate)
        finally:
            await daemon.translator.close()

    try:
        rule = asyncio.run(_create())
    except TranslationError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Rule {rule.id} created: {rule.predicate.model_dump_json()}")


@rules.command("remove")
@click.argument("rule_id")
@click.pass_context
def rules_remove(ctx: click.Context, rule_id: str) -> None:
    if not _daemon(ctx).delete_rule(rule_id):
        raise click.ClickException(f"No rule {rule_id}")
    click.echo(f"Rule {rule_id} removed")


@rules.command("enable")
@click.argument("rule_id")
@click.pass_context
def rules_enable(ctx: click.Context, rule_id: str) -> None:
    if not _daemon(ctx).set_rule_active(rule_id, True):
        raise click.ClickException(f"No rule {rule_id}")
    click.echo(f"Rule {rule_id} enabled")


@rules.command("disable")
@click.argument("rule_id")
@click.pass_context
def rules_disable(ctx: click.Context, rule_id: str) -> None:
    if not _daemon(ctx).set_rule_active(rule_id, False):
        raise click.ClickException(f"No rule {rule_id}")
    click.echo(f"Rule {rule_id} disabled")


# ── History ──────────────────────────────────────────────


@main.group()
def history() -> None:
    """Query match and failure history."""


@history.command("matches")
@click.option("--limit", default=20, show_default=True)
@click.pass_context
def history_matches(ctx: click.Context, limit: int) -> None:
    from .history import HistoryStore

    for m in HistoryStore(_load(ctx).data_dir).recent_matches(limit):
        click.echo(f"{m.timestamp.isoformat()}  {m.rule_id}  {m.file_path}  {m.detail}")


@history.command("failures")
@click.option("--limit", default=20, show_default=True)
@click.option("--stack", is_flag=True, help="Show stack traces")
@click.pass_context
def history_failures(ctx: click.Context, limit: int, stack: bool) -> None:
    from .history import HistoryStore

    for f in HistoryStore(_load(ctx).data_dir).recent_failures(limit):
        click.echo(f"{f.timestamp.isoformat()}  {f.rule_id or '-'}  {f.error_message}")
        if stack and f.stack:
            click.echo(f.stack)


# ── Ad hoc notifications ─────────────────────────────────


@main.command()
@click.argument("title")
@click.argument("message")
@click.option(
    "--channel",
    "channels",
    multiple=True,
    type=click.Choice([c.value for c in Channel]),
    help="Repeatable; defaults to the configured channels",
)
@click.pass_context
def notify(ctx: click.Context, title: str, message: str, channels: tuple[str, ...]) -> None:
    """Send one notification through the queue and wait for it to settle."""
    from .notifications.models import NotificationPayload, NotificationStatus

    daemon = _daemon(ctx)
    settled = (NotificationStatus.DELIVERED, NotificationStatus.DROPPED)

    async def _send():
        daemon.queue.start()
        item = daemon.notify(
            NotificationPayload(title=title, message=message),
            [Channel(c) for c in channels] or None,
        )
        while item.status not in settled:
            await asyncio.sleep(daemon.config.queue.tick_ms / 1000)
        await daemon.queue.stop()
        await daemon.router.close()
        return item

    item = asyncio.run(_send())
    click.echo(f"Notification {item.id}: {item.status.value}")


if __name__ == "__main__":
    main()
