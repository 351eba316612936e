#!/usr/bin/env python3
"""
redditreel - turn Reddit threads into narrated short-form videos

Usage:
    redditreel                          # Same as `redditreel run`
    redditreel run                      # Preflight, select posts, render, upload
    redditreel select                   # Show which posts would be processed
    redditreel check                    # Run preflight checks only
    redditreel ledger show              # List post ids already processed
    redditreel ledger add ID            # Mark a post id as processed
    redditreel --config other.yaml run  # Use a different config file
"""

from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from redditreel.config import AppConfig, load_config
from redditreel.errors import ConfigError
from redditreel.ledger import UploadLedger
from redditreel.pipeline import BatchOrchestrator
from redditreel.preflight import has_failures, results_table, run_checks
from redditreel.reddit import RedditClient
from redditreel.runlog import CONSOLE_LEVELS, RunLog, quote
from redditreel.selector import PostSelector
from redditreel.video.assembler import SequenceAssembler
from redditreel.video.cards import CardRenderer, CardStyle
from redditreel.video.composer import ClipComposer
from redditreel.video.uploader import YouTubeUploader
from redditreel.video.voiceover import make_narrator

console = Console()

EXIT_PREFLIGHT = 1
EXIT_CONFIG = 2


def _load(ctx: click.Context) -> AppConfig:
    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {quote(str(e))}")
        ctx.exit(EXIT_CONFIG)
    if config.general.console_level not in CONSOLE_LEVELS:
        console.print(
            f"[bold red]Configuration error:[/bold red] general.console_level must be one of "
            f"{', '.join(CONSOLE_LEVELS)}"
        )
        ctx.exit(EXIT_CONFIG)
    return config


def _run_log(config: AppConfig) -> RunLog:
    g = config.general
    return RunLog(
        log_dir=g.log_dir,
        console_level=g.console_level,
        retention_days=g.log_retention_days,
        console=console,
    )


def _ledger(config: AppConfig, log: RunLog | None = None) -> UploadLedger:
    return UploadLedger(config.upload.ledger_path, enabled=config.upload.duplicate_check, log=log)


@click.group(invoke_without_command=True)
@click.option(
    "--config", "config_path", type=click.Path(path_type=Path), default=None,
    help="Path to config.yaml (default: ./config.yaml or $REDDITREEL_CONFIG)",
)
@click.pass_context
def cli(ctx, config_path):
    """Turn Reddit threads into narrated short-form videos"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.pass_context
def run(ctx):
    """Preflight, select posts, render videos and upload them"""
    config = _load(ctx)
    code = _do_run(config)
    if code:
        ctx.exit(code)


def _do_run(config: AppConfig) -> int:
    with _run_log(config) as log:
        log.print(Panel.fit(
            "[bold cyan]redditreel[/bold cyan]\n"
            + ("Testing mode: uploads skipped" if config.general.testing_mode else "Full run"),
            border_style="cyan",
        ))

        results = run_checks(config)
        if has_failures(results):
            log.print(results_table(results))
            log.error("Preflight failed, nothing was processed")
            log.event("preflight_failed", {"checks": results})
            return EXIT_PREFLIGHT

        try:
            narrator = make_narrator(config.tts, log)
        except ConfigError as e:
            log.error(f"Configuration error: {quote(str(e))}")
            return EXIT_CONFIG

        style = CardStyle.from_config(config.video)
        uploader = None
        if config.upload.enabled and not config.general.testing_mode:
            uploader = YouTubeUploader(config.upload, log)

        with RedditClient(config.reddit) as client:
            selector = PostSelector(config.reddit, client, log)
            posts = selector.select_posts()
            if not posts:
                log.warn("No posts matched the selection criteria")
                log.event("run_done", {"posts": 0})
                return 0
            log.info(f"Selected {len(posts)} post(s)")

            orchestrator = BatchOrchestrator(
                config=config,
                selector=selector,
                narrator=narrator,
                renderer=CardRenderer(style, log),
                composer=ClipComposer(config.video, log),
                assembler=SequenceAssembler(config.video, log),
                ledger=_ledger(config, log),
                log=log,
                uploader=uploader,
            )
            outcomes = orchestrator.run(posts)

        log.print(orchestrator.summary_table())
        log.event("run_done", {"posts": len(outcomes), "outcomes": [o.to_dict() for o in outcomes]})
    return 0


@cli.command()
@click.pass_context
def select(ctx):
    """Show which posts would be processed (no rendering)"""
    config = _load(ctx)
    ledger = _ledger(config)
    with _run_log(config) as log, RedditClient(config.reddit) as client:
        posts = PostSelector(config.reddit, client, log).select_posts()
        if not posts:
            log.warn("No posts matched the selection criteria")
            return

        table = Table(title="Selected Posts")
        table.add_column("ID", style="cyan")
        table.add_column("Title")
        table.add_column("Score", justify="right")
        table.add_column("Comments", justify="right")
        table.add_column("Created (UTC)")
        table.add_column("Seen")
        for post in posts:
            table.add_row(
                post.id,
                quote(post.title, 60),
                str(post.score),
                str(post.num_comments),
                post.created.strftime("%Y-%m-%d %H:%M"),
                "[yellow]yes[/yellow]" if ledger.seen(post.id) else "no",
            )
        log.print(table)


@cli.command()
@click.pass_context
def check(ctx):
    """Run preflight checks and print the results"""
    config = _load(ctx)
    results = run_checks(config)
    console.print(results_table(results))
    if has_failures(results):
        console.print("[bold red]Some checks failed.[/bold red]")
        ctx.exit(EXIT_PREFLIGHT)
    console.print("[bold green]All checks passed.[/bold green]")


@cli.group()
def ledger():
    """Inspect or edit the processed-post ledger"""


@ledger.command("show")
@click.pass_context
def ledger_show(ctx):
    """List post ids already processed"""
    config = _load(ctx)
    entries = _ledger(config).ids()
    if not entries:
        console.print(f"[dim]Ledger {config.upload.ledger_path} is empty.[/dim]")
        return
    for post_id in entries:
        console.print(post_id)
    console.print(f"\n[bold]{len(entries)}[/bold] post(s) in {config.upload.ledger_path}")


@ledger.command("add")
@click.argument("post_id")
@click.pass_context
def ledger_add(ctx, post_id):
    """Mark POST_ID as processed so it is never rendered again"""
    config = _load(ctx)
    if not config.upload.duplicate_check:
        console.print("[yellow]upload.duplicate_check is off; the ledger is not used.[/yellow]")
        return
    book = _ledger(config, RunLog(console=console))
    if book.seen(post_id):
        console.print(f"[yellow]{quote(post_id)} is already recorded.[/yellow]")
        return
    if book.record(post_id):
        console.print(f"[green]Recorded {quote(post_id)}.[/green]")
    else:
        ctx.exit(1)


if __name__ == "__main__":
    cli()
