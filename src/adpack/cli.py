"""CLI interface for adpack."""

from __future__ import annotations

import json
import logging
import signal
import sys
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterator, NoReturn

import click

from adpack.core.errors import AdpackError
from adpack.core.events import COMPLETE, ERROR, PROGRESS
from adpack.core.tracker import Tracker
from adpack.core.workspace import Workspace
from adpack.settings import Settings
from adpack.utils import bytes_to_human, format_elapsed, parse_size, percent

KINDS = ("image", "audio")


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _fail(exc: Exception | str) -> NoReturn:
    click.echo(click.style(f"Error: {exc}", fg="red"), err=True)
    sys.exit(1)


def _build_workspace(ctx: click.Context) -> Workspace:
    try:
        return Workspace.from_settings(Settings.instance(), root=ctx.obj.get("root"))
    except AdpackError as e:
        _fail(e)


def _image_options(quality: int | None, max_width: int | None, max_height: int | None) -> dict[str, Any]:
    settings = Settings.instance()
    options: dict[str, Any] = {"quality": quality if quality is not None else settings.get("image.quality", 80)}
    if max_width is not None:
        options["max_width"] = max_width
    if max_height is not None:
        options["max_height"] = max_height
    return options


def _audio_options(
    bitrate: str | None,
    sample_rate: int | None,
    channels: int | None,
    fmt: str | None,
    vbr_quality: int | None,
) -> dict[str, Any]:
    settings = Settings.instance()
    options: dict[str, Any] = {"bitrate": bitrate or settings.get("audio.bitrate", "96k")}
    for key, value in (("sample_rate", sample_rate), ("channels", channels), ("format", fmt), ("quality", vbr_quality)):
        if value is not None:
            options[key] = value
    return options


def _outcome_line(path: str, outcome: dict[str, Any]) -> str:
    if not outcome.get("success"):
        return f"  {click.style('✗', fg='red')} {path} — {outcome.get('error_message', 'failed')}"
    if outcome.get("skipped"):
        return f"  {click.style('·', fg='bright_black')} {path} — skipped ({outcome.get('skip_reason')})"
    saved = outcome.get("saved_bytes", 0)
    extra = ""
    if outcome.get("converted"):
        extra = f" [{outcome.get('original_format')} → {outcome.get('new_format')}]"
    if outcome.get("new_width") is not None and outcome.get("original_width") != outcome.get("new_width"):
        extra += f" [{outcome['original_width']}x{outcome['original_height']} → {outcome['new_width']}x{outcome['new_height']}]"
    return (
        f"  {click.style('✓', fg='green')} {path} — "
        f"{bytes_to_human(outcome.get('original_size_bytes', 0))} → {bytes_to_human(outcome.get('new_size_bytes', 0))} "
        f"(saved {click.style(bytes_to_human(saved), fg='green', bold=True)}){extra}"
    )


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.option("--root", type=click.Path(file_okay=False), default=None, help="Asset root (default: saved root or CWD)")
@click.pass_context
def main(ctx: click.Context, verbose: int, root: str | None) -> None:
    """adpack — analyze and shrink playable-ad asset bundles."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["root"] = root


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--top", default=10, show_default=True, help="How many folders/files to list")
@click.option("--budget", default=None, help="Bundle size budget, e.g. 5MB")
@click.pass_context
def scan(ctx: click.Context, as_json: bool, top: int, budget: str | None) -> None:
    """Report asset sizes by type and folder."""
    workspace = _build_workspace(ctx)
    budget = budget or Settings.instance().get("budget")
    try:
        budget_bytes = parse_size(str(budget)) if budget else None
        result = workspace.scan()
    except (AdpackError, ValueError) as e:
        _fail(e)

    if as_json:
        data = result.to_dict()
        if budget_bytes is not None:
            data["budget"] = {"budget_bytes": budget_bytes, "over_bytes": result.over_budget(budget_bytes)}
        click.echo(json.dumps(data, indent=2))
        return

    total = result.total_bytes
    click.echo(f"\n{click.style('📦', bold=True)} {result.root_path}")
    click.echo(f"   {result.file_count:,} files, {click.style(bytes_to_human(total), fg='cyan', bold=True)}\n")

    click.echo(click.style("  By type", fg="blue", bold=True))
    for asset_type, stat in sorted(result.type_stats.items(), key=lambda x: x[1].size_bytes, reverse=True):
        click.echo(
            f"    {asset_type:12s} {bytes_to_human(stat.size_bytes):>10s}  "
            f"{percent(stat.size_bytes, total):5.1f}%  ({stat.count:,} files)"
        )

    folders = result.largest_folders(top)
    if folders:
        click.echo(f"\n{click.style('  Largest folders', fg='blue', bold=True)}")
        for path, node in folders:
            click.echo(f"    {bytes_to_human(node.size_bytes):>10s}  {path}/ ({node.file_count:,} files)")

    click.echo(f"\n{click.style('  Largest files', fg='blue', bold=True)}")
    for entry in result.largest_files(top):
        click.echo(f"    {bytes_to_human(entry.size_bytes):>10s}  {entry.relative_path}")

    if budget_bytes is not None:
        over = result.over_budget(budget_bytes)
        if over:
            click.echo(
                f"\n{click.style('!', fg='red')} Over budget ({bytes_to_human(budget_bytes)}) by "
                f"{click.style(bytes_to_human(over), fg='red', bold=True)}"
            )
        else:
            click.echo(f"\n{click.style('✓', fg='green')} Within budget ({bytes_to_human(budget_bytes)})")
    click.echo()


# ── estimate ─────────────────────────────────────────────────────────────

@main.command()
@click.argument("kind", type=click.Choice(KINDS))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def estimate(ctx: click.Context, kind: str, as_json: bool) -> None:
    """Estimate savings without touching any file."""
    workspace = _build_workspace(ctx)
    try:
        result = workspace.estimate(kind)
    except AdpackError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo(f"\n  {result.total_count:,} {kind} files, {bytes_to_human(result.total_size_bytes)}")
    for fmt, bucket in sorted(result.by_format.items()):
        click.echo(f"    .{fmt:6s} {bucket['count']:5,} files  {bytes_to_human(bucket['size_bytes']):>10s}")
    click.echo(
        f"\n  Estimated saving: ~{click.style(bytes_to_human(result.estimated_saving_bytes), fg='green', bold=True)} "
        f"{click.style('(heuristic, not measured)', fg='bright_black')}\n"
    )


# ── optimize ─────────────────────────────────────────────────────────────

@main.command()
@click.argument("kind", type=click.Choice(KINDS))
@click.option("--target", default=None, help="Subdirectory of the root to optimize")
@click.option("--quality", type=int, default=None, help="Image quality 1-100")
@click.option("--max-width", type=int, default=None, help="Shrink images wider than this")
@click.option("--max-height", type=int, default=None, help="Shrink images taller than this")
@click.option("--bitrate", default=None, help="Audio bitrate, e.g. 96k")
@click.option("--sample-rate", type=int, default=None, help="Audio sample rate in Hz")
@click.option("--channels", type=click.Choice(["1", "2"]), default=None, help="1=mono, 2=stereo")
@click.option("--format", "fmt", default=None, help="Audio output format (mp3, ogg, m4a, aac, wav)")
@click.option("--vbr-quality", type=int, default=None, help="MP3 VBR quality 0-9")
@click.option("--workers", type=int, default=None, help="Files processed in parallel")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--json", "as_json", is_flag=True, help="Emit one JSON event per line")
@click.pass_context
def optimize(
    ctx: click.Context,
    kind: str,
    target: str | None,
    quality: int | None,
    max_width: int | None,
    max_height: int | None,
    bitrate: str | None,
    sample_rate: int | None,
    channels: str | None,
    fmt: str | None,
    vbr_quality: int | None,
    workers: int | None,
    yes: bool,
    as_json: bool,
) -> None:
    """Compress every image or audio file in place (irreversible)."""
    workspace = _build_workspace(ctx)
    if workers is not None:
        workspace.optimizer.max_workers = max(1, workers)

    if kind == "image":
        options = _image_options(quality, max_width, max_height)
    else:
        options = _audio_options(bitrate, sample_rate, int(channels) if channels else None, fmt, vbr_quality)

    if not yes and not as_json:
        try:
            preview = workspace.estimate(kind)
        except AdpackError as e:
            _fail(e)
        if not preview.total_count:
            click.echo(f"No {kind} files found.")
            return
        click.echo(
            f"\n  {preview.total_count:,} {kind} files ({bytes_to_human(preview.total_size_bytes)}), "
            f"estimated saving ~{bytes_to_human(preview.estimated_saving_bytes)}"
        )
        if not click.confirm("  Files are overwritten in place. Continue?", default=False):
            click.echo("Aborted.")
            return
        click.echo(f"\n{click.style('🗜', bold=True)} Optimizing...\n")

    started = time.monotonic()
    cancel = threading.Event()
    summary: dict[str, Any] | None = None
    with _cancel_on_interrupt(cancel):
        for event in workspace.stream_batch(kind, options, target=target, cancel=cancel):
            if as_json:
                click.echo(event.to_json())
            elif event.name == PROGRESS:
                click.echo(click.style(f"  [{event.payload['current']}] {event.payload['file']}", fg="bright_black"))
            if event.name == COMPLETE:
                summary = event.payload["results"]
            elif event.name == ERROR:
                if as_json:
                    sys.exit(1)
                _fail(event.payload["error"])

    if summary is None:
        _fail("Batch ended without a result")
    Tracker().record_batch(summary, str(workspace.session.root))
    if as_json:
        return

    click.echo()
    for item in summary["files"]:
        click.echo(_outcome_line(item["path"], item))

    click.echo(
        f"\n  {summary['total']:,} files: {summary['succeeded']} optimized, "
        f"{summary['skipped']} skipped, {summary['failed']} failed"
        + (f", {summary['converted']} converted" if summary["converted"] else "")
    )
    click.echo(
        f"  Saved {click.style(bytes_to_human(summary['saved_size_bytes']), fg='green', bold=True)} "
        f"in {format_elapsed(time.monotonic() - started)}\n"
    )
    if summary["cancelled"]:
        click.echo(click.style("  Cancelled before every file was processed.\n", fg="yellow"))
    if summary["failed"]:
        sys.exit(1)


@contextmanager
def _cancel_on_interrupt(cancel: threading.Event) -> Iterator[None]:
    """Make the first Ctrl-C set *cancel*; a second one aborts as usual."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, frame: Any) -> None:
        if cancel.is_set():
            signal.default_int_handler(signum, frame)
        click.echo(click.style("\n  Cancelling after in-flight files finish...", fg="yellow"), err=True)
        cancel.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


# ── single files ─────────────────────────────────────────────────────────

@main.command()
@click.argument("path")
@click.option("--quality", type=int, default=None, help="Image quality 1-100")
@click.option("--bitrate", default=None, help="Audio bitrate, e.g. 96k")
@click.option("--format", "fmt", default=None, help="Audio output format")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def compress(
    ctx: click.Context,
    path: str,
    quality: int | None,
    bitrate: str | None,
    fmt: str | None,
    as_json: bool,
) -> None:
    """Compress one file (path relative to the root)."""
    workspace = _build_workspace(ctx)
    compressor = workspace.registry.for_path(path)
    if compressor is None:
        _fail(f"No compressor handles '{path}'")
    if compressor.kind == "image":
        options = _image_options(quality, None, None)
    else:
        options = _audio_options(bitrate, None, None, fmt, None)

    try:
        outcome = workspace.compress_one(path, options)
    except AdpackError as e:
        _fail(e)

    Tracker().record_single(compressor.kind, path, outcome)
    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        click.echo(_outcome_line(path, outcome.to_dict()))
    if not outcome.success:
        sys.exit(1)


@main.command()
@click.argument("path")
@click.option("--width", type=int, default=None, help="Target width in pixels")
@click.option("--height", type=int, default=None, help="Target height in pixels")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def resize(ctx: click.Context, path: str, width: int | None, height: int | None, as_json: bool) -> None:
    """Resize one image; a missing dimension keeps the aspect ratio."""
    workspace = _build_workspace(ctx)
    try:
        outcome = workspace.resize_one(path, width=width, height=height)
    except AdpackError as e:
        _fail(e)

    Tracker().record_single("image", path, outcome)
    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        click.echo(_outcome_line(path, outcome.to_dict()))
    if not outcome.success:
        sys.exit(1)


@main.command()
@click.argument("path")
@click.pass_context
def info(ctx: click.Context, path: str) -> None:
    """Show image dimensions or audio stream details."""
    workspace = _build_workspace(ctx)
    try:
        data = workspace.media_info(path)
    except AdpackError as e:
        _fail(e)
    click.echo(json.dumps(data, indent=2))


# ── root ─────────────────────────────────────────────────────────────────

@main.command()
@click.argument("path", required=False)
@click.pass_context
def root(ctx: click.Context, path: str | None) -> None:
    """Show the asset root, or change and save it."""
    workspace = _build_workspace(ctx)
    if path is None:
        click.echo(str(workspace.session.root))
        return
    try:
        new_root = workspace.change_root(path)
    except AdpackError as e:
        _fail(e)
    Settings.instance().set("root", str(new_root))
    click.echo(f"Root set to {click.style(str(new_root), fg='cyan')}")


# ── stats ────────────────────────────────────────────────────────────────

@main.command()
@click.option("--period", "-p", default="all", type=click.Choice(["today", "week", "month", "all"]))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(period: str, as_json: bool) -> None:
    """Show bytes saved across runs."""
    data = Tracker().get_stats(period)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"\n{click.style('📊', bold=True)} Statistics ({period})\n")
    click.echo(f"  Bytes saved:     {click.style(bytes_to_human(data['bytes_saved']), fg='green', bold=True)}")
    click.echo(f"  Files optimized: {data['files_optimized']:,}")
    click.echo(f"  Runs:            {data['run_count']}")
    click.echo(f"  Lifetime total:  {click.style(bytes_to_human(data['lifetime_bytes_saved']), fg='cyan', bold=True)}")
    if data["last_run"]:
        click.echo(f"  Last run:        {data['last_run'][:19].replace('T', ' ')} UTC")

    if data["per_kind"]:
        click.echo("\n  Per-kind breakdown:")
        for kind, kstats in sorted(data["per_kind"].items(), key=lambda x: x[1]["bytes_saved"], reverse=True):
            click.echo(f"    {kind:10s} {bytes_to_human(kstats['bytes_saved']):>10s}  ({kstats['files_optimized']:,} files)")
    click.echo()


# ── service ──────────────────────────────────────────────────────────────

@main.group()
def service() -> None:
    """D-Bus service management."""


@service.command("start")
@click.pass_context
def service_start(ctx: click.Context) -> None:
    """Start the D-Bus service in foreground."""
    from adpack.dbus_service import start_service

    click.echo("Starting adpack D-Bus service...")
    start_service(root=ctx.find_root().obj.get("root"))
