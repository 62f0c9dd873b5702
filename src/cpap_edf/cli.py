"""
Command-line interface for cpap-edf.

Provides commands for inspecting EDF files and reading ResMed SD cards.
"""

import json
import logging
import sys

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import click

from cpap_edf.config import (
    get_config_path,
    get_day_boundary,
    load_config,
    set_day_boundary,
)
from cpap_edf.constants import DEFAULT_LIST_SESSIONS_LIMIT, DEFAULT_RECENT_DAYS
from cpap_edf.loader import CPAPDataLoader
from cpap_edf.logging_config import get_log_path, setup_logging
from cpap_edf.models.results import LoadError, SubFileError
from cpap_edf.parsers.formats.edf import EDFError, read_edf

logger = logging.getLogger(__name__)

try:
    __version__ = get_version("cpap-edf")
except PackageNotFoundError:
    __version__ = "dev"


def _format_minutes(minutes: float) -> str:
    hours, mins = divmod(int(round(minutes)), 60)
    return f"{hours}h {mins:02d}m"


def _open_loader(path: str, day_start_hour: int | None = None) -> CPAPDataLoader:
    try:
        return CPAPDataLoader(path, day_start_hour=day_start_hour)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(__version__, prog_name="cpap-edf")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """cpap-edf: ResMed CPAP EDF data reader"""
    setup_logging(verbose=verbose)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--samples", "-s", type=int, default=0, help="Show the first N values per signal"
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def inspect(file: str, samples: int, as_json: bool) -> None:
    """Show the header, signals and sample counts of an EDF file."""
    try:
        decoded = read_edf(file)
    except (OSError, EDFError) as e:
        raise click.ClickException(f"Cannot decode {file}: {e}") from e

    header = decoded.header
    counts = decoded.sample_counts

    if as_json:
        output = {
            "header": header.model_dump(),
            "signals": [s.model_dump() for s in decoded.signals],
            "sample_counts": counts,
        }
        if samples > 0:
            output["samples"] = {
                label: values[:samples].tolist()
                for label, values in decoded.data.items()
            }
        click.echo(json.dumps(output, indent=2))
        return

    click.echo(f"\n📄 {Path(file).name}")
    click.echo(f"{'=' * 70}")
    click.echo(f"Version:         {header.version}")
    click.echo(f"Patient:         {header.patient_id}")
    click.echo(f"Recording:       {header.recording_id}")
    click.echo(f"Start:           {header.start_date} {header.start_time}")
    click.echo(f"Header bytes:    {header.header_bytes}")
    click.echo(f"Data records:    {header.num_data_records}")
    click.echo(f"Record duration: {header.data_record_duration}s")
    click.echo(f"Signals:         {header.num_signals}")

    if not decoded.signals:
        return

    click.echo(f"\n{'Label':<18} {'Unit':<8} {'Rate (Hz)':>10} {'Samples':>10}")
    click.echo(f"{'-' * 70}")
    for label, signal in zip(decoded.labels, decoded.signals, strict=False):
        rate = signal.sample_rate(header.data_record_duration)
        click.echo(
            f"{label:<18} {signal.physical_dimension:<8} {rate:>10.2f} "
            f"{counts.get(label, 0):>10}"
        )
        if samples > 0:
            values = ", ".join(f"{v:g}" for v in decoded.data[label][:samples])
            click.echo(f"    [{values}]")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--day-start-hour",
    type=click.IntRange(0, 23),
    help="Sleep-night boundary hour (default from config)",
)
@click.option(
    "--limit",
    "-n",
    type=int,
    default=DEFAULT_RECENT_DAYS,
    help="Days to show, most recent last (use 0 for all)",
)
def summary(path: str, day_start_hour: int | None, limit: int) -> None:
    """Show daily statistics from STR.edf."""
    loader = _open_loader(path, day_start_hour)
    result = loader.load_all()

    device = result.device_info
    if device.error:
        click.echo(f"⚠ {device.error}", err=True)
    else:
        click.echo(f"\n🩺 {device.product_name} (SN {device.serial_number})")

    if result.error:
        click.echo(f"⚠ {result.error}", err=True)
        click.echo(f"Sessions found: {len(loader.sessions)}")
        return

    stats = result.daily_stats
    shown = stats[-limit:] if limit > 0 else stats

    click.echo(f"\n{'Date':<12} {'Usage':>8} {'AHI':>6} {'Leak50':>7} {'Press':>6}")
    click.echo(f"{'-' * 45}")
    for day in shown:
        click.echo(
            f"{day.date:<12} {_format_minutes(day.usage_hours * 60):>8} "
            f"{day.ahi:>6.1f} {day.leak_50:>7.1f} {day.pressure:>6.1f}"
        )

    averages = result.averages
    click.echo(
        f"\nDays with usage: {result.total_days}  "
        f"(averages over last {result.recent_days})"
    )
    click.echo(f"  AHI:    {averages.ahi:.2f}")
    click.echo(f"  Usage:  {averages.usage_hours:.2f} h")
    click.echo(f"  Leak50: {averages.leak_50:.2f}")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--limit",
    "-n",
    type=int,
    default=DEFAULT_LIST_SESSIONS_LIMIT,
    help="Max sessions to show (use 0 for all)",
)
def sessions(path: str, limit: int) -> None:
    """List sessions under DATALOG, newest first."""
    loader = _open_loader(path)
    found = loader.load_session_list()

    if not found:
        click.echo("No sessions found")
        return

    shown = found[:limit] if limit > 0 else found

    click.echo(f"\n{'Session':<17} {'Duration':>9}  Files")
    click.echo(f"{'-' * 60}")
    for session in shown:
        click.echo(
            f"{session.id:<17} {_format_minutes(session.duration_minutes):>9}  "
            f"{', '.join(session.file_types)}"
        )

    if len(shown) < len(found):
        click.echo(f"\nShowing {len(shown)} of {len(found)} sessions")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.argument("session_id")
@click.option("--samples", is_flag=True, help="Decode sample arrays and show ranges")
def session(path: str, session_id: str, samples: bool) -> None:
    """Show the sub-files of one session."""
    loader = _open_loader(path)
    loader.load_session_list()
    detail = loader.load_session_detail(session_id, include_samples=samples)

    if isinstance(detail, LoadError):
        raise click.ClickException(f"{detail.error}: {session_id}")

    click.echo(f"\n🫁 Session {detail.id}")
    if detail.timestamp:
        click.echo(f"Started: {detail.timestamp:%Y-%m-%d %H:%M:%S}")

    for file_type, sub in detail.data.items():
        click.echo(f"\n[{file_type}]")
        if isinstance(sub, SubFileError):
            click.echo(f"  ✗ {sub.error}")
            continue

        click.echo(
            f"  Records: {sub.header.num_data_records} x "
            f"{sub.header.data_record_duration}s"
        )
        for label in sub.signals:
            line = f"  {label:<18} {sub.sample_counts.get(label, 0):>8} samples"
            if sub.raw_data is not None and len(sub.raw_data.get(label, [])):
                values = sub.raw_data[label]
                line += f"  [{values.min():g} .. {values.max():g}]"
            click.echo(line)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--day-start-hour",
    type=click.IntRange(0, 23),
    help="Sleep-night boundary hour (default from config)",
)
def nights(path: str, day_start_hour: int | None) -> None:
    """Show therapy usage per sleep night."""
    loader = _open_loader(path, day_start_hour)
    loader.load_session_list()
    usage = loader.sleep_night_usage

    if not usage:
        click.echo("No sessions with usage found")
        return

    click.echo(f"\nSleep nights (boundary {loader.day_start_hour:02d}:00)")
    click.echo(f"{'Night':<12} {'Usage':>8} {'Sessions':>9}")
    click.echo(f"{'-' * 32}")
    for night in sorted(usage.values(), key=lambda n: n.date):
        click.echo(
            f"{night.date.isoformat():<12} {_format_minutes(night.total_minutes):>8} "
            f"{night.session_count:>9}"
        )


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("show")
def show_config_cmd() -> None:
    """Show all configuration settings."""
    config_path = get_config_path()
    start, end = get_day_boundary()

    click.echo(f"Config file: {config_path}")
    if not config_path.exists():
        click.echo("(File does not exist yet, using defaults)")

    click.echo("\nSleep night:")
    click.echo(f"  day_start_hour = {start}")
    click.echo(f"  day_end_hour = {end}")

    config_data = load_config()
    for section in ("logging", "batch", "aliases"):
        if isinstance(config_data.get(section), dict) and config_data[section]:
            click.echo(f"\n[{section}]")
            for key, value in config_data[section].items():
                click.echo(f"  {key} = {value!r}")


@config.command("set-day-boundary")
@click.argument("start_hour", type=int)
@click.argument("end_hour", type=int, required=False)
def set_day_boundary_cmd(start_hour: int, end_hour: int | None) -> None:
    """Set the hour at which a sleep night starts (and ends)."""
    try:
        set_day_boundary(start_hour, end_hour)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    except PermissionError as e:
        raise click.ClickException(f"Cannot write config: {e}") from e

    start, end = get_day_boundary()
    click.echo(f"✓ Day boundary: {start:02d}:00 - {end:02d}:00")
    click.echo(f"  Config: {get_config_path()}")


@config.command("path")
def config_path_cmd() -> None:
    """Show config file location."""
    click.echo(str(get_config_path()))


@cli.group()
def logs() -> None:
    """Log file management commands."""
    pass


@logs.command("path")
def logs_path() -> None:
    """Show log file location."""
    log_path = get_log_path()
    click.echo(f"Log file: {log_path}")

    if log_path.exists():
        size_mb = log_path.stat().st_size / (1024 * 1024)
        click.echo(f"Size: {size_mb:.2f} MB")

        backup_files = sorted(log_path.parent.glob(f"{log_path.name}.*"))
        if backup_files:
            click.echo(f"Backup files: {len(backup_files)}")
    else:
        click.echo("(File does not exist yet)")


@logs.command("show")
@click.option("--lines", "-n", type=int, default=50, help="Number of lines to show")
def logs_show(lines: int) -> None:
    """Show recent log entries."""
    log_path = get_log_path()

    if not log_path.exists():
        click.echo("No log file found", err=True)
        sys.exit(1)

    try:
        with open(log_path, encoding="utf-8") as f:
            all_lines = f.readlines()
    except OSError as e:
        raise click.ClickException(f"Error reading log file: {e}") from e

    for line in all_lines[-lines:] if lines > 0 else all_lines:
        click.echo(line.rstrip())


def main() -> None:
    """Main CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
