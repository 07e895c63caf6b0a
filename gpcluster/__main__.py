"""Command line entry point: run one command across cluster hosts."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from gpcluster.config import Config, Settings
from gpcluster.dependencies import Dependencies
from gpcluster.errors import GpError
from gpcluster.models import Cluster, DispatchResult, Host, Scope, host_sort_key
from gpcluster.utils.console import ColorfulFormatter, log_file_path
from gpcluster.utils.shell import join_args

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    "success": "[OK]",
    "failure": "[FAILED]",
    "not_attempted": "[NOT ATTEMPTED]",
}


def configure_logging(settings: Settings) -> Path | None:
    """Install console and log file handlers on the gpcluster logger.

    The log file gets every record at `log_file_level` whatever the console
    level is. Its directory is created if missing.

    Returns:
        Path of the log file, None when file logging is turned off

    Raises:
        OSError: If the log directory or file cannot be opened
    """
    use_colors = settings.log_colors and sys.stderr.isatty()
    console_level = getattr(logging, settings.log_level, logging.INFO)
    file_level = getattr(logging, settings.log_file_level, logging.DEBUG)

    logging.getLogger("asyncssh").setLevel(logging.WARNING)
    package_logger = logging.getLogger("gpcluster")
    if package_logger.handlers:
        return None
    package_logger.setLevel(console_level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColorfulFormatter(use_colors=use_colors))
    handler.setLevel(console_level)
    package_logger.addHandler(handler)
    package_logger.propagate = False

    if settings.log_dir is None:
        return None

    path = log_file_path(settings.log_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(ColorfulFormatter(use_colors=False))
    file_handler.setLevel(file_level)
    package_logger.addHandler(file_handler)
    package_logger.setLevel(min(console_level, file_level))
    return path


def _load_segment_hosts(path: Path, scope: Scope) -> tuple[Host, ...]:
    """Hosts selected from a JSON file of segment configuration rows."""
    try:
        rows = json.loads(path.read_text())
        cluster = Cluster.from_rows(rows)
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise click.BadParameter(f"cannot load segments from {path}: {e}") from e
    return cluster.select(scope)


def _print_result(result: DispatchResult) -> None:
    for host_id in sorted(result, key=host_sort_key):
        outcome = result[host_id]
        label = STATUS_LABELS[outcome.kind.value]
        if outcome.ok:
            detail = str(outcome.output or "").strip().splitlines()
            click.echo(f"{label:<16}{host_id}  {detail[0] if detail else ''}".rstrip())
        else:
            click.echo(f"{label:<16}{host_id}  {outcome.message}")


@click.group()
@click.option(
    "--ssh-config",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="SSH config file used to resolve hosts (default: ~/.ssh/config).",
)
@click.pass_context
def cli(ctx: click.Context, ssh_config: Path | None) -> None:
    """Run administrative commands across a database cluster."""
    config = Config.from_env(ssh_config_path=ssh_config)
    try:
        log_path = configure_logging(config.settings)
    except OSError as e:
        raise click.ClickException(f"cannot open log file: {e}") from e
    if log_path is not None:
        logger.debug("Logging to %s", log_path)
    ctx.obj = Dependencies.from_config(config)


@cli.command()
@click.argument("command", nargs=-1, required=True)
@click.option("--host", "-H", "host_names", multiple=True, help="Target host (repeatable).")
@click.option(
    "--segments",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file of segment configuration rows to select hosts from.",
)
@click.option("--on-hosts", is_flag=True, help="Run once per host instead of per segment.")
@click.option("--include-mirrors", is_flag=True, help="Include mirror segments.")
@click.option("--exclude-coordinator", is_flag=True, help="Skip the coordinator.")
@click.option("--local", "run_local", is_flag=True, help="Run on this machine once per host.")
@click.option(
    "--continue-on-error/--fail-fast",
    default=None,
    help="Keep going after a host fails (default from GPCLUSTER_CONTINUE_ON_ERROR).",
)
@click.option("--max-concurrency", type=click.IntRange(min=1), default=None)
@click.option("--timeout", type=click.IntRange(min=1), default=None, help="Seconds per host.")
@click.pass_obj
def run(
    deps: Dependencies,
    command: tuple[str, ...],
    host_names: tuple[str, ...],
    segments: Path | None,
    on_hosts: bool,
    include_mirrors: bool,
    exclude_coordinator: bool,
    run_local: bool,
    continue_on_error: bool | None,
    max_concurrency: int | None,
    timeout: int | None,
) -> None:
    """Run COMMAND on every selected host.

    COMMAND may use {hostname}, {content}, {port}, {datadir} and {ident}
    placeholders, filled in per host. Exits non-zero if any host failed.
    """
    hosts: list[Host] = [Host.for_hostname(name) for name in host_names]
    if segments is not None:
        scope = Scope.ON_SEGMENTS
        if on_hosts:
            scope |= Scope.ON_HOSTS
        if include_mirrors:
            scope |= Scope.INCLUDE_MIRRORS
        if exclude_coordinator:
            scope |= Scope.EXCLUDE_COORDINATOR
        hosts.extend(_load_segment_hosts(segments, scope))
    if not hosts:
        raise click.UsageError("no hosts given: use --host or --segments")

    cmd = command[0] if len(command) == 1 else join_args(list(command))
    policy = deps.config.policy(continue_on_error, max_concurrency)

    async def dispatch() -> DispatchResult:
        try:
            op = deps.local(cmd, timeout) if run_local else deps.remote(cmd, timeout)
            return await deps.dispatcher().run(hosts, op, policy)
        finally:
            await deps.cleanup()

    try:
        result = asyncio.run(dispatch())
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e

    _print_result(result)
    if result.error is not None:
        click.echo(str(result.error), err=True)
        code = result.error.get_code() if isinstance(result.error, GpError) else 1
        sys.exit(code or 1)


@cli.command()
@click.pass_obj
def hosts(deps: Dependencies) -> None:
    """List hosts defined in the SSH config."""
    for name, host in sorted(deps.config.get_hosts().items()):
        click.echo(f"{name:<24}{host.user}@{host.hostname}:{host.port}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
