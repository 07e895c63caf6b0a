"""Host executors: operations that run a shell command on a cluster host.

Each factory returns an Operation for `Dispatcher.run`. A command is either
a string template (``{hostname}``, ``{address}``, ``{content}``, ``{port}``,
``{datadir}``, ``{role}``, ``{ident}`` are filled per host; any other braces,
such as an awk program, are left alone) or a callable building the command
from the Host.
"""

import asyncio
import logging
import re
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from gpcluster.errors import CommandFailedError
from gpcluster.models import CommandResult, Host, Outcome, SSHHost
from gpcluster.protocols import Operation
from gpcluster.services.connection import get_connection_with_retry
from gpcluster.utils.hostname import is_localhost_target
from gpcluster.utils.shell import quote_path

if TYPE_CHECKING:
    import asyncssh

    from gpcluster.protocols import SSHConnectionPool

logger = logging.getLogger(__name__)

CommandSpec = str | Callable[[Host], str]

_PLACEHOLDER = re.compile(r"\{(ident|hostname|address|content|port|datadir|role)\}")

# Reported when a process ended without an exit status (killed by a signal)
NO_EXIT_STATUS = -1


def _decode(stream: str | bytes | None) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


def build_command(command: CommandSpec, host: Host) -> str:
    """Render the command for one host.

    Only the known placeholders are substituted.
    """
    if callable(command):
        return command(host)
    fields = host.format_fields()
    return _PLACEHOLDER.sub(lambda m: str(fields[m.group(1)]), command)


def _to_outcome(host: Host, result: CommandResult) -> Outcome:
    if result.succeeded:
        return Outcome.success(host.ident, result.output)
    return Outcome.failure(
        host.ident,
        CommandFailedError(result.returncode, result.error),
        output=result.output,
    )


async def run_command(
    conn: "asyncssh.SSHClientConnection",
    command: str,
    timeout: int,
    working_dir: str | None = None,
) -> CommandResult:
    """Execute a command over an SSH connection.

    The remote side enforces the timeout with coreutils `timeout`, which
    exits 124 when the limit is hit.

    Returns:
        CommandResult with stdout, stderr, and return code. A command killed
        by a signal gets NO_EXIT_STATUS and a failure.
    """
    full_command = f"timeout {int(timeout)} sh -c {quote_path(command)}"
    if working_dir:
        full_command = f"cd {quote_path(working_dir)} && {full_command}"

    result = await conn.run(full_command, check=False)

    error = _decode(result.stderr)
    returncode = result.returncode
    if returncode is None:
        # asyncssh leaves returncode unset when the process died on a signal
        signal = result.exit_signal[0] if result.exit_signal else "unknown"
        error = f"{error.rstrip()}\nterminated by signal {signal}".lstrip()
        returncode = NO_EXIT_STATUS

    return CommandResult(
        output=_decode(result.stdout),
        error=error,
        returncode=returncode,
    )


def resolve_ssh_host(
    host: Host,
    ssh_hosts: Mapping[str, SSHHost] | None = None,
    user: str = "gpadmin",
) -> SSHHost:
    """SSH target for a cluster host.

    An SSH config entry named after the hostname wins; otherwise the host is
    reached on port 22 as `user`.
    """
    if ssh_hosts and host.hostname in ssh_hosts:
        return ssh_hosts[host.hostname]
    return SSHHost(
        name=host.hostname,
        hostname=host.connect_name,
        user=user,
        is_localhost=is_localhost_target(host.hostname),
    )


def remote_command(
    pool: "SSHConnectionPool",
    command: CommandSpec,
    timeout: int,
    ssh_hosts: Mapping[str, SSHHost] | None = None,
    user: str = "gpadmin",
    working_dir: str | None = None,
) -> Operation:
    """Operation running `command` on each host over pooled SSH.

    Args:
        pool: Connection pool shared by the whole dispatch
        command: Command string template or per-host command builder
        timeout: Command timeout in seconds
        ssh_hosts: Parsed SSH config entries keyed by name
        user: SSH user for hosts without an SSH config entry
        working_dir: Directory to run the command in

    Returns:
        Coroutine function suitable for Dispatcher.run
    """

    async def execute_remote(host: Host) -> Outcome:
        cmd = build_command(command, host)
        ssh_host = resolve_ssh_host(host, ssh_hosts, user)
        conn = await get_connection_with_retry(pool, ssh_host)
        try:
            logger.debug("Running on %s (%s): %s", host.ident, ssh_host.name, cmd)
            result = await run_command(conn, cmd, timeout, working_dir)
        finally:
            await pool.release(ssh_host.name, conn)
        return _to_outcome(host, result)

    return execute_remote


def local_command(command: CommandSpec, timeout: int) -> Operation:
    """Operation running `command` on this machine once per host.

    Useful for commands that reach the host themselves (scp, rsync, psql
    against a segment port) and for per-segment work on a single-node
    cluster. The process is killed when it exceeds `timeout`.

    Args:
        command: Command string template or per-host command builder
        timeout: Command timeout in seconds
    """

    async def execute_local(host: Host) -> Outcome:
        cmd = build_command(command, host)
        logger.debug("Running locally for %s: %s", host.ident, cmd)
        proc = await asyncio.create_subprocess_shell(
            cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise TimeoutError(f"command timed out after {timeout}s") from None

        result = CommandResult(
            output=_decode(stdout),
            error=_decode(stderr),
            returncode=(
                proc.returncode if proc.returncode is not None else NO_EXIT_STATUS
            ),
        )
        return _to_outcome(host, result)

    return execute_local
