"""Fan one operation out to many hosts with bounded concurrency.

Scheduling:
- Hosts are queued up front; `min(max_concurrency, len(hosts))` worker
  tasks pull from the queue until it is empty. The worker count is the
  concurrency bound, so no more than `max_concurrency` operations are ever
  in flight.
- Fail-fast cancellation is cooperative: the first failure sets a stop
  event, and each worker checks it before starting its next host. Work
  already in flight finishes and is recorded; hosts never started are
  recorded as not attempted.
- Operations are never retried here. A failed operation may already have
  changed the remote host.
"""

import asyncio
import inspect
import logging
from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from gpcluster.errors import CommandFailedError
from gpcluster.models import (
    CommandResult,
    DispatchResult,
    DispatchState,
    Host,
    Outcome,
    Policy,
)
from gpcluster.protocols import LoggerSink, LogSink, Operation
from gpcluster.services.collector import ResultCollector
from gpcluster.services.reducer import Reducer

logger = logging.getLogger(__name__)


class Dispatcher:
    """Runs an operation against every host of a set.

    Holds no per-dispatch state, so one instance can serve any number of
    sequential or concurrent dispatches.

    Example:
        >>> dispatcher = Dispatcher()
        >>> result = await dispatcher.run(hosts, op, Policy(max_concurrency=4))
        >>> if not result.ok:
        ...     raise result.error
    """

    def __init__(
        self,
        sink: LogSink | None = None,
        reducer: Reducer | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            sink: Receives one summary line per failing host
            reducer: Classifies outcomes and builds the aggregate error
        """
        self.sink = sink if sink is not None else LoggerSink()
        self.reducer = reducer if reducer is not None else Reducer()

    async def run(
        self,
        hosts: Iterable[Host],
        op: Operation,
        policy: Policy | None = None,
    ) -> DispatchResult:
        """Run `op` once per host.

        Host failures are recorded, never raised. The returned result holds
        an outcome for every host.

        Args:
            hosts: Hosts to run against (identifiers must be unique)
            op: Operation to run per host
            policy: Failure and concurrency policy (defaults to fail-fast)

        Returns:
            DispatchResult with every host accounted for

        Raises:
            ValueError: If two hosts share an identifier
            CollectorMisuseError: If result bookkeeping is violated
        """
        policy = policy or Policy()
        targets = tuple(hosts)
        collector = ResultCollector(host.ident for host in targets)

        if not targets:
            logger.debug("Dispatch with no hosts, nothing to do")
            return DispatchResult()

        queue: asyncio.Queue[Host] = asyncio.Queue()
        for host in targets:
            queue.put_nowait(host)
        stop = asyncio.Event()

        worker_count = min(policy.max_concurrency, len(targets))
        logger.debug(
            "Dispatch %s -> %s: %d host(s), %d worker(s), continue_on_error=%s",
            DispatchState.PENDING.value,
            DispatchState.RUNNING.value,
            len(targets),
            worker_count,
            policy.continue_on_error,
        )

        workers = [
            asyncio.create_task(
                self._worker(queue, stop, op, policy, collector),
                name=f"gpcluster-worker-{i}",
            )
            for i in range(worker_count)
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            raise

        outcomes = collector.snapshot()
        state = self.reducer.classify(outcomes)
        _, error = self.reducer.reduce(outcomes)
        result = DispatchResult(outcomes=outcomes, state=state, error=error)

        logger.debug(
            "Dispatch %s -> %s: %d succeeded, %d failed, %d not attempted",
            DispatchState.RUNNING.value,
            state.value,
            len(result.succeeded),
            len(result.failed),
            len(result.not_attempted),
        )
        self._report(result)
        return result

    def run_sync(
        self,
        hosts: Iterable[Host],
        op: Operation,
        policy: Policy | None = None,
    ) -> DispatchResult:
        """Blocking wrapper around `run` for synchronous callers."""
        return asyncio.run(self.run(hosts, op, policy))

    async def _worker(
        self,
        queue: "asyncio.Queue[Host]",
        stop: asyncio.Event,
        op: Operation,
        policy: Policy,
        collector: ResultCollector,
    ) -> None:
        """Pull hosts until the queue is empty."""
        while True:
            try:
                host = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            if stop.is_set():
                collector.record(host.ident, Outcome.not_attempted(host.ident))
                continue

            outcome = await self._execute(host, op)
            collector.record(host.ident, outcome)

            if not outcome.ok and not policy.continue_on_error and not stop.is_set():
                logger.info(
                    "Failure on %s, not starting remaining hosts: %s",
                    host.ident,
                    outcome.message,
                )
                stop.set()

    async def _execute(self, host: Host, op: Operation) -> Outcome:
        """Run the operation for one host and normalise what it produced."""
        logger.debug("Starting operation on %s", host.ident)
        try:
            if inspect.iscoroutinefunction(op):
                value = await op(host)
            else:
                value = await asyncio.to_thread(op, host)
                if inspect.isawaitable(value):
                    value = await value
        except Exception as e:
            logger.debug("Operation on %s raised %s: %s", host.ident, type(e).__name__, e)
            return Outcome.failure(host.ident, e)
        return self._as_outcome(host, value)

    @staticmethod
    def _as_outcome(host: Host, value: Any) -> Outcome:
        if isinstance(value, Outcome):
            if value.host_id != host.ident:
                logger.warning(
                    "Operation returned outcome for %s while running on %s, "
                    "recording it under %s",
                    value.host_id,
                    host.ident,
                    host.ident,
                )
                value = replace(value, host_id=host.ident)
            return value
        if isinstance(value, CommandResult):
            if value.succeeded:
                return Outcome.success(host.ident, value.output)
            return Outcome.failure(
                host.ident,
                CommandFailedError(value.returncode, value.error),
                output=value.output,
            )
        return Outcome.success(host.ident, value)

    def _report(self, result: DispatchResult) -> None:
        """Emit one line per failing host through the sink."""
        for host_id in result.failed:
            self.sink.log(logging.ERROR, f"{host_id}: {result[host_id].message}")
        for host_id in result.not_attempted:
            self.sink.log(logging.WARNING, f"{host_id}: not attempted, dispatch cancelled")
