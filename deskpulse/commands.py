from __future__ import annotations

from concurrent.futures import Executor, Future, ThreadPoolExecutor
import logging
import subprocess
from typing import Any, Callable

from deskpulse.logging_utils import TRACE_LEVEL
from deskpulse.parsers import parse_process_name
from deskpulse.runloop import RunQueue


class CommandRunner:
    """Runs diagnostic commands, synchronously or off the run queue thread.

    Failures never raise: a missing binary or a non-zero exit without output
    is reported as ``None`` and logged at debug level.
    """

    def __init__(
        self,
        run_queue: RunQueue,
        max_workers: int = 4,
        executor: Executor | None = None,
    ) -> None:
        self.run_queue = run_queue
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="deskpulse-cmd"
        )
        self.logger = logging.getLogger(self.__class__.__name__)
        # Touched only on the run queue thread.
        self._in_flight: set[str] = set()

    def run(self, command: list[str], stderr: int | None = None) -> str | None:
        try:
            if stderr is None:
                result = subprocess.run(
                    command,
                    check=False,
                    text=True,
                    capture_output=True,
                )
            else:
                result = subprocess.run(
                    command,
                    check=False,
                    text=True,
                    stdout=subprocess.PIPE,
                    stderr=stderr,
                )
        except FileNotFoundError:
            self.logger.debug("Command not found: %s", command[0])
            return None
        except OSError as exc:
            self.logger.debug("Command could not start (%s): %s", exc, " ".join(command))
            return None
        if result.returncode != 0:
            self.logger.debug(
                "Command failed (%s): %s", result.returncode, " ".join(command)
            )
            if result.stderr:
                self.logger.log(TRACE_LEVEL, "stderr: %s", result.stderr.strip())
            if not result.stdout:
                return None
        if result.stdout:
            self.logger.log(TRACE_LEVEL, "stdout: %s", result.stdout.strip())
        return result.stdout

    def run_async(self, command: list[str]) -> Future[str | None]:
        return self.executor.submit(self.run, command)

    def dispatch(
        self,
        key: str,
        work: Callable[..., Any],
        on_done: Callable[[Any], None],
        *args: Any,
    ) -> bool:
        """Run ``work(*args)`` off-thread and hand its result to ``on_done`` on the run queue.

        At most one dispatch per ``key`` is outstanding; a request for a key
        that is still in flight is dropped and ``False`` is returned.
        """
        if key in self._in_flight:
            self.logger.debug("Skipping %s refresh; previous query still running.", key)
            return False
        future = self.executor.submit(work, *args)
        self._in_flight.add(key)
        future.add_done_callback(
            lambda done: self.run_queue.call_soon(self._complete, key, done, on_done)
        )
        return True

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _complete(
        self, key: str, future: Future[Any], on_done: Callable[[Any], None]
    ) -> None:
        self._in_flight.discard(key)
        if future.cancelled():
            self.logger.debug("%s query cancelled.", key)
            return
        error = future.exception()
        if error is not None:
            self.logger.warning(
                "%s query failed: %s", key, error, exc_info=error
            )
            return
        on_done(future.result())


def process_name(runner: CommandRunner, pid: int, ps_path: str = "ps") -> str | None:
    """Return the command name of ``pid`` as reported by ``ps``."""
    return parse_process_name(runner.run([ps_path, "-p", str(pid), "-o", "comm="]))
