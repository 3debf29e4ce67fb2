"""
Background execution of a step run.

The coordinator keeps process I/O off the UI loop: one thread per output
stream reports chunks as they arrive, and a waiter thread reports the run
result once the process has exited and both streams are drained.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from ..exceptions import StepSpawnError
from .run_handle import RunHandle, RunResult

logger = logging.getLogger(__name__)

STDOUT = "stdout"
STDERR = "stderr"

READ_CHUNK_SIZE = 1024


@dataclass
class OutputChunk:
    """Bytes read from one of the step's output streams."""
    data: bytes
    stream: str = STDOUT

    @property
    def stderr(self) -> bool:
        return self.stream == STDERR


@dataclass
class RunFinished:
    """The step run is over; emitted exactly once per run."""
    result: RunResult


RunEvent = Union[OutputChunk, RunFinished]


class RunCoordinator:
    """
    Runs a RunHandle on background threads and narrates it through ``notify``.

    ``notify`` is called from worker threads and must be thread-safe. Every
    OutputChunk of a run is delivered before its RunFinished, and ``running``
    is already False when RunFinished is delivered.
    """

    def __init__(self, notify: Callable[[RunEvent], None]):
        self.notify = notify
        self.handle: Optional[RunHandle] = None
        self._threads: List[threading.Thread] = []
        self._finished: Optional[threading.Event] = None

    @property
    def running(self) -> bool:
        return self._finished is not None and not self._finished.is_set()

    def start(self, handle: RunHandle) -> None:
        """
        Spawn the step process and the reader and waiter threads.

        Raises:
            RuntimeError: A run is in progress; the rejected handle is discarded
        """
        if self.running:
            handle.discard()
            raise RuntimeError("A step run is already in progress")

        self.handle = handle
        self._threads = []
        finished = self._finished = threading.Event()

        try:
            handle.start(capture_output=True)
        except StepSpawnError as e:
            logger.error(str(e))
            waiter = threading.Thread(
                target=self._wait, args=([], finished), name="step-wait", daemon=True
            )
            self._threads = [waiter]
            waiter.start()
            return

        readers = [
            threading.Thread(
                target=self._read,
                args=(handle.stdout, STDOUT),
                name="step-stdout",
                daemon=True,
            ),
            threading.Thread(
                target=self._read,
                args=(handle.stderr, STDERR),
                name="step-stderr",
                daemon=True,
            ),
        ]
        waiter = threading.Thread(
            target=self._wait, args=(readers, finished), name="step-wait", daemon=True
        )
        self._threads = readers + [waiter]
        for thread in self._threads:
            thread.start()

    def cancel(self) -> None:
        """Terminate the in-flight step process, if any."""
        if self.handle is not None and self.running:
            self.handle.terminate()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for all background threads of the current run."""
        for thread in list(self._threads):
            thread.join(timeout)

    def _read(self, stream, name: str) -> None:
        try:
            while True:
                data = stream.read1(READ_CHUNK_SIZE)
                if not data:
                    return
                self.notify(OutputChunk(data=data, stream=name))
        except (OSError, ValueError) as e:
            logger.warning(f"Stopped reading step {name}: {e}")
        finally:
            stream.close()

    def _wait(self, readers: List[threading.Thread], finished: threading.Event) -> None:
        result = self.handle.collect()
        for reader in readers:
            reader.join()
        finished.set()
        self.notify(RunFinished(result=result))
