"""Interactive terminal front-end for guided setup workflows."""

import codecs
import logging
from enum import Enum
from pathlib import Path
from typing import IO, Dict, Optional, Union

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.message import Message
from textual.widgets import Footer, Log, Static

from ..exceptions import EndOfWorkflow, RunError, StateError
from ..exec.coordinator import OutputChunk, RunCoordinator, RunEvent, RunFinished
from ..exec.run_handle import RunResult
from ..workflow.executor import Executor

__all__ = ["GuidedSetupApp", "UIState"]

logger = logging.getLogger(__name__)


class UIState(str, Enum):
    """Front-end state machine."""
    INITIALIZING = "initializing"
    RUNNING = "running"
    IDLE = "idle"
    FINISHED = "finished"


class GuidedSetupApp(App[bool]):
    """Runs a prepared workflow one step at a time.

    The app returns True if the operator advanced past the last step and
    False if they quit early.
    """

    class StepOutput(Message):
        """A chunk of live output from the running step."""

        def __init__(self, chunk: OutputChunk) -> None:
            self.chunk = chunk
            super().__init__()

    class StepFinished(Message):
        """The running step's process has exited."""

        def __init__(self, result: RunResult) -> None:
            self.result = result
            super().__init__()

    TITLE = "Guided Setup"

    BINDINGS = [
        Binding("n", "next_step", "Next step"),
        Binding("r", "rerun_step", "Re-run step"),
        Binding("q", "quit", "Quit"),
        Binding("escape", "quit", "Quit", show=False),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
    ]

    DEFAULT_CSS = """
    #step-header {
        dock: top;
        height: 1;
        background: $primary;
        color: $text;
        padding: 0 1;
    }

    #step-info {
        height: auto;
        padding: 0 1;
    }

    #command-status {
        height: auto;
        padding: 1 1 0 1;
        text-style: bold;
    }

    #output {
        height: 1fr;
        border: round $primary;
    }
    """

    def __init__(
        self,
        executor: Executor,
        ui_log_file: Optional[Union[str, Path]] = None,
    ) -> None:
        """Initialize the front-end.

        Args:
            executor: A prepared executor
            ui_log_file: File receiving a copy of all displayed step output
        """
        super().__init__()
        self.executor = executor
        self.ui_log_file = Path(ui_log_file) if ui_log_file else None
        self.ui_state = UIState.INITIALIZING
        self.last_result: Optional[RunResult] = None
        self.output_text = ""
        self.coordinator = RunCoordinator(self._notify)
        self._ui_log: Optional[IO[bytes]] = None
        # One decoder per stream so characters split across reads survive
        self._decoders: Dict[str, codecs.IncrementalDecoder] = {}

    def compose(self) -> ComposeResult:
        yield Static(id="step-header")
        with Vertical():
            yield Static(id="step-info")
            yield Static("Initializing...", id="command-status")
            yield Log(id="output")
        yield Footer()

    def on_mount(self) -> None:
        # Textual mounts once the terminal size is known; that ends INITIALIZING.
        if self.ui_log_file:
            try:
                self._ui_log = open(self.ui_log_file, "ab")
            except OSError as e:
                logger.error(f"Failed to open UI log file {self.ui_log_file}: {e}")
                self.notify(f"UI log disabled: {e}", severity="warning")
        self.run_current_step()

    def on_unmount(self) -> None:
        self.coordinator.cancel()
        if self._ui_log:
            self._ui_log.close()
            self._ui_log = None

    def run_current_step(self) -> None:
        """Start the current step's process in the background."""
        if self.coordinator.running:
            self.bell()
            return

        self.last_result = None
        self.output_text = ""
        self._decoders = {}
        self.query_one("#output", Log).clear()

        binding = self.executor.current_step()
        self._log_output(f"### Step {binding.index + 1}/{self.executor.total_steps}: {binding.name}\n".encode())

        try:
            handle = self.executor.prepare_run()
        except RunError as e:
            logger.error(f"Failed to prepare step {binding.name!r}: {e}")
            self.last_result = RunResult(step_name=binding.name, error=e)
            self.ui_state = UIState.IDLE
            self._refresh_view()
            return

        self.ui_state = UIState.RUNNING
        self._refresh_view()
        self.coordinator.start(handle)

    def _notify(self, event: RunEvent) -> None:
        # Called from coordinator threads; post_message is thread-safe.
        if isinstance(event, OutputChunk):
            self.post_message(self.StepOutput(event))
        elif isinstance(event, RunFinished):
            self.post_message(self.StepFinished(event.result))

    def on_guided_setup_app_step_output(self, message: StepOutput) -> None:
        chunk = message.chunk
        decoder = self._decoders.get(chunk.stream)
        if decoder is None:
            decoder = self._decoders[chunk.stream] = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._write_output(decoder.decode(chunk.data))
        self._log_output(chunk.data)

    def on_guided_setup_app_step_finished(self, message: StepFinished) -> None:
        # Bytes of a character cut off by process exit
        for decoder in self._decoders.values():
            self._write_output(decoder.decode(b"", final=True))
        self._decoders = {}

        try:
            self.executor.apply_result(message.result)
        except StateError as e:
            logger.error(str(e))
            self.notify(str(e), severity="error")
        self.last_result = message.result
        self.ui_state = UIState.IDLE
        self._refresh_view()

    def action_next_step(self) -> None:
        """Advance to the next step once the current one has finished."""
        if self.ui_state is not UIState.IDLE or self.coordinator.running:
            self.bell()
            return

        try:
            self.executor.next_step()
        except EndOfWorkflow:
            self.ui_state = UIState.FINISHED
            self.exit(True)
            return
        except StateError as e:
            # Position already advanced; only persisting it failed
            logger.error(str(e))
            self.notify(str(e), severity="error")

        self.run_current_step()

    def action_rerun_step(self) -> None:
        """Run the current step again once it has finished."""
        if self.ui_state is not UIState.IDLE or self.coordinator.running:
            self.bell()
            return
        self.run_current_step()

    async def action_quit(self) -> None:
        self.coordinator.cancel()
        self.exit(self.ui_state is UIState.FINISHED)

    def _refresh_view(self) -> None:
        binding = self.executor.current_step()
        step = binding.step
        outputs = self.executor.captured_outputs

        header = Text()
        header.append(binding.name, style="bold")
        header.append(f"  ({binding.index + 1}/{self.executor.total_steps})")
        self.query_one("#step-header", Static).update(header)

        info = Text()
        info.append("Description\n", style="bold")
        info.append((step.description or "(no description provided)").rstrip() + "\n")
        for title, declarations in (("Inputs", step.inputs), ("Outputs", step.outputs)):
            info.append(f"\n{title}\n", style="bold")
            if not declarations:
                info.append("(none)\n")
            for declaration in declarations:
                info.append(f"- {declaration.name}")
                if declaration.name in outputs:
                    info.append(f" {outputs[declaration.name]}", style="cyan")
                info.append("\n")
        self.query_one("#step-info", Static).update(info)

        status = Text("Command")
        if self.ui_state is UIState.RUNNING:
            status.append(" (running...)", style="not bold yellow")
        elif self.last_result is not None:
            if self.last_result.ok:
                status.append(" (Finished successfully)", style="not bold green")
            else:
                status.append(f" (Finished with error: {self.last_result.error})", style="not bold red")
        self.query_one("#command-status", Static).update(status)

    def _write_output(self, text: str) -> None:
        if not text:
            return
        self.output_text += text
        self.query_one("#output", Log).write(text)

    def _log_output(self, data: bytes) -> None:
        if not self._ui_log:
            return
        try:
            self._ui_log.write(data)
            self._ui_log.flush()
        except OSError as e:
            logger.error(f"Failed to write UI log: {e}")
            self._ui_log = None
