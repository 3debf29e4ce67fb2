"""Run and check command implementations."""

import logging
import sys
from argparse import Namespace
from pathlib import Path
from typing import Optional

from guided_setup.exceptions import (
    EndOfWorkflow,
    PreparationError,
    StateError,
    WorkflowValidationError,
)
from guided_setup.loader import DefinitionLoader
from guided_setup.state import StateManager
from guided_setup.workflow.executor import Executor


logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'error': logging.ERROR,
}


def configure_logging(args: Namespace) -> None:
    """Send log records to the log file; the terminal belongs to the UI."""
    logging.basicConfig(
        level=LOG_LEVELS[args.log_level],
        format=LOG_FORMAT,
        filename=args.log_file,
    )


def load_definitions(args: Namespace) -> tuple:
    """Load the workflow and the step catalog named on the command line."""
    loader = DefinitionLoader()
    logger.info(f"Loading workflow: {args.workflow}")
    workflow = loader.load_workflow(Path(args.workflow))
    steps = loader.load_steps(args.steps)
    logger.info(f"Loaded {len(workflow)} workflow step(s) and {len(steps)} step definition(s)")
    return workflow, steps


def _report(message: str) -> None:
    logger.error(message)
    print(f"Error: {message}", file=sys.stderr)


def _prepare(args: Namespace, state_manager: Optional[StateManager] = None,
             shell_rc_file: Optional[str] = None) -> Executor:
    workflow, steps = load_definitions(args)
    executor = Executor(
        workflow=workflow.steps,
        steps=steps,
        state_manager=state_manager,
        shell_rc_file=shell_rc_file,
    )
    executor.prepare()
    return executor


def check_workflow(args: Namespace) -> int:
    """Load definitions and bind every workflow step without running anything."""
    configure_logging(args)
    try:
        executor = _prepare(args)
    except WorkflowValidationError as e:
        for error in e.errors:
            _report(f"{error.path}: {error.message}" if error.path else error.message)
        return e.exit_code
    except PreparationError as e:
        _report(f"failed to prepare executor: {e}")
        return e.exit_code

    for binding in executor.bindings:
        print(f"{binding.index + 1}. {binding.name} -> {binding.step.source or ''} [{binding.step.pattern!r}]")
    return 0


def run_headless(executor: Executor) -> int:
    """Run every remaining step in order, stopping at the first failure."""
    while True:
        binding = executor.current_step()
        print(f"==> [{binding.index + 1}/{executor.total_steps}] {binding.name}", flush=True)
        result = executor.run_current_step()
        if not result.ok:
            _report(f"step {binding.name!r} failed: {result.error}")
            return 1
        try:
            executor.next_step()
        except EndOfWorkflow:
            print("Workflow finished.")
            return 0


def run_workflow(args: Namespace) -> int:
    """
    Run a workflow interactively (or headless).

    Preparation errors are reported before any UI is shown.
    """
    configure_logging(args)

    try:
        state_manager = StateManager(args.statefile)
        executor = _prepare(args, state_manager, args.rcfile)
        state = state_manager.load_or_create(executor.workflow)
        executor.restore(state)
    except WorkflowValidationError as e:
        for error in e.errors:
            _report(f"{error.path}: {error.message}" if error.path else error.message)
        return e.exit_code
    except PreparationError as e:
        _report(f"failed to prepare executor: {e}")
        return e.exit_code
    except StateError as e:
        _report(str(e))
        return 1

    try:
        if args.headless:
            return run_headless(executor)

        from guided_setup.ui import GuidedSetupApp

        app = GuidedSetupApp(executor, ui_log_file=args.uilogfile)
        finished = app.run()
        if app.return_code:
            _report("failed to run UI")
            return app.return_code
        binding = executor.current_step()
        if finished:
            print("Workflow finished.")
        else:
            print(f"Stopped at step {binding.index + 1}/{executor.total_steps}: {binding.name}")
        return 0

    except StateError as e:
        _report(str(e))
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
