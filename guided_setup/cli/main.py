"""Main CLI entry point for guided setup."""

import argparse
import sys
from typing import Optional

from .commands import check_workflow, run_workflow


def add_definition_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        'workflow',
        type=str,
        help='Path to workflow YAML file'
    )
    parser.add_argument(
        'steps',
        nargs='+',
        metavar='STEPS',
        help='Step definition files or glob patterns (e.g. "steps/*.yml")'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default='guided-setup.log',
        help='File receiving log messages (default: guided-setup.log)'
    )
    parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warn', 'error'],
        default='info',
        help='Set log level'
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the guided setup CLI."""
    parser = argparse.ArgumentParser(
        prog='guided-setup',
        description='Guided setup allows building interactive setup workflows.'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    run_parser = subparsers.add_parser(
        'run',
        help='Run a workflow',
        epilog='Example: guided-setup run setup.workflow path/to/steps/*.yml'
    )
    add_definition_arguments(run_parser)
    run_parser.add_argument(
        '--rcfile',
        type=str,
        default='~/.guided-setup/rc',
        help='Shell rc file to source before executing any step scripts'
    )
    run_parser.add_argument(
        '--statefile',
        type=str,
        default='.guided-setup-state.json',
        help='JSON file storing workflow state. Will be created if it does not exist.'
    )
    run_parser.add_argument(
        '--uilogfile',
        type=str,
        default='ui-log.txt',
        help='File where all script output displayed in the UI is logged'
    )
    run_parser.add_argument(
        '--headless',
        action='store_true',
        help='Run all remaining steps without the interactive UI, stopping at the first failure'
    )

    check_parser = subparsers.add_parser('check', help='Validate a workflow against its step definitions')
    add_definition_arguments(check_parser)

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.command == 'run':
        return run_workflow(parsed_args)
    elif parsed_args.command == 'check':
        return check_workflow(parsed_args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
