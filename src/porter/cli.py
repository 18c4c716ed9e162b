#!/usr/bin/env python3
"""porter CLI - replay commits from one repository onto others."""

import asyncio
import contextlib
import sys

from pydantic import ValidationError
from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from porter.command.init import InitCommand
from porter.command.sweep import SweepCommand
from porter.command.sync import SyncCommand
from porter.core.config import State
from porter.core.errors import PorterError
from porter.core.log import logger


class CliState(State):
    """Replay a curated set of commits from a source repository onto
    one or more target repositories with cherry-pick.

    Targets are processed one at a time. Targets that are separate
    repositories get the source history through a temporary remote,
    which is always removed again, even on error or Ctrl-C.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.source.branch value)
    2. porter.yaml in the current directory, plus --include files
    3. .env file
    4. Environment variables
       (PORTER_CONFIG__SOURCE__BRANCH=value)
    """

    sync: CliSubCommand[SyncCommand]
    sweep: CliSubCommand[SweepCommand]
    init: CliSubCommand[InitCommand]

    def cli_cmd(self):
        """Dispatch to active subcommand, or show help if none
        provided."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            # argparse exits 0 after printing help; no command is an error.
            with contextlib.suppress(SystemExit):
                CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        # Closing the logger on the way out flushes the file sink.
        with logger:
            exit_code = asyncio.run(subcommand.run_workflow(self))
            raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    try:
        CliApp.run(CliState)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(2)
    except PorterError as e:
        logger.fatal("{reason}", reason=str(e))
        print(f"porter: {e}", file=sys.stderr)
        sys.exit(1)
    except EOFError:
        print("porter: end of input at prompt, stopping", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
