"""Command execution on top of invoke."""

import signal
from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut

from porter.core.log import logger


class PendingSignal:
    """A termination signal still owed to the main flow.

    invoke catches KeyboardInterrupt while it waits on a command and
    keeps waiting, so a signal handler raising it mid-command would be
    lost. Handlers record the signal here as well; Runner.execute
    raises it again as soon as the command has returned.
    """

    def __init__(self):
        self.signum: int | None = None

    def record(self, signum: int):
        self.signum = signum

    def clear(self):
        self.signum = None

    def raise_if_set(self):
        """Raise KeyboardInterrupt for SIGINT, else SystemExit(128+n)."""
        if self.signum is None:
            return
        if self.signum == signal.SIGINT:
            raise KeyboardInterrupt
        raise SystemExit(128 + self.signum)


# Shared by every Runner in the process.
pending_signal = PendingSignal()


class Runner(Context):
    """invoke.Context with a single execute() entry point.

    Commands run in a per-call working directory through invoke's
    cd() prefix; the process working directory is never changed.
    """

    def execute(
        self,
        command: str,
        cwd: Path | str | None = None,
        timeout: int | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
        log_level: str | None = "debug",
    ) -> Result:
        """Run a shell command and capture its output.

        Args:
            command: Shell command string
            cwd: Directory to run in
            timeout: Seconds before the command is killed; a timed
                out command reports exit code -1
            check: Raise invoke.UnexpectedExit on non-zero exit
            env: Extra environment variables, merged over os.environ
            log_level: Level for echoing output lines, None to skip

        Returns:
            invoke.Result with stdout, stderr and exited

        Raises:
            KeyboardInterrupt, SystemExit: A termination signal
                arrived while the command was running
        """
        kwargs = {
            "hide": True,
            "warn": not check,
            "in_stream": False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if env:
            kwargs["env"] = env

        logger.trace("Running command", command=command, cwd=str(cwd or "."))
        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            result = e.result
            result.exited = -1
        finally:
            pending_signal.raise_if_set()

        if log_level:
            # Raw output is an attribute, never part of the template.
            for line in (result.stdout + result.stderr).splitlines():
                if line.strip():
                    logger.log(log_level, "{line}", line=line.rstrip())

        return result
