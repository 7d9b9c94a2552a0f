"""
Command dispatch.

A line is tokenized and offered to an ordered chain of handlers: the
plugin executable interceptor, the builtin table, and finally the
external resource tool. The first handler that does not answer
NOT_HANDLED owns the line.
"""

import logging
import subprocess
import sys
from typing import Protocol

from .builtins import BuiltinTable
from .interceptor import PluginInterceptor
from .parser import tokenize
from .status import CommandStatus

logger = logging.getLogger(__name__)


class CommandHandler(Protocol):
    def handle(self, command: str, args: list[str]) -> CommandStatus: ...


class ExternalCommand:
    """
    Runs ``<executable> <command> -s <args...>`` as a subprocess sharing the
    shell's standard streams, and waits for it to exit.
    """

    def __init__(self, executable: str):
        self.executable = executable

    def handle(self, command: str, args: list[str]) -> CommandStatus:
        argv = [self.executable, command, "-s", *args]
        logger.debug("Running external command: %s", argv)
        try:
            result = subprocess.run(argv, check=False)
        except FileNotFoundError:
            print(f"[ERROR] external command '{self.executable}' not found", file=sys.stderr)
            return CommandStatus.HANDLED_WITH_ERROR
        if result.returncode != 0:
            logger.info("%s exited with status %d", argv[:2], result.returncode)
            return CommandStatus.HANDLED_WITH_ERROR
        return CommandStatus.HANDLED


class Dispatcher:
    """Routes one command line at a time through the handler chain."""

    def __init__(
        self,
        interceptor: PluginInterceptor,
        builtins: BuiltinTable,
        external: CommandHandler,
    ):
        self.builtins = builtins
        self.handlers: list[CommandHandler] = [interceptor, builtins, external]

    @property
    def exit_requested(self) -> bool:
        return self.builtins.exit_requested

    def dispatch(self, line: str) -> CommandStatus:
        """
        Execute one line. Never raises: unexpected errors are logged and
        reported so the shell loop keeps running.
        """
        tokens = tokenize(line.strip())
        if not tokens:
            return CommandStatus.HANDLED
        command, args = tokens[0], tokens[1:]

        for handler in self.handlers:
            try:
                status = handler.handle(command, args)
            except Exception as e:
                logger.exception("Unhandled error running %r", line)
                print(f"[ERROR] {e}", file=sys.stderr)
                return CommandStatus.HANDLED_WITH_ERROR
            if status is not CommandStatus.NOT_HANDLED:
                return status

        return CommandStatus.NOT_HANDLED
