"""Interactive read-eval-print loop built on prompt_toolkit."""

import logging
from pathlib import Path
from urllib.parse import urlparse

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import FileHistory
from prompt_toolkit.shortcuts import CompleteStyle

from .completer import Completer as CompletionEngine
from .dispatcher import Dispatcher
from .session import Session

logger = logging.getLogger(__name__)


class ShellCompleter(Completer):
    """Adapts the completion engine to prompt_toolkit."""

    def __init__(self, engine: CompletionEngine):
        self.engine = engine

    def get_completions(self, document, complete_event):
        candidates, prefix = self.engine.complete(document.text_before_cursor)
        for candidate in candidates:
            yield Completion(candidate, start_position=-len(prefix))


def prompt_text(session: Session) -> str:
    """``user@host:cwd$ `` when connected, ``cwd$ `` otherwise."""
    if session.connection is None:
        return f"{session.cwd}$ "
    host = urlparse(session.connection.url).hostname or session.connection.url
    return f"{session.user}@{host}:{session.cwd}$ "


class Repl:
    def __init__(
        self,
        session: Session,
        dispatcher: Dispatcher,
        engine: CompletionEngine,
        history_file: str | None = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        history = None
        if history_file:
            history_path = Path(history_file).expanduser()
            history_path.parent.mkdir(parents=True, exist_ok=True)
            history = FileHistory(str(history_path))
        self.prompt = PromptSession(
            history=history,
            completer=ShellCompleter(engine),
            complete_style=CompleteStyle.COLUMN,
        )

    def run(self) -> None:
        """Read and dispatch lines until exit, quit or end of input."""
        while not self.dispatcher.exit_requested:
            try:
                line = self.prompt.prompt(prompt_text(self.session))
            except KeyboardInterrupt:
                continue
            except EOFError:
                print()
                break
            if line.strip():
                self.dispatcher.dispatch(line)
        logger.debug("REPL finished")
