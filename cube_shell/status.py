from enum import Enum


class CommandStatus(Enum):
    """Outcome of offering a command line to a handler."""

    HANDLED = "handled"
    NOT_HANDLED = "not_handled"
    HANDLED_WITH_ERROR = "handled_with_error"
