"""Command line tokenizing and option parsing."""

import shlex
from dataclasses import dataclass, field


@dataclass
class ParsedArgs:
    positional: list[str] = field(default_factory=list)
    flags: dict[str, str | bool] = field(default_factory=dict)

    def flag(self, *names: str) -> bool:
        """True if any of the given option names was set."""
        return any(bool(self.flags.get(name)) for name in names)

    def value(self, name: str) -> str | None:
        value = self.flags.get(name)
        return value if isinstance(value, str) else None

    @property
    def has_options(self) -> bool:
        return bool(self.flags)


def tokenize(line: str) -> list[str]:
    """
    Split a command line on whitespace, honouring quotes and backslash
    escapes. Quotes are removed. Unbalanced quotes fall back to a plain
    whitespace split.
    """
    try:
        return shlex.split(line)
    except ValueError:
        return line.split()


def parse_args(tokens: list[str], boolean: tuple[str, ...] = ()) -> ParsedArgs:
    """
    Separate options from positional arguments.

    ``--`` ends option processing. ``--key value`` takes the next token as
    the value unless it looks like an option or key is listed in boolean;
    ``--key=value`` is also accepted. ``-abc`` sets the single-letter
    flags a, b and c.
    """
    parsed = ParsedArgs()
    end_of_options = False
    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1

        if end_of_options:
            parsed.positional.append(token)
        elif token == "--":
            end_of_options = True
        elif token.startswith("--"):
            key, sep, value = token[2:].partition("=")
            if sep:
                parsed.flags[key] = value
            elif key not in boolean and i < len(tokens) and not tokens[i].startswith("-"):
                parsed.flags[key] = tokens[i]
                i += 1
            else:
                parsed.flags[key] = True
        elif token.startswith("-") and len(token) > 1:
            for letter in token[1:]:
                parsed.flags[letter] = True
        else:
            parsed.positional.append(token)

    return parsed
