"""
Quoting helpers for building interpreter command lines.

All text interpolated into a command line passes through one of these
functions. Two layers are involved:

- PowerShell source: user strings embedded in a script become single-quoted
  PowerShell literals (ps_literal).
- Shell command line: the finished script (or a path) is placed inside a
  double-quoted argument and escaped for the shell that parses the line
  (double_quote, per dialect).

This is a minimal mitigation against accidental breakage, not a sandbox.
"""

from __future__ import annotations

import re

DIALECTS = ("posix", "cmd")

# Characters that keep their special meaning inside POSIX double quotes
_POSIX_SPECIAL = re.compile(r'([\\"$`])')

# Characters cmd.exe acts on before the program sees its command line
_CMD_META = re.compile(r'([()%!^"<>&|])')

# PowerShell accepts typographic single quotes as string delimiters too
_PS_SINGLE_QUOTES = re.compile("(['‘’‚‛])")

_SAFE_WORD = {
    "posix": re.compile(r"^[\w@%+=:,./-]+$"),
    "cmd": re.compile(r"^[\w@+=:,./\\-]+$"),
}


def escape_posix(text: str) -> str:
    """Escape text for use inside a POSIX sh double-quoted string."""
    return _POSIX_SPECIAL.sub(r"\\\1", text)


def escape_cmd(text: str) -> str:
    """
    Escape text for use inside a double-quoted Windows argument.

    Follows the MSVCRT argument rules: backslashes are literal unless they
    precede a double quote, in which case they are doubled and the quote is
    backslash-escaped. Trailing backslashes are doubled because the closing
    quote follows them. cmd.exe cannot carry newlines on a command line, so
    line breaks are folded to spaces.
    """
    text = text.replace("\r\n", " ").replace("\r", " ").replace("\n", " ")
    out: list[str] = []
    pending_backslashes = 0
    for ch in text:
        if ch == "\\":
            pending_backslashes += 1
        elif ch == '"':
            out.append("\\" * (pending_backslashes * 2))
            out.append('\\"')
            pending_backslashes = 0
        else:
            out.append("\\" * pending_backslashes)
            out.append(ch)
            pending_backslashes = 0
    out.append("\\" * (pending_backslashes * 2))
    return "".join(out)


def caret_escape(text: str) -> str:
    """
    Escape every cmd.exe metacharacter, quotes included, with a caret.

    cmd.exe toggles its quote state on every double quote, backslash or not,
    so an escaped quote inside an argument would expose the rest of it to
    `&`, `|` and redirection. With the quotes careted too, cmd.exe never
    enters its quote state and strips the carets, handing the program the
    plain MSVCRT form. `%` is careted so `%NAME%` never names a variable.
    """
    return _CMD_META.sub(r"^\1", text)


def escape_double_quoted(text: str, dialect: str) -> str:
    """Escape text for the given shell dialect's double-quoted strings."""
    if dialect == "posix":
        return escape_posix(text)
    if dialect == "cmd":
        return escape_cmd(text)
    raise ValueError(f"Unknown shell dialect: {dialect}")


def double_quote(text: str, dialect: str) -> str:
    """Return text as one double-quoted shell argument."""
    quoted = f'"{escape_double_quoted(text, dialect)}"'
    if dialect == "cmd":
        return caret_escape(quoted)
    return quoted


def quote_word(word: str, dialect: str) -> str:
    """Quote a single command-line word only if it needs quoting."""
    pattern = _SAFE_WORD.get(dialect)
    if pattern is None:
        raise ValueError(f"Unknown shell dialect: {dialect}")
    if pattern.match(word):
        return word
    if dialect == "cmd" and not _CMD_META.search(word):
        # A balanced pair of plain quotes leaves cmd.exe nothing to act on,
        # and keeps a path with spaces recognisable as the program name.
        return f'"{escape_cmd(word)}"'
    return double_quote(word, dialect)


def ps_literal(text: str) -> str:
    """Return text as a PowerShell single-quoted (verbatim) string literal."""
    return "'" + _PS_SINGLE_QUOTES.sub(r"\1\1", text) + "'"
