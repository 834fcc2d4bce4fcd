"""Tests for command-line quoting."""

from __future__ import annotations

import os
import subprocess

import pytest

from helpers import through_cmd
from pwsh_mcp.tools.quoting import (
    double_quote,
    escape_cmd,
    escape_double_quoted,
    escape_posix,
    ps_literal,
    quote_word,
)

TRICKY = [
    "plain",
    "",
    'say "hi"',
    '""',
    "back\\slash",
    "trailing backslash\\",
    '\\"',
    '\\\\"quoted"\\\\',
    "$HOME",
    "${PATH}",
    "$(id)",
    "`whoami`",
    "a;b|c&d>e<f",
    "single ' quote",
    "multi\nline\ntext",
    "tab\there",
    "*?[glob]~",
    "%PATH% ^caret",
    "!history",
    "unicode ✓ ünï",
    'Write-Output "$($PSVersionTable.PSVersion)"',
]

posix_only = pytest.mark.skipif(os.name == "nt", reason="needs /bin/sh")


@posix_only
@pytest.mark.parametrize("text", TRICKY)
def test_posix_round_trip_through_sh(text):
    """The shell unescapes exactly back to the original text."""
    result = subprocess.run(
        f"printf '%s' {double_quote(text, 'posix')}",
        shell=True,
        capture_output=True,
        text=True,
        check=True,
    )
    assert result.stdout == text


def test_posix_escapes_only_special_characters():
    assert escape_posix('a"b') == 'a\\"b'
    assert escape_posix("a\\b") == "a\\\\b"
    assert escape_posix("$x`y`") == "\\$x\\`y\\`"
    assert escape_posix("'single' & ; |") == "'single' & ; |"


@pytest.mark.parametrize("text", [t for t in TRICKY if " " in t and "\n" not in t])
def test_cmd_survives_cmd_exe_and_matches_msvcrt_rules(text):
    """After cmd.exe, the program sees what the stdlib produces for one argument."""
    assert through_cmd(double_quote(text, "cmd")) == subprocess.list2cmdline([text])


def test_cmd_model_rejects_backslash_escaped_quotes():
    with pytest.raises(AssertionError, match="operator"):
        through_cmd('powershell -Command "Write-Output \\"a & b\\""')


def test_cmd_carets_metacharacters_and_quotes():
    assert double_quote('Write-Output "a & b"', "cmd") == '^"Write-Output \\^"a ^& b\\^"^"'
    assert double_quote("100% | more", "cmd") == '^"100^% ^| more^"'
    assert double_quote("plain", "cmd") == '^"plain^"'


def test_cmd_escapes_quotes_and_preceding_backslashes():
    assert escape_cmd('say "hi"') == 'say \\"hi\\"'
    assert escape_cmd('a\\"b') == 'a\\\\\\"b'
    assert escape_cmd("C:\\dir\\") == "C:\\dir\\\\"
    assert escape_cmd("C:\\dir\\file") == "C:\\dir\\file"


def test_cmd_folds_newlines():
    assert escape_cmd("a\r\nb\nc\rd") == "a b c d"


def test_unknown_dialect_rejected():
    with pytest.raises(ValueError):
        escape_double_quoted("x", "fish")
    with pytest.raises(ValueError):
        quote_word("x", "fish")


@pytest.mark.parametrize(
    ("word", "dialect", "expected"),
    [
        ("pwsh", "posix", "pwsh"),
        ("/usr/bin/pwsh", "posix", "/usr/bin/pwsh"),
        ("-NoProfile", "posix", "-NoProfile"),
        ("/opt/my tools/pwsh", "posix", '"/opt/my tools/pwsh"'),
        ("C:\\Windows\\powershell.exe", "cmd", "C:\\Windows\\powershell.exe"),
        ("C:\\Program Files\\PowerShell\\7\\pwsh.exe", "cmd", '"C:\\Program Files\\PowerShell\\7\\pwsh.exe"'),
        ("C:\\x", "posix", '"C:\\\\x"'),
        ("C:\\R&D\\pwsh.exe", "cmd", '^"C:\\R^&D\\pwsh.exe^"'),
    ],
)
def test_quote_word(word, dialect, expected):
    assert quote_word(word, dialect) == expected


def test_ps_literal_doubles_single_quotes():
    assert ps_literal("Get-Process") == "'Get-Process'"
    assert ps_literal("it's") == "'it''s'"
    assert ps_literal("") == "''"
    assert ps_literal("$env:PATH `n") == "'$env:PATH `n'"


def test_ps_literal_handles_typographic_quotes():
    assert ps_literal("a’b") == "'a’’b'"
    assert ps_literal("‘x‛") == "'‘‘x‛‛'"
