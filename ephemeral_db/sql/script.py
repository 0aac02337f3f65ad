"""
=================================
SQL script splitting utilities.
=================================

Migration files usually hold several statements, but many DBAPI drivers
(sqlite3, PyMySQL without MULTI_STATEMENTS) execute only one statement per
call. split_sql_statements() cuts a script on top-level semicolons while
leaving semicolons inside string literals, quoted identifiers, PostgreSQL
dollar-quoted bodies and comments alone.

MySQL treats a backslash inside a string literal as an escape character,
so ``'O\\'Reilly'`` is one literal there. Pass ``backslash_escapes=True``
for such servers. PostgreSQL ``E'...'`` strings always honour backslashes.

Example:
    >>> split_sql_statements("CREATE TABLE a (x INT); INSERT INTO a VALUES (1);")
    ['CREATE TABLE a (x INT)', 'INSERT INTO a VALUES (1)']
"""

import re
from typing import List

_DOLLAR_TAG = re.compile(r'\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$')
_QUOTES = ("'", '"', '`')


def _is_escape_string(script: str, start: int) -> bool:
    """True if the quote at ``start`` opens a PostgreSQL ``E'...'`` literal."""
    if script[start] != "'" or start == 0 or script[start - 1] not in 'eE':
        return False
    if start == 1:
        return True
    before = script[start - 2]
    return not (before.isalnum() or before in '_$')


def _quoted_end(script: str, start: int, backslash_escapes: bool = False) -> int:
    """Index just past the quoted token opening at ``start``."""
    quote = script[start]
    escapes = backslash_escapes and quote != '`'
    pos = start + 1
    while pos < len(script):
        char = script[pos]
        if escapes and char == '\\':
            pos += 2
            continue
        if char == quote:
            # a doubled quote is an escaped quote, not the terminator
            if script.startswith(quote * 2, pos):
                pos += 2
                continue
            return pos + 1
        pos += 1
    return len(script)


def split_sql_statements(script: str, backslash_escapes: bool = False) -> List[str]:
    """
    Split a SQL script into individual statements.

    Comments are removed; empty and comment-only statements are skipped.
    A trailing statement without a semicolon is kept.

    Args:
        script: SQL text holding zero or more statements
        backslash_escapes: Treat ``\\`` as an escape inside '...' and "..."
            literals (MySQL, MariaDB)

    Returns:
        List of statements without trailing semicolons
    """
    statements: List[str] = []
    current: List[str] = []
    pos = 0
    length = len(script)

    def flush():
        statement = ''.join(current).strip()
        if statement:
            statements.append(statement)
        current.clear()

    while pos < length:
        char = script[pos]

        if script.startswith('--', pos):
            end = script.find('\n', pos)
            pos = length if end == -1 else end
            continue

        if script.startswith('/*', pos):
            end = script.find('*/', pos + 2)
            pos = length if end == -1 else end + 2
            current.append(' ')
            continue

        if char in _QUOTES:
            end = _quoted_end(
                script, pos, backslash_escapes or _is_escape_string(script, pos)
            )
            current.append(script[pos:end])
            pos = end
            continue

        if char == '$':
            match = _DOLLAR_TAG.match(script, pos)
            if match:
                tag = match.group(0)
                end = script.find(tag, match.end())
                end = length if end == -1 else end + len(tag)
                current.append(script[pos:end])
                pos = end
                continue

        if char == ';':
            flush()
            pos += 1
            continue

        current.append(char)
        pos += 1

    flush()
    return statements
