"""Reserved-word quoting for user-typed PostgreSQL WHERE fragments."""

import re

_RESERVED_RE = re.compile(r'(?<!["\w])(desc|user|offset)(?!["\w])', re.IGNORECASE)


def quote_postgres_reserved_words(where: str) -> str:
    """
    Double-quote standalone desc/user/offset outside single-quoted literals.
    
    The text is split on single quotes; even-numbered segments lie outside
    string literals and are rewritten, odd-numbered segments are left alone.
    This is a quote-depth toggle, not a SQL parser.
    """
    parts = where.split("'")
    for i in range(0, len(parts), 2):
        parts[i] = _RESERVED_RE.sub(lambda match: f'"{match.group(1).lower()}"', parts[i])
    return "'".join(parts)
