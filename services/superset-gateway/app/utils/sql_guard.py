"""SQL guard and row-limit injection utilities

The single-statement check is lexical. It catches accidental multi-statement
or mutating submissions but is not a security boundary: SQL comments or a
SELECT wrapped inside another statement type can get past it.
"""
import re
import logging
from typing import Optional, Tuple
import sqlparse

from ..models import ExecutionLimitMeta

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 1000
MAX_LIMIT = 10000

_SELECT_PREFIX = re.compile(r'^\s*select\b', re.IGNORECASE)
_LIMIT_CLAUSE = re.compile(r'\blimit\s+(\d+)\b', re.IGNORECASE)
_TRAILING_SEMICOLON = re.compile(r';\s*$')


def is_single_select(sql: str) -> bool:
    """
    Check that SQL is exactly one statement starting with SELECT.

    Args:
        sql: SQL query string

    Returns:
        True if the trimmed SQL starts with SELECT and has one non-empty
        semicolon-delimited fragment
    """
    trimmed = (sql or "").strip()
    if not _SELECT_PREFIX.match(trimmed):
        return False
    fragments = [part for part in trimmed.split(';') if part.strip()]
    return len(fragments) == 1


def describe_statement(sql: str) -> str:
    """
    Classify the first statement with sqlparse, for error messages only.

    Returns:
        Statement type such as "SELECT", "UPDATE" or "UNKNOWN"
    """
    statements = [s for s in sqlparse.parse(sql or "") if str(s).strip()]
    if not statements:
        return "EMPTY"
    if len(statements) > 1:
        return "MULTIPLE"
    return statements[0].get_type()


def _append_limit(sql: str, limit: int) -> str:
    """Append a LIMIT clause, keeping a trailing semicolon last"""
    if _TRAILING_SEMICOLON.search(sql):
        return _TRAILING_SEMICOLON.sub(f" LIMIT {limit};", sql, count=1)
    return f"{sql} LIMIT {limit}"


def _clamp_existing_limit(sql: str, full: bool) -> Tuple[str, ExecutionLimitMeta]:
    """Rewrite the first LIMIT down to MAX_LIMIT when it exceeds it"""
    current = int(_LIMIT_CLAUSE.search(sql).group(1))
    if current > MAX_LIMIT:
        logger.info(f"Clamping LIMIT {current} down to {MAX_LIMIT}")
        rewritten = _LIMIT_CLAUSE.sub(f"LIMIT {MAX_LIMIT}", sql, count=1)
        return rewritten, ExecutionLimitMeta(full=full, effectiveLimit=MAX_LIMIT, wasClamped=True)
    return sql, ExecutionLimitMeta(full=full, effectiveLimit=current, wasClamped=False)


def guard_sql(
    sql: str,
    full: bool = False,
    requested_limit: Optional[int] = None
) -> Tuple[str, ExecutionLimitMeta]:
    """
    Inject or clamp a LIMIT clause so results stay under MAX_LIMIT rows.

    Args:
        sql: Single SELECT statement
        full: Skip the default row cap
        requested_limit: Row cap asked for by the client

    Returns:
        Tuple of (rewritten SQL, limit metadata)
    """
    has_limit = _LIMIT_CLAUSE.search(sql) is not None

    if not full:
        if has_limit:
            return _clamp_existing_limit(sql, full)

        if requested_limit and requested_limit > 0:
            target = min(requested_limit, MAX_LIMIT)
        else:
            target = DEFAULT_LIMIT
        return _append_limit(sql, target), ExecutionLimitMeta(full=full, effectiveLimit=target)

    if requested_limit is None:
        return sql, ExecutionLimitMeta(full=full, effectiveLimit=None)

    if has_limit:
        return _clamp_existing_limit(sql, full)

    target = min(max(0, requested_limit), MAX_LIMIT)
    return _append_limit(sql, target), ExecutionLimitMeta(full=full, effectiveLimit=target)
