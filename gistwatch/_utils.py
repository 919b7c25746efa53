# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from datetime import UTC, datetime
from hashlib import sha1
from math import floor

_PERIODS = ('sec', 'min', 'h', 'day', 'week', 'month', 'year', 'decade')
_LENGTHS = (60, 60, 24, 7, 4.35, 12, 10)


def create_unique_id(content: str) -> str:
    '''
    Create unique identifier.
    '''
    hashed = sha1(content.encode('utf-8', errors='ignore')).hexdigest()
    return f'sha1:{hashed}'

def utcnow() -> datetime:
    return datetime.now(UTC)

def format_timestamp(ts: datetime) -> str:
    '''
    Format as ISO-8601 UTC with a `Z` suffix, e.g. `2024-01-01T00:00:00Z`.
    '''
    return ts.astimezone(UTC).strftime('%Y-%m-%dT%H:%M:%SZ')

def parse_timestamp(value: object) -> datetime | None:
    '''
    Parse an ISO-8601 string into an aware UTC datetime.

    Returns `None` for anything missing or malformed.
    '''
    if not isinstance(value, str) or not value:
        return None
    try:
        ts = datetime.fromisoformat(value)
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)

def time_ago(date: datetime | None, now: datetime | None = None) -> str:
    '''
    Render the age of `date` like `3 min ago` or `2 days ago`.
    '''
    if date is None:
        return 'never'
    diff = ((now or utcnow()) - date).total_seconds()

    i = 0
    while i < len(_LENGTHS) and diff >= _LENGTHS[i]:
        diff /= _LENGTHS[i]
        i += 1

    value = floor(diff)
    suffix = 's' if i > 2 and value != 1 else ''
    return f'{value} {_PERIODS[i]}{suffix} ago'
