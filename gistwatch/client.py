# -*- coding: utf-8 -*-
#
# Copyright (c) 2026~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from collections.abc import Mapping
from datetime import UTC, datetime
from functools import cache
import logging

import requests

from ._utils import format_timestamp
from .errors import HttpStatusError, TransportError
from .models import DEFAULT_RATE_REMAINING, FeedResponse, RateBudget

HEADER_RATE_REMAINING = 'X-RateLimit-Remaining'
HEADER_RATE_RESET = 'X-RateLimit-Reset'


@cache
def get_logger() -> logging.Logger:
    return logging.getLogger('gistwatch').getChild('client')

def _read_int_header(headers: Mapping[str, str], name: str) -> int | None:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        get_logger().warning('invalid %s header: %r', name, value)
        return None

def parse_rate_budget(headers: Mapping[str, str]) -> RateBudget:
    '''
    Read the rate-limit headers of a response.

    An absent or unreadable remaining header falls back to a high default,
    so a missing header never halts polling.
    '''
    remaining = _read_int_header(headers, HEADER_RATE_REMAINING)
    if remaining is None:
        remaining = DEFAULT_RATE_REMAINING
    reset_at = None
    if (reset := _read_int_header(headers, HEADER_RATE_RESET)) is not None:
        try:
            reset_at = datetime.fromtimestamp(reset, UTC)
        except (OverflowError, OSError, ValueError):
            reset_at = None
    return RateBudget(remaining=max(remaining, 0), reset_at=reset_at)


class FeedClient:
    '''
    Issues exactly one GET against the feed endpoint per `fetch()` call.

    No retries here: a failed fetch is retried by the next scheduled tick.
    '''
    def __init__(self, session: requests.Session, url: str, *,
                 timeout: float = 30.0,
                 proxies: dict[str, str] | None = None) -> None:
        self._session = session
        self._url = url
        self._timeout = timeout
        self._proxies = proxies

    @property
    def url(self) -> str:
        return self._url

    def build_params(self, cursor: datetime | None) -> dict[str, str]:
        if cursor is None:
            return {}
        return {'since': format_timestamp(cursor)}

    def fetch(self, cursor: datetime | None) -> FeedResponse:
        '''
        Raises `TransportError` or `HttpStatusError`.
        '''
        logger = get_logger()
        params = self.build_params(cursor)
        logger.debug('GET %s %s', self._url, params)

        try:
            r = self._session.get(self._url, params=params,
                                  proxies=self._proxies, timeout=self._timeout)
        except requests.RequestException as error:
            raise TransportError(f'{type(error).__name__}: {error}') from error

        rate = parse_rate_budget(r.headers)
        logger.info('%d remaining updates', rate.remaining)

        try:
            r.raise_for_status()
        except requests.HTTPError as error:
            raise HttpStatusError(str(error), r.status_code, rate=rate) from error
        if r.status_code // 100 != 2:
            raise HttpStatusError(f'unexpected status {r.status_code} for url: {r.url}',
                                  r.status_code, rate=rate)

        r.encoding = 'utf8'
        try:
            body = r.text
        except requests.RequestException as error:
            raise TransportError(f'{type(error).__name__}: {error}', rate=rate) from error

        return FeedResponse(body=body, rate=rate)


def create_session(user_agent: str) -> requests.Session:
    session = requests.Session()
    session.headers['User-Agent'] = user_agent
    session.headers['Accept'] = 'application/vnd.github+json'
    return session
