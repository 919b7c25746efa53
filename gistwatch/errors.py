# -*- coding: utf-8 -*-
#
# Copyright (c) 2026~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from .models import RateBudget


class GistWatchError(Exception):
    pass


class FetchError(GistWatchError):
    '''
    The feed request did not produce a usable response.

    `rate` is set when the server answered at all, so the caller can still
    refresh its budget from the response headers.
    '''
    def __init__(self, message: str, *, rate: RateBudget | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.rate = rate


class TransportError(FetchError):
    pass


class HttpStatusError(FetchError):
    def __init__(self, message: str, status_code: int, *, rate: RateBudget | None = None) -> None:
        super().__init__(message, rate=rate)
        self.status_code = status_code


class ParseError(GistWatchError):
    pass


class ItemDefect(GistWatchError):
    pass


class IconFetchError(GistWatchError):
    def __init__(self, identifier: str, message: str) -> None:
        super().__init__(message)
        self.identifier = identifier
        self.message = message
