# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, NotRequired, TypedDict

DEFAULT_RATE_REMAINING = 5000


class OwnerRecord(TypedDict):
    login: NotRequired[str]
    avatar_url: NotRequired[str]


class GistRecord(TypedDict):
    '''
    A feed item as it appears on the wire. Any field may be missing.
    '''
    id: NotRequired[str]
    url: NotRequired[str]
    html_url: NotRequired[str]
    description: NotRequired[str | None]
    owner: NotRequired[OwnerRecord | None]
    updated_at: NotRequired[str]
    files: NotRequired[dict[str, Any] | list[dict[str, Any]]]


@dataclass(frozen=True, slots=True)
class Item:
    identifier: str
    title: str
    description: str
    content_url: str
    icon_url: str
    # None when the source omitted or malformed the timestamp
    updated_at: datetime | None

    @property
    def key(self) -> tuple[str, datetime | None]:
        return (self.identifier, self.updated_at)


@dataclass(frozen=True, slots=True)
class RateBudget:
    remaining: int = DEFAULT_RATE_REMAINING
    reset_at: datetime | None = None

    @property
    def exhausted(self) -> bool:
        return self.remaining <= 0


@dataclass(frozen=True, slots=True)
class FeedResponse:
    body: str
    rate: RateBudget


@dataclass(frozen=True, slots=True)
class IconResult:
    identifier: str
    content: bytes
    content_type: str | None = None


class PollState(str, Enum):
    IDLE = 'idle'
    FETCHING = 'fetching'
    SUSPENDED = 'suspended'
