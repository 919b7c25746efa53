# -*- coding: utf-8 -*-
#
# Copyright (c) 2026~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from functools import cache
import logging
import threading
from typing import Protocol

from ._utils import utcnow
from .models import Item


@cache
def get_logger() -> logging.Logger:
    return logging.getLogger('gistwatch').getChild('sink')


class PresentationSink(Protocol):
    def announce(self, item: Item) -> None: ...

    def populate_menu(self, items: Sequence[Item], *, cycle: int = 0) -> None: ...

    def attach_icon(self, identifier: str, content: bytes, *,
                    cycle: int | None = None, content_type: str | None = None) -> bool: ...


@dataclass(frozen=True, slots=True)
class MenuSlot:
    item: Item
    icon: bytes | None = None
    icon_type: str | None = None


@dataclass(frozen=True, slots=True)
class Notification:
    item: Item
    announced_at: datetime


class MenuSink:
    '''
    Thread-safe in-memory presentation: one slot per item of the latest cycle.

    Icons are resolved by identifier when they arrive; an icon whose slot is
    gone, or belongs to an older cycle, is dropped.
    '''
    def __init__(self, history_size: int = 50) -> None:
        self._lock = threading.Lock()
        self._slots: dict[str, MenuSlot] = {}
        self._cycle = 0
        self._notifications: deque[Notification] = deque(maxlen=history_size)

    def announce(self, item: Item) -> None:
        get_logger().info('%s: %s', item.title, item.description)
        with self._lock:
            self._notifications.append(Notification(item=item, announced_at=utcnow()))

    def populate_menu(self, items: Sequence[Item], *, cycle: int = 0) -> None:
        slots: dict[str, MenuSlot] = {}
        for item in items:
            slots.setdefault(item.identifier, MenuSlot(item=item))
        with self._lock:
            self._slots = slots
            self._cycle = cycle

    def attach_icon(self, identifier: str, content: bytes, *,
                    cycle: int | None = None, content_type: str | None = None) -> bool:
        with self._lock:
            if cycle is not None and cycle != self._cycle:
                get_logger().debug('drop stale icon of %s (cycle %s)', identifier, cycle)
                return False
            if (slot := self._slots.get(identifier)) is None:
                get_logger().debug('drop icon of %s, no such slot', identifier)
                return False
            self._slots[identifier] = replace(slot, icon=content, icon_type=content_type)
            return True

    def get_slots(self) -> list[MenuSlot]:
        with self._lock:
            return list(self._slots.values())

    def get_slot(self, identifier: str) -> MenuSlot | None:
        with self._lock:
            return self._slots.get(identifier)

    def get_icon(self, identifier: str) -> bytes | None:
        with self._lock:
            if slot := self._slots.get(identifier):
                return slot.icon
            return None

    def get_notifications(self) -> list[Notification]:
        with self._lock:
            return list(self._notifications)
