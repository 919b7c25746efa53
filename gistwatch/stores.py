# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import sqlite3
from datetime import datetime

from ._utils import format_timestamp, parse_timestamp


class CursorStore:
    '''
    Holds the last-successful-poll timestamp between runs.
    '''
    def load(self) -> datetime | None:
        raise NotImplementedError

    def save(self, ts: datetime) -> None:
        raise NotImplementedError


class SqliteStore:
    TABLE_NAME = 'cursor'

    COLUMN_NAME_NAME = 'name'
    COLUMN_NAME_VALUE = 'value'

    def __init__(self, conn_str: str) -> None:
        self.__conn_str = conn_str
        self.__conn: sqlite3.Connection | None = None
        self.__cur: sqlite3.Cursor | None = None

    def __enter__(self):
        self.__conn = sqlite3.connect(self.__conn_str, check_same_thread=False)
        self.__cur = self.__conn.cursor()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if cur := self.__cur:
            cur.close()
        self.__cur = None

        if conn := self.__conn:
            conn.close()
        self.__conn = None

    @property
    def _conn(self):
        if conn := self.__conn:
            return conn
        raise RuntimeError("Connection is not initialized")

    @property
    def _cur(self):
        if cur := self.__cur:
            return cur
        raise RuntimeError("Cursor is not initialized")

    def init_store(self):
        DEF_COL = ', '.join([
            self.COLUMN_NAME_NAME  + ' TEXT PRIMARY KEY',
            self.COLUMN_NAME_VALUE + ' TEXT NOT NULL',
        ])
        SQL_CREATE = 'CREATE TABLE IF NOT EXISTS {} ({});'.format(self.TABLE_NAME, DEF_COL)
        self._cur.execute(SQL_CREATE)

    def get_value(self, name: str) -> str | None:
        SQL_SELECT = 'SELECT {} FROM {} WHERE {} = ?'.format(
            self.COLUMN_NAME_VALUE, self.TABLE_NAME, self.COLUMN_NAME_NAME
        )
        row = self._cur.execute(SQL_SELECT, (name, )).fetchone()
        return row[0] if row else None

    def set_value(self, name: str, value: str):
        SQL_UPSERT = 'INSERT OR REPLACE INTO {} ({}, {}) VALUES (?, ?);'.format(
            self.TABLE_NAME, self.COLUMN_NAME_NAME, self.COLUMN_NAME_VALUE
        )
        self._cur.execute(SQL_UPSERT, (name, value))

    def commit(self):
        self._conn.commit()


def open_store(conn_str: str):
    return SqliteStore(conn_str)


class SqliteCursorStore(CursorStore):
    '''
    Cursor store backed by a single row of a sqlite table.

    The table must exist, see `SqliteStore.init_store()`.
    '''
    def __init__(self, conn_str: str, name: str = 'since') -> None:
        self._conn_str = conn_str
        self._name = name

    def load(self) -> datetime | None:
        with open_store(self._conn_str) as store:
            return parse_timestamp(store.get_value(self._name))

    def save(self, ts: datetime) -> None:
        with open_store(self._conn_str) as store:
            store.set_value(self._name, format_timestamp(ts))
            store.commit()


class MemoryCursorStore(CursorStore):
    def __init__(self, ts: datetime | None = None) -> None:
        self.value = ts

    def load(self) -> datetime | None:
        return self.value

    def save(self, ts: datetime) -> None:
        self.value = ts
