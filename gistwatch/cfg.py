# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import os
from contextlib import suppress
from logging import getLogger
from typing import Dict, NotRequired, Optional, TypedDict
from urllib.parse import urlparse

import yaml
from cachetools import cachedmethod

from .stores import SqliteCursorStore, open_store

logger = getLogger(__name__)

DEFAULT_FEED_URL = 'https://api.github.com/gists'
DEFAULT_PLACEHOLDER_ICON_URL = 'https://github.githubassets.com/images/gravatars/gravatar-user-420.png'
DEFAULT_USER_AGENT = 'gistwatch'


class ConfigError(Exception):
    pass


class FeedSection(TypedDict):
    url: NotRequired[str]
    interval: NotRequired[int]
    timeout: NotRequired[float]
    user_agent: NotRequired[str]


class IconsSection(TypedDict):
    workers: NotRequired[int]
    timeout: NotRequired[float]
    placeholder: NotRequired[str]


class RootSection(TypedDict):
    database: NotRequired[Optional[str]]
    proxy: NotRequired[str]
    proxies: NotRequired[Dict[str, str]]
    feed: NotRequired[Optional[FeedSection]]
    icons: NotRequired[Optional[IconsSection]]


def _positive_int(value: object, default: int, floor: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return max(value, floor)
    return default

def _positive_float(value: object, default: float) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return float(value)
    return default


class Config:
    def __init__(self, config_data: RootSection, *, mtime_ns: int) -> None:
        self.config_data: RootSection = config_data
        self.mtime_ns = mtime_ns
        self._cache = {}

    @property
    def _feed(self) -> FeedSection:
        return self.config_data.get('feed') or {}

    @property
    def _icons(self) -> IconsSection:
        return self.config_data.get('icons') or {}

    def get_conn_str(self) -> str:
        return self.config_data.get('database') or 'gistwatch.sqlite3'

    def open_cursor_store(self) -> SqliteCursorStore:
        return SqliteCursorStore(self.get_conn_str())

    @cachedmethod(cache=lambda x: x._cache)
    def init_store(self) -> None:
        '''
        This method is cached so it is safe to call multi times.
        '''
        logger.info('Init store at %s', self.get_conn_str())
        with open_store(self.get_conn_str()) as store:
            store.init_store()
            store.commit()

    def get_feed_url(self) -> str:
        return self._feed.get('url') or DEFAULT_FEED_URL

    def get_interval_minutes(self) -> int:
        return _positive_int(self._feed.get('interval'), 60, 1)

    def get_feed_timeout(self) -> float:
        return _positive_float(self._feed.get('timeout'), 30.0)

    def get_user_agent(self) -> str:
        return self._feed.get('user_agent') or DEFAULT_USER_AGENT

    def get_icon_workers(self) -> int:
        return _positive_int(self._icons.get('workers'), 4, 1)

    def get_icon_timeout(self) -> float:
        return _positive_float(self._icons.get('timeout'), 15.0)

    def get_placeholder_icon_url(self) -> str:
        return self._icons.get('placeholder') or DEFAULT_PLACEHOLDER_ICON_URL

    def get_proxies(self) -> Dict[str, str] | None:
        proxies = self.config_data.get('proxies')
        if proxies is None:
            proxy = self.config_data.get('proxy')
            if proxy:
                scheme = urlparse(proxy).scheme
                if not scheme:
                    scheme = urlparse(self.get_feed_url()).scheme or 'https'
                    proxy = scheme + '://' + proxy
                proxies = {}
                proxies[scheme] = proxy
        return proxies


class ConfigHelper:
    '''
    Lazily loads the yaml config file and reloads it when its mtime changes.

    Without a config path the built-in defaults are used.
    '''
    def __init__(self, config_path: str | None) -> None:
        self.__config_path = config_path
        self.__config: Config | None = None

    @property
    def config_path(self) -> str | None:
        return self.__config_path

    def _load_config(self, path: str) -> Config | None:
        config_content: RootSection | None = None
        mtime_ns = -1

        if os.path.isfile(path):
            with suppress(FileNotFoundError):
                with open(path, mode='r', encoding='utf8') as fp:
                    config_content = yaml.safe_load(fp) or {}
                    mtime_ns = os.stat(fp.fileno()).st_mtime_ns
                    logger.info('Load config from %s', path)
            if config_content is None:
                logger.warning('Unable open file: %s', path)
        else:
            logger.warning('No such file: %s', path)

        if config_content is not None:
            if not isinstance(config_content, dict):
                raise ConfigError(f'Config root must be a mapping: {path}')
            return Config(config_content, mtime_ns=mtime_ns)

    def reload_config(self) -> bool:
        config_path = self.config_path
        if config_path is None:
            if self.__config is None:
                logger.info('No config file set, use defaults.')
                self.__config = Config({}, mtime_ns=-1)
                return True
            return False

        if (config := self._load_config(config_path)) is not None:
            self.__config = config
            logger.info('Config loaded from %s', config_path)
            logger.info('Database: %s', config.get_conn_str())
            return True

        return False

    def reload_config_if_updated(self) -> bool:
        '''
        Return True if updated and reloaded.
        '''
        config_path = self.config_path
        if config_path is None:
            return False

        with suppress(FileNotFoundError):
            mtime_ns = os.stat(config_path).st_mtime_ns
            if mtime_ns != self.get_config().mtime_ns:
                logger.info('Config file (%s) is updated, try reload...', config_path)
                if self.reload_config():
                    logger.info('Reload completed')
                    return True
                else:
                    logger.warning('Reload failed')

        return False

    def get_config(self) -> Config:
        '''
        Get config snapshot.
        '''
        if self.__config is None:
            if not self.reload_config():
                raise ConfigError('Unable load config')
            assert self.__config is not None

        return self.__config
