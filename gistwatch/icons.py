# -*- coding: utf-8 -*-
#
# Copyright (c) 2026~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from collections.abc import Callable
from functools import cache
import logging
import queue
import threading

import requests

from .errors import IconFetchError
from .models import IconResult

type IconCallback = Callable[[IconResult], None]
type _IconJob = tuple[str, str, IconCallback]


@cache
def get_logger() -> logging.Logger:
    return logging.getLogger('gistwatch').getChild('icons')


class IconFetcher:
    '''
    Fetches owner avatars on a fixed pool of worker threads sharing one
    `requests.Session`.

    Results are handed to the callback tagged with the identifier of the
    item that asked for them. Failed fetches are logged and dropped.
    '''
    def __init__(self, session: requests.Session, *,
                 workers: int = 4,
                 timeout: float = 15.0,
                 proxies: dict[str, str] | None = None) -> None:
        self._session = session
        self._workers = max(workers, 1)
        self._timeout = timeout
        self._proxies = proxies
        self._job_queue: queue.Queue[_IconJob | None] = queue.Queue()
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    def fetch_icon(self, identifier: str, url: str) -> IconResult:
        '''
        Fetch one icon on the calling thread.

        Raises `IconFetchError`.
        '''
        try:
            r = self._session.get(url, proxies=self._proxies, timeout=self._timeout)
            r.raise_for_status()
            content = r.content
        except requests.RequestException as error:
            raise IconFetchError(identifier, f'{type(error).__name__}: {error}') from error

        if not content:
            raise IconFetchError(identifier, f'empty body from {url}')
        return IconResult(identifier=identifier, content=content,
                          content_type=r.headers.get('Content-Type'))

    def start(self) -> None:
        with self._lock:
            if self._threads:
                return
            for index in range(self._workers):
                thread = threading.Thread(target=self._worker_main,
                                          name=f'gistwatch-icons-{index}', daemon=True)
                thread.start()
                self._threads.append(thread)

    def request_icon(self, identifier: str, url: str, callback: IconCallback) -> None:
        '''
        Queue an icon fetch. Starts the workers on first use.
        '''
        self.start()
        self._job_queue.put((identifier, url, callback))

    def join(self) -> None:
        '''
        Block until every queued icon has been handled.
        '''
        self._job_queue.join()

    def shutdown(self) -> None:
        with self._lock:
            threads, self._threads = self._threads, []
        for _ in threads:
            self._job_queue.put(None)
        for thread in threads:
            thread.join(3)

    def _worker_main(self) -> None:
        logger = get_logger()
        while True:
            job = self._job_queue.get()
            try:
                if job is None:
                    return
                identifier, url, callback = job
                try:
                    result = self.fetch_icon(identifier, url)
                except IconFetchError as error:
                    logger.info('icon of %s unavailable: %s', identifier, error.message)
                    continue
                try:
                    callback(result)
                except Exception as error:
                    logger.error('deliver icon of %s failure with %s', identifier, error, exc_info=True)
            finally:
                self._job_queue.task_done()
