# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from functools import cache, partial
from math import ceil

from pydantic import ValidationError
from schedule import CancelJob, Scheduler

from ._utils import time_ago, utcnow
from .cfg import Config, ConfigHelper
from .client import FeedClient, create_session
from .errors import FetchError, ParseError
from .icons import IconFetcher
from .models import IconResult, Item, PollState, RateBudget
from .parser import parse_feed
from .settings import Settings
from .sinks import PresentationSink
from .stores import CursorStore

TAG_TICK = 'tick'
TAG_RESUME = 'resume'


@cache
def get_logger() -> logging.Logger:
    return logging.getLogger('gistwatch')


class GistPoller:
    '''
    Owns the polling cadence, the cursor and the rate budget.

    All state changes happen inside `tick()`, which runs one cycle:
    fetch, parse, present, then fan out one icon request per item.

    State machine: idle -> fetching -> idle | suspended. Suspended lasts
    until the rate limit resets; without a known reset time it is final.
    '''
    def __init__(self,
                 client: FeedClient,
                 sink: PresentationSink,
                 cursor_store: CursorStore,
                 icon_fetcher: IconFetcher | None = None, *,
                 placeholder_icon_url: str,
                 interval_minutes: int = 60,
                 config_helper: ConfigHelper | None = None,
                 clock: Callable[[], datetime] = utcnow) -> None:
        self._client = client
        self._sink = sink
        self._cursor_store = cursor_store
        self._icon_fetcher = icon_fetcher
        self._placeholder_icon_url = placeholder_icon_url
        self._interval_minutes = max(interval_minutes, 1)
        self._config_helper = config_helper
        self._clock = clock

        self._scheduler = Scheduler()
        self._state = PollState.IDLE
        self._cursor = cursor_store.load()
        self._budget = RateBudget()
        self._cycle = 0
        self._announced: set[tuple[str, datetime | None]] = set()
        self._last_error: str | None = None

        self._tick_lock = threading.Lock()
        self._refresh_event = threading.Event()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def cursor(self) -> datetime | None:
        return self._cursor

    @property
    def budget(self) -> RateBudget:
        return self._budget

    @property
    def cycle(self) -> int:
        return self._cycle

    @property
    def interval_minutes(self) -> int:
        return self._interval_minutes

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    def next_run_in(self) -> float | None:
        return self._scheduler.idle_seconds

    def tick(self) -> bool:
        '''
        Run one poll cycle. Returns True if the cycle succeeded.

        Does nothing while suspended or while another fetch is in flight.
        '''
        logger = get_logger()
        if not self._tick_lock.acquire(blocking=False):
            logger.info('A fetch is already in flight, skip.')
            return False
        try:
            if self._state is PollState.SUSPENDED:
                logger.warning('Rate limit exhausted, skip fetch.')
                return False
            return self._run_cycle()
        finally:
            self._tick_lock.release()

    def _run_cycle(self) -> bool:
        logger = get_logger()
        self._state = PollState.FETCHING
        # captured before the request so items created during it are not missed
        started_at = self._clock()
        cursor = self._cursor
        logger.info('Last update: %s', time_ago(cursor, started_at))

        succeeded = False
        try:
            items = self._fetch_items(cursor)
        except FetchError as error:
            if error.rate is not None:
                self._budget = error.rate
            self._last_error = error.message
            logger.warning('fetch %s failure with %s', self._client.url, error.message)
        except ParseError as error:
            self._last_error = str(error)
            logger.error('parse %s failure with %s', self._client.url, error)
        else:
            self._last_error = None
            self._advance_cursor(started_at)
            self._present(items)
            succeeded = True
        finally:
            if self._budget.exhausted:
                self._suspend()
            else:
                self._state = PollState.IDLE
                self.schedule_next()

        return succeeded

    def _fetch_items(self, cursor: datetime | None) -> list[Item]:
        response = self._client.fetch(cursor)
        self._budget = response.rate
        return parse_feed(response.body, placeholder_icon_url=self._placeholder_icon_url)

    def _advance_cursor(self, started_at: datetime) -> None:
        cursor = self._cursor
        if cursor is None or started_at > cursor:
            cursor = started_at
        self._cursor = cursor
        try:
            self._cursor_store.save(cursor)
        except Exception as error:
            get_logger().error('save cursor failure with %s', error, exc_info=True)

    def _present(self, items: list[Item]) -> None:
        self._cycle += 1
        cycle = self._cycle

        self._sink.populate_menu(items, cycle=cycle)

        announced = 0
        seen: set[tuple[str, datetime | None]] = set()
        for item in items:
            if item.key in seen:
                continue
            seen.add(item.key)
            if item.key not in self._announced:
                self._sink.announce(item)
                announced += 1
        self._announced = seen
        get_logger().info('Cycle %d: %d items, %d announced.', cycle, len(items), announced)

        if self._icon_fetcher is not None:
            for item in items:
                self._icon_fetcher.request_icon(item.identifier, item.icon_url,
                                                partial(self._deliver_icon, cycle))

    def _deliver_icon(self, cycle: int, result: IconResult) -> None:
        self._sink.attach_icon(result.identifier, result.content,
                               cycle=cycle, content_type=result.content_type)

    def schedule_next(self) -> None:
        '''
        (Re)register the standard tick one interval from now.
        '''
        self._scheduler.clear(TAG_TICK)
        self._scheduler.every(self._interval_minutes).minutes.do(self._scheduled_tick).tag(TAG_TICK)

    def _suspend(self) -> None:
        logger = get_logger()
        self._state = PollState.SUSPENDED
        self._scheduler.clear(TAG_TICK)
        self._scheduler.clear(TAG_RESUME)

        if (reset_at := self._budget.reset_at) is None:
            logger.warning('Rate limit exhausted and no reset time is known, polling halted.')
            return

        delay = max(ceil((reset_at - self._clock()).total_seconds()) + 1, 1)
        logger.warning('Rate limit exhausted, polling suspended until %s (%d seconds).',
                       reset_at.isoformat(), delay)
        self._scheduler.every(delay).seconds.do(self._resume).tag(TAG_RESUME)

    def _resume(self):
        get_logger().info('Rate limit reset, polling resumed.')
        self._state = PollState.IDLE
        self._budget = RateBudget()
        self.tick()
        return CancelJob

    def _scheduled_tick(self) -> None:
        if self._config_helper is not None and self._config_helper.reload_config_if_updated():
            interval = self._config_helper.get_config().get_interval_minutes()
            if interval != self._interval_minutes:
                get_logger().info('Interval changed to %d minutes.', interval)
                self._interval_minutes = interval
        self.tick()

    def refresh(self) -> bool:
        '''
        Ask the polling thread for an immediate tick.

        Returns False when the request is ignored.
        '''
        if self._state is PollState.SUSPENDED or self._tick_lock.locked():
            return False
        self._refresh_event.set()
        return True

    def run_pending(self) -> None:
        if self._refresh_event.is_set():
            self._refresh_event.clear()
            self.tick()
        self._scheduler.run_pending()

    def start(self) -> None:
        if self._thread is not None:
            return
        logger = get_logger()
        self._stop_event.clear()
        self.schedule_next()
        self._refresh_event.set() # tick now

        def poll_main() -> None:
            while not self._stop_event.is_set():
                try:
                    self.run_pending()
                except Exception as error:
                    logger.error('poll loop failure with %s', error, exc_info=True)
                self._refresh_event.wait(1)

        self._thread = threading.Thread(target=poll_main, name='gistwatch-poller', daemon=True)
        self._thread.start()
        logger.info('Poller started (interval: %d minutes).', self._interval_minutes)

    def shutdown(self) -> None:
        get_logger().info('Shutting down GistPoller...')
        self._stop_event.set()
        self._refresh_event.set()
        if thread := self._thread:
            thread.join(5)
        self._thread = None
        self._scheduler.clear()


def build_poller(config: Config, sink: PresentationSink, *,
                 config_helper: ConfigHelper | None = None) -> tuple[GistPoller, IconFetcher]:
    config.init_store()
    proxies = config.get_proxies()
    if proxies:
        get_logger().info('use proxies: %s', proxies)

    session = create_session(config.get_user_agent())
    client = FeedClient(session, config.get_feed_url(),
                        timeout=config.get_feed_timeout(), proxies=proxies)
    icon_fetcher = IconFetcher(session, workers=config.get_icon_workers(),
                               timeout=config.get_icon_timeout(), proxies=proxies)
    poller = GistPoller(client, sink, config.open_cursor_store(), icon_fetcher,
                        placeholder_icon_url=config.get_placeholder_icon_url(),
                        interval_minutes=config.get_interval_minutes(),
                        config_helper=config_helper)
    return poller, icon_fetcher


def configure_logger(level: str | int = logging.INFO) -> None:
    logging.basicConfig(
        format='%(asctime)s [%(levelname)s] - %(name)s: %(message)s',
        datefmt='%m/%d/%Y %I:%M:%S %p',
        level=level
    )
    get_logger().setLevel(level)


def load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        get_logger().error(e)
        exit(1)


def load_config_helper(settings: Settings | None = None) -> ConfigHelper:
    settings = settings or load_settings()
    return ConfigHelper(settings.config)
