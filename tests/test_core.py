# -*- coding: utf-8 -*-
#
# Copyright (c) 2026~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from datetime import timedelta

import requests

from gistwatch.client import FeedClient
from gistwatch.core import TAG_RESUME, TAG_TICK, GistPoller
from gistwatch.errors import HttpStatusError, TransportError
from gistwatch.models import FeedResponse, IconResult, PollState, RateBudget
from gistwatch.sinks import MenuSink
from gistwatch.stores import MemoryCursorStore

from .fakes import FEED_URL, PLACEHOLDER, FakeClient, FakeIconFetcher, FakeSession, feed_response, gist


def _jobs(poller: GistPoller, tag: str) -> list:
    return [x for x in poller.scheduler.jobs if tag in x.tags]

def _create(client, clock, *, store=None, sink=None, icons=None) -> GistPoller:
    return GistPoller(client, sink or MenuSink(), store or MemoryCursorStore(), icons,
                      placeholder_icon_url=PLACEHOLDER, interval_minutes=60, clock=clock)


def test_cursor_is_loaded_from_store(clock, t0):
    poller = _create(FakeClient(feed_response([])), clock, store=MemoryCursorStore(t0))
    assert poller.cursor == t0

def test_success_advances_cursor_to_cycle_start(clock, t0):
    # the response "arrives" ten seconds after the request started
    client = FakeClient(feed_response([gist(1)]), on_fetch=lambda: clock.advance(10))
    store = MemoryCursorStore()
    poller = _create(client, clock, store=store)

    assert poller.tick()
    assert client.cursors == [None]
    assert poller.cursor == t0
    assert store.value == t0
    assert poller.state is PollState.IDLE

def test_next_fetch_uses_previous_cursor(clock, t0):
    client = FakeClient(feed_response([]))
    poller = _create(client, clock)
    poller.tick()
    clock.advance(3600)
    poller.tick()
    assert client.cursors == [None, t0]
    assert poller.cursor == t0 + timedelta(hours=1)

def test_failure_keeps_cursor(clock, t0):
    previous = t0 - timedelta(hours=1)
    store = MemoryCursorStore(previous)
    poller = _create(FakeClient(TransportError('connection refused')), clock, store=store)

    assert not poller.tick()
    assert poller.cursor == previous
    assert store.value == previous
    assert poller.state is PollState.IDLE
    assert poller.last_error == 'connection refused'
    assert len(_jobs(poller, TAG_TICK)) == 1

def test_parse_error_keeps_cursor(clock, t0):
    store = MemoryCursorStore()
    client = FakeClient(FeedResponse(body='<html>', rate=RateBudget(remaining=10)))
    poller = _create(client, clock, store=store)

    assert not poller.tick()
    assert poller.cursor is None
    assert store.value is None
    assert poller.budget.remaining == 10
    assert len(_jobs(poller, TAG_TICK)) == 1

def test_cursor_never_moves_backwards(clock, t0):
    ahead = t0 + timedelta(minutes=5)
    store = MemoryCursorStore(ahead)
    poller = _create(FakeClient(feed_response([])), clock, store=store)
    assert poller.tick()
    assert poller.cursor == ahead

def test_success_schedules_single_tick(clock):
    poller = _create(FakeClient(feed_response([])), clock)
    poller.tick()
    poller.tick()
    tick_job, = _jobs(poller, TAG_TICK)
    assert tick_job.interval == 60
    assert tick_job.unit == 'minutes'

def test_exhausted_budget_halts_without_reset_time(clock):
    client = FakeClient(feed_response([gist(1)], remaining=0))
    poller = _create(client, clock)

    assert poller.tick()
    assert poller.state is PollState.SUSPENDED
    assert poller.scheduler.jobs == []

    assert not poller.tick()
    assert not poller.refresh()
    assert len(client.cursors) == 1

def test_exhausted_budget_on_error_response(clock):
    error = HttpStatusError('403 Client Error', 403, rate=RateBudget(remaining=0))
    client = FakeClient(error)
    poller = _create(client, clock)

    assert not poller.tick()
    assert poller.state is PollState.SUSPENDED
    assert not poller.tick()
    assert len(client.cursors) == 1

def test_exhausted_budget_resumes_at_reset(clock, t0):
    reset_at = t0 + timedelta(minutes=10)
    client = FakeClient(feed_response([], remaining=0, reset_at=reset_at), feed_response([], remaining=4999))
    poller = _create(client, clock)

    poller.tick()
    assert poller.state is PollState.SUSPENDED
    assert _jobs(poller, TAG_TICK) == []
    resume_job, = _jobs(poller, TAG_RESUME)
    assert resume_job.interval == 601
    assert resume_job.unit == 'seconds'

    clock.advance(601)
    poller.scheduler.run_all()

    assert len(client.cursors) == 2
    assert poller.state is PollState.IDLE
    assert poller.budget.remaining == 4999
    assert _jobs(poller, TAG_RESUME) == []
    assert len(_jobs(poller, TAG_TICK)) == 1

def test_items_are_presented_and_announced_once(clock):
    sink = MenuSink()
    client = FakeClient(feed_response([gist(1), gist(2)]))
    poller = _create(client, clock, sink=sink)

    poller.tick()
    poller.tick()

    assert [x.item.identifier for x in sink.get_slots()] == ['g1', 'g2']
    assert [x.item.identifier for x in sink.get_notifications()] == ['g1', 'g2']
    assert poller.cycle == 2

def test_updated_item_is_announced_again(clock):
    sink = MenuSink()
    client = FakeClient(
        feed_response([gist(1)]),
        feed_response([gist(1, updated_at='2024-01-02T00:00:00Z')]),
    )
    poller = _create(client, clock, sink=sink)
    poller.tick()
    poller.tick()
    assert len(sink.get_notifications()) == 2

def test_failed_cycle_keeps_previous_menu(clock):
    sink = MenuSink()
    client = FakeClient(feed_response([gist(1)]), TransportError('timeout'))
    poller = _create(client, clock, sink=sink)
    poller.tick()
    poller.tick()
    assert [x.item.identifier for x in sink.get_slots()] == ['g1']

def test_icons_are_requested_per_item(clock):
    icons = FakeIconFetcher()
    poller = _create(FakeClient(feed_response([gist(1), gist(2, owner=None)])), clock, icons=icons)
    poller.tick()
    assert [(x[0], x[1]) for x in icons.requests] == [
        ('g1', 'https://avatars.example.com/u/1'),
        ('g2', PLACEHOLDER),
    ]

def test_icon_is_attached_by_identifier(clock):
    sink = MenuSink()
    icons = FakeIconFetcher()
    poller = _create(FakeClient(feed_response([gist(1), gist(2)])), clock, sink=sink, icons=icons)
    poller.tick()

    # completions arrive out of order
    for identifier, _, callback in reversed(icons.requests):
        callback(IconResult(identifier=identifier, content=identifier.encode()))

    assert sink.get_icon('g1') == b'g1'
    assert sink.get_icon('g2') == b'g2'

def test_stale_icon_does_not_touch_new_slot(clock):
    sink = MenuSink()
    icons = FakeIconFetcher()
    client = FakeClient(feed_response([gist(1)]), feed_response([gist(1), gist(2)]))
    poller = _create(client, clock, sink=sink, icons=icons)

    poller.tick()
    _, _, stale_callback = icons.requests[0]
    poller.tick()

    stale_callback(IconResult(identifier='g1', content=b'old'))
    assert sink.get_icon('g1') is None

    _, _, fresh_callback = icons.requests[1]
    fresh_callback(IconResult(identifier='g1', content=b'new'))
    assert sink.get_icon('g1') == b'new'

def test_icon_for_removed_item_is_ignored(clock):
    sink = MenuSink()
    icons = FakeIconFetcher()
    client = FakeClient(feed_response([gist(1)]), feed_response([gist(2)]))
    poller = _create(client, clock, sink=sink, icons=icons)

    poller.tick()
    poller.tick()
    _, _, callback = icons.requests[0]
    callback(IconResult(identifier='g1', content=b'gone'))

    assert [x.item.identifier for x in sink.get_slots()] == ['g2']
    assert sink.get_icon('g1') is None

def test_tick_is_not_reentrant(clock):
    inner_results = []
    client = FakeClient(feed_response([]))
    poller = _create(client, clock)
    client.on_fetch = lambda: inner_results.append(poller.tick())

    assert poller.tick()
    assert inner_results == [False]
    assert len(client.cursors) == 1

def test_refresh_runs_on_next_pending(clock):
    client = FakeClient(feed_response([]))
    poller = _create(client, clock)

    assert poller.refresh()
    assert client.cursors == []
    poller.run_pending()
    assert len(client.cursors) == 1
    poller.run_pending()
    assert len(client.cursors) == 1

def test_broken_connection_is_a_failed_cycle(clock, t0):
    store = MemoryCursorStore(t0)
    session = FakeSession(requests.exceptions.ChunkedEncodingError('connection broken'))
    poller = _create(FeedClient(session, FEED_URL), clock, store=store)

    assert not poller.tick()
    assert poller.last_error == 'ChunkedEncodingError: connection broken'
    assert poller.cursor == t0
    assert poller.state is PollState.IDLE
    assert len(_jobs(poller, TAG_TICK)) == 1

def test_duplicate_items_are_announced_once(clock):
    sink = MenuSink()
    poller = _create(FakeClient(feed_response([gist(1), gist(1), gist(2)])), clock, sink=sink)
    poller.tick()
    assert [x.item.identifier for x in sink.get_notifications()] == ['g1', 'g2']
    assert [x.item.identifier for x in sink.get_slots()] == ['g1', 'g2']

def test_icon_content_type_reaches_sink(clock):
    sink = MenuSink()
    icons = FakeIconFetcher()
    poller = _create(FakeClient(feed_response([gist(1)])), clock, sink=sink, icons=icons)
    poller.tick()

    identifier, _, callback = icons.requests[0]
    callback(IconResult(identifier=identifier, content=b'gif', content_type='image/gif'))

    slot = sink.get_slot('g1')
    assert slot is not None
    assert slot.icon == b'gif'
    assert slot.icon_type == 'image/gif'
