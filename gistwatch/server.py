# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, cast

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from ._utils import format_timestamp, time_ago
from .core import GistPoller, build_poller, configure_logger, load_config_helper, load_settings
from .models import Item
from .sinks import MenuSink, MenuSlot


def _get_poller_from_request(request: Request) -> GistPoller:
    return cast(GistPoller, request.app.state.poller)

def _get_sink_from_request(request: Request) -> MenuSink:
    return cast(MenuSink, request.app.state.sink)

PollerDeps = Annotated[GistPoller, Depends(_get_poller_from_request)]
SinkDeps = Annotated[MenuSink, Depends(_get_sink_from_request)]


def _item_to_dict(item: Item) -> dict:
    return {
        'identifier': item.identifier,
        'title': item.title,
        'description': item.description,
        'url': item.content_url,
        'icon_url': item.icon_url,
        'updated_at': format_timestamp(item.updated_at) if item.updated_at else None,
    }

def _slot_to_dict(slot: MenuSlot) -> dict:
    return _item_to_dict(slot.item) | {'has_icon': slot.icon is not None}


router = APIRouter()


@router.get("/items")
async def get_items(sink: SinkDeps) -> dict:
    return {
        'items': [_slot_to_dict(x) for x in sink.get_slots()],
    }


@router.get("/items/{identifier:path}/icon")
async def get_item_icon(identifier: str, sink: SinkDeps) -> Response:
    slot = sink.get_slot(identifier)
    if slot is None or slot.icon is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No icon")
    return Response(content=slot.icon, media_type=slot.icon_type or 'application/octet-stream')


@router.get("/notifications")
async def get_notifications(sink: SinkDeps) -> dict:
    return {
        'notifications': [
            _item_to_dict(x.item) | {'announced_at': format_timestamp(x.announced_at)}
            for x in reversed(sink.get_notifications())
        ],
    }


@router.get("/status")
async def get_status(poller: PollerDeps) -> dict:
    cursor = poller.cursor
    budget = poller.budget
    return {
        'state': poller.state.value,
        'cycle': poller.cycle,
        'cursor': format_timestamp(cursor) if cursor else None,
        'last_update': time_ago(cursor),
        'rate_remaining': budget.remaining,
        'rate_reset_at': format_timestamp(budget.reset_at) if budget.reset_at else None,
        'interval_minutes': poller.interval_minutes,
        'next_run_in': poller.next_run_in(),
        'last_error': poller.last_error,
    }


@router.post("/refresh")
async def refresh(poller: PollerDeps) -> JSONResponse:
    accepted = poller.refresh()
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED if accepted else status.HTTP_409_CONFLICT,
        content={'accepted': accepted, 'state': poller.state.value},
    )


@router.head('/ping')
@router.get('/ping')
def ping() -> Response:
    return Response(status_code=200)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = load_settings()
    configure_logger(settings.log_level)

    config_helper = load_config_helper(settings)
    sink = MenuSink()
    poller, icon_fetcher = build_poller(config_helper.get_config(), sink,
                                        config_helper=config_helper)
    app.state.sink = sink
    app.state.poller = poller

    icon_fetcher.start()
    poller.start()
    try:
        yield
    finally:
        poller.shutdown()
        icon_fetcher.shutdown()

app = FastAPI(
    lifespan=lifespan,
)
app.include_router(router)
