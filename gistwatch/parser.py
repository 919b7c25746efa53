# -*- coding: utf-8 -*-
#
# Copyright (c) 2026~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

'''
Turns a feed response body into `Item` records.

A defective item never aborts the batch: missing or malformed fields are
filled with sentinel values, and only entries that are not JSON objects at
all are skipped.
'''

from collections.abc import Mapping
from functools import cache
import json
import logging
from typing import Any, cast
from urllib.parse import urlparse

from ._utils import create_unique_id, parse_timestamp
from .errors import ItemDefect, ParseError
from .models import GistRecord, Item, OwnerRecord

ANONYMOUS = 'anonymous'
UNTITLED = 'untitled'


@cache
def get_logger() -> logging.Logger:
    return logging.getLogger('gistwatch').getChild('parser')

def _read_str(data: Mapping[str, object], key: str) -> str | None:
    value = data.get(key)
    if isinstance(value, str) and value:
        return value
    return None

def _is_url(value: str | None) -> bool:
    if not value or value != value.strip():
        return False
    try:
        urlparse(value)
    except ValueError:
        return False
    return True

def extract_file_name(files: Any) -> str | None:
    '''
    Pick a representative file name.

    `files` is either a mapping keyed by file name or a list of such
    mappings; for a list the first entry is used.
    '''
    if isinstance(files, list):
        files = files[0] if files else None
    if isinstance(files, dict):
        for name in files:
            if isinstance(name, str) and name:
                return name
    return None

def _read_identifier(record: GistRecord, content_url: str) -> str:
    source_id = record.get('id')
    if isinstance(source_id, (str, int)) and not isinstance(source_id, bool) and str(source_id):
        return str(source_id)
    if content_url:
        return content_url
    return create_unique_id(json.dumps(record, sort_keys=True, default=str))

def record_to_item(record: Any, *, placeholder_icon_url: str) -> Item:
    '''
    Convert one decoded feed record to an `Item`.

    Raises `ItemDefect` if the record is not an object.
    '''
    if not isinstance(record, dict):
        raise ItemDefect(f'expected an object, got {type(record).__name__}')

    gist = cast(GistRecord, record)
    owner = gist.get('owner')
    if not isinstance(owner, dict):
        owner = cast(OwnerRecord, {})

    owner_name = _read_str(owner, 'login') or ANONYMOUS
    file_name = extract_file_name(gist.get('files')) or UNTITLED

    avatar: str | None = _read_str(owner, 'avatar_url')
    avatar_url: str = avatar if avatar is not None and _is_url(avatar) else placeholder_icon_url

    content_url = _read_str(gist, 'html_url') or _read_str(gist, 'url') or ''

    return Item(
        identifier=_read_identifier(gist, content_url),
        title=f'{owner_name} / {file_name}',
        description=_read_str(gist, 'description') or '',
        content_url=content_url,
        icon_url=avatar_url,
        updated_at=parse_timestamp(gist.get('updated_at')),
    )

def parse_feed(body: str | bytes, *, placeholder_icon_url: str) -> list[Item]:
    '''
    Parse a feed body into items, in source order.

    Raises `ParseError` when the body is not a JSON array.
    '''
    logger = get_logger()

    try:
        records = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as error:
        raise ParseError(f'invalid json: {error}') from error

    if not isinstance(records, list):
        raise ParseError(f'expected a json array, got {type(records).__name__}')

    items: list[Item] = []
    for index, record in enumerate(records):
        try:
            items.append(record_to_item(record, placeholder_icon_url=placeholder_icon_url))
        except ItemDefect as error:
            logger.warning('skip item #%d: %s', index, error)

    logger.info('total found %s items', len(items))
    return items
