# -*- coding: utf-8 -*-
#
# Copyright (c) 2026~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from .core import GistPoller, build_poller
from .errors import FetchError, HttpStatusError, IconFetchError, ParseError, TransportError
from .models import Item, PollState, RateBudget
from .parser import parse_feed
from .sinks import MenuSink, PresentationSink

__version__ = '0.1.0'
