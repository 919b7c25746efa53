# -*- coding: utf-8 -*-
#
# Copyright (c) 2026~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from datetime import UTC, datetime

import pytest

from .fakes import FakeClock


@pytest.fixture
def t0() -> datetime:
    return datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

@pytest.fixture
def clock(t0) -> FakeClock:
    return FakeClock(t0)
