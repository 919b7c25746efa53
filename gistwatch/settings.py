# -*- coding: utf-8 -*-
#
# Copyright (c) 2025~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        'env_prefix': 'GISTWATCH_',
    }

    config: str | None = None
    log_level: str = 'INFO'
