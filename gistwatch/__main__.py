# -*- coding: utf-8 -*-
#
# Copyright (c) 2022~2999 - Cologler <skyoflw@gmail.com>
# ----------
#
# ----------

from .core import build_poller, configure_logger, get_logger, load_config_helper, load_settings
from .sinks import MenuSink

def fetch_once() -> int:
    settings = load_settings()
    configure_logger(settings.log_level)
    config_helper = load_config_helper(settings)
    sink = MenuSink()
    poller, icon_fetcher = build_poller(config_helper.get_config(), sink)
    try:
        succeeded = poller.tick()
        icon_fetcher.join()
    except KeyboardInterrupt:
        print('User cancel.')
        return 1
    finally:
        icon_fetcher.shutdown()

    slots = sink.get_slots()
    get_logger().info('%d items, %d with icon.', len(slots), sum(1 for x in slots if x.icon))
    return 0 if succeeded else 1

if __name__ == '__main__':
    exit(fetch_once())
