"""
Fire-and-forget activity messages.

The resolver and the aggregator report what happened to every source
(fetched, blocked, discovered, empty, failed) through an ``ActivityLog``.
Writes never raise into the pipeline: a sink that fails is reported on the
module logger and otherwise ignored.  Lines from concurrent sources may
interleave.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

activity_logger = logging.getLogger("newsdash.activity")


class ActivityLog:
    def __init__(self, sink: Optional[Callable[[str], None]] = None):
        self.sink = sink or activity_logger.info

    def write(self, message: str) -> None:
        try:
            self.sink(message)
        except Exception as e:
            logger.debug(f"Activity sink failed: {e}")


activity_log = ActivityLog()
