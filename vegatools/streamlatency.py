"""Comparing when two nodes report the end of each block."""

from __future__ import annotations

import sys
import threading
import time
from typing import TextIO

COLOR_RED = "\033[0;31m"
COLOR_GREEN = "\033[0;32m"
HISTORY_BLOCKS = 100


class LatencyTracker:
    """Remembers end-of-block times from two servers and reports the lag."""

    def __init__(
        self,
        server_addr1: str,
        server_addr2: str,
        report_mode: bool = False,
        out: TextIO | None = None,
    ):
        self.addresses = (server_addr1, server_addr2)
        self.report_mode = report_mode
        self.out = out if out is not None else sys.stdout
        self._timings = ([0] * HISTORY_BLOCKS, [0] * HISTORY_BLOCKS)
        self._lock = threading.Lock()

    def record(self, server: int, height: int, now_ms: int | None = None) -> int | None:
        """Note that ``server`` (1 or 2) finished block ``height``.

        Returns how many milliseconds ``server`` trails the other one when
        the other has already reported this block, otherwise None.
        """
        if server not in (1, 2):
            raise ValueError(f"server must be 1 or 2, got {server}")
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        mine = server - 1
        other = 1 - mine
        offset = height % HISTORY_BLOCKS
        colour = COLOR_RED if server == 1 else COLOR_GREEN
        with self._lock:
            earlier = self._timings[other][offset]
            if earlier == 0:
                self._timings[mine][offset] = now_ms
                return None
            lag = now_ms - earlier
            self.out.write(
                f"{colour}{self.addresses[mine]} is behind {self.addresses[other]} "
                f"by {lag} milliseconds    \r"
            )
            if self.report_mode:
                self.out.write("\n")
            self._timings[other][offset] = 0
            return lag