"""Live market depth: a price-level book kept from snapshots or deltas.

Price levels, depth snapshots and depth updates are dictionaries in the
data node's JSON form, e.g. ``{"price": "100", "volume": "5",
"numberOfOrders": "2"}``; updates also carry ``sequenceNumber`` and
``previousSequenceNumber``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Sequence

from .screen import Canvas, Style, draw_string, format_clock

log = logging.getLogger(__name__)

MARKET_DATA_EVENT = "BUS_EVENT_TYPE_MARKET_DATA"
REDRAW_INTERVAL = 1.0

PriceLevel = dict[str, Any]


def _as_int(value: Any) -> int:
    if value in (None, ""):
        return 0
    return int(value)


def _market_name(market: Mapping[str, Any]) -> str:
    instrument = (market.get("tradableInstrument") or {}).get("instrument") or {}
    return str(instrument.get("name", ""))


@dataclass
class MarketDepthBook:
    """Price levels on each side keyed by price, with the last sequence number."""

    buys: dict[str, PriceLevel] = field(default_factory=dict)
    sells: dict[str, PriceLevel] = field(default_factory=dict)
    seq_num: int = 0

    def load_snapshot(self, response: Mapping[str, Any]) -> None:
        """Take the levels and sequence number of a depth snapshot."""
        for level in response.get("buy") or []:
            self.buys[level["price"]] = level
        for level in response.get("sell") or []:
            self.sells[level["price"]] = level
        self.seq_num = _as_int(response.get("sequenceNumber"))

    def apply_update(self, update: Mapping[str, Any]) -> bool:
        """Apply a delta if it follows the book; True when it was applied.

        Deltas are ignored until a snapshot is loaded, when they do not
        follow on from the current sequence number, and when they are empty.
        A level with no orders is removed.
        """
        if self.seq_num == 0:
            return False
        if _as_int(update.get("previousSequenceNumber")) != self.seq_num:
            return False
        buys = update.get("buy") or []
        sells = update.get("sell") or []
        if not buys and not sells:
            return False
        for side, levels in ((self.buys, buys), (self.sells, sells)):
            for level in levels:
                if _as_int(level.get("numberOfOrders")) == 0:
                    side.pop(level["price"], None)
                else:
                    side[level["price"]] = level
        self.seq_num = _as_int(update.get("sequenceNumber"))
        return True

    def sorted_buys(self) -> list[PriceLevel]:
        """Buy levels, best (highest) price first."""
        return sorted(self.buys.values(), key=lambda level: int(level["price"]), reverse=True)

    def sorted_sells(self) -> list[PriceLevel]:
        """Sell levels, best (lowest) price first."""
        return sorted(self.sells.values(), key=lambda level: int(level["price"]))


class MarketDepthViewer:
    """Draws the depth of one market on a canvas."""

    def __init__(
        self,
        screen: Canvas,
        market: Mapping[str, Any] | None,
        update_mode: str = "(SNAPSHOTS)",
        book: MarketDepthBook | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.screen = screen
        self.market = market
        self.update_mode = update_mode
        self.book = book if book is not None else MarketDepthBook()
        self.market_data: dict[str, Any] | None = None
        self.mode = ""
        self.dirty = False
        self.last_redraw: float | None = None
        self._clock = clock
        self._now = now
        self._lock = threading.Lock()

    def draw_headers(self) -> None:
        """Draw the column titles, market name and volume labels."""
        w, h = self.screen.size
        s, white = self.screen, Style.WHITE
        draw_string(s, w // 4 - 2, 2, white, "Bids")
        draw_string(s, 3 * w // 4 - 2, 2, white, "Asks")
        draw_string(s, w // 4 - 19, 3, white, "--Volume--")
        draw_string(s, w // 4 + 8, 3, white, "---Price---")
        draw_string(s, 3 * w // 4 - 22, 3, white, "---Price---")
        draw_string(s, 3 * w // 4 + 9, 3, white, "--Volume--")
        if self.market:
            draw_string(s, 0, 0, white, f"Market: {_market_name(self.market)}")
            draw_string(s, 0, 1, white, str(self.market.get("id", "")))
        draw_string(s, w - 26, 0, white, "Last Update Time:")
        draw_string(s, w // 4 - 8, h - 1, white, "Volume:")
        draw_string(s, 3 * w // 4 - 8, h - 1, white, "Volume:")

    def _draw_time(self) -> None:
        draw_string(self.screen, self.screen.width - 8, 0, Style.WHITE, format_clock(self._now()))

    def _draw_sequence_number(self, seq_num: int) -> None:
        text = f"{self.update_mode} SeqNum:{seq_num:6d}"
        draw_string(self.screen, self.screen.width // 2 - len(text) // 2, 0, Style.WHITE, text)

    def _draw_market_state(self) -> None:
        if not self.market_data:
            return
        w, h = self.screen.size
        text = str(self.market_data.get("marketTradingMode", ""))
        draw_string(self.screen, (w - len(text)) // 2, h - 1, Style.WHITE, text)
        text = f"Open Interest: {_as_int(self.market_data.get('openInterest'))}"
        draw_string(self.screen, w - len(text), 1, Style.WHITE, text)

    def _draw_levels(
        self, buys: Iterable[PriceLevel], sells: Iterable[PriceLevel]
    ) -> tuple[int, int]:
        w, h = self.screen.size
        s = self.screen
        bid_volume = 0
        ask_volume = 0
        for index, level in enumerate(buys):
            volume = _as_int(level.get("volume"))
            bid_volume += volume
            if index > h - 6:
                continue
            draw_string(s, w // 4 - 21, index + 4, Style.GREEN, f"{volume:12d}")
            draw_string(s, w // 4 + 7, index + 4, Style.GREEN, f"{level.get('price', ''):>12}")
        for index, level in enumerate(sells):
            volume = _as_int(level.get("volume"))
            ask_volume += volume
            if index > h - 6:
                continue
            draw_string(s, 3 * w // 4 - 22, index + 4, Style.RED, str(level.get("price", "")))
            draw_string(s, 3 * w // 4 + 9, index + 4, Style.RED, str(volume))
        draw_string(s, w // 4, h - 1, Style.WHITE, f"{bid_volume:8d}")
        draw_string(s, 3 * w // 4, h - 1, Style.WHITE, f"{ask_volume:8d}")
        return bid_volume, ask_volume

    def render_book(self) -> tuple[int, int]:
        """Redraw the screen from the book; returns total bid and ask volume."""
        with self._lock:
            buys = self.book.sorted_buys()
            sells = self.book.sorted_sells()
            self.screen.clear()
            self.draw_headers()
            self._draw_time()
            self._draw_sequence_number(self.book.seq_num)
            self._draw_market_state()
            totals = self._draw_levels(buys, sells)
            self.screen.show()
            self.dirty = False
            self.last_redraw = self._clock()
            return totals

    def render_snapshot(self, depth: Mapping[str, Any]) -> tuple[int, int] | None:
        """Redraw from a streamed snapshot response, using its latest depth.

        Returns total bid and ask volume, or None when it held no depth.
        """
        self.screen.clear()
        self.draw_headers()
        self._draw_time()
        self._draw_market_state()
        depths: Sequence[Mapping[str, Any]] = depth.get("marketDepth") or []
        if not depths:
            return None
        latest = depths[-1]
        self._draw_sequence_number(_as_int(latest.get("sequenceNumber")))
        totals = self._draw_levels(latest.get("buy") or [], latest.get("sell") or [])
        self.screen.show()
        return totals

    def handle_market_data(self, event: Mapping[str, Any]) -> None:
        """Keep the latest market data from a market data bus event."""
        if event.get("type") != MARKET_DATA_EVENT:
            return
        data = event.get("marketData") or {}
        self.mode = str(data.get("marketTradingMode", ""))
        self.market_data = dict(data)

    def _redraw_due(self) -> bool:
        return self.last_redraw is None or self._clock() > self.last_redraw + REDRAW_INTERVAL

    def _on_update(self, update: Mapping[str, Any]) -> None:
        with self._lock:
            applied = self.book.apply_update(update)
            if applied:
                self.dirty = True
            due = applied and self._redraw_due()
        if due:
            self.render_book()

    def _process_updates(self, responses: Iterable[Mapping[str, Any]]) -> None:
        try:
            for response in responses:
                for update in response.get("update") or []:
                    self._on_update(update)
        except Exception as exc:  # the transport's error types are not known here
            log.info("depth updates: stream closed err=%s", exc)

    def _background_redraw(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            with self._lock:
                should = self.dirty and self._redraw_due()
            if should:
                self.render_book()
            stop_event.wait(REDRAW_INTERVAL)


def choose_market(
    markets: Sequence[Mapping[str, Any]],
    market_id: str,
    input_fn: Callable[[str], str] = input,
) -> Mapping[str, Any] | None:
    """Pick the requested market, the only market, or ask the user to choose."""
    for market in markets:
        if market.get("id") == market_id:
            return market
    if not markets:
        return None
    if len(markets) == 1:
        return markets[0]

    for number, market in enumerate(markets, start=1):
        print(f"[{number}]:{market.get('state', '')} ({_market_name(market)}) [{market.get('id', '')}]")
    answer = input_fn("Which market do you want to view? ")
    answer = answer.replace("\n", "").replace("\r", "")
    try:
        index = int(answer)
    except ValueError as exc:
        raise ValueError(f"Failed to convert input into index: {answer!r}") from exc
    index -= 1
    if index < 0 or index > len(markets) - 1:
        raise ValueError(f"invalid market selection: {market_id}")
    print("Using market:", index)
    return markets[index]