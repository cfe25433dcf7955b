"""Live view of one liquidity provider's shape, orders, accounts and position.

Markets, liquidity provisions, orders, accounts, market data and positions
are dictionaries in the data node's JSON form. A liquidity provision holds
``partyId``, ``commitmentAmount`` and ``buys``/``sells``. Each of those is a
list of ``{"orderId": ..., "liquidityOrder": {"reference": ..., "offset": ...,
"proportion": ...}}``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Sequence

from .screen import Canvas, Style, draw_string, draw_string_pc, format_clock

LIQUIDITY_PROVISION_EVENT = "BUS_EVENT_TYPE_LIQUIDITY_PROVISION"
ORDER_EVENT = "BUS_EVENT_TYPE_ORDER"
ACCOUNT_EVENT = "BUS_EVENT_TYPE_ACCOUNT"
MARKET_DATA_EVENT = "BUS_EVENT_TYPE_MARKET_DATA"

_REFERENCE_LABELS = {
    "PEGGED_REFERENCE_MID": "MID",
    "PEGGED_REFERENCE_BEST_ASK": "BEST ASK",
    "PEGGED_REFERENCE_BEST_BID": "BEST BID",
}


def _as_int(value: Any) -> int:
    if value in (None, ""):
        return 0
    return int(value)


def reference_label(ref: str) -> str:
    """Short label for a pegged reference; "N/A" for anything else."""
    return _REFERENCE_LABELS.get(ref, "N/A")


def choose_party(
    lps: Sequence[Mapping[str, Any]],
    party_id: str,
    input_fn: Callable[[str], str] = input,
) -> Mapping[str, Any] | None:
    """Pick the requested party's provision, the only one, or ask the user.

    Returns None when the user picks a number outside the list.
    """
    for lp in lps:
        if lp.get("partyId") == party_id:
            return lp
    if not lps:
        return None
    if len(lps) == 1:
        return lps[0]

    for number, lp in enumerate(lps, start=1):
        print(f"[{number}]:{lp.get('partyId', '')}")
    answer = input_fn("Which party do you want to view? ")
    answer = answer.replace("\n", "").replace("\r", "")
    try:
        index = int(answer)
    except ValueError as exc:
        raise ValueError(f"Failed to convert input into index: {answer!r}") from exc
    index -= 1
    if index < 0 or index > len(lps) - 1:
        print("Invalid party selected")
        return None
    return lps[index]


@dataclass
class LiquidityState:
    """Everything shown about one liquidity provider in one market."""

    market: Mapping[str, Any] | None = None
    lp: dict[str, Any] = field(default_factory=dict)
    acct_general: str = ""
    acct_margin: str = ""
    acct_bond: str = ""
    orders: dict[str, dict[str, Any] | None] = field(default_factory=dict)
    market_data: dict[str, Any] | None = None
    position: dict[str, Any] | None = None

    def populate_order_map(self) -> None:
        """Track every order of the provision's shape not already tracked."""
        for side in ("buys", "sells"):
            for liquidity_order in self.lp.get(side) or []:
                self.orders.setdefault(liquidity_order.get("orderId", ""), None)

    def process_order(self, order: Mapping[str, Any]) -> bool:
        """Update a tracked order, dropping it once no longer live."""
        order_id = order.get("id", "")
        if order_id in self.orders:
            if order.get("status") != "STATUS_ACTIVE" or _as_int(order.get("remaining")) == 0:
                del self.orders[order_id]
            else:
                self.orders[order_id] = dict(order)
        return True

    def apply_account(self, account: Mapping[str, Any]) -> None:
        """Take the balance of a general, margin or bond account."""
        balance = account.get("balance", "")
        account_type = account.get("type")
        if account_type == "ACCOUNT_TYPE_BOND":
            self.acct_bond = balance
        elif account_type == "ACCOUNT_TYPE_GENERAL":
            self.acct_general = balance
        elif account_type == "ACCOUNT_TYPE_MARGIN":
            self.acct_margin = balance

    def handle_events(self, events: Iterable[Mapping[str, Any]]) -> bool:
        """Apply a batch of bus events; True when the screen needs redrawing."""
        redraw = False
        for event in events:
            event_type = event.get("type")
            if event_type == LIQUIDITY_PROVISION_EVENT:
                self.lp = dict(event.get("liquidityProvision") or {})
                self.populate_order_map()
                redraw = True
            elif event_type == ORDER_EVENT:
                if self.process_order(event.get("order") or {}):
                    redraw = True
            elif event_type == ACCOUNT_EVENT:
                self.apply_account(event.get("account") or {})
                redraw = True
            elif event_type == MARKET_DATA_EVENT:
                self.market_data = dict(event.get("marketData") or {})
                redraw = True
        return redraw


def _draw_headers(screen: Canvas, state: LiquidityState) -> None:
    if state.market:
        instrument = (state.market.get("tradableInstrument") or {}).get("instrument") or {}
        draw_string(screen, 0, 0, Style.WHITE, str(instrument.get("name", "")))
        draw_string(screen, 0, 1, Style.WHITE, str(state.market.get("id", "")))
    draw_string(screen, screen.width - 26, 0, Style.WHITE, "Last Update Time:")


def _draw_shape_side(
    screen: Canvas, orders: Sequence[Mapping[str, Any]], title: str, title_x: int,
    title_style: Style, columns: tuple[int, int, int, int],
) -> None:
    start_row = 3
    draw_string(screen, title_x - len(title) // 2, start_row, title_style, title)
    for column, heading in zip(columns, ("OrderID", "Reference", "Offset", "Prop")):
        draw_string_pc(screen, column, start_row + 1, Style.WHITE, heading)
    for index, liquidity_reference in enumerate(orders):
        row = start_row + index + 2
        order = liquidity_reference.get("liquidityOrder") or {}
        values = (
            str(liquidity_reference.get("orderId", "")),
            reference_label(order.get("reference", "")),
            str(order.get("offset", "")),
            str(_as_int(order.get("proportion"))),
        )
        for column, value in zip(columns, values):
            draw_string_pc(screen, column, row, Style.WHITE, value)


def _draw_lp(screen: Canvas, state: LiquidityState) -> None:
    w = screen.width
    _draw_shape_side(screen, state.lp.get("buys") or [], "Buy Side Shape",
                     w // 4, Style.GREEN, (0, 25, 35, 43))
    _draw_shape_side(screen, state.lp.get("sells") or [], "Sell Side Shape",
                     3 * w // 4, Style.RED, (50, 75, 85, 93))


def _draw_market_state(screen: Canvas, state: LiquidityState) -> None:
    if state.market_data is None:
        return
    w = screen.width
    text = str(state.market_data.get("marketTradingMode", ""))
    draw_string(screen, (w - len(text)) // 3, 0, Style.WHITE, text)
    text = f"Commitment: {state.lp.get('commitmentAmount', '')}"
    draw_string(screen, (w - len(text)) * 2 // 3, 0, Style.WHITE, text)
    text = f"Target Stake:{state.market_data.get('targetStake', '')}"
    draw_string(screen, w - len(text), 1, Style.WHITE, text)
    text = f"Supplied Stake:{state.market_data.get('suppliedStake', '')}"
    draw_string(screen, w - len(text), 2, Style.WHITE, text)


def _draw_accounts(screen: Canvas, state: LiquidityState) -> None:
    w, h = screen.size
    draw_string(screen, 0, h - 1, Style.WHITE, f"General Account {state.acct_general}")
    text = f"Margin Account {state.acct_margin}"
    draw_string(screen, (w - len(text)) // 2, h - 1, Style.WHITE, text)
    text = f"Bond Account {state.acct_bond}"
    draw_string(screen, w - len(text), h - 1, Style.WHITE, text)


def _pnl_style(value: str) -> Style:
    return Style.GREEN if value.startswith("+") else Style.RED


def _draw_position(screen: Canvas, state: LiquidityState) -> None:
    if state.position is None:
        return
    w, h = screen.size
    open_volume = _as_int(state.position.get("openVolume"))
    style = Style.GREEN if open_volume >= 0 else Style.RED
    draw_string(screen, 0, h - 2, style, f"Open Volume {open_volume}")
    realised = str(state.position.get("realisedPnl", ""))
    text = f"Realised PnL {realised}"
    draw_string(screen, (w - len(text)) // 2, h - 2, _pnl_style(realised), text)
    unrealised = str(state.position.get("unrealisedPnl", ""))
    text = f"Unrealised PnL {unrealised}"
    draw_string(screen, w - len(text), h - 2, _pnl_style(unrealised), text)


def _draw_orders(screen: Canvas, state: LiquidityState) -> None:
    start_row = screen.height // 2
    headings = ("OrderID", "Price", "Size", "Remain")
    buy_columns = (0, 25, 34, 42)
    sell_columns = (50, 75, 84, 92)
    for column, heading in zip(buy_columns + sell_columns, headings + headings):
        draw_string_pc(screen, column, start_row, Style.WHITE, heading)

    live = sorted((o for o in state.orders.values() if o is not None), key=lambda o: o.get("id", ""))
    buy_row = sell_row = start_row
    for order in live:
        if order.get("side") == "SIDE_BUY":
            buy_row += 1
            row, columns = buy_row, buy_columns
        else:
            sell_row += 1
            row, columns = sell_row, sell_columns
        values = (
            str(order.get("id", "")),
            str(order.get("price", "")),
            str(_as_int(order.get("size"))),
            str(_as_int(order.get("remaining"))),
        )
        for column, value in zip(columns, values):
            draw_string_pc(screen, column, row, Style.WHITE, value)


def render(screen: Canvas, state: LiquidityState) -> None:
    """Redraw the whole view from the state and paint it."""
    screen.clear()
    _draw_headers(screen, state)
    draw_string(screen, screen.width - 8, 0, Style.WHITE, format_clock(datetime.now()))
    _draw_lp(screen, state)
    _draw_accounts(screen, state)
    _draw_orders(screen, state)
    _draw_market_state(screen, state)
    _draw_position(screen, state)
    screen.show()