"""Table of supplied against target liquidity stake for every market."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Iterable

from .screen import Canvas, Style, format_clock

TRIGGER_RATIO_KEY = "market.liquidity.targetstake.triggering.ratio"
_UINT64_MAX = 2**64 - 1
_TRADING_MODE_PREFIX = len("TRADING_MODE_")
_TRIGGER_PREFIX = len("AUCTION_TRIGGER_")


def _draw_left(screen: Canvas, x: int, y: int, max_width: int, style: Style, text: str) -> None:
    for offset, char in enumerate(text[:max_width]):
        screen.set_content(x + offset, y, char, style)


def _draw_right(screen: Canvas, x: int, y: int, width: int, style: Style, text: str) -> None:
    text = text[:width]
    _draw_left(screen, x + width - len(text), y, width, style, text)


def _fixed(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:.2f}"


def _parse_uint(text: str) -> int:
    if not (text.isascii() and text.isdigit()) or int(text) > _UINT64_MAX:
        raise ValueError(f'invalid unsigned integer "{text}"')
    return int(text)


def stake_style(ratio: float, trigger_ratio: float) -> Style:
    """Green when fully staked, yellow above the trigger, red below it."""
    if ratio >= 1.0:
        return Style.GREEN
    if ratio >= trigger_ratio:
        return Style.YELLOW
    return Style.RED


def draw_headers(screen: Canvas, trigger_ratio: float) -> None:
    """Draw the title line and the column headings."""
    percent = trigger_ratio * 100.0
    _draw_left(
        screen, 0, 0, 999, Style.WHITE,
        f"============== Stake (trigger at {percent:5.2f}%) =================",
    )
    _draw_right(screen, 0, 1, 15, Style.WHITE, "Supplied")
    _draw_right(screen, 16, 1, 15, Style.WHITE, "Target")
    _draw_right(screen, 32, 1, 15, Style.WHITE, "Surplus")
    _draw_right(screen, 48, 1, 10, Style.WHITE, "Percent")
    _draw_left(screen, 59, 1, 18, Style.WHITE, "Trading Mode")
    _draw_left(screen, 78, 1, 11, Style.WHITE, "Trigger")
    _draw_left(screen, 90, 1, 64, Style.WHITE, "Market ID")


def render_market_stake(screen: Canvas, events: Iterable[dict[str, Any]], trigger_ratio: float) -> None:
    """Redraw the table from one batch of market data events."""
    screen.clear()
    draw_headers(screen, trigger_ratio)
    _draw_left(screen, screen.width - 8, 0, 8, Style.WHITE, format_clock(datetime.now()))

    for index, event in enumerate(events):
        data = event.get("marketData")
        if not data:
            continue
        row = index + 2
        try:
            supplied = _parse_uint(data.get("suppliedStake", ""))
            target = _parse_uint(data.get("targetStake", ""))
        except ValueError as exc:
            _draw_left(screen, 0, row, 999, Style.WHITE, str(exc))
            continue

        if target:
            ratio = supplied / target
        else:
            ratio = math.inf if supplied else math.nan
        style = stake_style(ratio, trigger_ratio)

        _draw_left(screen, 0, row, 15, Style.WHITE, f"{supplied:>15d}")
        _draw_left(screen, 16, row, 15, Style.WHITE, f"{target:>15d}")
        _draw_left(screen, 32, row, 15, style, f"{supplied - target:>15d}")
        _draw_left(screen, 48, row, 10, style, _fixed(ratio * 100.0).rjust(9) + "%")
        mode = str(data.get("marketTradingMode", ""))[_TRADING_MODE_PREFIX:]
        trigger = str(data.get("trigger", ""))[_TRIGGER_PREFIX:]
        _draw_left(screen, 59, row, 18, Style.WHITE, mode)
        _draw_left(screen, 78, row, 11, Style.WHITE, trigger)
        _draw_left(screen, 90, row, 64, Style.WHITE, str(data.get("market", "")))
    screen.show()


def get_target_stake_triggering_ratio(client: Any) -> float:
    """The network's target stake triggering ratio."""
    response = client.get_network_parameter(TRIGGER_RATIO_KEY)
    parameter = response.get("networkParameter")
    if not parameter:
        raise LookupError(f"failed to find network parameter: {TRIGGER_RATIO_KEY}")
    value = parameter.get("value", "")
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"failed to parse float: {value!r}") from exc