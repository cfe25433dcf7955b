"""Generating order traffic against markets for a load test."""

from __future__ import annotations

import logging
import random
import sys
import time
from typing import Any, Callable, Sequence, TextIO

import requests

from .batch import BatchOrders
from .wallet import UserDetails, WalletClient, WalletError

log = logging.getLogger(__name__)

# The first two users keep their orders on the book; traffic comes from the rest.
SPECIAL_USERS = 2
MID_PRICE_BAND = 500
MID_PRICE_RESET = 495


def _limit_order(
    market_id: str, price: int, size: int, side: str, reference: str | None = None
) -> dict[str, Any]:
    order: dict[str, Any] = {
        "marketId": market_id,
        "price": str(price),
        "size": size,
        "side": side,
        "type": "TYPE_LIMIT",
        "timeInForce": "TIME_IN_FORCE_GTC",
    }
    if reference is not None:
        order["reference"] = reference
    return order


def _market_order(market_id: str, side: str, reference: str | None = None) -> dict[str, Any]:
    order: dict[str, Any] = {
        "marketId": market_id,
        "size": 3,
        "side": side,
        "type": "TYPE_MARKET",
        "timeInForce": "TIME_IN_FORCE_IOC",
    }
    if reference is not None:
        order["reference"] = reference
    return order


class LoadGenerator:
    """Sends seeding orders and a steady stream of trading commands."""

    def __init__(
        self,
        wallet: WalletClient,
        users: Sequence[UserDetails],
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        out: TextIO | None = None,
    ):
        self.wallet = wallet
        self.users = list(users)
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock
        self._out = out if out is not None else sys.stdout

    def _special_user(self) -> UserDetails:
        return self.users[self._rng.randrange(SPECIAL_USERS)]

    def _trading_user_offset(self, users: int) -> int:
        user_count = users - SPECIAL_USERS
        if user_count <= 0:
            raise ValueError(f"load needs more than {SPECIAL_USERS} users, got {users}")
        return self._rng.randrange(user_count) + SPECIAL_USERS

    def _move_mid(self, mid_price: int, starting_mid_price: int) -> int:
        mid_price += self._rng.randrange(3) - 1
        if mid_price < starting_mid_price - MID_PRICE_BAND:
            mid_price = starting_mid_price - MID_PRICE_RESET
        if mid_price > starting_mid_price + MID_PRICE_BAND:
            mid_price = starting_mid_price + MID_PRICE_RESET
        return mid_price

    def seed_pegged_orders(
        self, market_ids: Sequence[str], pegged_order_count: int, price_levels: int
    ) -> None:
        """Place pegged orders from the special users in every market."""
        for market_id in market_ids:
            for _ in range(pegged_order_count):
                user = self._special_user()
                price_offset = price_levels + self._rng.randrange(100)
                side = self._rng.randrange(100)
                if side < 50:
                    order_side = "SIDE_BUY"
                    reference = (
                        "PEGGED_REFERENCE_BEST_BID" if side % 2 == 0 else "PEGGED_REFERENCE_MID"
                    )
                else:
                    order_side = "SIDE_SELL"
                    reference = (
                        "PEGGED_REFERENCE_BEST_ASK" if side % 2 == 0 else "PEGGED_REFERENCE_MID"
                    )
                order = {
                    "marketId": market_id,
                    "size": 1,
                    "side": order_side,
                    "type": "TYPE_LIMIT",
                    "timeInForce": "TIME_IN_FORCE_GTC",
                    "peggedOrder": {"offset": str(price_offset), "reference": reference},
                }
                self.wallet.send_order(user, order)
                self._sleep(0.025)

    def seed_price_levels(
        self, market_ids: Sequence[str], price_levels: int, starting_mid_price: int
    ) -> None:
        """Put one order at every price level around the mid price."""
        for market_id in market_ids:
            for price in range(starting_mid_price - 1, starting_mid_price - price_levels, -1):
                order = _limit_order(market_id, price, 1, "SIDE_BUY", "PriceLevelBuyOrder")
                try:
                    self.wallet.send_order(self._special_user(), order)
                except Exception as exc:
                    log.error("failed to send price level buy order: %s", exc)
                    raise
                self._sleep(0.025)
            for price in range(starting_mid_price, starting_mid_price + price_levels + 1):
                order = _limit_order(market_id, price, 1, "SIDE_SELL", "PriceLevelSellOrder")
                try:
                    self.wallet.send_order(self._special_user(), order)
                except Exception as exc:
                    log.error("failed to send price level sell order: %s", exc)
                    raise
                self._sleep(0.025)

    def send_trading_load(
        self,
        market_ids: Sequence[str],
        users: int,
        ops: int,
        runtime_seconds: int,
        price_levels: int,
        starting_mid_price: int,
        move_mid: bool,
    ) -> None:
        """Send single commands at ``ops`` per second for ``runtime_seconds``."""
        started = self._clock()
        mid_price = starting_mid_price
        transaction_count = 0
        ops_scale = float(ops - 1) if ops > 1 else 1.0
        number_of_transactions = runtime_seconds * ops

        for i in range(number_of_transactions):
            market_id = market_ids[self._rng.randrange(len(market_ids))]
            user = self.users[self._trading_user_offset(users)]
            choice = self._rng.randrange(100)
            try:
                if choice < 3:
                    try:
                        self.wallet.send_cancel_all(user, market_id)
                    finally:
                        if move_mid:
                            mid_price = self._move_mid(mid_price, starting_mid_price)
                elif choice < 10:
                    if choice % 2 == 1:
                        order = _market_order(market_id, "SIDE_BUY", "MarketBuy")
                    else:
                        order = _market_order(market_id, "SIDE_SELL", "MarketSell")
                    self.wallet.send_order(user, order)
                else:
                    price_offset = self._rng.randrange(price_levels * 2) - price_levels
                    if price_offset > 0:
                        order = _limit_order(
                            market_id, mid_price - 1 + price_offset, 1, "SIDE_SELL",
                            "NonTouchingLimitSell",
                        )
                    else:
                        order = _limit_order(
                            market_id, mid_price + price_offset, 1, "SIDE_BUY",
                            "NonTouchingLimitBuy",
                        )
                    self.wallet.send_order(user, order)
            except (WalletError, requests.RequestException) as exc:
                log.error("failed to send load command: %s", exc)
            transaction_count += 1

            elapsed = self._clock() - started
            wanted = transaction_count / ops_scale
            if elapsed < wanted:
                delay_ms = (wanted - elapsed) * 1000
                if delay_ms > 10:
                    self._sleep(int(delay_ms) / 1000)
                elapsed = self._clock() - started

            if elapsed >= 1:
                self._out.write(
                    f"\rSending load transactions...[{i}/{number_of_transactions}] "
                    f"{transaction_count}cps  "
                )
                transaction_count = 0
                started = self._clock()
        self._out.write("\rSending load transactions...")

    def send_batch_trading_load(
        self,
        market_ids: Sequence[str],
        users: int,
        ops: int,
        runtime_seconds: int,
        batch_size: int,
        price_levels: int,
        starting_mid_price: int,
        move_mid: bool,
    ) -> None:
        """Send commands grouped per user into batches of ``batch_size``."""
        started = self._clock()
        mid_price = starting_mid_price
        transaction_count = 0
        batch_count = 0
        batches: dict[int, BatchOrders] = {}
        number_of_transactions = runtime_seconds * ops

        for i in range(number_of_transactions):
            market_id = market_ids[self._rng.randrange(len(market_ids))]
            user_offset = self._trading_user_offset(users)
            user = self.users[user_offset]
            batch = batches.setdefault(user_offset, BatchOrders())

            choice = self._rng.randrange(100)
            if choice < 3:
                batch.cancels.append({"marketId": market_id})
                if move_mid:
                    mid_price = self._move_mid(mid_price, starting_mid_price)
            elif choice < 10:
                side = "SIDE_BUY" if choice % 2 == 1 else "SIDE_SELL"
                batch.orders.append(_market_order(market_id, side))
            else:
                price_offset = self._rng.randrange(price_levels * 2) - price_levels
                if price_offset > 0:
                    batch.orders.append(
                        _limit_order(market_id, mid_price - 1 + price_offset, 1, "SIDE_SELL")
                    )
                else:
                    batch.orders.append(
                        _limit_order(market_id, mid_price + price_offset, 1, "SIDE_BUY")
                    )
            transaction_count += 1

            if batch.message_count() == batch_size:
                self._send_batch(user, batch)
                batch_count += 1

            if transaction_count == ops:
                for offset, pending in batches.items():
                    if pending.message_count() > 0:
                        self._send_batch(self.users[offset], pending)
                        batch_count += 1

                time_used = self._clock() - started
                if time_used < 1.0:
                    self._sleep(int((1.0 - time_used) * 1000.0) / 1000)
                self._out.write(
                    f"\rSending load transactions...[{i}/{number_of_transactions}] "
                    f"{transaction_count}cps {batch_count}bps "
                )
                transaction_count = 0
                batch_count = 0
                started = self._clock()
        self._out.write("\rSending load transactions...")

    def _send_batch(self, user: UserDetails, batch: BatchOrders) -> None:
        self.wallet.send_batch_orders(
            user, list(batch.cancels), list(batch.amends), list(batch.orders)
        )
        batch.clear()