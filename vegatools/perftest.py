"""Preparing a network for a load test and driving the test end to end."""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, TextIO

import requests

from .datanode import DataNode
from .faucet import top_up_asset
from .loadgen import LoadGenerator
from .wallet import UserDetails, WalletClient, WalletError

log = logging.getLogger(__name__)

SETTLEMENT_SYMBOL = "fUSDC"
TOP_UP_AMOUNT = 100_000_000
TARGET_BALANCE = 5_000_000_000
INITIAL_TOP_UP_ROUNDS = 50
ENACTMENT_WAIT_SECONDS = 40
LP_SHAPE_PARAM = "market.liquidityProvision.shapes.maxSize"
BATCH_SIZE_PARAM = "spam.protection.max.batchSize"


@dataclass
class PerfTestOptions:
    """Settings for one load test run."""

    data_node_addr: str = ""
    wallet_url: str = ""
    faucet_url: str = ""
    token_keys_file: str = ""
    commands_per_second: int = 0
    runtime_seconds: int = 0
    user_count: int = 0
    market_count: int = 0
    voters: int = 0
    move_mid: bool = False
    lp_orders_per_side: int = 0
    batch_size: int = 0
    pegged_orders: int = 0
    price_levels: int = 0
    starting_mid_price: int = 0
    fill_price_levels: bool = False
    initialise_only: bool = False


def _parse_int(text: str) -> int:
    """Integer with a base prefix allowed; 0 when it cannot be parsed."""
    try:
        return int(text, 0)
    except ValueError:
        return 0


def _limit(market_id: str, price: int, size: int, side: str) -> dict[str, Any]:
    return {
        "marketId": market_id,
        "price": str(price),
        "size": size,
        "side": side,
        "type": "TYPE_LIMIT",
        "timeInForce": "TIME_IN_FORCE_GTC",
    }


class PerfLoadTester:
    """Sets up users, funds, limits and markets before load is sent."""

    def __init__(
        self,
        wallet: WalletClient,
        data_node: DataNode,
        sleep: Callable[[float], None] = time.sleep,
        top_up: Callable[[str, str, str, int], None] = top_up_asset,
        out: TextIO | None = None,
    ):
        self.wallet = wallet
        self.data_node = data_node
        self.users: list[UserDetails] = []
        self._sleep = sleep
        self._top_up = top_up
        self._out = out if out is not None else sys.stdout

    def load_users(self, token_file_path: str, user_count: int) -> None:
        """Read "name token" lines and look up each wallet's first key."""
        self.users = []
        with open(token_file_path, encoding="utf-8") as token_file:
            for line in token_file:
                parts = line.removesuffix("\n").removesuffix("\r").split(" ")
                if len(parts) == 2:
                    name, token = parts
                    pub_key = self.wallet.get_first_key(token)
                    self.users.append(UserDetails(name, token, pub_key))
                if len(self.users) == user_count:
                    break

    def _balance(self, pub_key: str, asset: str) -> int:
        try:
            return self.data_node.get_assets_per_user(pub_key, asset)
        except Exception as exc:  # any lookup failure counts as an empty account
            log.debug("balance lookup failed: %s", exc)
            return 0

    def _stake(self, pub_key: str) -> int:
        try:
            return self.data_node.get_stake(pub_key)
        except Exception as exc:  # any lookup failure counts as no stake yet
            log.debug("stake lookup failed: %s", exc)
            return 0

    def deposit_tokens(
        self, assets: Mapping[str, str], faucet_url: str, voters: int, markets: int
    ) -> None:
        """Top every user up to the target balance and wait for stakes."""
        asset = assets.get(SETTLEMENT_SYMBOL, "")
        if self._balance(self.users[0].pub_key, asset) == 0:
            # Nobody has been funded yet: top everyone up without checking.
            for _ in range(INITIAL_TOP_UP_ROUNDS):
                for user in self.users:
                    self._top_up(faucet_url, user.pub_key, asset, TOP_UP_AMOUNT)
                    self._sleep(0.005)
            # The special accounts need extra for price level orders.
            for _ in range(markets + 10):
                for user in self.users[:voters]:
                    self._top_up(faucet_url, user.pub_key, asset, TOP_UP_AMOUNT)
                    self._sleep(0.005)
            if voters > len(self.users):
                raise IndexError(f"{voters} voters requested but only {len(self.users)} users")
        else:
            for user in self.users:
                amount = self._balance(user.pub_key, asset)
                if amount >= TARGET_BALANCE:
                    self._sleep(0.05)
                    continue
                for _ in range(1 + (TARGET_BALANCE - amount) // TOP_UP_AMOUNT):
                    self._top_up(faucet_url, user.pub_key, asset, TOP_UP_AMOUNT)
                    self._sleep(0.005)

        for user in self.users:
            amount = self._balance(user.pub_key, asset)
            self._sleep(0.05)
            while amount < TARGET_BALANCE:
                self._sleep(1)
                amount = self._balance(user.pub_key, asset)

        for user in self.users[:voters]:
            stake = self.data_node.get_stake(user.pub_key)
            self._sleep(0.05)
            while stake <= 0:
                self._sleep(1)
                stake = self._stake(user.pub_key)

    def check_network_limits(self, opts: PerfTestOptions) -> None:
        """Fail if the options exceed the network's LP shape or batch limits."""
        try:
            max_lp_shape = _parse_int(self.data_node.get_network_param(LP_SHAPE_PARAM))
        except Exception:
            self._out.write("Failed to get LP maximum shape size\n")
            raise
        if opts.lp_orders_per_side > max_lp_shape:
            raise ValueError(
                "supplied lp size greater than network param "
                f"({opts.lp_orders_per_side}>{max_lp_shape})"
            )
        try:
            max_batch_size = _parse_int(self.data_node.get_network_param(BATCH_SIZE_PARAM))
        except Exception:
            self._out.write("Failed to get maximum order batch size\n")
            raise
        if opts.batch_size > max_batch_size:
            raise ValueError(
                "supplied order batch size is greater than network param "
                f"({opts.batch_size}>{max_batch_size})"
            )

    def _quietly(self, send: Callable[..., None], *args: Any) -> None:
        try:
            send(*args)
        except (WalletError, requests.RequestException) as exc:
            log.error("wallet command failed: %s", exc)

    def propose_and_enact_markets(
        self, number_of_markets: int, voters: int, max_lp_shape: int, starting_mid_price: int
    ) -> list[str]:
        """Create markets if none exist and take every market out of auction."""
        if not self.data_node.get_markets():
            for offset in range(number_of_markets):
                self.wallet.new_market(offset, self.users[0])
                self._sleep(3)
                proposal_id = self.data_node.get_pending_proposal_id()
                self.data_node.vote_on_proposal(self.users, proposal_id, voters)
                self.data_node.wait_for_market_enactment(proposal_id, ENACTMENT_WAIT_SECONDS)
        # Markets need a few seconds to move from enacted to pending.
        self._sleep(10)

        markets = self.data_node.get_markets()
        if len(markets) < number_of_markets:
            raise RuntimeError("failed to get open market")

        market_ids = []
        for market in markets:
            market_id = market["id"]
            market_ids.append(market_id)
            if market.get("state") != "STATE_ACTIVE":
                for user in self.users[:voters]:
                    self._quietly(
                        self.wallet.send_liquidity_provision, user, market_id, max_lp_shape
                    )
                first, second = self.users[0], self.users[1]
                mid = starting_mid_price
                for user, order in (
                    (first, _limit(market_id, mid + 100, 100, "SIDE_SELL")),
                    (second, _limit(market_id, mid - 100, 100, "SIDE_BUY")),
                    (first, _limit(market_id, mid, 5, "SIDE_BUY")),
                    (second, _limit(market_id, mid, 5, "SIDE_SELL")),
                ):
                    self._quietly(self.wallet.send_order, user, order)
            self._sleep(1)
        self._sleep(5)
        return market_ids

    def _wait_for_assets(self) -> dict[str, str]:
        while True:
            assets = self.data_node.get_assets()
            if assets:
                return assets
            self._sleep(1)

    def _display_key_users(self) -> None:
        self._out.write(f"Special user 1: {self.users[0].pub_key}\n")
        self._out.write(f"Special user 2: {self.users[1].pub_key}\n")


@contextmanager
def _step(out: TextIO, message: str, done: str = "Complete") -> Iterator[None]:
    out.write(message)
    out.flush()
    try:
        yield
    except BaseException:
        out.write("FAILED\n")
        raise
    out.write(done + "\n")


def run(opts: PerfTestOptions, client: Any) -> None:
    """Run a full load test against the data node behind ``client``."""
    out = sys.stdout
    wallet = WalletClient(opts.wallet_url)
    tester = PerfLoadTester(wallet, DataNode(client, wallet), out=out)

    with _step(out, "Connecting to data node..."):
        if not opts.data_node_addr:
            raise ValueError("error: missing datanode grpc server address")
        assets = tester._wait_for_assets()

    with _step(out, "Loading users from token API file..."):
        if not opts.token_keys_file:
            raise ValueError("error: unable to open token file")
        tester.load_users(opts.token_keys_file, opts.user_count)

    tester._display_key_users()

    with _step(out, "Depositing tokens and assets..."):
        tester.deposit_tokens(assets, opts.faucet_url, opts.voters, opts.market_count)

    tester.check_network_limits(opts)

    with _step(out, "Proposing and voting in new market..."):
        market_ids = tester.propose_and_enact_markets(
            opts.market_count, opts.voters, opts.lp_orders_per_side, opts.starting_mid_price
        )

    load = LoadGenerator(wallet, tester.users, out=out)

    if opts.pegged_orders > 0:
        with _step(out, "Sending pegged orders to market..."):
            load.seed_pegged_orders(market_ids, opts.pegged_orders, opts.price_levels)

    if opts.fill_price_levels:
        with _step(out, "Adding an order to every price level in each market..."):
            load.seed_price_levels(market_ids, opts.price_levels, opts.starting_mid_price)

    if opts.initialise_only:
        out.write("Initialisation complete\n")
        return

    if opts.batch_size > 0:
        with _step(out, "Sending batched load transactions...", "Complete                      "):
            load.send_batch_trading_load(
                market_ids, opts.user_count, opts.commands_per_second, opts.runtime_seconds,
                opts.batch_size, opts.price_levels, opts.starting_mid_price, opts.move_mid,
            )
    else:
        with _step(out, "Sending load transactions...", "Complete                      "):
            load.send_trading_load(
                market_ids, opts.user_count, opts.commands_per_second, opts.runtime_seconds,
                opts.price_levels, opts.starting_mid_price, opts.move_mid,
            )