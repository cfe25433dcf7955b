import io
import random

import pytest

from vegatools.loadgen import LoadGenerator
from vegatools.wallet import UserDetails, WalletError


class FakeWallet:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def _record(self, call):
        self.calls.append(call)
        if self.fail:
            raise WalletError("500 Internal Server Error")

    def send_order(self, user, order):
        self._record(("order", user, dict(order)))

    def send_cancel_all(self, user, market_id):
        self._record(("cancel_all", user, market_id))

    def send_batch_orders(self, user, cancels, amends, orders):
        self._record(("batch", user, list(cancels), list(amends), list(orders)))


def make_users(n):
    return [UserDetails(f"user{i}", "token", f"key{i}") for i in range(n)]


def make_generator(wallet, n_users=6, seed=1, out=None):
    return LoadGenerator(
        wallet,
        make_users(n_users),
        rng=random.Random(seed),
        sleep=lambda s: None,
        clock=lambda: 0.0,
        out=out if out is not None else io.StringIO(),
    )


def test_seed_price_levels_places_buys_below_and_sells_from_mid():
    wallet = FakeWallet()
    gen = make_generator(wallet)
    gen.seed_price_levels(["m1"], 5, 1000)
    orders = [c[2] for c in wallet.calls]
    buys = [o for o in orders if o["side"] == "SIDE_BUY"]
    sells = [o for o in orders if o["side"] == "SIDE_SELL"]
    assert len(buys) == 4
    assert len(sells) == 6
    assert all(int(o["price"]) < 1000 for o in buys)
    assert all(int(o["price"]) >= 1000 for o in sells)
    assert buys[0]["price"] == "999"
    assert sells[0]["price"] == "1000"
    assert {o["reference"] for o in buys} == {"PriceLevelBuyOrder"}
    assert {o["reference"] for o in sells} == {"PriceLevelSellOrder"}
    special = set(make_users(2))
    assert all(c[1] in special for c in wallet.calls)


def test_seed_price_levels_covers_every_market():
    wallet = FakeWallet()
    gen = make_generator(wallet)
    gen.seed_price_levels(["a", "b"], 3, 100)
    markets = [c[2]["marketId"] for c in wallet.calls]
    assert markets.count("a") == markets.count("b")
    assert len(markets) == 2 * markets.count("a")


def test_seed_price_levels_raises_wallet_error():
    gen = make_generator(FakeWallet(fail=True))
    with pytest.raises(WalletError):
        gen.seed_price_levels(["m1"], 3, 100)


def test_seed_pegged_orders_references_match_side():
    wallet = FakeWallet()
    gen = make_generator(wallet, seed=7)
    gen.seed_pegged_orders(["m1", "m2"], 40, 20)
    assert len(wallet.calls) == 80
    special = set(make_users(2))
    for _, user, order in wallet.calls:
        assert user in special
        pegged = order["peggedOrder"]
        assert 20 <= int(pegged["offset"]) < 120
        if order["side"] == "SIDE_BUY":
            assert pegged["reference"] in {"PEGGED_REFERENCE_BEST_BID", "PEGGED_REFERENCE_MID"}
        else:
            assert order["side"] == "SIDE_SELL"
            assert pegged["reference"] in {"PEGGED_REFERENCE_BEST_ASK", "PEGGED_REFERENCE_MID"}
        assert order["size"] == 1
        assert order["type"] == "TYPE_LIMIT"


def test_seed_pegged_orders_propagates_errors():
    gen = make_generator(FakeWallet(fail=True))
    with pytest.raises(WalletError):
        gen.seed_pegged_orders(["m1"], 1, 10)


def test_send_trading_load_sends_expected_count_from_trading_users():
    wallet = FakeWallet()
    out = io.StringIO()
    gen = make_generator(wallet, out=out)
    gen.send_trading_load(["m1", "m2"], 6, 10, 3, 50, 1000, False)
    assert len(wallet.calls) == 30
    special = set(make_users(2))
    assert all(c[1] not in special for c in wallet.calls)
    assert out.getvalue().endswith("\rSending load transactions...")


def test_send_trading_load_limit_orders_do_not_cross_mid():
    wallet = FakeWallet()
    gen = make_generator(wallet, seed=3)
    gen.send_trading_load(["m1"], 5, 50, 4, 20, 1000, False)
    for call in wallet.calls:
        if call[0] != "order":
            continue
        order = call[2]
        if order["type"] == "TYPE_MARKET":
            assert order["size"] == 3
            assert order["timeInForce"] == "TIME_IN_FORCE_IOC"
        elif order["side"] == "SIDE_SELL":
            assert int(order["price"]) >= 1000
            assert order["reference"] == "NonTouchingLimitSell"
        else:
            assert int(order["price"]) <= 1000
            assert order["reference"] == "NonTouchingLimitBuy"


def test_send_trading_load_moving_mid_stays_in_band():
    wallet = FakeWallet()
    gen = make_generator(wallet, seed=11)
    gen.send_trading_load(["m1"], 5, 100, 10, 20, 1000, True)
    prices = [int(c[2]["price"]) for c in wallet.calls if c[0] == "order" and "price" in c[2]]
    assert prices
    assert all(1000 - 500 - 20 <= p <= 1000 + 500 + 20 for p in prices)


def test_send_trading_load_swallows_wallet_errors():
    wallet = FakeWallet(fail=True)
    gen = make_generator(wallet)
    gen.send_trading_load(["m1"], 4, 5, 2, 10, 100, False)
    assert len(wallet.calls) == 10


def test_send_trading_load_needs_trading_users():
    gen = make_generator(FakeWallet(), n_users=2)
    with pytest.raises(ValueError):
        gen.send_trading_load(["m1"], 2, 5, 1, 10, 100, False)


def test_send_batch_trading_load_sends_every_message_once():
    wallet = FakeWallet()
    gen = make_generator(wallet, seed=5)
    gen.send_batch_trading_load(["m1", "m2"], 6, 20, 3, 4, 30, 1000, False)
    total = sum(len(c[2]) + len(c[3]) + len(c[4]) for c in wallet.calls)
    assert total == 60
    for call in wallet.calls:
        assert call[0] == "batch"
        assert 1 <= len(call[2]) + len(call[3]) + len(call[4]) <= 4
        assert call[3] == []


def test_send_batch_trading_load_batch_size_one_sends_single_messages():
    wallet = FakeWallet()
    gen = make_generator(wallet, seed=9)
    gen.send_batch_trading_load(["m1"], 5, 10, 2, 1, 30, 1000, False)
    assert len(wallet.calls) == 20
    assert all(len(c[2]) + len(c[4]) == 1 for c in wallet.calls)


def test_send_batch_trading_load_batches_belong_to_one_user():
    wallet = FakeWallet()
    gen = make_generator(wallet, seed=2)
    gen.send_batch_trading_load(["m1"], 6, 12, 2, 3, 30, 1000, False)
    special = set(make_users(2))
    assert wallet.calls
    assert all(c[1] not in special for c in wallet.calls)


def test_send_batch_trading_load_propagates_errors():
    gen = make_generator(FakeWallet(fail=True))
    with pytest.raises(WalletError):
        gen.send_batch_trading_load(["m1"], 5, 10, 1, 2, 30, 1000, False)