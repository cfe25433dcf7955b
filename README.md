# vegatools

Building blocks for exercising and watching a trading network's data node,
wallet service and event bus: a load generator, an event-bus reader,
a block-latency comparison, a withdrawal collector, and text views of
market depth, liquidity stake and a single liquidity provider.

The package is a library. Network access to the data node and event bus
goes through a client object you supply; responses are dictionaries in the
data node's JSON form (for example `{"markets": {"edges": [{"node": ...}]}}`).
Only the wallet service and the faucet are reached directly, over HTTP
with `requests`.

## Modules

| Module | What it offers |
| --- | --- |
| `vegatools.batch` | `BatchOrders`: pending `cancels`, `amends` and `orders` for one user, with `message_count()` and `clear()`. |
| `vegatools.faucet` | `top_up_asset(faucet_url, pub_key, asset, amount)` posts a mint request; a reply body containing `error` raises `FaucetError`. `http://` is prefixed when the URL has no scheme. |
| `vegatools.wallet` | `UserDetails` and `WalletClient`, which sends orders, batches, liquidity provisions, cancel-all, votes and new-market proposals to `http://<wallet_url>/api/v2/requests`. A non-200 reply raises `WalletError`. `get_first_key(token)` returns `""` when the wallet has no keys or the lookup fails. |
| `vegatools.datanode` | `DataNode` wraps a data node client: network parameters, stake, assets by symbol, general account balance, non-rejected markets, the first open proposal, waiting for enactment and voting. |
| `vegatools.loadgen` | `LoadGenerator` seeds pegged orders and one order per price level, and sends a paced trading load either command by command (`send_trading_load`) or grouped per user (`send_batch_trading_load`). The first two users are kept for seeding; load comes from the rest. |
| `vegatools.perftest` | `PerfTestOptions`, `PerfLoadTester` (loading `name token` lines, funding users to the target balance, checking network limits, proposing and enacting markets) and `run(opts, client)`, which drives a whole run and prints each step's progress. |
| `vegatools.screen` | `Canvas`, an in-memory grid painted with ANSI colours by `show()`, with `Style`, `draw_string`, `draw_string_pc`, `format_clock` and `Canvas.row_text(y)` for inspection. |
| `vegatools.marketstake` | `render_market_stake(screen, events, trigger_ratio)` draws supplied against target stake per market, coloured by `stake_style(ratio, trigger_ratio)`; `get_target_stake_triggering_ratio(client)` reads the trigger ratio. |
| `vegatools.stream` | `resolve_event_types(types, known_types)`, `make_console_logger(log_format, out)` for the `raw`, `text` and `json` formats, and `read_events(connect, handle_event, stop_event, batch_size, reconnect)`, which reads on a background thread and can reconnect every 5 seconds. |
| `vegatools.streamlatency` | `LatencyTracker.record(server, height, now_ms)` compares end-of-block times from two servers and reports how far one trails the other. |
| `vegatools.withdrawals` | `get_parties`, `get_party_withdrawals`, `get_withdrawals`, `get_bundle`, `get_bundles` and `pull_withdrawals(client)`, which prints every party's withdrawals with their `WithdrawalBundle` as JSON and returns them. Withdrawals without a bundle are skipped. |
| `vegatools.marketdepth` | `MarketDepthBook` keeps a depth snapshot current from sequenced deltas; `MarketDepthViewer` draws the book or a streamed snapshot; `choose_market` picks a market, asking the user when there is a choice. |
| `vegatools.liquidity` | `LiquidityState` tracks one provider's shape, orders, accounts, market data and position from bus events; `render(screen, state)` draws them; `choose_party` and `reference_label` help set it up. |

## Behaviour worth knowing

- `MarketDepthBook.apply_update` ignores updates until a snapshot is loaded,
  when the previous sequence number does not match the book, and when they
  carry no levels. A level with zero orders is removed. `sorted_buys()` is
  highest price first, `sorted_sells()` lowest first.
- `resolve_event_types` treats an empty list, or one naming
  `BUS_EVENT_TYPE_ALL`, as every event, and raises `ValueError` for an
  unknown name.
- `read_events` raises `ConnectionError` if the first connection fails and
  sets `stop_event` when reading ends.
- `DataNode.get_pending_proposal_id` and `get_network_param` raise
  `LookupError`; `wait_for_market_enactment` raises `TimeoutError`.
- `PerfLoadTester.check_network_limits` raises `ValueError` when the LP
  shape or batch size exceeds the network's limits.

## What the package does not do

- It has no command-line program; every tool is called from Python.
- It has no gRPC transport. Data node and event bus clients, and the
  `connect` function given to `read_events`, are yours to provide.
- The views draw to a `Canvas` and paint it, but there is no keyboard or
  resize event loop; driving redraws is up to the caller.
- It does not read node snapshot databases, tally validator votes from
  blocks, or sign withdrawals with validator keys.

## Installing

Install with any Python packaging tool; the only dependency is `requests`.
The `test` extra adds `pytest` and `responses`.