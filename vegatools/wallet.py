"""Client for the wallet service's JSON-RPC request endpoint."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import requests

log = logging.getLogger(__name__)

ORACLE_SIGNER_ADDRESS = "0x0000000000000000000000000000000000000001"


class WalletError(Exception):
    """The wallet service rejected a request."""


@dataclass(frozen=True)
class UserDetails:
    """A wallet user: its name, its long-lived token and its public key."""

    user_name: str
    token: str
    pub_key: str = ""


def _oracle_spec(filters: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "external": {
            "oracle": {
                "signers": [{"ethAddress": {"address": ORACLE_SIGNER_ADDRESS}}],
                "filters": filters,
            }
        }
    }


class WalletClient:
    """Sends commands to the wallet service on behalf of users."""

    def __init__(self, wallet_url: str, session: requests.Session | None = None):
        self.wallet_url = wallet_url
        self._session = session or requests.Session()

    @property
    def requests_url(self) -> str:
        return f"http://{self.wallet_url}/api/v2/requests"

    def seconds_from_now(self, seconds: int) -> int:
        """Unix timestamp ``seconds`` from now."""
        return int(time.time()) + seconds

    def send_transaction(self, user: UserDetails, sub_type: str, sub_data: Any) -> bytes:
        """Send one command of kind ``sub_type`` signed by ``user``."""
        request = {
            "jsonrpc": "2.0",
            "method": "client.send_transaction",
            "id": "1",
            "params": {
                "publicKey": user.pub_key,
                "sendingMode": "TYPE_SYNC",
                "transaction": {sub_type: sub_data},
            },
        }
        return self.send_request(request, user.token)

    def send_request(self, request: Mapping[str, Any], token: str) -> bytes:
        """Post a JSON-RPC request and return the raw reply body."""
        response = self._session.post(
            self.requests_url,
            data=json.dumps(request).encode(),
            headers={"origin": "perfbot", "Authorization": f"VWT {token}"},
        )
        if response.status_code != 200:
            raise WalletError(f"{response.status_code} {response.reason or ''}".strip())
        return response.content

    def new_market(self, offset: int, user: UserDetails) -> None:
        """Propose a new futures market."""
        market_name = f"JUN 2023 BTV vs USD future {offset}"
        proposal = {
            "rationale": {"description": "desc", "title": "title"},
            "terms": {
                "closingTimestamp": self.seconds_from_now(15),
                "enactmentTimestamp": self.seconds_from_now(30),
                "newMarket": {
                    "changes": {
                        "lpPriceRange": "10",
                        "decimalPlaces": "5",
                        "positionDecimalPlaces": "5",
                        "instrument": {
                            "code": "CRYPTO:BTCUSD/NOV22",
                            "name": market_name,
                            "future": {
                                "settlementAsset": "fUSDC",
                                "quoteName": "BTCUSD",
                                "dataSourceSpecForSettlementData": _oracle_spec(
                                    [
                                        {
                                            "key": {"name": "trading.settled", "type": "TYPE_INTEGER"},
                                            "conditions": [
                                                {"operator": "OPERATOR_GREATER_THAN", "value": "0"}
                                            ],
                                        }
                                    ]
                                ),
                                "dataSourceSpecForTradingTermination": _oracle_spec(
                                    [{"key": {"name": "trading.terminated", "type": "TYPE_BOOLEAN"}}]
                                ),
                                "dataSourceSpecBinding": {
                                    "settlementDataProperty": "trading.settled",
                                    "tradingTerminationProperty": "trading.terminated",
                                },
                            },
                        },
                        "simple": {
                            "factorLong": "0.15",
                            "factorShort": "0.25",
                            "maxMoveUp": "10",
                            "minMoveDown": "-5",
                            "probabilityOfTrading": "0.1",
                        },
                    }
                },
            },
        }
        self.send_transaction(user, "proposalSubmission", proposal)

    def get_first_key(self, token: str) -> str:
        """First public key of the wallet behind ``token``, or "" if none."""
        request = {"id": "1", "jsonrpc": "2.0", "method": "client.list_keys"}
        try:
            body = self.send_request(request, token)
            reply = json.loads(body)
        except (WalletError, requests.RequestException, ValueError) as exc:
            log.error("listing wallet keys failed: %s", exc)
            return ""
        result = reply.get("result") or {} if isinstance(reply, dict) else {}
        keys = result.get("keys") or []
        if keys:
            return keys[0].get("publicKey", "")
        return ""

    def send_batch_orders(
        self,
        user: UserDetails,
        cancels: Iterable[Mapping[str, Any]],
        amends: Iterable[Mapping[str, Any]],
        orders: Iterable[Mapping[str, Any]],
    ) -> None:
        """Send cancellations, amendments and submissions as one batch."""
        command = {
            name: list(items)
            for name, items in (
                ("cancellations", cancels),
                ("amendments", amends),
                ("submissions", orders),
            )
        }
        command = {name: items for name, items in command.items() if items}
        self.send_transaction(user, "batchMarketInstructions", command)

    def send_order(self, user: UserDetails, order: Mapping[str, Any]) -> None:
        """Send one order submission."""
        self.send_transaction(user, "orderSubmission", dict(order))

    def send_liquidity_provision(self, user: UserDetails, market_id: str, order_count: int) -> None:
        """Commit liquidity with ``order_count`` pegged orders on each side."""
        offsets = [str(1000 + i * 10) for i in range(order_count)]
        submission = {
            "marketId": market_id,
            "commitmentAmount": "1000000000",
            "fee": "0.01",
            "reference": "MarketLiquidity",
            "buys": [
                {"reference": "PEGGED_REFERENCE_BEST_BID", "proportion": 10, "offset": offset}
                for offset in offsets
            ],
            "sells": [
                {"reference": "PEGGED_REFERENCE_BEST_ASK", "proportion": 10, "offset": offset}
                for offset in offsets
            ],
        }
        self.send_transaction(user, "liquidityProvisionSubmission", submission)

    def send_cancel_all(self, user: UserDetails, market_id: str) -> None:
        """Cancel all of the user's orders in a market."""
        self.send_transaction(user, "orderCancellation", {"marketId": market_id})

    def send_vote(self, user: UserDetails, proposal_id: str) -> None:
        """Vote yes on a proposal."""
        self.send_transaction(
            user, "voteSubmission", {"proposalId": proposal_id, "value": "VALUE_YES"}
        )