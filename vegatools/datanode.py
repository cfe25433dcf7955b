"""Queries against a data node used when preparing a load test.

The wrapped client is any object offering these calls, each returning the
response as a dictionary in the data node's JSON form:
``get_network_parameter(key)``, ``get_stake(party_id)``, ``list_assets()``,
``list_accounts(filter)``, ``list_markets()``, ``list_governance_data()`` and
``get_governance_data(proposal_id)``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Sequence

from .wallet import UserDetails, WalletClient

log = logging.getLogger(__name__)


def _edges(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    return [edge.get("node") or {} for edge in (connection or {}).get("edges") or []]


class DataNode:
    """Data node lookups plus the wallet used to vote on proposals."""

    def __init__(
        self,
        client: Any,
        wallet: WalletClient,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.wallet = wallet
        self._sleep = sleep

    def get_network_param(self, param: str) -> str:
        """Value of a network parameter."""
        response = self.client.get_network_parameter(param)
        parameter = response.get("networkParameter")
        if not parameter:
            raise LookupError(f"network parameter not found: {param}")
        return parameter.get("value", "")

    def get_stake(self, party_id: str) -> int:
        """Stake currently available to a party."""
        response = self.client.get_stake(party_id)
        return int(response.get("currentStakeAvailable", ""))

    def get_assets(self) -> dict[str, str]:
        """Map of asset symbol to asset ID."""
        response = self.client.list_assets()
        return {
            node["details"]["symbol"]: node["id"]
            for node in _edges(response.get("assets"))
        }

    def get_assets_per_user(self, pub_key: str, asset: str) -> int:
        """General account balance of a party in an asset, 0 if no account."""
        account_filter = {
            "assetId": asset,
            "partyIds": [pub_key],
            "accountTypes": ["ACCOUNT_TYPE_GENERAL"],
        }
        response = self.client.list_accounts(account_filter)
        for node in _edges(response.get("accounts")):
            return int(node.get("balance", ""))
        return 0

    def get_markets(self) -> list[dict[str, Any]]:
        """All markets that were not rejected; empty if the lookup fails."""
        try:
            response = self.client.list_markets()
        except Exception as exc:  # the client's error types are not known here
            log.error("listing markets failed: %s", exc)
            return []
        return [
            node
            for node in _edges(response.get("markets"))
            if node.get("state") != "STATE_REJECTED"
        ]

    def get_pending_proposal_id(self) -> str:
        """ID of the first proposal still open for voting."""
        response = self.client.list_governance_data()
        for node in _edges(response.get("connection")):
            proposal = node.get("proposal") or {}
            if proposal.get("state") == "STATE_OPEN":
                return proposal["id"]
        raise LookupError("no pending proposals found")

    def wait_for_market_enactment(self, proposal_id: str, max_wait_seconds: int) -> None:
        """Poll once a second until the proposal is enacted."""
        for _ in range(max_wait_seconds):
            response = self.client.get_governance_data(proposal_id)
            proposal = (response.get("data") or {}).get("proposal") or {}
            if proposal.get("state") == "STATE_ENACTED":
                return
            self._sleep(1)
        raise TimeoutError("timed out waiting for market to be enacted")

    def vote_on_proposal(self, users: Sequence[UserDetails], proposal_id: str, voters: int) -> None:
        """Have the first ``voters`` users vote yes on a proposal."""
        if voters > len(users):
            raise IndexError(f"{voters} voters requested but only {len(users)} users")
        for user in users[:voters]:
            self.wallet.send_vote(user, proposal_id)