"""Collecting every party's withdrawals with their approval bundles.

The client offers ``list_parties()``, ``list_withdrawals(party_id)`` and
``get_erc20_withdrawal_approval(withdrawal_id)``, each returning the
response as a dictionary in the data node's JSON form.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

log = logging.getLogger(__name__)

Withdrawal = dict[str, Any]


@dataclass(frozen=True)
class WithdrawalBundle:
    """What is needed to complete a withdrawal on the bridge."""

    asset_source: str = ""
    amount: str = ""
    expiry: int = 0
    nonce: str = ""
    signatures: str = ""
    target_address: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "AssetSource": self.asset_source,
            "Amount": self.amount,
            "Expiry": self.expiry,
            "Nonce": self.nonce,
            "Signatures": self.signatures,
            "TargetAddress": self.target_address,
        }


def _nodes(connection: Mapping[str, Any] | None) -> list[dict[str, Any]]:
    return [edge.get("node") or {} for edge in (connection or {}).get("edges") or []]


def get_parties(client: Any) -> list[dict[str, Any]]:
    """Every party known to the node."""
    return _nodes(client.list_parties().get("parties"))


def get_party_withdrawals(client: Any, party_id: str) -> list[Withdrawal]:
    """All withdrawals made by one party."""
    return _nodes(client.list_withdrawals(party_id).get("withdrawals"))


def get_withdrawals(client: Any, parties: Sequence[Mapping[str, Any]]) -> dict[str, list[Withdrawal]]:
    """Withdrawals of each party, keyed by party ID."""
    return {party["id"]: get_party_withdrawals(client, party["id"]) for party in parties}


def get_bundle(client: Any, withdrawal: Mapping[str, Any]) -> WithdrawalBundle:
    """The approval bundle for one withdrawal."""
    response = client.get_erc20_withdrawal_approval(withdrawal.get("id", ""))
    erc20 = ((withdrawal.get("ext") or {}).get("erc20")) or {}
    return WithdrawalBundle(
        asset_source=response.get("assetSource", ""),
        amount=response.get("amount", ""),
        nonce=response.get("nonce", ""),
        signatures=response.get("signatures", ""),
        target_address=erc20.get("receiverAddress", ""),
    )


def _pairs(client: Any, withdrawals: Sequence[Withdrawal]) -> list[tuple[Withdrawal, WithdrawalBundle]]:
    pairs = []
    for withdrawal in withdrawals:
        try:
            bundle = get_bundle(client, withdrawal)
        except Exception as exc:  # an invalid withdrawal has no bundle
            log.debug("no bundle for withdrawal %s: %s", withdrawal.get("id"), exc)
            continue
        pairs.append((withdrawal, bundle))
    return pairs


def get_bundles(
    client: Any, withdrawals: Mapping[str, Sequence[Withdrawal]]
) -> dict[str, list[tuple[Withdrawal, WithdrawalBundle]]]:
    """Withdrawal and bundle pairs for every party that has withdrawals."""
    return {
        party_id: _pairs(client, items)
        for party_id, items in withdrawals.items()
        if items
    }


def pull_withdrawals(client: Any) -> dict[str, list[dict[str, Any]]]:
    """Gather all withdrawals with bundles, print them as JSON and return them."""
    parties = get_parties(client)
    bundles = get_bundles(client, get_withdrawals(client, parties))
    result = {
        party_id: [
            {"Withdrawal": withdrawal, "Bundle": bundle.to_dict()}
            for withdrawal, bundle in pairs
        ]
        for party_id, pairs in bundles.items()
    }
    sys.stdout.write(json.dumps(result, separators=(",", ":")) + "\n")
    return result