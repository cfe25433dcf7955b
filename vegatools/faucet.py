"""Minting test assets through a faucet service."""

from __future__ import annotations

import requests


class FaucetError(Exception):
    """The faucet answered with an error."""


def top_up_asset(faucet_url: str, pub_key: str, asset: str, amount: int) -> None:
    """Ask the faucet to mint ``amount`` of ``asset`` for ``pub_key``."""
    if not faucet_url.startswith("http"):
        faucet_url = "http://" + faucet_url
    payload = {"party": pub_key, "amount": str(amount), "asset": asset}
    response = requests.post(faucet_url + "/api/v1/mint", json=payload)
    body = response.text
    if "error" in body:
        raise FaucetError(body)