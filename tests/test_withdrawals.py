import json

from vegatools.withdrawals import (
    WithdrawalBundle,
    get_bundle,
    get_bundles,
    get_parties,
    get_party_withdrawals,
    get_withdrawals,
    pull_withdrawals,
)


def edges(*nodes):
    return {"edges": [{"node": node} for node in nodes]}


class FakeClient:
    def __init__(self):
        self.withdrawals = {
            "p1": [
                {"id": "w1", "ext": {"erc20": {"receiverAddress": "0xabc"}}},
                {"id": "w-bad"},
            ],
            "p2": [],
        }

    def list_parties(self):
        return {"parties": edges({"id": "p1"}, {"id": "p2"})}

    def list_withdrawals(self, party_id):
        return {"withdrawals": edges(*self.withdrawals[party_id])}

    def get_erc20_withdrawal_approval(self, withdrawal_id):
        if withdrawal_id == "w-bad":
            raise RuntimeError("no approval")
        return {
            "assetSource": "0xasset",
            "amount": "100",
            "nonce": "7",
            "signatures": "0xsig",
        }


def test_get_parties():
    assert get_parties(FakeClient()) == [{"id": "p1"}, {"id": "p2"}]


def test_get_party_withdrawals():
    client = FakeClient()
    assert get_party_withdrawals(client, "p1") == client.withdrawals["p1"]


def test_get_withdrawals_keyed_by_party():
    client = FakeClient()
    result = get_withdrawals(client, get_parties(client))
    assert set(result) == {"p1", "p2"}
    assert result["p2"] == []


def test_get_bundle_fields():
    client = FakeClient()
    bundle = get_bundle(client, client.withdrawals["p1"][0])
    assert bundle == WithdrawalBundle(
        asset_source="0xasset",
        amount="100",
        expiry=0,
        nonce="7",
        signatures="0xsig",
        target_address="0xabc",
    )


def test_get_bundles_skips_failures_and_empty_parties():
    client = FakeClient()
    result = get_bundles(client, get_withdrawals(client, get_parties(client)))
    assert list(result) == ["p1"]
    assert [withdrawal["id"] for withdrawal, _ in result["p1"]] == ["w1"]


def test_bundle_to_dict_uses_field_names():
    bundle = WithdrawalBundle(asset_source="a", amount="1", nonce="n", signatures="s", target_address="t")
    assert bundle.to_dict() == {
        "AssetSource": "a",
        "Amount": "1",
        "Expiry": 0,
        "Nonce": "n",
        "Signatures": "s",
        "TargetAddress": "t",
    }


def test_pull_withdrawals_prints_json(capsys):
    result = pull_withdrawals(FakeClient())
    printed = json.loads(capsys.readouterr().out)
    assert printed == result
    assert result["p1"][0]["Withdrawal"]["id"] == "w1"
    assert result["p1"][0]["Bundle"]["TargetAddress"] == "0xabc"