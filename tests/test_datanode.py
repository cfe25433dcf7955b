import pytest

from vegatools.datanode import DataNode
from vegatools.wallet import UserDetails


def _conn(*nodes):
    return {"edges": [{"node": node} for node in nodes]}


class FakeClient:
    def __init__(self):
        self.params = {"spam.protection.max.batchSize": "15"}
        self.stakes = {"p1": "42"}
        self.assets = [{"id": "a1", "details": {"symbol": "fUSDC"}}, {"id": "a2", "details": {"symbol": "fBTC"}}]
        self.accounts = [{"balance": "5000000000"}, {"balance": "1"}]
        self.markets = [{"id": "m1", "state": "STATE_ACTIVE"}, {"id": "m2", "state": "STATE_REJECTED"}]
        self.proposals = [{"proposal": {"id": "p-old", "state": "STATE_ENACTED"}}, {"proposal": {"id": "p-new", "state": "STATE_OPEN"}}]
        self.governance_states = []
        self.account_filters = []
        self.fail_markets = False

    def get_network_parameter(self, key):
        if key in self.params:
            return {"networkParameter": {"key": key, "value": self.params[key]}}
        return {}

    def get_stake(self, party_id):
        return {"currentStakeAvailable": self.stakes.get(party_id, "")}

    def list_assets(self):
        return {"assets": _conn(*self.assets)}

    def list_accounts(self, account_filter):
        self.account_filters.append(account_filter)
        return {"accounts": _conn(*self.accounts)}

    def list_markets(self):
        if self.fail_markets:
            raise RuntimeError("unavailable")
        return {"markets": _conn(*self.markets)}

    def list_governance_data(self):
        return {"connection": _conn(*self.proposals)}

    def get_governance_data(self, proposal_id):
        return {"data": {"proposal": {"id": proposal_id, "state": self.governance_states.pop(0)}}}


class FakeWallet:
    def __init__(self):
        self.votes = []

    def send_vote(self, user, proposal_id):
        self.votes.append((user.user_name, proposal_id))


@pytest.fixture
def parts():
    client, wallet, sleeps = FakeClient(), FakeWallet(), []
    return client, wallet, sleeps, DataNode(client, wallet, sleep=sleeps.append)


def test_network_param(parts):
    client, _, _, node = parts
    assert node.get_network_param("spam.protection.max.batchSize") == "15"


def test_missing_network_param_raises(parts):
    _, _, _, node = parts
    with pytest.raises(LookupError):
        node.get_network_param("no.such.param")


def test_stake_is_parsed(parts):
    _, _, _, node = parts
    assert node.get_stake("p1") == 42


def test_empty_stake_raises(parts):
    _, _, _, node = parts
    with pytest.raises(ValueError):
        node.get_stake("unknown")


def test_assets_map_symbol_to_id(parts):
    _, _, _, node = parts
    assert node.get_assets() == {"fUSDC": "a1", "fBTC": "a2"}


def test_assets_per_user_uses_first_account(parts):
    client, _, _, node = parts
    assert node.get_assets_per_user("pk", "a1") == 5000000000
    assert client.account_filters == [
        {"assetId": "a1", "partyIds": ["pk"], "accountTypes": ["ACCOUNT_TYPE_GENERAL"]}
    ]


def test_assets_per_user_without_account_is_zero(parts):
    client, _, _, node = parts
    client.accounts = []
    assert node.get_assets_per_user("pk", "a1") == 0


def test_markets_exclude_rejected(parts):
    _, _, _, node = parts
    assert [m["id"] for m in node.get_markets()] == ["m1"]


def test_markets_failure_gives_empty_list(parts):
    client, _, _, node = parts
    client.fail_markets = True
    assert node.get_markets() == []


def test_pending_proposal_id(parts):
    _, _, _, node = parts
    assert node.get_pending_proposal_id() == "p-new"


def test_no_pending_proposal_raises(parts):
    client, _, _, node = parts
    client.proposals = [{"proposal": {"id": "p-old", "state": "STATE_ENACTED"}}]
    with pytest.raises(LookupError, match="no pending proposals found"):
        node.get_pending_proposal_id()


def test_wait_for_enactment_polls_until_enacted(parts):
    client, _, sleeps, node = parts
    client.governance_states = ["STATE_OPEN", "STATE_PASSED", "STATE_ENACTED"]
    node.wait_for_market_enactment("p-new", 40)
    assert client.governance_states == []
    assert sleeps == [1, 1]


def test_wait_for_enactment_times_out(parts):
    client, _, sleeps, node = parts
    client.governance_states = ["STATE_OPEN"] * 3
    with pytest.raises(TimeoutError):
        node.wait_for_market_enactment("p-new", 3)
    assert len(sleeps) == len(client.governance_states) + 3


def test_vote_on_proposal_uses_first_voters(parts):
    _, wallet, _, node = parts
    users = [UserDetails(name, "token", name + "-key") for name in ("u0", "u1", "u2")]
    node.vote_on_proposal(users, "p-new", 2)
    assert wallet.votes == [("u0", "p-new"), ("u1", "p-new")]


def test_vote_on_proposal_too_many_voters(parts):
    _, wallet, _, node = parts
    users = [UserDetails("u0", "token", "k0")]
    with pytest.raises(IndexError):
        node.vote_on_proposal(users, "p-new", 2)
    assert wallet.votes == []