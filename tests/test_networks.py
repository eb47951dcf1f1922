"""Balance formatting and local RPC/REST clients."""

import httpx
import pytest

from errors import TransientIOError
from networks import (
    TICKFY_NETWORK,
    Balance,
    BalanceFetcher,
    NodeRpcClient,
    format_address,
    format_balance,
    get_binary_url,
    get_cosmovisor_url,
)


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize("micro, expected", [
    (0, "0 TKFY"),
    (1_500_000, "1.50 TKFY"),
    (5_000_000, "5 TKFY"),
    (1_234_567_890, "1,234.56 TKFY"),
    (999, "0 TKFY"),
    (10_000, "0.01 TKFY"),
    (2_000_000_000_000, "2,000,000 TKFY"),
    (1_000_000_990_000, "1,000,000 TKFY"),
])
def test_format_balance(micro, expected):
    assert format_balance(micro) == expected


def test_balance_to_dict():
    assert Balance.from_micro(1_500_000).to_dict() == {
        "utkfy": 1_500_000,
        "tkfy": 1.5,
        "display": "1.50 TKFY",
    }


def test_format_address():
    address = "tickfy1" + "q" * 38
    assert format_address(address) == "tickfy1qqqqqq...qqqqqq"
    assert format_address("tickfy1short") == "tickfy1short"


def test_release_urls():
    assert get_binary_url().startswith(TICKFY_NETWORK.release_url + "/tickfy-blockchaind-")
    assert "cosmovisor-v1.5.0-" in get_cosmovisor_url()
    assert get_cosmovisor_url().endswith(".tar.gz")


# ============================================
# Balances
# ============================================

def test_balance_from_rest():
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(200, json={"balances": [
            {"denom": "uatom", "amount": "9"},
            {"denom": "utkfy", "amount": "1500000"},
        ]})

    balance = BalanceFetcher(client=mock_client(handler)).get_balance("tickfy1abc")
    assert balance.micro == 1_500_000
    assert balance.display == "1.50 TKFY"
    assert seen == ["/cosmos/bank/v1beta1/balances/tickfy1abc"]


def test_balance_falls_back_to_stake_denom():
    def handler(request):
        return httpx.Response(200, json={"balances": [{"denom": "stake", "amount": "2000000"}]})

    assert BalanceFetcher(client=mock_client(handler)).get_balance("tickfy1abc").display == "2 TKFY"


@pytest.mark.parametrize("handler", [
    lambda request: httpx.Response(500),
    lambda request: httpx.Response(200, content=b"not json"),
    lambda request: httpx.Response(200, json={"balances": []}),
    lambda request: httpx.Response(200, json={"balances": [{"denom": "utkfy", "amount": "x"}]}),
    lambda request: httpx.Response(200, json={"balances": ["oops"]}),
])
def test_balance_degrades_to_zero(handler):
    balance = BalanceFetcher(client=mock_client(handler)).get_balance("tickfy1abc")
    assert balance == Balance.zero()


def test_balance_skips_malformed_entries():
    def handler(request):
        return httpx.Response(200, json={"balances": [None, "oops", {"denom": "utkfy", "amount": "7"}]})

    assert BalanceFetcher(client=mock_client(handler)).get_balance("tickfy1abc").micro == 7


def test_balance_when_node_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert BalanceFetcher(client=mock_client(handler)).get_balance("tickfy1abc").micro == 0


# ============================================
# RPC
# ============================================

def rpc_handler(request):
    if request.url.path == "/status":
        return httpx.Response(200, json={"result": {"sync_info": {"latest_block_height": "1234"}}})
    if request.url.path == "/net_info":
        return httpx.Response(200, json={"result": {"n_peers": "7"}})
    return httpx.Response(404)


def test_node_info():
    rpc = NodeRpcClient(client=mock_client(rpc_handler))
    assert rpc.get_block_height() == 1234
    assert rpc.get_peer_count() == 7
    assert rpc.get_node_info() == (1234, 7)


def test_peer_failure_reports_zero_peers():
    def handler(request):
        if request.url.path == "/net_info":
            return httpx.Response(503)
        return rpc_handler(request)

    assert NodeRpcClient(client=mock_client(handler)).get_node_info() == (1234, 0)


def test_height_failure_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    rpc = NodeRpcClient(client=mock_client(handler))
    with pytest.raises(TransientIOError):
        rpc.get_node_info()


def test_unexpected_payload():
    rpc = NodeRpcClient(client=mock_client(lambda request: httpx.Response(200, json={"result": {}})))
    with pytest.raises(TransientIOError):
        rpc.get_block_height()
