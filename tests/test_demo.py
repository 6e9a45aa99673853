import json
from decimal import Decimal

import pytest
from eth_utils import keccak, to_hex

from rpcprobe import demo
from rpcprobe.config import FALLBACK_ACCESS_LIST_GAS, DemoSettings
from rpcprobe.errors import ReceiptTimeoutError

from conftest import ACCOUNT_X, BASE, HARDHAT_ADDRESS_0, HARDHAT_MNEMONIC, RPC_URL, USDC, FakeErc20, NodeError


ACCESS_LIST = {"accessList": [{"address": USDC.lower(), "storageKeys": ["0x" + "ab" * 32]}], "gasUsed": "0xc4d8"}


def _settings(mnemonic=None, access_list_gas=None, receipt_timeout_sec=5.0) -> DemoSettings:
    return DemoSettings(
        chain=BASE,
        rpc_url=RPC_URL,
        token_address=USDC,
        mnemonic=mnemonic,
        account_index=0,
        fallback_address=ACCOUNT_X,
        send_amount=Decimal("0.01"),
        access_list_gas=access_list_gas,
        receipt_timeout_sec=receipt_timeout_sec,
        misestimate_threshold_wei=10**18,
        debug=False,
    )


def _read_only_node(node):
    node.on("eth_getBalance", result="0x16345785d8a0000")
    node.on("eth_call", FakeErc20(USDC, "USDC", 6, {ACCOUNT_X: 1_000_000}))


def test_read_only_run(node, capsys):
    _read_only_node(node)
    node.on("eth_createAccessList", result=ACCESS_LIST)

    assert demo.run(_settings(), transport=node.transport()) == 0

    out = capsys.readouterr().out
    assert "read-only mode" in out
    assert "0.1 ETH" in out
    assert "1 USDC" in out
    assert "Create access list result:" in out
    assert "Demo completed successfully in read-only mode" in out
    assert node.params_for("eth_sendRawTransaction") == []


def test_read_only_run_without_access_list(node, capsys):
    _read_only_node(node)
    node.fail("eth_createAccessList", -32601, "rpc method is not whitelisted")

    assert demo.run(_settings(), transport=node.transport()) == 0

    out = capsys.readouterr().out
    line = next(x for x in out.splitlines() if x.startswith("Create access list unavailable:"))
    detail = json.loads(line.split(":", 1)[1])
    assert detail == {"cause": "method_not_supported", "code": -32601, "message": "rpc method is not whitelisted"}


def test_misestimate_retries_with_explicit_gas(node, capsys):
    _read_only_node(node)

    def provider(params):
        if "gas" not in params[0]:
            raise NodeError(-32000, "insufficient funds for gas * price + value: have 0 want 30000600000000000000")
        return ACCESS_LIST

    node.on("eth_createAccessList", provider)

    assert demo.run(_settings(), transport=node.transport()) == 0

    sent = node.params_for("eth_createAccessList")
    assert len(sent) == 2
    assert sent[1][0]["gas"] == hex(FALLBACK_ACCESS_LIST_GAS)
    assert "Create access list result:" in capsys.readouterr().out


def _sending_node(node, receipt):
    node.on("eth_getBalance", result="0x16345785d8a0000")
    node.on("eth_call", FakeErc20(USDC, "USDC", 6, {HARDHAT_ADDRESS_0: 1_000_000}))
    node.on("eth_createAccessList", result=ACCESS_LIST)
    node.on("eth_getTransactionCount", result="0x0")
    node.on("eth_getBlockByNumber", result={"baseFeePerGas": "0x3b9aca00"})
    node.on("eth_maxPriorityFeePerGas", result="0x5f5e100")
    node.on("eth_estimateGas", result="0xea60")
    node.on("eth_sendRawTransaction", lambda params: to_hex(keccak(hexstr=params[0])))
    node.on("eth_getTransactionReceipt", result=receipt)


def test_send_run(node, capsys):
    receipt = {"transactionHash": "0x" + "33" * 32, "status": "0x1", "gasUsed": "0xa410", "blockNumber": "0x10"}
    _sending_node(node, receipt)

    assert demo.run(_settings(mnemonic=HARDHAT_MNEMONIC), transport=node.transport(), poll_sec=0.01) == 0

    out = capsys.readouterr().out
    assert "Sending 0.01 USDC transaction to self" in out
    assert "Receipt:" in out
    assert len(node.params_for("eth_sendRawTransaction")) == 1


def test_send_run_failed_receipt(node):
    receipt = {"transactionHash": "0x" + "33" * 32, "status": "0x0", "gasUsed": "0xa410", "blockNumber": "0x10"}
    _sending_node(node, receipt)
    assert demo.run(_settings(mnemonic=HARDHAT_MNEMONIC), transport=node.transport(), poll_sec=0.01) == 1


def test_send_run_times_out(node):
    _sending_node(node, None)
    with pytest.raises(ReceiptTimeoutError):
        demo.run(
            _settings(mnemonic=HARDHAT_MNEMONIC, receipt_timeout_sec=0.05),
            transport=node.transport(),
            poll_sec=0.01,
        )


def test_signing_account_without_tokens_stops(node, capsys):
    node.on("eth_getBalance", result="0x0")
    node.on("eth_call", FakeErc20(USDC, "USDC", 6, {}))

    assert demo.run(_settings(mnemonic=HARDHAT_MNEMONIC), transport=node.transport()) == 1
    assert "Please add USDC" in capsys.readouterr().err
    assert node.params_for("eth_createAccessList") == []


def test_main_reports_configuration_errors(monkeypatch, capsys):
    monkeypatch.delenv("MNEMONIC", raising=False)
    assert demo.main(["--chain", "base", "--rpc-url", "ftp://nope"]) == 1
    assert "Error:" in capsys.readouterr().err
