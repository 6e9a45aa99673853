import pytest

from rpcprobe.lifecycle import TERMINAL_STATES, LifecycleError, TransactionLifecycle, TxState
from rpcprobe.models import TransactionReceipt


def _receipt(status: str) -> TransactionReceipt:
    return TransactionReceipt.model_validate(
        {"transactionHash": "0x" + "22" * 32, "status": status, "gasUsed": "0x5208", "blockNumber": "0x10"}
    )


def _pending(skip_access_list: bool = False) -> TransactionLifecycle:
    lc = TransactionLifecycle()
    lc.advance(TxState.SIMULATED)
    lc.advance(TxState.ACCESS_LIST_SKIPPED if skip_access_list else TxState.ACCESS_LIST_REQUESTED)
    lc.mark_submitted("0x" + "22" * 32)
    return lc


def test_confirmed_path():
    lc = _pending()
    assert lc.resolve(_receipt("0x1")) == TxState.CONFIRMED
    assert lc.is_terminal
    assert lc.history == (
        TxState.BUILT,
        TxState.SIMULATED,
        TxState.ACCESS_LIST_REQUESTED,
        TxState.SUBMITTED,
        TxState.PENDING,
        TxState.CONFIRMED,
    )


def test_failed_path():
    lc = _pending(skip_access_list=True)
    assert lc.resolve(_receipt("0x0")) == TxState.FAILED
    assert TxState.ACCESS_LIST_SKIPPED in lc.history


def test_timed_out_path():
    lc = _pending()
    lc.time_out()
    assert lc.state == TxState.TIMED_OUT


def test_cannot_submit_before_simulation():
    lc = TransactionLifecycle()
    with pytest.raises(LifecycleError):
        lc.mark_submitted("0x" + "22" * 32)


def test_no_resubmission_from_terminal_states():
    for terminal in TERMINAL_STATES:
        lc = _pending()
        if terminal == TxState.TIMED_OUT:
            lc.time_out()
        else:
            lc.resolve(_receipt("0x1" if terminal == TxState.CONFIRMED else "0x0"))
        with pytest.raises(LifecycleError):
            lc.advance(TxState.SUBMITTED)


def test_terminal_states():
    assert TERMINAL_STATES == {TxState.CONFIRMED, TxState.FAILED, TxState.TIMED_OUT}
