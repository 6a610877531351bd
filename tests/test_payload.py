from __future__ import annotations

import json

import pytest
from conftest import JUPITER, make_event


def test_decode_full_batch_preserves_order():
    from wallet_mirror.webhook.payload import decode_batch

    raw = json.dumps(
        [make_event(sig="a", post=(("TOKEN_X", 5.0),)), make_event(sig="b", with_meta=False)]
    ).encode()
    batch = decode_batch(raw)
    assert [e.signature for e in batch] == ["a", "b"]
    first = batch[0]
    assert first.slot == 250000000
    assert first.transaction.message.account_keys[1] == JUPITER
    assert first.transaction.message.instructions[0].program_id_index == 1
    assert first.transaction.message.header.num_required_signatures == 1
    assert first.meta.post_token_balances[0].mint == "TOKEN_X"
    assert first.meta.post_token_balances[0].ui_amount == 5.0
    assert batch[1].meta is None


def test_missing_transaction_fails_whole_batch():
    from wallet_mirror.errors import DecodeError
    from wallet_mirror.webhook.payload import decode_batch

    bad = make_event(sig="b")
    del bad["transaction"]
    raw = json.dumps([make_event(sig="a"), bad]).encode()
    with pytest.raises(DecodeError):
        decode_batch(raw)


@pytest.mark.parametrize("raw", [b"", b"not json", b"{\"transaction\": {}}", b"\xff\xfe"])
def test_malformed_bodies_raise_decode_error(raw):
    from wallet_mirror.errors import DecodeError
    from wallet_mirror.webhook.payload import decode_batch

    with pytest.raises(DecodeError):
        decode_batch(raw)


def test_unknown_fields_ignored_and_optional_fields_defaulted():
    from wallet_mirror.webhook.payload import decode_batch

    ev = make_event()
    ev["someVendorField"] = {"x": 1}
    ev["transaction"]["message"]["instructions"] = [{"programIdIndex": 1}]
    ev["meta"] = {"postTokenBalances": [{"accountIndex": 2, "mint": "M", "uiTokenAmount": {}}]}
    (event,) = decode_batch(json.dumps([ev]))
    ix = event.transaction.message.instructions[0]
    assert ix.accounts == [] and ix.data is None
    assert event.meta.pre_token_balances == []
    assert event.meta.err is None and event.meta.fee is None
    bal = event.meta.post_token_balances[0]
    assert bal.owner is None
    assert bal.ui_token_amount.amount == "0"
    assert bal.ui_amount == 0.0


def test_explicit_nulls_in_meta_become_empty_lists():
    from wallet_mirror.webhook.payload import decode_event

    ev = make_event()
    ev["meta"]["innerInstructions"] = None
    ev["meta"]["rewards"] = None
    ev["meta"]["loadedAddresses"] = None
    event = decode_event(ev)
    assert event.meta.inner_instructions == []
    assert event.meta.rewards == []
    assert event.meta.loaded_addresses.writable == []


def test_empty_signatures_reports_unknown():
    from wallet_mirror.webhook.payload import decode_event

    ev = make_event()
    ev["transaction"]["signatures"] = []
    assert decode_event(ev).signature == "unknown"
