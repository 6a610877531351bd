from __future__ import annotations

import base64
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
import requests
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.null_signer import NullSigner
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

JUPITER = "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB"
RAYDIUM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
WATCHED = "9xQeWvG816bUx9EPm2Tbd2Ykqg3k9uADuZbL9g1z3Q2E"


def token_balance(mint: str, ui_amount: float | None, account_index: int = 1) -> dict[str, Any]:
    return {
        "accountIndex": account_index,
        "mint": mint,
        "owner": WATCHED,
        "programId": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
        "uiTokenAmount": {
            "amount": str(int((ui_amount or 0) * 10**6)),
            "decimals": 6,
            "uiAmount": ui_amount,
            "uiAmountString": str(ui_amount or 0),
        },
    }


def make_event(
    programs: tuple[str, ...] = (JUPITER,),
    post: tuple[tuple[str, float | None], ...] = (),
    pre: tuple[tuple[str, float | None], ...] = (),
    with_meta: bool = True,
    sig: str = "sig1",
) -> dict[str, Any]:
    keys = [WATCHED, *programs]
    event: dict[str, Any] = {
        "blockTime": 1700000000,
        "slot": 250000000,
        "transaction": {
            "signatures": [sig],
            "message": {
                "accountKeys": keys,
                "header": {
                    "numRequiredSignatures": 1,
                    "numReadonlySignedAccounts": 0,
                    "numReadonlyUnsignedAccounts": len(programs),
                },
                "instructions": [
                    {"programIdIndex": i + 1, "accounts": [0], "data": "3Bxs4h24hBtQy9rw"}
                    for i in range(len(programs))
                ],
                "recentBlockhash": "EkSnNWid2cvwEVnVx9aBqawnmiCNiDgp3gUdkDPTKN1N",
            },
        },
    }
    if with_meta:
        event["meta"] = {
            "err": None,
            "fee": 5000,
            "innerInstructions": [],
            "logMessages": [],
            "preBalances": [1_000_000_000],
            "postBalances": [990_000_000],
            "preTokenBalances": [token_balance(m, a) for m, a in pre],
            "postTokenBalances": [token_balance(m, a) for m, a in post],
            "rewards": [],
        }
    return event


def unsigned_transaction(payer: Pubkey, blockhash: Hash | None = None) -> VersionedTransaction:
    """A one-signer transaction the way an aggregator returns it: signature slot left empty."""
    ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(), lamports=1000))
    msg = MessageV0.try_compile(payer, [ix], [], blockhash or Hash.new_unique())
    return VersionedTransaction(msg, [NullSigner(payer)])


class FakeResp:
    def __init__(self, payload: Any, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code
        self.ok = status_code < 400
        self.text = str(payload)

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeRpcClient:
    """Accepts every transaction and reports it confirmed on the first status poll."""

    def __init__(self, status=TransactionConfirmationStatus.Confirmed, err=None):
        self.sent: list[bytes] = []
        self.status_calls = 0
        self._status = status
        self._err = err

    def send_raw_transaction(self, raw, opts=None):
        self.sent.append(raw)
        tx = VersionedTransaction.from_bytes(raw)
        return SimpleNamespace(value=tx.signatures[0])

    def get_signature_statuses(self, sigs):
        self.status_calls += 1
        if self._status is None:
            return SimpleNamespace(value=[None])
        return SimpleNamespace(
            value=[SimpleNamespace(err=self._err, confirmation_status=self._status, confirmations=1)]
        )


@pytest.fixture
def keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def credential(keypair):
    from wallet_mirror.execution.signer import Credential

    return Credential(keypair=keypair)


@pytest.fixture
def swap_tx_b64(keypair) -> str:
    return base64.b64encode(bytes(unsigned_transaction(keypair.pubkey()))).decode()


@pytest.fixture
def settings(tmp_path):
    from wallet_mirror.config import AppSettings

    return AppSettings(
        trade_log_path=str(tmp_path / "trades.log"),
        programs_config=str(tmp_path / "programs.yaml"),
        confirm_poll_interval_sec=0,
        confirm_timeout_sec=1,
    )


@pytest.fixture
def make_pipeline(settings, credential):
    from wallet_mirror.execution.solana_executor import SolanaExecutor
    from wallet_mirror.pipeline import CopyTradePipeline
    from wallet_mirror.sinks import Notifier, TradeLog

    def _make(client=None, **overrides):
        s = settings.model_copy(update=overrides) if overrides else settings
        executor = SolanaExecutor(settings=s, client=client or FakeRpcClient(), credential=credential)
        return CopyTradePipeline(
            settings=s,
            wallet=WATCHED,
            executor=executor,
            trade_log=TradeLog(Path(s.trade_log_path)),
            notifier=Notifier(),
            program_ids=s.swap_programs(),
        )

    return _make


@pytest.fixture
def jupiter_http(monkeypatch, swap_tx_b64):
    """Patches requests with a Jupiter that always has a route; records every call."""
    calls: dict[str, list] = {"get": [], "post": []}
    state = {"routes": [{"inAmount": "1000000", "outAmount": "42", "marketInfos": []}],
             "swap": {"swapTransaction": swap_tx_b64}}

    def fake_get(url, params=None, timeout=None, **kwargs):
        calls["get"].append((url, params, timeout))
        return FakeResp({"data": state["routes"]})

    def fake_post(url, json=None, timeout=None, **kwargs):
        calls["post"].append((url, json, timeout))
        return FakeResp(state["swap"])

    monkeypatch.setattr("requests.get", fake_get)
    monkeypatch.setattr("requests.post", fake_post)
    return SimpleNamespace(calls=calls, state=state)
