from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from wallet_mirror.config import AppSettings
from wallet_mirror.errors import ConfirmationTimeout, SubmissionError
from wallet_mirror.execution.signer import Credential, decode_transaction, sign_transaction

_COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}
_STATUS_LEVELS = (
    TransactionConfirmationStatus.Processed,
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)


def _status_rank(status) -> int:
    cs = status.confirmation_status
    if cs is None:
        # Older nodes omit confirmationStatus; null confirmations means rooted
        return 2 if status.confirmations is None else 0
    for rank, level in enumerate(_STATUS_LEVELS):
        if cs == level:
            return rank
    return 0


@dataclass
class SolanaExecutor:
    settings: AppSettings
    client: Client
    credential: Credential
    # One submission in flight per operator wallet
    _submit_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def create(cls, settings: AppSettings, credential: Credential) -> SolanaExecutor:
        client = Client(
            settings.resolved_rpc_url(),
            commitment=Commitment(settings.commitment),
            timeout=settings.rpc_timeout_sec,
        )
        return cls(settings=settings, client=client, credential=credential)

    def sign(self, encoded_tx: str) -> VersionedTransaction:
        tx = decode_transaction(encoded_tx)
        return sign_transaction(tx, self.credential)

    def sign_and_submit(self, encoded_tx: str) -> str:
        return self.submit(self.sign(encoded_tx))

    def submit(self, tx: VersionedTransaction) -> str:
        """Send ``tx`` and block until it reaches the configured commitment."""
        if self.settings.serialize_submissions:
            with self._submit_lock:
                return self._send_and_confirm(tx)
        return self._send_and_confirm(tx)

    def _send_and_confirm(self, tx: VersionedTransaction) -> str:
        commitment = Commitment(self.settings.commitment)
        try:
            resp = self.client.send_raw_transaction(
                bytes(tx),
                opts=TxOpts(skip_confirmation=True, preflight_commitment=commitment),
            )
        except (RPCException, SolanaRpcException) as e:
            raise SubmissionError(f"send_raw_transaction failed: {e}") from e
        sig = resp.value
        logger.info("Submitted transaction {}; waiting for {}", sig, self.settings.commitment)
        self.wait_for_confirmation(sig)
        return str(sig)

    def wait_for_confirmation(self, sig: Signature) -> None:
        target = _COMMITMENT_RANK[self.settings.commitment]
        started = time.monotonic()
        deadline = started + self.settings.confirm_timeout_sec
        while True:
            status = None
            try:
                resp = self.client.get_signature_statuses([sig])
                status = resp.value[0] if resp.value else None
            except (RPCException, SolanaRpcException) as e:
                logger.warning("Signature status lookup failed for {}: {}", sig, e)
            if status is not None:
                if status.err is not None:
                    raise SubmissionError(f"Transaction {sig} failed: {status.err}")
                if _status_rank(status) >= target:
                    logger.info("Transaction {} reached {}", sig, self.settings.commitment)
                    return
            if time.monotonic() >= deadline:
                raise ConfirmationTimeout(str(sig), time.monotonic() - started)
            time.sleep(self.settings.confirm_poll_interval_sec)
