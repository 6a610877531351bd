from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from wallet_mirror.errors import ConfigurationError, SigningError


@dataclass(frozen=True)
class Credential:
    """Operator signing key. Built once at startup and shared read-only."""

    keypair: Keypair

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    @classmethod
    def from_secret(cls, secret: str | None) -> Credential:
        """Accepts a JSON byte array (solana-keygen file format) or a base58 string."""
        if not secret:
            raise ConfigurationError("WM_SECRET_KEY not set")
        secret = secret.strip()
        try:
            if secret.startswith("["):
                raw = bytes(json.loads(secret))
            else:
                raw = base58.b58decode(secret)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Could not parse WM_SECRET_KEY: {e}") from e
        if len(raw) not in (32, 64):
            raise ConfigurationError(
                f"WM_SECRET_KEY must decode to 32 or 64 bytes, got {len(raw)}"
            )
        try:
            kp = Keypair.from_bytes(raw) if len(raw) == 64 else Keypair.from_seed(raw)
        except ValueError as e:
            raise ConfigurationError(f"Invalid WM_SECRET_KEY: {e}") from e
        return cls(keypair=kp)


def parse_pubkey(address: str) -> Pubkey:
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise ConfigurationError(f"Invalid wallet address {address!r}: {e}") from e


def decode_transaction(encoded: str) -> VersionedTransaction:
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SigningError(f"Swap transaction is not valid base64: {e}") from e
    try:
        return VersionedTransaction.from_bytes(raw)
    except Exception as e:
        raise SigningError(f"Unable to deserialize swap transaction: {e}") from e


def encode_transaction(tx: VersionedTransaction) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")


def sign_transaction(tx: VersionedTransaction, credential: Credential) -> VersionedTransaction:
    """Re-sign ``tx`` with the operator key as its only signer.

    The message is kept unchanged, so the signature covers the recent
    blockhash the aggregator embedded when it built the transaction.
    """
    message = tx.message
    required = message.header.num_required_signatures
    if required != 1:
        raise SigningError(f"Swap transaction requires {required} signatures; expected 1")
    if not message.account_keys:
        raise SigningError("Swap transaction has no account keys")
    fee_payer = message.account_keys[0]
    if fee_payer != credential.pubkey:
        raise SigningError(
            f"Swap transaction fee payer {fee_payer} is not the operator {credential.pubkey}"
        )
    try:
        return VersionedTransaction(message, [credential.keypair])
    except Exception as e:
        raise SigningError(f"Unable to sign swap transaction: {e}") from e
