from __future__ import annotations

import json
import time
from dataclasses import dataclass, field

from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey
from solders.signature import Signature

from wallet_mirror.config import AppSettings
from wallet_mirror.errors import DecodeError
from wallet_mirror.pipeline import CopyTradePipeline, Outcome
from wallet_mirror.webhook.payload import TransactionEvent, decode_event


@dataclass
class SolanaWatcher:
    """Polls the watched wallet's signatures and feeds new transactions to the pipeline.

    Alternative to the webhook service for deployments without an inbound
    endpoint. Each new transaction is fetched as JSON, which has the same
    shape as a webhook notification entry.
    """

    settings: AppSettings
    client: Client
    pipeline: CopyTradePipeline
    # Insertion-ordered so the oldest entries are evicted first
    seen: dict[str, None] = field(default_factory=dict)

    @classmethod
    def create(cls, pipeline: CopyTradePipeline) -> SolanaWatcher:
        return cls(settings=pipeline.settings, client=pipeline.executor.client, pipeline=pipeline)

    @property
    def seen_capacity(self) -> int:
        # Must cover the polled window
        return max(self.settings.seen_cache_size, 2 * max(1, self.settings.poll_signature_limit))

    def remember(self, sig: str):
        self.seen[sig] = None
        while len(self.seen) > self.seen_capacity:
            del self.seen[next(iter(self.seen))]

    def recent_signatures(self) -> list[str]:
        """Newest-first signatures for the watched wallet."""
        resp = self.client.get_signatures_for_address(
            Pubkey.from_string(self.pipeline.wallet),
            limit=max(1, self.settings.poll_signature_limit),
        )
        rows = json.loads(resp.to_json()).get("result") or []
        return [r["signature"] for r in rows if r.get("signature")]

    def seed_history(self) -> int:
        sigs = self.recent_signatures()
        for sig in reversed(sigs):
            self.remember(sig)
        return len(sigs)

    def fetch_event(self, sig: str) -> TransactionEvent | None:
        resp = self.client.get_transaction(
            Signature.from_string(sig), encoding="json", max_supported_transaction_version=0
        )
        res = json.loads(resp.to_json()).get("result")
        if not res:
            return None
        return decode_event(res)

    def poll_once(self) -> list[Outcome]:
        outcomes: list[Outcome] = []
        # Process oldest first so the trade log reads chronologically
        for sig in reversed(self.recent_signatures()):
            if sig in self.seen:
                continue
            try:
                event = self.fetch_event(sig)
            except DecodeError as e:
                logger.warning("Skipping undecodable transaction {}: {}", sig, e)
                self.remember(sig)
                continue
            except (RPCException, SolanaRpcException) as e:
                logger.warning("Could not load transaction {}, will retry: {}", sig, e)
                continue
            if event is None:
                logger.debug("Transaction {} not available yet", sig)
                continue
            self.remember(sig)
            outcomes.append(self.pipeline.process_event(event))
        return outcomes

    def run(self):
        logger.info("Starting Solana watcher for {}", self.pipeline.wallet)
        seeded = not self.settings.watch_skip_history
        while True:
            try:
                if not seeded:
                    try:
                        skipped = self.seed_history()
                    except (RPCException, SolanaRpcException) as e:
                        logger.warning("Could not seed history, retrying: {}", e)
                        time.sleep(self.settings.poll_interval_sec)
                        continue
                    seeded = True
                    logger.info("Skipping {} historical transaction(s)", skipped)
                self.poll_once()
                time.sleep(self.settings.poll_interval_sec)
            except KeyboardInterrupt:
                logger.info("Solana watcher interrupted; shutting down.")
                break
            except Exception as e:
                logger.exception("Solana watcher error: {}", e)
                time.sleep(2)
