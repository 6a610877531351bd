from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from loguru import logger

from wallet_mirror.aggregators import jupiter
from wallet_mirror.chains.solana import matched_swap_program, resolve_acquired_asset
from wallet_mirror.config import AppSettings
from wallet_mirror.errors import AggregatorError, DecodeError, MirrorError
from wallet_mirror.execution.signer import Credential
from wallet_mirror.execution.solana_executor import SolanaExecutor
from wallet_mirror.sinks import Notifier, TradeLog
from wallet_mirror.webhook.payload import TransactionEvent, decode_batch


class Stage(str, Enum):
    DECODED = "decoded"
    CLASSIFIED = "classified"
    ASSET_RESOLVED = "asset_resolved"
    QUOTED = "quoted"
    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    DONE = "done"


@dataclass
class Outcome:
    signature: str | None  # observed transaction
    status: str  # skipped|no_asset|dry_run|success|failed
    stage: Stage  # last stage reached, or the stage that failed
    mint: str | None = None
    mirror_signature: str | None = None
    error: str | None = None


@dataclass
class CopyTradePipeline:
    settings: AppSettings
    wallet: str
    executor: SolanaExecutor
    trade_log: TradeLog
    notifier: Notifier
    program_ids: dict[str, str]

    @classmethod
    def create(cls, settings: AppSettings, wallet: str, credential: Credential) -> CopyTradePipeline:
        return cls(
            settings=settings,
            wallet=wallet,
            executor=SolanaExecutor.create(settings, credential),
            trade_log=TradeLog(Path(settings.trade_log_path)),
            notifier=Notifier(settings.discord_webhook_url, timeout=settings.notify_timeout_sec),
            program_ids=settings.swap_programs(),
        )

    @property
    def user_public_key(self) -> str:
        return str(self.executor.credential.pubkey)

    def process_batch(self, raw: bytes) -> list[Outcome]:
        logger.debug("Raw payload: {}", raw.decode("utf-8", errors="replace"))
        try:
            events = decode_batch(raw)
        except DecodeError as e:
            logger.error("Deserialization failed: {}", e)
            return [Outcome(signature=None, status="failed", stage=Stage.DECODED, error=str(e))]
        logger.debug("Decoded {} transaction(s)", len(events))
        return [self.process_event(ev) for ev in events]

    def process_event(self, event: TransactionEvent) -> Outcome:
        sig = event.signature
        stage = Stage.CLASSIFIED
        mint = None
        try:
            program = matched_swap_program(event, self.program_ids)
            if program is None:
                logger.info("No buy detected for tx: {}", sig)
                return Outcome(signature=sig, status="skipped", stage=stage)
            logger.info("Buy detected for tx: {} ({})", sig, self.program_ids.get(program, program))

            stage = Stage.ASSET_RESOLVED
            mint = resolve_acquired_asset(event)
            self.trade_log.record_buy(self.wallet, sig, mint)
            self.notifier.send("New Buy Transaction", f"Wallet {self.wallet} made a purchase - Tx: {sig}")
            if mint is None:
                logger.info("Could not determine token mint for tx: {}", sig)
                return Outcome(signature=sig, status="no_asset", stage=stage)

            stage = Stage.QUOTED
            if self.settings.dry_run:
                route = jupiter.get_quote(
                    self.settings.jupiter_quote_url,
                    input_mint=self.settings.native_mint,
                    output_mint=mint,
                    amount=self.settings.copy_amount_lamports,
                    slippage_bps=self.settings.slippage_bps,
                    timeout=self.settings.quote_timeout_sec,
                )
                logger.info("Dry run: quoted {} for tx {}, not executing", mint, sig)
                logger.debug("Dry run route: {}", route)
                return Outcome(signature=sig, status="dry_run", stage=stage, mint=mint)
            build = jupiter.quote_and_build(self.settings, mint, self.user_public_key)

            stage = Stage.SIGNED
            tx = self.executor.sign(build.swap_transaction)

            stage = Stage.SUBMITTED
            mirror_sig = self.executor.submit(tx)
        except AggregatorError as e:
            failed = Stage.BUILT if e.step == "swap" else Stage.QUOTED
            return self._failed(sig, failed, mint, e)
        except MirrorError as e:
            return self._failed(sig, stage, mint, e)
        except Exception as e:
            logger.exception("Unexpected error processing tx {}: {}", sig, e)
            return self._failed(sig, stage, mint, e)

        logger.info("Copytrade swap executed: {}", mirror_sig)
        self.notifier.send("Copytrade Executed", f"Bought {mint} - Tx: {mirror_sig}")
        return Outcome(
            signature=sig, status="success", stage=Stage.DONE, mint=mint, mirror_signature=mirror_sig
        )

    def _failed(self, sig: str, stage: Stage, mint: str | None, e: Exception) -> Outcome:
        if isinstance(e, MirrorError):
            e.stage = stage.value
        logger.error("Failed to execute copytrade swap for tx {} at {}: {}", sig, stage.value, e)
        self.notifier.send("Copytrade Failed", f"Tx {sig} ({mint or 'unknown mint'}): {e}", ok=False)
        return Outcome(signature=sig, status="failed", stage=stage, mint=mint, error=str(e))
