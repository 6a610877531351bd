from __future__ import annotations

import argparse
import sys

from loguru import logger
from pydantic import ValidationError

from wallet_mirror.config import AppSettings
from wallet_mirror.errors import ConfigurationError
from wallet_mirror.execution.signer import Credential, parse_pubkey
from wallet_mirror.pipeline import CopyTradePipeline


def setup_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(lambda m: print(m, end=""), level=level)


def parse_wallet_arg(description: str, argv: list[str] | None = None) -> str:
    p = argparse.ArgumentParser(description=description)
    p.add_argument("wallet", help="Wallet address to mirror (base58 public key)")
    args = p.parse_args(argv)
    return args.wallet


def build_pipeline(wallet: str, settings: AppSettings | None = None) -> CopyTradePipeline:
    """Load startup inputs once; exit non-zero if any required one is missing or malformed."""
    try:
        settings = settings or AppSettings()
        setup_logging(settings.log_level)
        parse_pubkey(wallet)
        credential = Credential.from_secret(settings.secret_key)
        pipeline = CopyTradePipeline.create(settings, wallet, credential)
    except (ConfigurationError, ValidationError) as e:
        logger.remove()
        logger.add(sys.stderr, level="ERROR")
        logger.error("Startup failed: {}", e)
        raise SystemExit(1) from e
    logger.info("Monitoring wallet: {}", wallet)
    logger.info(
        "Mirroring with operator {} (dry_run={}, programs={})",
        pipeline.user_public_key,
        settings.dry_run,
        ", ".join(sorted(set(pipeline.program_ids.values()))),
    )
    return pipeline
