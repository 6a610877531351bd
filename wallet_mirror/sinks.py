from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import requests
from loguru import logger


@dataclass
class TradeLog:
    """Append-only file with one line per detected buy."""

    path: Path
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_buy(self, wallet: str, signature: str, mint: str | None = None) -> None:
        ts = datetime.now(timezone.utc).isoformat(timespec="seconds")
        line = f"{ts} Buy detected: Wallet {wallet} made a purchase - Tx: {signature}"
        if mint:
            line += f" - Mint: {mint}"
        try:
            with self._lock:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
        except OSError as e:
            # The trade log is best-effort; the pipeline keeps running
            logger.error("Failed to write trade log {}: {}", self.path, e)


@dataclass
class Notifier:
    """Operator notifications: always logged, optionally posted to a Discord webhook."""

    webhook_url: str | None = None
    timeout: float = 10.0

    def send(self, title: str, description: str, ok: bool = True) -> None:
        if ok:
            logger.info("{}: {}", title, description)
        else:
            logger.warning("{}: {}", title, description)
        if not self.webhook_url:
            return
        embed = {
            "title": title,
            "description": description,
            "color": 0x00FF00 if ok else 0xFF0000,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            r = requests.post(self.webhook_url, json={"embeds": [embed]}, timeout=self.timeout)
            if r.status_code not in (200, 204):
                logger.warning("Notification webhook returned {}", r.status_code)
        except requests.RequestException as e:
            logger.warning("Notification webhook failed: {}", e)
