from __future__ import annotations

from collections import Counter

import anyio
import anyio.to_thread
import uvicorn
from fastapi import FastAPI, Request
from loguru import logger

from wallet_mirror.bootstrap import build_pipeline, parse_wallet_arg
from wallet_mirror.pipeline import CopyTradePipeline


def create_app(pipeline: CopyTradePipeline, max_concurrent_deliveries: int = 8) -> FastAPI:
    app = FastAPI(title="Wallet Mirror Webhook")
    limiter: dict[str, anyio.CapacityLimiter] = {}

    def _limiter() -> anyio.CapacityLimiter:
        # Created lazily so it binds to the server's event loop
        if "deliveries" not in limiter:
            limiter["deliveries"] = anyio.CapacityLimiter(max(1, max_concurrent_deliveries))
        return limiter["deliveries"]

    @app.get("/health")
    def health():
        return {"status": "ok", "wallet": pipeline.wallet}

    @app.post("/notify")
    async def notify(request: Request):
        body = await request.body()
        # Always 200; per-event failures are only logged
        try:
            outcomes = await anyio.to_thread.run_sync(
                pipeline.process_batch, body, limiter=_limiter()
            )
            counts = Counter(o.status for o in outcomes)
            logger.info("Processed delivery: {}", dict(counts))
        except Exception as e:
            logger.exception("Webhook delivery failed: {}", e)
        return {"status": "ok"}

    return app


def main(argv: list[str] | None = None):
    wallet = parse_wallet_arg("Mirror buys of a wallet from webhook notifications", argv)
    pipeline = build_pipeline(wallet)
    settings = pipeline.settings
    app = create_app(pipeline, settings.max_concurrent_deliveries)
    logger.info("Notification server listening on {}:{}", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
