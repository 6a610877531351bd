from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests
from loguru import logger

from wallet_mirror.config import AppSettings
from wallet_mirror.errors import AggregatorError, NoRouteFound, SwapTransactionMissing

Route = dict[str, Any]


@dataclass
class SwapBuild:
    route: Route
    swap_transaction: str  # base64, unsigned


def get_quote(
    quote_url: str,
    input_mint: str,
    output_mint: str,
    amount: int,
    slippage_bps: int,
    timeout: float = 15,
) -> Route:
    params = {
        "inputMint": input_mint,
        "outputMint": output_mint,
        "amount": str(amount),
        "slippageBps": str(slippage_bps),
        "onlyDirectRoutes": "false",
    }
    try:
        r = requests.get(quote_url, params=params, timeout=timeout)
        r.raise_for_status()
        data = r.json() or {}
    except (requests.RequestException, ValueError) as e:
        raise AggregatorError(f"Jupiter quote request failed: {e}") from e
    # v6 answers with the chosen quote itself rather than a route list
    if isinstance(data, dict) and data.get("routePlan"):
        return data
    # Routes come back best-first; the first one is used as-is
    routes = (data.get("data") if isinstance(data, dict) else None) or []
    if not routes:
        raise NoRouteFound(f"No swap route found for {input_mint} -> {output_mint}")
    return routes[0]


def get_swap_transaction(
    swap_url: str, route: Route, user_public_key: str, timeout: float = 20
) -> str:
    payload = {
        "quoteResponse" if "routePlan" in route else "route": route,
        "userPublicKey": user_public_key,
        "wrapAndUnwrapSol": True,
    }
    try:
        r = requests.post(swap_url, json=payload, timeout=timeout)
        r.raise_for_status()
        j = r.json() or {}
    except (requests.RequestException, ValueError) as e:
        raise AggregatorError(f"Jupiter swap request failed: {e}", step="swap") from e
    swap_tx = j.get("swapTransaction") if isinstance(j, dict) else None
    if not swap_tx or not isinstance(swap_tx, str):
        raise SwapTransactionMissing("No swap transaction returned")
    return swap_tx


def quote_and_build(settings: AppSettings, output_mint: str, user_public_key: str) -> SwapBuild:
    route = get_quote(
        settings.jupiter_quote_url,
        input_mint=settings.native_mint,
        output_mint=output_mint,
        amount=settings.copy_amount_lamports,
        slippage_bps=settings.slippage_bps,
        timeout=settings.quote_timeout_sec,
    )
    logger.debug(
        "Jupiter route for {}: in={} out={}",
        output_mint,
        route.get("inAmount") or route.get("in_amount"),
        route.get("outAmount") or route.get("out_amount"),
    )
    swap_tx = get_swap_transaction(
        settings.jupiter_swap_url, route, user_public_key, timeout=settings.swap_timeout_sec
    )
    return SwapBuild(route=route, swap_transaction=swap_tx)
