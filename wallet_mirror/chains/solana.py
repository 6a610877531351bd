from __future__ import annotations

from collections.abc import Container

from wallet_mirror.webhook.payload import TransactionEvent

# Resolved id for out-of-range program indexes; never equal to a real program id
UNKNOWN_PROGRAM = ""


def resolve_program_id(event: TransactionEvent, index: int) -> str:
    keys = event.transaction.message.account_keys
    if 0 <= index < len(keys):
        return keys[index]
    return UNKNOWN_PROGRAM


def matched_swap_program(event: TransactionEvent, program_ids: Container[str]) -> str | None:
    """First top-level instruction program found in ``program_ids``.

    Inner instructions are not inspected, so swaps routed through an
    intermediary program are not detected.
    """
    for ix in event.transaction.message.instructions:
        program_id = resolve_program_id(event, ix.program_id_index)
        if program_id != UNKNOWN_PROGRAM and program_id in program_ids:
            return program_id
    return None


def is_buy(event: TransactionEvent, program_ids: Container[str]) -> bool:
    return matched_swap_program(event, program_ids) is not None


def resolve_acquired_asset(event: TransactionEvent) -> str | None:
    """Mint of the first post-balance that went from nothing (or zero) to positive.

    First match wins. Amounts are not summed across entries of the same mint
    and fees are not netted out.
    """
    meta = event.meta
    if meta is None:
        return None
    for post in meta.post_token_balances:
        if post.ui_amount <= 0:
            continue
        pre = next((p for p in meta.pre_token_balances if p.mint == post.mint), None)
        if pre is None or pre.ui_amount == 0:
            return post.mint
    return None
