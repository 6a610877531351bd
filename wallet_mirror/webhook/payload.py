from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from wallet_mirror.errors import DecodeError

_MODEL_CONFIG = ConfigDict(populate_by_name=True, extra="ignore")


class InstructionRef(BaseModel):
    program_id_index: int = Field(alias="programIdIndex")
    accounts: list[int] = Field(default_factory=list)
    data: str | None = None

    model_config = _MODEL_CONFIG


class MessageHeader(BaseModel):
    num_required_signatures: int = Field(default=0, alias="numRequiredSignatures")
    num_readonly_signed_accounts: int = Field(default=0, alias="numReadonlySignedAccounts")
    num_readonly_unsigned_accounts: int = Field(default=0, alias="numReadonlyUnsignedAccounts")

    model_config = _MODEL_CONFIG


class MessageBody(BaseModel):
    account_keys: list[str] = Field(alias="accountKeys")
    instructions: list[InstructionRef]
    header: MessageHeader
    recent_blockhash: str = Field(alias="recentBlockhash")
    address_table_lookups: Any | None = Field(default=None, alias="addressTableLookups")

    model_config = _MODEL_CONFIG


class TransactionBody(BaseModel):
    signatures: list[str]
    message: MessageBody

    model_config = _MODEL_CONFIG


class UiTokenAmount(BaseModel):
    amount: str = "0"
    decimals: int = 0
    ui_amount: float | None = Field(default=None, alias="uiAmount")
    ui_amount_string: str | None = Field(default=None, alias="uiAmountString")

    model_config = _MODEL_CONFIG


class TokenBalanceEntry(BaseModel):
    account_index: int = Field(alias="accountIndex")
    mint: str
    owner: str | None = None
    program_id: str | None = Field(default=None, alias="programId")
    ui_token_amount: UiTokenAmount = Field(default_factory=UiTokenAmount, alias="uiTokenAmount")

    model_config = _MODEL_CONFIG

    @property
    def ui_amount(self) -> float:
        return self.ui_token_amount.ui_amount or 0.0


class InnerInstruction(BaseModel):
    index: int
    instructions: list[InstructionRef] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class LoadedAddresses(BaseModel):
    readonly: list[str] = Field(default_factory=list)
    writable: list[str] = Field(default_factory=list)

    model_config = _MODEL_CONFIG


class Meta(BaseModel):
    err: Any | None = None
    fee: int | None = None
    inner_instructions: list[InnerInstruction] = Field(
        default_factory=list, alias="innerInstructions"
    )
    loaded_addresses: LoadedAddresses = Field(
        default_factory=LoadedAddresses, alias="loadedAddresses"
    )
    log_messages: list[str] = Field(default_factory=list, alias="logMessages")
    pre_balances: list[int] = Field(default_factory=list, alias="preBalances")
    post_balances: list[int] = Field(default_factory=list, alias="postBalances")
    pre_token_balances: list[TokenBalanceEntry] = Field(
        default_factory=list, alias="preTokenBalances"
    )
    post_token_balances: list[TokenBalanceEntry] = Field(
        default_factory=list, alias="postTokenBalances"
    )
    rewards: list[Any] = Field(default_factory=list)

    model_config = _MODEL_CONFIG

    # RPC responses send explicit nulls where webhooks omit the key
    @field_validator(
        "inner_instructions",
        "log_messages",
        "pre_balances",
        "post_balances",
        "pre_token_balances",
        "post_token_balances",
        "rewards",
        mode="before",
    )
    @classmethod
    def _null_to_empty(cls, v):
        return [] if v is None else v

    @field_validator("loaded_addresses", mode="before")
    @classmethod
    def _null_to_default(cls, v):
        return {} if v is None else v


class TransactionEvent(BaseModel):
    block_time: int | None = Field(default=None, alias="blockTime")
    index_within_block: int | None = Field(default=None, alias="indexWithinBlock")
    slot: int | None = None
    meta: Meta | None = None
    transaction: TransactionBody

    model_config = _MODEL_CONFIG

    @property
    def signature(self) -> str:
        sigs = self.transaction.signatures
        return sigs[0] if sigs else "unknown"


NotificationBatch = list[TransactionEvent]

_batch_adapter = TypeAdapter(NotificationBatch)


def decode_batch(raw: bytes | str) -> NotificationBatch:
    """Decode a webhook body into events. The whole batch fails on any error."""
    try:
        return _batch_adapter.validate_json(raw)
    except ValidationError as e:
        raise DecodeError(f"Invalid notification batch: {e.error_count()} error(s): {e}") from e


def decode_event(obj: dict[str, Any]) -> TransactionEvent:
    """Validate one already-parsed transaction object (e.g. an RPC getTransaction result)."""
    try:
        return TransactionEvent.model_validate(obj)
    except ValidationError as e:
        raise DecodeError(f"Invalid transaction: {e}") from e
