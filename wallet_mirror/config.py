from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wallet_mirror.errors import ConfigurationError

# Program ids whose top-level invocation marks a transaction as a buy
DEFAULT_SWAP_PROGRAMS: dict[str, str] = {
    "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB": "jupiter",
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8": "raydium_amm",
}

WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="WM_", extra="allow")

    # Watched wallet (normally passed as the positional CLI argument)
    wallet: str | None = None

    # Secrets
    secret_key: str | None = None  # JSON byte array or base58 secret key
    helius_api_key: str | None = None

    # Solana RPC
    rpc_url: str | None = None  # overrides the Helius URL built from helius_api_key
    helius_rpc_base_url: str = "https://mainnet.helius-rpc.com/"
    rpc_timeout_sec: float = 30.0
    commitment: str = "confirmed"
    confirm_timeout_sec: float = 60.0
    confirm_poll_interval_sec: float = 0.5
    serialize_submissions: bool = True

    # Jupiter
    jupiter_quote_url: str = "https://quote-api.jup.ag/v4/quote"
    jupiter_swap_url: str = "https://quote-api.jup.ag/v4/swap"
    quote_timeout_sec: float = 15.0
    swap_timeout_sec: float = 20.0

    # Execution
    dry_run: bool = False
    native_mint: str = WRAPPED_SOL_MINT
    copy_amount_lamports: int = 1_000_000
    slippage_bps: int = 50  # 0.5%

    # Buy detection: comma-separated override, else programs_config, else defaults
    swap_program_ids: str | None = None
    programs_config: str = "config/programs.yaml"

    # Sinks
    trade_log_path: str = "/var/log/wallet-monitor.log"
    discord_webhook_url: str | None = None
    notify_timeout_sec: float = 10.0

    # Webhook server
    host: str = "0.0.0.0"
    port: int = 3000
    max_concurrent_deliveries: int = 8

    # Polling watcher
    poll_interval_sec: float = 5.0
    poll_signature_limit: int = 25
    watch_skip_history: bool = True
    seen_cache_size: int = 5000

    # Logging
    log_level: str = "INFO"

    # --- Validators to coerce empty strings in optional envs to None ---
    @field_validator(
        "wallet",
        "secret_key",
        "helius_api_key",
        "rpc_url",
        "swap_program_ids",
        "discord_webhook_url",
        mode="before",
    )
    @classmethod
    def _empty_str_to_none(cls, v):
        if v == "":
            return None
        return v

    @field_validator("commitment")
    @classmethod
    def _known_commitment(cls, v: str) -> str:
        v = v.lower()
        if v not in ("processed", "confirmed", "finalized"):
            raise ValueError(f"unknown commitment level: {v}")
        return v

    def resolved_rpc_url(self) -> str:
        if self.rpc_url:
            return self.rpc_url
        if not self.helius_api_key:
            raise ConfigurationError("Set WM_RPC_URL or WM_HELIUS_API_KEY")
        return f"{self.helius_rpc_base_url}?api-key={self.helius_api_key}"

    def swap_programs(self) -> dict[str, str]:
        """Program id -> label map used by the buy classifier."""
        if self.swap_program_ids:
            ids = [x.strip() for x in self.swap_program_ids.split(",") if x.strip()]
            return {pid: DEFAULT_SWAP_PROGRAMS.get(pid, "custom") for pid in ids}

        import yaml

        path = Path(self.programs_config)
        if not path.exists():
            return dict(DEFAULT_SWAP_PROGRAMS)
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read {path}: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("programs") or [], list):
            raise ConfigurationError(f"{path} must be a mapping with a 'programs' list")
        out: dict[str, str] = {}
        for item in data.get("programs") or []:
            # Entries may be bare ids or {id, label} mappings
            if isinstance(item, str):
                pid, label = item, "custom"
            elif isinstance(item, dict):
                pid = item.get("id") or item.get("program_id") or ""
                label = item.get("label") or "custom"
            else:
                raise ConfigurationError(f"Invalid program entry in {path}: {item!r}")
            if not isinstance(pid, str):
                raise ConfigurationError(f"Program id in {path} must be a string: {pid!r}")
            pid = pid.strip()
            if pid:
                out[pid] = str(label)
        return out or dict(DEFAULT_SWAP_PROGRAMS)
