from wallet_mirror.bootstrap import build_pipeline, parse_wallet_arg
from wallet_mirror.chains.solana_watcher import SolanaWatcher


def main(argv: list[str] | None = None):
    wallet = parse_wallet_arg("Mirror buys of a wallet by polling its signatures", argv)
    pipeline = build_pipeline(wallet)
    watcher = SolanaWatcher.create(pipeline)
    watcher.run()


if __name__ == "__main__":
    main()
