"""
Light-mining bot package.

Automates the daily light-mining routine for a list of wallets: log in to
the mining API through a rotating proxy pool, start mining once the 24h
cooldown has elapsed, and activate mining on-chain.

Submodules:
    config: Application settings (``BotSettings``) via Pydantic.
    errors: ``ErrorKind`` taxonomy, ``BotError`` subclasses and ``Result``.
    proxy_manager: ``ProxyDescriptor`` parsing and round-robin ``ProxyPool``.
    http_client: ``ProxiedHttpClient`` and proxy-rotating ``RetryingRequester``.
    session: ``AuthSession`` API operations (nonce, login, status, start).
    wallet_manager: Wallet file loading and EIP-191 message signing.
    chain: ``ContractActivator`` calling ``active()`` on the mining contract.
    orchestrator: ``MiningOrchestrator`` per-wallet state machine and cycle loop.
    logging_setup: Compressed rotating file + safe console logging.
    utils: Log-safe formatting helpers.
"""
