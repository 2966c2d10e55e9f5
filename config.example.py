# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TANDEM_APP_NAME": "App display name (default: tandem).",
    "TANDEM_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Participants / approval
    "TANDEM_PARTICIPANTS": "Comma separated participant names (default: Maya,Rayanha).",
    "TANDEM_CURRENT_USER": "Who this console acts as (default: first participant). Switch with /user.",
    "TANDEM_QUORUM": "Distinct approvals needed to activate a task, proposer included (default and minimum: 2).",
    # Sync
    "TANDEM_POLL_INTERVAL_SECONDS": "Seconds between polls of the store (default: 5).",
    "TANDEM_POLL_TIMEOUT_SECONDS": "Per-request timeout; slower requests count as failures (default: 10).",
    "TANDEM_TRANSPORT_LATENCY_SECONDS": "Artificial latency of the in-process transport (default: 0).",
    # Connectors
    "TANDEM_CONSOLE_ENABLED": "Enable the console REPL (true/false, default: true).",
    # Paths (gitignored)
    "TANDEM_DATA_DIR": "Local data directory (default: .local/tandem).",
    "TANDEM_PERSIST_STORE": "Save the store snapshot after each change (true/false, default: true).",
    "TANDEM_STORE_SNAPSHOT_PATH": "Store snapshot JSON path (default: <data_dir>/store.json).",
    "TANDEM_CLIENT_CACHE_PATH": "Client cache JSON path (default: <data_dir>/client_cache.json).",
}
