"""CarbonX attestation protocol: ledger task state machine and operator watcher."""

__version__ = "0.1.0"
