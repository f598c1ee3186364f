"""Ledger side: the authoritative task state machines and their HTTP surface."""
