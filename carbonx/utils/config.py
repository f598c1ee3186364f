"""Command-line arguments for the carbonx entrypoints."""

from __future__ import annotations

import argparse

import bittensor as bt


def add_args(cls, parser: argparse.ArgumentParser) -> None:
    if parser is None:
        parser = argparse.ArgumentParser()
    bt.logging.add_args(parser)

    parser.add_argument(
        "--ledger.url",
        type=str,
        default=None,
        help="Ledger node base URL (overrides CARBONX_LEDGER_URL).",
    )


def add_ledger_args(cls, parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--ledger.host",
        type=str,
        default=None,
        help="Interface to bind the ledger API on (overrides CARBONX_LEDGER_HOST).",
    )
    parser.add_argument(
        "--ledger.port",
        type=int,
        default=None,
        help="Port to bind the ledger API on (overrides CARBONX_LEDGER_PORT).",
    )


def add_operator_args(cls, parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--operator.categories",
        nargs="*",
        default=None,
        help="Task categories to watch (kyc, project). Defaults to OPERATOR_CATEGORIES.",
    )
    parser.add_argument(
        "--operator.start_position",
        type=int,
        default=None,
        help="Scan from this block instead of the current head (backfill).",
    )
    parser.add_argument(
        "--operator.poll_interval_s",
        type=float,
        default=None,
        help="Seconds between polls (overrides OPERATOR_POLL_INTERVAL_S).",
    )
