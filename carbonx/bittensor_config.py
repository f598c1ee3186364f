from __future__ import annotations

import argparse
from typing import Literal

import bittensor as bt

from carbonx.utils.config import add_args as _add_base_args
from carbonx.utils.config import add_ledger_args as _add_ledger_args
from carbonx.utils.config import add_operator_args as _add_operator_args


Role = Literal["ledger", "operator"]


def config(*, role: Role) -> bt.config:
    """
    Build a bittensor config with explicit, layered arg addition:

    1) Logging + shared flags (from `carbonx.utils.config.add_args`)
    2) Role-specific flags (ledger | operator)

    Entry points build a role-configured config, call ``bt.logging(config=...)``
    and then apply any flag overrides on top of the env config.
    """
    parser = argparse.ArgumentParser(conflict_handler="resolve")

    _add_base_args(None, parser)

    if role == "ledger":
        _add_ledger_args(None, parser)
    elif role == "operator":
        _add_operator_args(None, parser)
    else:
        raise ValueError(f"unknown role {role!r}")

    # bittensor exposes `bt.config(parser)` in newer versions, and `bt.Config(parser=...)` in older.
    try:
        return bt.config(parser)
    except Exception:
        return bt.Config(parser=parser)
