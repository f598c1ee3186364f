import sys
from pathlib import Path

# Ensure repo root is on sys.path so `import carbonx` works under all pytest import modes.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from carbonx.ledger.node import LedgerNode  # noqa: E402
from carbonx.signing import OperatorSigner  # noqa: E402

# Well-known local devnet keys; never fund them anywhere real.
OPERATOR_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
USER_KEY = "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a"
REQUESTER_KEY = "0x7c852118294e51e653712a81e05800f419141751be58f605c371e15141b007a6"
OUTSIDER_KEY = "0x47e179ec197488593b187f80a00eb0da91f1b9d0b13f8733639f19c30a34926a"


class FixedClock:
    def __init__(self, now: int = 1_700_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def operator():
    return OperatorSigner(OPERATOR_KEY)


@pytest.fixture
def user():
    return OperatorSigner(USER_KEY)


@pytest.fixture
def requester():
    return OperatorSigner(REQUESTER_KEY)


@pytest.fixture
def outsider():
    return OperatorSigner(OUTSIDER_KEY)


@pytest.fixture
def node(clock, operator):
    # Next transaction lands in block 100.
    return LedgerNode(operators=[operator.address], start_position=99, clock=clock)
