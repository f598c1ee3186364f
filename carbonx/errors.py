"""Error kinds raised by the ledger and the operator.

Ledger errors carry a stable ``kind`` (the class name) and an HTTP status so
the API can report the exact failure and the client can raise the same class
on the other side of the wire.
"""

from __future__ import annotations

from typing import Dict, Type


class CarbonXError(Exception):
    """Base class for every error raised by this package."""


class LedgerError(CarbonXError):
    status_code: int = 400

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_detail(self) -> Dict[str, str]:
        return {"error": self.kind, "message": str(self)}


class TaskNotFound(LedgerError):
    status_code = 404


class TaskNotPending(LedgerError):
    status_code = 409


class TaskExpired(LedgerError):
    status_code = 409


class InvalidSignature(LedgerError):
    status_code = 401


class NotOperator(LedgerError):
    status_code = 403


class InvalidRequirement(LedgerError):
    status_code = 400


class AlreadySatisfied(LedgerError):
    status_code = 409


class UnauthorizedRequester(LedgerError):
    status_code = 403


class DuplicateRequest(LedgerError):
    status_code = 409


class ResultNotFound(LedgerError):
    status_code = 404


class Unauthorized(LedgerError):
    status_code = 401


LEDGER_ERRORS: Dict[str, Type[LedgerError]] = {
    cls.__name__: cls
    for cls in (
        TaskNotFound,
        TaskNotPending,
        TaskExpired,
        InvalidSignature,
        NotOperator,
        InvalidRequirement,
        AlreadySatisfied,
        UnauthorizedRequester,
        DuplicateRequest,
        ResultNotFound,
        Unauthorized,
    )
}


class VerificationDeclined(CarbonXError):
    """The decision function refused to approve a task."""


class ProofStorageError(CarbonXError):
    """Evidence could not be stored; the task is abandoned for this process."""
