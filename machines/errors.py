"""Domain errors raised by the laundry state machine.

Every error carries a stable ``code`` for API payloads and the HTTP status the
web layer should answer with. Nothing in the core retries; callers decide.
"""

from __future__ import annotations


class LaundryError(Exception):
    """Base class for expected, user-visible failures."""

    code = "laundry_error"
    http_status = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MachineNotFound(LaundryError):
    code = "not_found"
    http_status = 404


class IssueNotFound(LaundryError):
    code = "not_found"
    http_status = 404


class NotOnWaitlist(LaundryError):
    code = "not_found"
    http_status = 404


class MachineConflict(LaundryError):
    """The machine is not in a state that allows the requested transition."""

    code = "conflict"
    http_status = 409


class NotOwner(LaundryError):
    code = "not_owner"
    http_status = 403


class AlreadyActive(LaundryError):
    """The student already owns a running or uncollected machine."""

    code = "already_active"
    http_status = 409


class InvalidRequest(LaundryError):
    code = "invalid_request"
    http_status = 400


class PersistenceFailure(LaundryError):
    """Writing the state snapshot failed. Never surfaced to API callers."""

    code = "persistence_failure"
    http_status = 500


__all__ = [
    "LaundryError",
    "MachineNotFound",
    "IssueNotFound",
    "NotOnWaitlist",
    "MachineConflict",
    "NotOwner",
    "AlreadyActive",
    "InvalidRequest",
    "PersistenceFailure",
]
