from __future__ import annotations


class TreeError(RuntimeError):
    """
    Base for every failure the tree core surfaces to callers.

    `kind` is stable and safe to expose to clients; the message is human readable.
    """

    kind = "tree_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def as_payload(self) -> dict[str, str]:
        return {"error": self.kind, "message": self.message}


class NotFound(TreeError):
    kind = "not_found"


class InvalidParent(TreeError):
    kind = "invalid_parent"


class ValidationError(TreeError):
    kind = "validation_error"


class Conflict(TreeError):
    kind = "conflict"


class StorageUnavailable(TreeError):
    kind = "storage_unavailable"
