from __future__ import annotations

from fastapi import HTTPException, Request

from treestore.errors import Conflict, InvalidParent, NotFound, StorageUnavailable, TreeError, ValidationError
from treestore.nodes.service import FileTreeService


_STATUS: dict[type[TreeError], int] = {
    NotFound: 404,
    InvalidParent: 400,
    ValidationError: 400,
    Conflict: 409,
    StorageUnavailable: 503,
}


def get_service(request: Request) -> FileTreeService:
    return request.app.state.service


def http_error(e: TreeError) -> HTTPException:
    status = next((code for cls, code in _STATUS.items() if isinstance(e, cls)), 500)
    return HTTPException(status_code=status, detail=e.as_payload())
