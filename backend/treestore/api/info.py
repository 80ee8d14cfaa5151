from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse, Response

from treestore.api.common import get_service, http_error
from treestore.errors import TreeError
from treestore.nodes.service import FileTreeService


router = APIRouter()


@router.get("/nodes/{node_id}")
def get_node(node_id: str, service: FileTreeService = Depends(get_service)) -> dict:
    try:
        return service.get_node(node_id).to_dict()
    except TreeError as e:
        raise http_error(e) from e


@router.get("/info/{node_id}")
def get_info(node_id: str, service: FileTreeService = Depends(get_service)) -> dict:
    try:
        info = service.get_info(node_id)
    except TreeError as e:
        raise http_error(e) from e
    return {"count": info.count, "size": info.size}


@router.get("/direct")
def get_direct(node_id: str = Query(..., alias="id"), service: FileTreeService = Depends(get_service)) -> Response:
    try:
        content = service.read_content(node_id)
    except TreeError as e:
        raise http_error(e) from e
    if not content:
        return PlainTextResponse("empty")
    if isinstance(content, bytes):
        return Response(content=content, media_type="application/octet-stream")
    return PlainTextResponse(content)
