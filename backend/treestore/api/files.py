from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from treestore.api.common import get_service, http_error
from treestore.errors import TreeError, ValidationError
from treestore.nodes.service import FileTreeService


router = APIRouter()

# Shorter queries are answered with an empty result instead of a full scan.
MIN_SEARCH_LEN = 2


class UpdateBody(BaseModel):
    operation: str
    name: Optional[str] = None
    text: Optional[str] = None


class CreateBody(BaseModel):
    name: str
    type: str = "folder"
    text: Optional[str] = None
    size: Optional[int] = None
    fileReference: Optional[str] = None


class DeleteBody(BaseModel):
    ids: list[str] = Field(default_factory=list)


@router.get("/files")
def get_root_files(service: FileTreeService = Depends(get_service)) -> list[dict[str, Any]]:
    try:
        listing = service.list_root()
    except TreeError as e:
        raise http_error(e) from e
    return [n.to_listing() for n in listing.nodes]


@router.get("/root")
def get_root(service: FileTreeService = Depends(get_service)) -> dict:
    try:
        listing = service.list_root()
    except TreeError as e:
        raise http_error(e) from e
    return {"rootId": listing.root_id, "rootFiles": [n.to_dict() for n in listing.nodes]}


@router.get("/files/{node_id}")
def get_children(node_id: str, service: FileTreeService = Depends(get_service)) -> list[dict[str, Any]]:
    try:
        return [n.to_listing() for n in service.list_children(node_id)]
    except TreeError as e:
        raise http_error(e) from e


@router.put("/files/{node_id}")
def put_file(node_id: str, body: UpdateBody, service: FileTreeService = Depends(get_service)) -> dict:
    try:
        if body.operation == "rename":
            node = service.rename(node_id, body.name or "")
        elif body.operation == "update":
            if body.text is None:
                raise ValidationError("Missing text")
            node = service.replace_text(node_id, body.text)
        else:
            raise ValidationError(f"Unknown operation: {body.operation}")
    except TreeError as e:
        raise http_error(e) from e
    return node.to_dict()


@router.post("/files/{parent_id}")
def post_file(parent_id: str, body: CreateBody, service: FileTreeService = Depends(get_service)) -> dict:
    try:
        if body.fileReference:
            node = service.upload_file(parent_id, body.name, body.size or 0, body.fileReference)
        elif body.type == "file":
            node = service.create_file(parent_id, body.name, body.text)
        else:
            node = service.create(parent_id, body.name, body.type)
    except TreeError as e:
        raise http_error(e) from e
    return node.to_dict()


@router.post("/upload/{parent_id}")
async def post_upload(
    parent_id: str,
    request: Request,
    name: str = Query(...),
    service: FileTreeService = Depends(get_service),
) -> dict:
    data = await request.body()
    try:
        node = await run_in_threadpool(service.upload_content, parent_id, name, data)
    except TreeError as e:
        raise http_error(e) from e
    return node.to_dict()


@router.delete("/files")
def delete_files(body: DeleteBody, service: FileTreeService = Depends(get_service)) -> dict:
    try:
        res = service.delete(body.ids)
    except TreeError as e:
        raise http_error(e) from e
    return {"deletedCount": res.deleted, "totalRequested": res.requested}


@router.get("/search")
def get_search(q: str = Query(""), service: FileTreeService = Depends(get_service)) -> list[dict[str, Any]]:
    if len(q) < MIN_SEARCH_LEN:
        return []
    try:
        return [n.to_dict() for n in service.search(q)]
    except TreeError as e:
        raise http_error(e) from e
