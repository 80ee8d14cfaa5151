from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from treestore.api.common import get_service, http_error
from treestore.errors import TreeError
from treestore.logging.ndjson import log_dir, read_events
from treestore.nodes.service import FileTreeService

router = APIRouter()


@router.get("/api/logs/tail")
def get_logs_tail(
    lines: int = Query(200, ge=1, le=2000),
    event: Optional[str] = Query(None, description='Exact event name, or a family such as "tree."'),
    node_id: Optional[str] = Query(None, alias="nodeId"),
) -> dict[str, Any]:
    records = read_events(limit=lines, event=event, nodeId=node_id)
    return {"dir": str(log_dir()), "records": records, "count": len(records)}


@router.get("/nodes/{node_id}/history")
def get_node_history(
    node_id: str,
    limit: int = Query(100, ge=1, le=2000),
    service: FileTreeService = Depends(get_service),
) -> list[dict[str, Any]]:
    """
    Tree events that touched one node. A node that no longer exists still has
    a history; an id that never appeared in the log is reported as not found.
    """
    records = read_events(limit=limit, event="tree.", nodeId=node_id)
    if not records:
        try:
            service.get_node(node_id)
        except TreeError as e:
            raise http_error(e) from e
    return records
