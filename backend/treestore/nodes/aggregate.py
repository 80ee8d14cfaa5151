from __future__ import annotations

from collections import deque
from typing import Optional

from treestore.errors import NotFound
from treestore.nodes.model import NodeInfo
from treestore.nodes.repository import NodeRepository


class Aggregator:
    """
    Recursive descendant count and cumulative byte size of a subtree.

    Conventions:
    - folder: every transitive descendant is counted; only files add size.
    - root container id: the same, over all top-level nodes.
    - file: count=0 (it has no descendants), size=its own size.
    """

    def __init__(self, repo: NodeRepository):
        self.repo = repo

    def info(self, node_id: str, *, root_id: Optional[str] = None) -> NodeInfo:
        with self.repo.read() as tx:
            start: Optional[str]
            if root_id is not None and node_id == root_id:
                start = None
            else:
                node = tx.get(node_id)
                if node is None:
                    raise NotFound(f"Node not found: {node_id}")
                if not node.is_folder:
                    return NodeInfo(count=0, size=node.size)
                start = node.id

            count = 0
            size = 0
            visited: set[str] = set()
            pending: deque[Optional[str]] = deque([start])
            while pending:
                parent = pending.popleft()
                for child_id, kind, child_size in tx.child_entries(parent, root_id=root_id):
                    if child_id in visited:
                        continue
                    visited.add(child_id)
                    count += 1
                    if kind == "folder":
                        pending.append(child_id)
                    else:
                        size += child_size
            return NodeInfo(count=count, size=size)
