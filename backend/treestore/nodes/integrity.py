from __future__ import annotations

from collections import deque
from typing import Iterable, Optional
from uuid import uuid4

from treestore.errors import InvalidParent, NotFound, ValidationError
from treestore.nodes.model import NODE_KINDS, DeleteResult, Node, advance_iso, now_iso
from treestore.nodes.repository import NodeRepository, Transaction


def clean_name(name: object) -> str:
    # Stored exactly as given; only blank names are refused.
    if not isinstance(name, str):
        raise ValidationError("Name must be a string")
    if not name.strip():
        raise ValidationError("Name is empty")
    return name


def _check_content(kind: str, size: int, content_ref: Optional[str], text: Optional[str]) -> None:
    if not isinstance(size, int) or isinstance(size, bool) or size < 0:
        raise ValidationError("Size must be a non-negative integer")
    if content_ref is not None and text is not None:
        raise ValidationError("A file holds either a content reference or inline text, not both")
    if kind == "folder" and (size or content_ref is not None or text is not None):
        raise ValidationError("Folders carry no content or size")


def _check_parent(tx: Transaction, root_id: str, parent_id: Optional[str]) -> None:
    if parent_id is None:
        return
    parent = tx.get(parent_id)
    if parent is None:
        raise InvalidParent(f"Parent does not exist: {parent_id}")
    if not parent.is_folder:
        raise InvalidParent(f"Parent is not a folder: {parent_id}")
    if parent.root_id != root_id:
        raise InvalidParent(f"Parent belongs to another root: {parent_id}")


class TreeIntegrity:
    """
    Validates every mutation and applies it through the repository.

    Each single-node mutation performs its checks and its write inside one
    write transaction, so nothing is written when a check fails and no other
    writer can slip in between the check and the write.
    """

    def __init__(self, repo: NodeRepository):
        self.repo = repo

    def create(
        self,
        *,
        root_id: str,
        parent_id: Optional[str],
        kind: str,
        name: str,
        size: int = 0,
        content_ref: Optional[str] = None,
        text: Optional[str] = None,
    ) -> Node:
        if kind not in NODE_KINDS:
            raise ValidationError(f"Unknown node kind: {kind!r}")
        name = clean_name(name)
        _check_content(kind, size, content_ref, text)

        now = now_iso()
        node = Node(
            id=str(uuid4()),
            name=name,
            kind=kind,  # type: ignore[arg-type]
            size=size,
            created_at=now,
            updated_at=now,
            root_id=root_id,
            parent_id=parent_id,
            content_ref=content_ref,
            text=text,
        )
        with self.repo.write() as tx:
            _check_parent(tx, root_id, parent_id)
            return tx.insert(node)

    def check_parent(self, *, root_id: str, parent_id: Optional[str]) -> None:
        """
        Read-only parent check for callers that must fail before touching
        anything outside the tree. `create` repeats it under the write lock.
        """
        with self.repo.read() as tx:
            _check_parent(tx, root_id, parent_id)

    def rename(self, node_id: str, new_name: str) -> Node:
        new_name = clean_name(new_name)
        with self.repo.write() as tx:
            current = tx.get(node_id)
            if current is None:
                raise NotFound(f"Node not found: {node_id}")
            return tx.update_name(node_id, name=new_name, updated_at=advance_iso(current.updated_at))

    def replace_content(
        self,
        node_id: str,
        *,
        size: int,
        content_ref: Optional[str] = None,
        text: Optional[str] = None,
    ) -> Node:
        _check_content("file", size, content_ref, text)
        with self.repo.write() as tx:
            current = tx.get(node_id)
            if current is None:
                raise NotFound(f"Node not found: {node_id}")
            if current.is_folder:
                raise ValidationError("Cannot set content on a folder")
            return tx.update_content(
                node_id,
                size=size,
                content_ref=content_ref,
                text=text,
                updated_at=advance_iso(current.updated_at),
            )

    def delete(self, ids: Iterable[str], *, protected: Iterable[str] = ()) -> DeleteResult:
        """
        Delete each id together with its whole subtree.

        Ids that do not resolve (already gone, or removed earlier in the same
        batch as part of an ancestor's subtree) are skipped and not counted.
        Ids listed in `protected` are never deleted.
        """
        requested = list(ids)
        keep = set(protected)
        seen: set[str] = set()
        deleted = 0
        removed = 0
        for node_id in requested:
            if node_id in seen or node_id in keep:
                continue
            seen.add(node_id)
            with self.repo.write() as tx:
                if tx.get(node_id) is None:
                    continue
                subtree = collect_subtree(tx, node_id)
                # Children before parents so the parent reference never dangles.
                for victim in reversed(subtree):
                    if tx.delete(victim):
                        removed += 1
            deleted += 1
        return DeleteResult(requested=len(requested), deleted=deleted, removed=removed)


def collect_subtree(tx: Transaction, node_id: str) -> list[str]:
    """
    Breadth-first list of `node_id` and all of its descendants, parents first.
    Uses an explicit queue so depth is bounded only by memory.
    """
    order: list[str] = [node_id]
    visited = {node_id}
    queue: deque[str] = deque([node_id])
    while queue:
        current = queue.popleft()
        for child_id, kind, _size in tx.child_entries(current):
            if child_id in visited:
                continue
            visited.add(child_id)
            order.append(child_id)
            if kind == "folder":
                queue.append(child_id)
    return order
