from __future__ import annotations

import threading
from typing import Literal, Optional, Sequence
from uuid import uuid4

from treestore.errors import ValidationError
from treestore.logging.ndjson import log_event
from treestore.nodes.model import NODE_KINDS, Node, RootContainer, now_iso
from treestore.nodes.repository import NodeRepository


BootstrapState = Literal["uninitialized", "ready"]

DEFAULT_ROOT_NAME = "root"
DEFAULT_SEED: tuple[tuple[str, str], ...] = (("files", "folder"),)


class RootBootstrapper:
    """
    Guarantees a single root container and seeds sample content into an empty tree.

    The root is created with a create-if-absent insert on a singleton column and
    then re-read, so concurrent initialisers (threads here, or other processes
    sharing the database) all adopt the same row. Seeding happens inside one
    write transaction that first checks the top-level listing is still empty.
    """

    def __init__(self, repo: NodeRepository, *, seed: Sequence[tuple[str, str]] = DEFAULT_SEED):
        for name, kind in seed:
            if kind not in NODE_KINDS or not name.strip():
                raise ValidationError(f"Invalid seed entry: {name!r}:{kind!r}")
        self.repo = repo
        self.seed = tuple(seed)
        self.state: BootstrapState = "uninitialized"
        self._root: Optional[RootContainer] = None
        self._lock = threading.Lock()

    def ensure_root(self) -> RootContainer:
        root = self._root
        if root is not None:
            return root
        with self._lock:
            if self._root is not None:
                return self._root
            existing = self.repo.get_root()
            if existing is None:
                now = now_iso()
                candidate = RootContainer(id=str(uuid4()), name=DEFAULT_ROOT_NAME, created_at=now, updated_at=now)
                with self.repo.write() as tx:
                    existing = tx.insert_root_if_absent(candidate)
                if existing.id == candidate.id:
                    log_event(level="info", event="tree.bootstrap", data={"rootId": existing.id})
            self._root = existing
            self.state = "ready"
            return existing

    def ensure_seeded(self) -> RootContainer:
        """
        Bootstrap the root, then seed the sample entries if the top level is empty.
        Returns the root container. A no-op when the top level already has content.
        """
        root = self.ensure_root()
        if not self.seed:
            return root
        with self.repo.read() as tx:
            if tx.count_top_level(root.id) > 0:
                return root
        # Re-checked under the write lock; another writer may have filled it.
        with self._lock:
            with self.repo.write() as tx:
                if tx.count_top_level(root.id) > 0:
                    return root
                now = now_iso()
                created: list[str] = []
                for name, kind in self.seed:
                    node = tx.insert(
                        Node(
                            id=str(uuid4()),
                            name=name,
                            kind=kind,  # type: ignore[arg-type]
                            size=0,
                            created_at=now,
                            updated_at=now,
                            root_id=root.id,
                        )
                    )
                    created.append(node.id)
        log_event(level="info", event="tree.seed", data={"rootId": root.id, "nodeIds": created})
        return root

