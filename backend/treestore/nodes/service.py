from __future__ import annotations

from typing import Iterable, Optional, Sequence, Union

from treestore.content.blobs import BlobStore
from treestore.errors import NotFound, StorageUnavailable, TreeError, ValidationError
from treestore.logging.ndjson import log_event
from treestore.nodes.aggregate import Aggregator
from treestore.nodes.bootstrap import DEFAULT_SEED, RootBootstrapper
from treestore.nodes.integrity import TreeIntegrity, clean_name
from treestore.nodes.model import DeleteResult, Node, NodeInfo, RootListing
from treestore.nodes.repository import NodeRepository


class FileTreeService:
    """
    Query/mutation façade over the node tree.

    Every transport (HTTP routes, CLI, direct calls) goes through this class;
    it owns no state beyond the injected repository, blob store and the
    bootstrapper's cached root.
    """

    def __init__(
        self,
        repo: NodeRepository,
        *,
        blobs: Optional[BlobStore] = None,
        seed: Sequence[tuple[str, str]] = DEFAULT_SEED,
    ):
        self.repo = repo
        self.blobs = blobs
        self.integrity = TreeIntegrity(repo)
        self.aggregator = Aggregator(repo)
        self.bootstrapper = RootBootstrapper(repo, seed=seed)

    # --- queries ---

    def root_id(self) -> str:
        return self.bootstrapper.ensure_root().id

    def list_root(self) -> RootListing:
        root = self.bootstrapper.ensure_seeded()
        return RootListing(root_id=root.id, nodes=self.repo.list_top_level(root.id))

    def get_node(self, node_id: str) -> Node:
        node = self.repo.get(node_id)
        if node is None:
            raise NotFound(f"Node not found: {node_id}")
        return node

    def list_children(self, folder_id: str) -> list[Node]:
        root_id = self.root_id()
        if folder_id == root_id:
            return self.repo.list_top_level(root_id)
        with self.repo.read() as tx:
            folder = tx.get(folder_id)
            if folder is None:
                raise NotFound(f"Folder not found: {folder_id}")
            if not folder.is_folder:
                raise NotFound(f"Not a folder: {folder_id}")
            return tx.list_children(folder_id)

    def get_info(self, node_id: str) -> NodeInfo:
        return self.aggregator.info(node_id, root_id=self.root_id())

    def search(self, query: str) -> list[Node]:
        if not isinstance(query, str):
            raise ValidationError("Search query must be a string")
        return self.repo.search(query, root_id=self.root_id())

    def read_content(self, node_id: str) -> Optional[Union[str, bytes]]:
        """
        Inline text, blob bytes, or None for a file without content.
        """
        node = self.get_node(node_id)
        if node.is_folder:
            raise ValidationError("Folders have no content")
        if node.text is not None:
            return node.text
        if node.content_ref is not None:
            if self.blobs is None:
                raise StorageUnavailable("No content store configured")
            return self.blobs.get(node.content_ref)
        return None

    # --- mutations ---

    def _parent(self, parent_id: Optional[str], root_id: str) -> Optional[str]:
        # The root container id addresses the top level.
        if not parent_id or parent_id == root_id:
            return None
        return parent_id

    def create(self, parent_id: Optional[str], name: str, kind: str) -> Node:
        root_id = self.root_id()
        node = self.integrity.create(
            root_id=root_id,
            parent_id=self._parent(parent_id, root_id),
            kind=kind,
            name=name,
        )
        log_event(
            level="info",
            event="tree.create",
            nodeId=node.id,
            data={"name": node.name, "kind": node.kind, "parentId": node.parent_id},
        )
        return node

    def create_file(self, parent_id: Optional[str], name: str, text: Optional[str] = None) -> Node:
        root_id = self.root_id()
        size = len(text.encode("utf-8")) if text is not None else 0
        node = self.integrity.create(
            root_id=root_id,
            parent_id=self._parent(parent_id, root_id),
            kind="file",
            name=name,
            size=size,
            text=text,
        )
        log_event(
            level="info",
            event="tree.create",
            nodeId=node.id,
            data={"name": node.name, "kind": "file", "parentId": node.parent_id, "size": size},
        )
        return node

    def upload_file(self, parent_id: Optional[str], name: str, size: int, content_ref: str) -> Node:
        if not content_ref:
            raise ValidationError("Content reference is empty")
        root_id = self.root_id()
        node = self.integrity.create(
            root_id=root_id,
            parent_id=self._parent(parent_id, root_id),
            kind="file",
            name=name,
            size=size,
            content_ref=content_ref,
        )
        log_event(
            level="info",
            event="tree.create",
            nodeId=node.id,
            data={"name": node.name, "kind": "file", "parentId": node.parent_id, "size": size, "ref": content_ref},
        )
        return node

    def upload_content(self, parent_id: Optional[str], name: str, data: bytes) -> Node:
        if self.blobs is None:
            raise StorageUnavailable("No content store configured")
        # Name and parent are checked before anything reaches the blob store.
        name = clean_name(name)
        root_id = self.root_id()
        self.integrity.check_parent(root_id=root_id, parent_id=self._parent(parent_id, root_id))
        ref = self.blobs.put(data, name=name.strip())
        try:
            return self.upload_file(parent_id, name, len(data), ref)
        except TreeError:
            # the parent went away in between; nothing references the blob
            self.blobs.delete(ref)
            raise

    def replace_text(self, node_id: str, text: str) -> Node:
        if not isinstance(text, str):
            raise ValidationError("Text must be a string")
        node = self.integrity.replace_content(node_id, size=len(text.encode("utf-8")), text=text)
        log_event(level="info", event="tree.content", nodeId=node_id, data={"size": node.size})
        return node

    def replace_content(self, node_id: str, size: int, content_ref: str) -> Node:
        if not content_ref:
            raise ValidationError("Content reference is empty")
        node = self.integrity.replace_content(node_id, size=size, content_ref=content_ref)
        log_event(level="info", event="tree.content", nodeId=node_id, data={"size": size, "ref": content_ref})
        return node

    def rename(self, node_id: str, new_name: str) -> Node:
        node = self.integrity.rename(node_id, new_name)
        log_event(level="info", event="tree.rename", nodeId=node_id, data={"name": node.name})
        return node

    def delete(self, ids: Iterable[str]) -> DeleteResult:
        ids = list(ids)
        root = self.bootstrapper.ensure_root()
        res = self.integrity.delete(ids, protected=[root.id])
        log_event(
            level="info",
            event="tree.delete",
            data={"requested": res.requested, "deleted": res.deleted, "removed": res.removed, "ids": ids},
        )
        return res
