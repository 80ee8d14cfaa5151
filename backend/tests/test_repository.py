from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from treestore.errors import Conflict, InvalidParent, StorageUnavailable
from treestore.nodes.model import Node, RootContainer, now_iso
from treestore.nodes.repository import NodeRepository


def _node(
    root: RootContainer,
    node_id: str,
    name: str,
    *,
    kind: str = "folder",
    parent_id: Optional[str] = None,
    size: int = 0,
) -> Node:
    now = now_iso()
    return Node(
        id=node_id,
        name=name,
        kind=kind,  # type: ignore[arg-type]
        size=size,
        created_at=now,
        updated_at=now,
        root_id=root.id,
        parent_id=parent_id,
    )


def test_insert_and_get(repo: NodeRepository, root: RootContainer) -> None:
    node = _node(root, "a", "docs")
    repo.insert(node)

    got = repo.get("a")
    assert got == node
    assert repo.get("missing") is None


def test_insert_duplicate_id_is_conflict(repo: NodeRepository, root: RootContainer) -> None:
    repo.insert(_node(root, "a", "docs"))
    with pytest.raises(Conflict):
        repo.insert(_node(root, "a", "other"))
    assert repo.get("a").name == "docs"


def test_insert_with_unknown_parent_is_rejected_by_storage(repo: NodeRepository, root: RootContainer) -> None:
    with pytest.raises(InvalidParent):
        repo.insert(_node(root, "a", "orphan", parent_id="nope"))
    assert repo.get("a") is None


def test_top_level_and_children_listings(repo: NodeRepository, root: RootContainer) -> None:
    repo.insert(_node(root, "a", "docs"))
    repo.insert(_node(root, "b", "music"))
    repo.insert(_node(root, "c", "song.mp3", kind="file", parent_id="b", size=10))

    assert {n.id for n in repo.list_top_level(root.id)} == {"a", "b"}
    assert [n.id for n in repo.list_children("b")] == ["c"]
    assert repo.list_children("a") == []
    assert repo.list_children("unknown") == []


def test_delete_reports_existence(repo: NodeRepository, root: RootContainer) -> None:
    repo.insert(_node(root, "a", "docs"))
    assert repo.delete("a") is True
    assert repo.delete("a") is False
    assert repo.get("a") is None


def test_delete_of_referenced_parent_is_refused(repo: NodeRepository, root: RootContainer) -> None:
    repo.insert(_node(root, "a", "docs"))
    repo.insert(_node(root, "b", "inner", parent_id="a"))
    with pytest.raises(Conflict):
        repo.delete("a")
    assert repo.get("a") is not None
    assert repo.get("b") is not None


def test_search_is_case_sensitive_substring(repo: NodeRepository, root: RootContainer) -> None:
    repo.insert(_node(root, "a", "Report.txt", kind="file"))
    repo.insert(_node(root, "b", "report.md", kind="file"))
    repo.insert(_node(root, "c", "old-report", kind="folder"))

    assert {n.id for n in repo.search("report")} == {"b", "c"}
    assert {n.id for n in repo.search("Report")} == {"a"}
    assert repo.search("xyz") == []


def test_failed_write_rolls_back(repo: NodeRepository, root: RootContainer) -> None:
    with pytest.raises(RuntimeError):
        with repo.write() as tx:
            tx.insert(_node(root, "a", "docs"))
            raise RuntimeError("boom")
    assert repo.get("a") is None


def test_root_insert_is_create_if_absent(repo: NodeRepository, root: RootContainer) -> None:
    now = now_iso()
    with repo.write() as tx:
        again = tx.insert_root_if_absent(RootContainer(id="root-2", name="other", created_at=now, updated_at=now))
    assert again.id == root.id
    assert repo.get_root().id == root.id


def test_unopenable_store_is_storage_unavailable(tmp_path: Path) -> None:
    # A directory cannot be opened as a database file.
    with pytest.raises(StorageUnavailable):
        NodeRepository(tmp_path)


def test_reopening_existing_store_keeps_data(db_file: Path, repo: NodeRepository, root: RootContainer) -> None:
    repo.insert(_node(root, "a", "docs"))
    reopened = NodeRepository(db_file)
    assert reopened.get("a").name == "docs"
    assert reopened.get_root().id == root.id
