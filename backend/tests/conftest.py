from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from treestore.content.blobs import LocalBlobStore
from treestore.main import create_app
from treestore.nodes.model import RootContainer, now_iso
from treestore.nodes.repository import NodeRepository
from treestore.nodes.service import FileTreeService


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TREESTORE_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("TREESTORE_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("TREESTORE_BLOB_DIR", str(tmp_path / "env-blobs"))
    monkeypatch.delenv("TREESTORE_BLOB_URL", raising=False)
    monkeypatch.delenv("TREESTORE_SEED", raising=False)


@pytest.fixture
def db_file(tmp_path: Path) -> Path:
    return tmp_path / "tree.db"


@pytest.fixture
def repo(db_file: Path) -> NodeRepository:
    return NodeRepository(db_file)


@pytest.fixture
def root(repo: NodeRepository) -> RootContainer:
    now = now_iso()
    with repo.write() as tx:
        return tx.insert_root_if_absent(RootContainer(id="root-1", name="root", created_at=now, updated_at=now))


@pytest.fixture
def blobs(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def service(repo: NodeRepository, blobs: LocalBlobStore) -> FileTreeService:
    return FileTreeService(repo, blobs=blobs)


@pytest.fixture
def client(service: FileTreeService):
    with TestClient(create_app(service)) as c:
        yield c


@pytest.fixture
def check_invariants(db_file: Path) -> Callable[[], None]:
    """
    Assert the structural invariants straight from storage:
    parents resolve to live folders, folders have no size or content,
    sizes are non-negative and every node belongs to the single root.
    """

    def _check() -> None:
        conn = sqlite3.connect(db_file)
        try:
            dangling = conn.execute(
                "SELECT n.id FROM nodes n LEFT JOIN nodes p ON n.parent_id = p.id "
                "WHERE n.parent_id IS NOT NULL AND (p.id IS NULL OR p.kind != 'folder')"
            ).fetchall()
            assert dangling == []
            bad_folders = conn.execute(
                "SELECT id FROM nodes WHERE kind='folder' AND (size != 0 OR content_ref IS NOT NULL OR text IS NOT NULL)"
            ).fetchall()
            assert bad_folders == []
            assert conn.execute("SELECT COUNT(*) FROM nodes WHERE size < 0").fetchone()[0] == 0
            roots = conn.execute("SELECT id FROM root_containers").fetchall()
            assert len(roots) <= 1
            if roots:
                foreign = conn.execute("SELECT COUNT(*) FROM nodes WHERE root_id != ?", (roots[0][0],)).fetchone()[0]
                assert foreign == 0
        finally:
            conn.close()

    return _check
