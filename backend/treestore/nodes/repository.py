from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, ContextManager, Iterator, Optional

from treestore.db import connect, init_db
from treestore.errors import Conflict, InvalidParent, NotFound, StorageUnavailable
from treestore.nodes.model import Node, RootContainer


_NODE_COLUMNS = "id, name, kind, size, content_ref, text, created_at, updated_at, root_id, parent_id"


def _row_to_node(row: Any) -> Node:
    return Node(
        id=row["id"],
        name=row["name"],
        kind=row["kind"],
        size=int(row["size"] or 0),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        root_id=row["root_id"],
        parent_id=row["parent_id"],
        content_ref=row["content_ref"],
        text=row["text"],
    )


def _row_to_root(row: Any) -> RootContainer:
    return RootContainer(
        id=row["id"],
        name=row["name"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class Transaction:
    """
    One unit of work against the node tables, bound to a single connection.
    Obtained from NodeRepository.read() / NodeRepository.write().
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    # --- root container ---

    def get_root(self) -> Optional[RootContainer]:
        row = self._conn.execute("SELECT * FROM root_containers WHERE singleton=1").fetchone()
        return _row_to_root(row) if row else None

    def insert_root_if_absent(self, root: RootContainer) -> RootContainer:
        """
        Create-if-absent on the singleton column, then re-read whichever row won.
        """
        self._conn.execute(
            "INSERT INTO root_containers(id, singleton, name, created_at, updated_at) "
            "VALUES(?, 1, ?, ?, ?) ON CONFLICT(singleton) DO NOTHING",
            (root.id, root.name, root.created_at, root.updated_at),
        )
        existing = self.get_root()
        assert existing is not None
        return existing

    # --- reads ---

    def get(self, node_id: str) -> Optional[Node]:
        row = self._conn.execute(f"SELECT {_NODE_COLUMNS} FROM nodes WHERE id=?", (node_id,)).fetchone()
        return _row_to_node(row) if row else None

    def list_top_level(self, root_id: str) -> list[Node]:
        rows = self._conn.execute(
            f"SELECT {_NODE_COLUMNS} FROM nodes WHERE root_id=? AND parent_id IS NULL ORDER BY name ASC",
            (root_id,),
        ).fetchall()
        return [_row_to_node(r) for r in rows]

    def count_top_level(self, root_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) AS n FROM nodes WHERE root_id=? AND parent_id IS NULL",
            (root_id,),
        ).fetchone()
        return int(row["n"])

    def list_children(self, parent_id: str) -> list[Node]:
        rows = self._conn.execute(
            f"SELECT {_NODE_COLUMNS} FROM nodes WHERE parent_id=? ORDER BY name ASC",
            (parent_id,),
        ).fetchall()
        return [_row_to_node(r) for r in rows]

    def child_entries(self, parent_id: Optional[str], *, root_id: Optional[str] = None) -> list[tuple[str, str, int]]:
        """
        (id, kind, size) of the immediate children of `parent_id`, or of the
        top-level nodes of `root_id` when `parent_id` is None.
        """
        if parent_id is None:
            rows = self._conn.execute(
                "SELECT id, kind, size FROM nodes WHERE root_id=? AND parent_id IS NULL",
                (root_id,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT id, kind, size FROM nodes WHERE parent_id=?",
                (parent_id,),
            ).fetchall()
        return [(r["id"], r["kind"], int(r["size"] or 0)) for r in rows]

    def search(self, query: str, *, root_id: Optional[str] = None) -> list[Node]:
        # instr() is case-sensitive, unlike LIKE.
        if root_id is None:
            rows = self._conn.execute(
                f"SELECT {_NODE_COLUMNS} FROM nodes WHERE instr(name, ?) > 0 ORDER BY name ASC",
                (query,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_NODE_COLUMNS} FROM nodes WHERE root_id=? AND instr(name, ?) > 0 ORDER BY name ASC",
                (root_id, query),
            ).fetchall()
        return [_row_to_node(r) for r in rows]

    # --- writes ---

    def insert(self, node: Node) -> Node:
        try:
            self._conn.execute(
                f"INSERT INTO nodes({_NODE_COLUMNS}) VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    node.id,
                    node.name,
                    node.kind,
                    node.size,
                    node.content_ref,
                    node.text,
                    node.created_at,
                    node.updated_at,
                    node.root_id,
                    node.parent_id,
                ),
            )
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e) or "PRIMARY KEY" in str(e):
                raise Conflict(f"Node id already exists: {node.id}") from e
            raise InvalidParent(f"Parent does not exist: {node.parent_id}") from e
        return node

    def update_name(self, node_id: str, *, name: str, updated_at: str) -> Node:
        cur = self._conn.execute(
            "UPDATE nodes SET name=?, updated_at=? WHERE id=?",
            (name, updated_at, node_id),
        )
        if cur.rowcount == 0:
            raise NotFound(f"Node not found: {node_id}")
        node = self.get(node_id)
        assert node is not None
        return node

    def update_content(
        self,
        node_id: str,
        *,
        size: int,
        content_ref: Optional[str],
        text: Optional[str],
        updated_at: str,
    ) -> Node:
        cur = self._conn.execute(
            "UPDATE nodes SET size=?, content_ref=?, text=?, updated_at=? WHERE id=?",
            (size, content_ref, text, updated_at, node_id),
        )
        if cur.rowcount == 0:
            raise NotFound(f"Node not found: {node_id}")
        node = self.get(node_id)
        assert node is not None
        return node

    def delete(self, node_id: str) -> bool:
        cur = self._conn.execute("DELETE FROM nodes WHERE id=?", (node_id,))
        return cur.rowcount > 0


class NodeRepository:
    """
    SQLite-backed store of tree nodes.

    Every read or write runs on its own connection. Writes take the database
    write lock up front (BEGIN IMMEDIATE), which serialises mutations touching
    the same ids across threads and processes.
    """

    def __init__(self, path: Path, *, timeout: float = 5.0):
        self.path = Path(path)
        self.timeout = timeout
        try:
            init_db(self.path, timeout=self.timeout)
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Cannot initialise node store: {e}") from e

    @contextmanager
    def _session(self, begin: str) -> Iterator[Transaction]:
        try:
            conn = connect(self.path, timeout=self.timeout)
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(f"Node store unavailable: {e}") from e
        try:
            try:
                conn.execute(begin)
                yield Transaction(conn)
                conn.execute("COMMIT")
            except sqlite3.IntegrityError as e:
                # Constraint violations not already translated by a Transaction method.
                raise Conflict(f"Node store constraint violated: {e}") from e
            except sqlite3.Error as e:
                raise StorageUnavailable(f"Node store error: {e}") from e
        except BaseException:
            if conn.in_transaction:
                try:
                    conn.execute("ROLLBACK")
                except sqlite3.Error:
                    pass
            raise
        finally:
            conn.close()

    def read(self) -> ContextManager[Transaction]:
        """Deferred transaction: a consistent snapshot for multi-query reads."""
        return self._session("BEGIN")

    def write(self) -> ContextManager[Transaction]:
        return self._session("BEGIN IMMEDIATE")

    # --- convenience wrappers ---

    def get(self, node_id: str) -> Optional[Node]:
        with self.read() as tx:
            return tx.get(node_id)

    def get_root(self) -> Optional[RootContainer]:
        with self.read() as tx:
            return tx.get_root()

    def list_top_level(self, root_id: str) -> list[Node]:
        with self.read() as tx:
            return tx.list_top_level(root_id)

    def list_children(self, parent_id: str) -> list[Node]:
        with self.read() as tx:
            return tx.list_children(parent_id)

    def search(self, query: str, *, root_id: Optional[str] = None) -> list[Node]:
        with self.read() as tx:
            return tx.search(query, root_id=root_id)

    def insert(self, node: Node) -> Node:
        with self.write() as tx:
            return tx.insert(node)

    def delete(self, node_id: str) -> bool:
        with self.write() as tx:
            return tx.delete(node_id)
