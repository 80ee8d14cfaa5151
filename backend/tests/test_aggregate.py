from __future__ import annotations

import random

import pytest

from treestore.errors import NotFound
from treestore.nodes.aggregate import Aggregator
from treestore.nodes.integrity import TreeIntegrity
from treestore.nodes.model import Node, NodeInfo, RootContainer, now_iso
from treestore.nodes.repository import NodeRepository


@pytest.fixture
def engine(repo: NodeRepository) -> TreeIntegrity:
    return TreeIntegrity(repo)


@pytest.fixture
def aggregator(repo: NodeRepository) -> Aggregator:
    return Aggregator(repo)


def test_folder_info_counts_all_descendants(engine: TreeIntegrity, aggregator: Aggregator, root: RootContainer) -> None:
    music = engine.create(root_id=root.id, parent_id=None, kind="folder", name="Music")
    engine.create(root_id=root.id, parent_id=music.id, kind="file", name="a.mp3", size=100)
    sub = engine.create(root_id=root.id, parent_id=music.id, kind="folder", name="live")
    engine.create(root_id=root.id, parent_id=sub.id, kind="file", name="b.mp3", size=50)
    engine.create(root_id=root.id, parent_id=sub.id, kind="folder", name="empty")

    assert aggregator.info(music.id, root_id=root.id) == NodeInfo(count=4, size=150)
    assert aggregator.info(sub.id, root_id=root.id) == NodeInfo(count=2, size=50)


def test_file_info_is_own_size_without_count(engine: TreeIntegrity, aggregator: Aggregator, root: RootContainer) -> None:
    f = engine.create(root_id=root.id, parent_id=None, kind="file", name="a.bin", size=1457296)
    assert aggregator.info(f.id, root_id=root.id) == NodeInfo(count=0, size=1457296)


def test_empty_folder_and_root(engine: TreeIntegrity, aggregator: Aggregator, root: RootContainer) -> None:
    assert aggregator.info(root.id, root_id=root.id) == NodeInfo(count=0, size=0)
    d = engine.create(root_id=root.id, parent_id=None, kind="folder", name="d")
    assert aggregator.info(d.id, root_id=root.id) == NodeInfo(count=0, size=0)
    assert aggregator.info(root.id, root_id=root.id) == NodeInfo(count=1, size=0)


def test_unknown_id(aggregator: Aggregator, root: RootContainer) -> None:
    with pytest.raises(NotFound):
        aggregator.info("ghost", root_id=root.id)


def test_deep_chain_is_walked_iteratively(repo: NodeRepository, aggregator: Aggregator, root: RootContainer) -> None:
    now = now_iso()
    parent_id = None
    with repo.write() as tx:
        for i in range(3000):
            tx.insert(
                Node(
                    id=f"n{i}",
                    name=f"level{i}",
                    kind="folder",
                    size=0,
                    created_at=now,
                    updated_at=now,
                    root_id=root.id,
                    parent_id=parent_id,
                )
            )
            parent_id = f"n{i}"
        tx.insert(
            Node(
                id="leaf",
                name="leaf.txt",
                kind="file",
                size=9,
                created_at=now,
                updated_at=now,
                root_id=root.id,
                parent_id=parent_id,
            )
        )

    assert aggregator.info("n0", root_id=root.id) == NodeInfo(count=3000, size=9)
    assert aggregator.info(root.id, root_id=root.id) == NodeInfo(count=3001, size=9)


def _random_tree(engine: TreeIntegrity, root: RootContainer, rng: random.Random) -> dict[str, list[Node]]:
    children: dict[str, list[Node]] = {}

    def grow(parent_id, depth: int) -> None:
        key = parent_id or root.id
        children.setdefault(key, [])
        if depth >= 5:
            return
        for i in range(rng.randint(0, 3)):
            if rng.random() < 0.5:
                node = engine.create(root_id=root.id, parent_id=parent_id, kind="folder", name=f"d{depth}-{i}")
                children[key].append(node)
                grow(node.id, depth + 1)
            else:
                node = engine.create(
                    root_id=root.id, parent_id=parent_id, kind="file", name=f"f{depth}-{i}", size=rng.randint(0, 999)
                )
                children[key].append(node)

    grow(None, 0)
    return children


def _expected(children: dict[str, list[Node]], key: str) -> NodeInfo:
    count = 0
    size = 0
    for child in children.get(key, []):
        count += 1
        if child.is_folder:
            sub = _expected(children, child.id)
            count += sub.count
            size += sub.size
        else:
            size += child.size
    return NodeInfo(count=count, size=size)


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_info_matches_structure_on_random_trees(
    engine: TreeIntegrity, aggregator: Aggregator, root: RootContainer, seed: int
) -> None:
    rng = random.Random(seed)
    children = _random_tree(engine, root, rng)

    assert aggregator.info(root.id, root_id=root.id) == _expected(children, root.id)
    for nodes in children.values():
        for node in nodes:
            got = aggregator.info(node.id, root_id=root.id)
            if node.is_folder:
                assert got == _expected(children, node.id)
            else:
                assert got == NodeInfo(count=0, size=node.size)
