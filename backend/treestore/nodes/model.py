from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Optional


NodeKind = Literal["file", "folder"]

NODE_KINDS: tuple[str, ...] = ("file", "folder")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def advance_iso(previous: str) -> str:
    """
    Return a timestamp strictly later than `previous`, normally "now".
    Guards against coarse clocks handing out the same value twice.
    """
    now = now_iso()
    try:
        prev_dt = datetime.fromisoformat(previous)
    except (TypeError, ValueError):
        return now
    if datetime.fromisoformat(now) > prev_dt:
        return now
    return (prev_dt + timedelta(microseconds=1)).isoformat(timespec="microseconds")


@dataclass
class Node:
    id: str
    name: str
    kind: NodeKind
    size: int
    created_at: str
    updated_at: str
    root_id: str
    parent_id: Optional[str] = None
    content_ref: Optional[str] = None
    text: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.kind == "folder"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.kind,
            "size": self.size,
            "createdDate": self.created_at,
            "lastUpdatedDate": self.updated_at,
            "fileFolderId": self.root_id,
            "parentFileId": self.parent_id,
            "fileReference": self.content_ref,
            "hasText": self.text is not None,
        }

    def to_listing(self) -> dict[str, Any]:
        # Flattened shape of the file browser listing; folders carry no size.
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "date": self.updated_at,
            "type": self.kind,
        }
        if self.kind == "file":
            out["size"] = self.size
        return out


@dataclass
class RootContainer:
    id: str
    name: str
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class NodeInfo:
    count: int
    size: int


@dataclass(frozen=True)
class DeleteResult:
    requested: int
    deleted: int
    # Total rows removed, cascaded descendants included.
    removed: int = 0


@dataclass
class RootListing:
    root_id: str
    nodes: list[Node] = field(default_factory=list)
