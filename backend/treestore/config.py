from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


DEFAULT_SEED = "files:folder"


def _backend_dir() -> Path:
    # backend/treestore/config.py -> backend/
    return Path(__file__).resolve().parents[1]


def db_path() -> Path:
    p = os.environ.get("TREESTORE_DB_PATH")
    if p:
        return Path(p)
    return _backend_dir() / "data" / "treestore.db"


def db_timeout() -> float:
    try:
        return float(os.environ.get("TREESTORE_DB_TIMEOUT", "5"))
    except Exception:
        return 5.0


def seed_entries() -> list[tuple[str, str]]:
    """
    Parse TREESTORE_SEED ("name:kind,name:kind") into (name, kind) pairs.
    An empty value disables seeding; entries without a kind default to folder.
    """
    raw = os.environ.get("TREESTORE_SEED", DEFAULT_SEED)
    out: list[tuple[str, str]] = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        name, _, kind = item.partition(":")
        name = name.strip()
        if not name:
            continue
        out.append((name, kind.strip() or "folder"))
    return out


def blob_dir() -> Path:
    p = os.environ.get("TREESTORE_BLOB_DIR")
    if p:
        return Path(p)
    return _backend_dir() / "data" / "blobs"


def blob_url() -> Optional[str]:
    return os.environ.get("TREESTORE_BLOB_URL", "").strip() or None


def blob_timeout() -> float:
    try:
        return float(os.environ.get("TREESTORE_BLOB_TIMEOUT", "60"))
    except Exception:
        return 60.0


def cors_origins() -> list[str]:
    raw = os.environ.get("TREESTORE_CORS_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()]
