from __future__ import annotations

import json
import os
import re
import threading
import time
from collections import deque
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

_lock = threading.Lock()

_PREFIX = "treestore"


def _backend_dir() -> Path:
    # backend/treestore/logging/ndjson.py -> backend/
    return Path(__file__).resolve().parents[2]


def log_dir() -> Path:
    p = os.environ.get("TREESTORE_LOG_DIR")
    if p:
        return Path(p)
    return _backend_dir() / "data" / "logs"


def _today_prefix(ts: Optional[float] = None) -> str:
    dt = datetime.fromtimestamp(ts or time.time())
    return dt.strftime(f"{_PREFIX}-%Y-%m-%d")


def _max_bytes() -> int:
    try:
        return int(os.environ.get("TREESTORE_LOG_MAX_BYTES", str(50 * 1024 * 1024)))
    except Exception:
        return 50 * 1024 * 1024


def _retention_days() -> int:
    try:
        return int(os.environ.get("TREESTORE_LOG_RETENTION_DAYS", "7"))
    except Exception:
        return 7


def _truncate(v: Any, *, max_len: int = 600) -> Any:
    if v is None:
        return None
    if isinstance(v, str):
        if len(v) <= max_len:
            return v
        return v[:max_len] + f"...(+{len(v) - max_len} chars)"
    if isinstance(v, (int, float, bool)):
        return v
    if isinstance(v, dict):
        out: dict[str, Any] = {}
        for k, vv in list(v.items())[:80]:
            out[str(k)] = _truncate(vv, max_len=max_len)
        if len(v) > 80:
            out["_truncated_keys"] = len(v) - 80
        return out
    if isinstance(v, (list, tuple, set)):
        items = list(v)
        out_list = [_truncate(x, max_len=max_len) for x in items[:80]]
        if len(items) > 80:
            out_list.append({"_truncated_items": len(items) - 80})
        return out_list
    return _truncate(str(v), max_len=max_len)


def _pick_log_file(*, ts: Optional[float] = None) -> Path:
    d = log_dir()
    d.mkdir(parents=True, exist_ok=True)
    prefix = _today_prefix(ts)
    base = d / f"{prefix}.ndjson"
    max_b = _max_bytes()

    if not base.exists():
        return base
    try:
        if base.stat().st_size < max_b:
            return base
    except Exception:
        return base

    # Size exceeded; pick next suffix.
    for i in range(1, 1000):
        p = d / f"{prefix}.{i}.ndjson"
        if not p.exists():
            return p
        try:
            if p.stat().st_size < max_b:
                return p
        except Exception:
            return p
    return base


def _prune_old_files() -> None:
    d = log_dir()
    if not d.exists():
        return
    cutoff = datetime.now() - timedelta(days=_retention_days())
    for p in d.glob(f"{_PREFIX}-*.ndjson"):
        try:
            mtime = datetime.fromtimestamp(p.stat().st_mtime)
            if mtime < cutoff:
                p.unlink(missing_ok=True)
        except Exception:
            continue


def init_logging() -> None:
    """
    Best-effort init: ensure log dir exists and prune old files.
    """
    with _lock:
        log_dir().mkdir(parents=True, exist_ok=True)
        _prune_old_files()


def log_event(
    *,
    level: str,
    event: str,
    data: Optional[dict[str, Any]] = None,
    nodeId: Optional[str] = None,
    requestId: Optional[str] = None,
) -> None:
    """
    Append a single structured NDJSON record.
    Callers pass ids, names and sizes; never file content.
    """
    ts_ms = int(time.time() * 1000)
    rec: dict[str, Any] = {
        "ts": ts_ms,
        "level": level,
        "event": event,
    }
    if nodeId:
        rec["nodeId"] = nodeId
    if requestId:
        rec["requestId"] = requestId
    if data:
        rec["data"] = _truncate(data)

    line = json.dumps(rec, ensure_ascii=False)
    with _lock:
        try:
            _prune_old_files()
            p = _pick_log_file()
            with open(p, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except Exception:
            # Best-effort: never crash the store due to logging.
            pass


_FILE_RE = re.compile(rf"^{_PREFIX}-(\d{{4}}-\d{{2}}-\d{{2}})(?:\.(\d+))?\.ndjson$")


def log_files() -> list[Path]:
    """
    Log files oldest first: by day, then the base file before its .1, .2 ... rollovers.
    """
    d = log_dir()
    if not d.exists():
        return []
    keyed: list[tuple[str, int, Path]] = []
    for p in d.glob(f"{_PREFIX}-*.ndjson"):
        m = _FILE_RE.match(p.name)
        if m:
            keyed.append((m.group(1), int(m.group(2) or 0), p))
    return [p for _, _, p in sorted(keyed)]


def _matches(rec: dict[str, Any], *, event: Optional[str], nodeId: Optional[str]) -> bool:
    if event:
        name = str(rec.get("event", ""))
        # "tree." selects the whole family, "tree.rename" one event
        if not (name == event or (event.endswith(".") and name.startswith(event))):
            return False
    if nodeId:
        if rec.get("nodeId") == nodeId:
            return True
        data = rec.get("data") or {}
        ids = data.get("ids") or data.get("nodeIds") or []
        return isinstance(ids, list) and nodeId in ids
    return True


def read_events(
    *,
    limit: int = 200,
    event: Optional[str] = None,
    nodeId: Optional[str] = None,
) -> list[dict[str, Any]]:
    """
    The last `limit` records matching the filters, oldest first.
    Unparseable lines are skipped.
    """
    out: deque[dict[str, Any]] = deque(maxlen=max(limit, 0))
    for p in log_files():
        try:
            with open(p, "r", encoding="utf-8", errors="ignore") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        rec = json.loads(line)
                    except ValueError:
                        continue
                    if isinstance(rec, dict) and _matches(rec, event=event, nodeId=nodeId):
                        out.append(rec)
        except OSError:
            continue
    return list(out)
