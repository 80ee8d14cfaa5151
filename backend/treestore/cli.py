from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from treestore import config
from treestore.content.blobs import make_blob_store
from treestore.errors import TreeError
from treestore.nodes.repository import NodeRepository
from treestore.nodes.service import FileTreeService


def _print(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _service(args: argparse.Namespace) -> FileTreeService:
    db = Path(args.db) if args.db else config.db_path()
    repo = NodeRepository(db, timeout=config.db_timeout())
    blobs = make_blob_store(root=Path(args.blobs) if args.blobs else None)
    return FileTreeService(repo, blobs=blobs, seed=config.seed_entries())


def _cmd_ls(svc: FileTreeService, args: argparse.Namespace) -> None:
    if args.id:
        _print([n.to_listing() for n in svc.list_children(args.id)])
        return
    listing = svc.list_root()
    _print({"rootId": listing.root_id, "rootFiles": [n.to_listing() for n in listing.nodes]})


def _cmd_info(svc: FileTreeService, args: argparse.Namespace) -> None:
    info = svc.get_info(args.id)
    _print({"count": info.count, "size": info.size})


def _cmd_mkdir(svc: FileTreeService, args: argparse.Namespace) -> None:
    _print(svc.create(args.parent, args.name, "folder").to_dict())


def _cmd_touch(svc: FileTreeService, args: argparse.Namespace) -> None:
    _print(svc.create_file(args.parent, args.name, args.text).to_dict())


def _cmd_upload(svc: FileTreeService, args: argparse.Namespace) -> None:
    src = Path(args.path)
    data = src.read_bytes()
    _print(svc.upload_content(args.parent, args.name or src.name, data).to_dict())


def _cmd_rename(svc: FileTreeService, args: argparse.Namespace) -> None:
    _print(svc.rename(args.id, args.name).to_dict())


def _cmd_rm(svc: FileTreeService, args: argparse.Namespace) -> None:
    res = svc.delete(args.ids)
    _print({"deletedCount": res.deleted, "totalRequested": res.requested})


def _cmd_search(svc: FileTreeService, args: argparse.Namespace) -> None:
    _print([n.to_dict() for n in svc.search(args.query)])


def _cmd_cat(svc: FileTreeService, args: argparse.Namespace) -> None:
    content = svc.read_content(args.id)
    if content is None:
        print("empty")
    elif isinstance(content, bytes):
        sys.stdout.buffer.write(content)
        sys.stdout.flush()
    else:
        print(content)


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn  # noqa: WPS433

    if args.db:
        os.environ["TREESTORE_DB_PATH"] = args.db
    if args.blobs:
        os.environ["TREESTORE_BLOB_DIR"] = args.blobs
    uvicorn.run("treestore.main:create_app", factory=True, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="treestore", description="Inspect and edit a treestore file tree.")
    ap.add_argument("--db", help="Path to the SQLite database (default: $TREESTORE_DB_PATH).")
    ap.add_argument("--blobs", help="Directory for uploaded content (default: $TREESTORE_BLOB_DIR).")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("ls", help="List the top level, or the children of a folder.")
    p.add_argument("id", nargs="?")
    p.set_defaults(func=_cmd_ls)

    p = sub.add_parser("info", help="Descendant count and total size.")
    p.add_argument("id")
    p.set_defaults(func=_cmd_info)

    p = sub.add_parser("mkdir", help="Create a folder.")
    p.add_argument("parent", help="Parent folder id (the root id for the top level).")
    p.add_argument("name")
    p.set_defaults(func=_cmd_mkdir)

    p = sub.add_parser("touch", help="Create a text file.")
    p.add_argument("parent")
    p.add_argument("name")
    p.add_argument("--text", default=None)
    p.set_defaults(func=_cmd_touch)

    p = sub.add_parser("upload", help="Upload a local file.")
    p.add_argument("parent")
    p.add_argument("path")
    p.add_argument("--name", default=None)
    p.set_defaults(func=_cmd_upload)

    p = sub.add_parser("rename")
    p.add_argument("id")
    p.add_argument("name")
    p.set_defaults(func=_cmd_rename)

    p = sub.add_parser("rm", help="Delete nodes (folders recursively).")
    p.add_argument("ids", nargs="+")
    p.set_defaults(func=_cmd_rm)

    p = sub.add_parser("search", help="Case-sensitive name search.")
    p.add_argument("query")
    p.set_defaults(func=_cmd_search)

    p = sub.add_parser("cat", help="Print file content.")
    p.add_argument("id")
    p.set_defaults(func=_cmd_cat)

    p = sub.add_parser("serve", help="Run the HTTP API.")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.set_defaults(func=None)
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    if args.command == "serve":
        return _cmd_serve(args)
    try:
        svc = _service(args)
        args.func(svc, args)
    except TreeError as e:
        print(f"error: {e.kind}: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
