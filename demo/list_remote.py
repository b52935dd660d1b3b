import os
import pprint
import argparse
from getpass import getpass
from typing import List, Dict, Any

from hostdeck.components.formatting import format_modified, human_size
from hostdeck.models.entries import FileEntry
from hostdeck.models.errors import PreconditionError
from hostdeck.models.projection import SORT_DIRECTIONS, SORT_KEYS, project
from hostdeck.services.api.client import FileHostClient


def parse_args():
    parser = argparse.ArgumentParser(description="List one folder of a file host.")
    parser.add_argument(
        "--base-url",
        default=os.getenv("HOSTDECK_BASE_URL", ""),
        help="Server URL (e.g., https://files.example.com)",
    )
    parser.add_argument("--path", default="/", help="Folder to list (default: root)")
    parser.add_argument("--query", default="", help="Only show names containing this text")
    parser.add_argument("--sort", default="name", choices=SORT_KEYS)
    parser.add_argument("--dir", default="asc", choices=SORT_DIRECTIONS)
    parser.add_argument("--client-id", default="", help="Access client ID, if required")
    parser.add_argument(
        "--logs", type=int, default=0, help="Also print the N most recent activity log rows"
    )
    parser.add_argument(
        "--block-ext",
        action="append",
        default=[],
        metavar="EXT",
        help="Add an extension to the server's upload blocklist (repeatable)",
    )
    parser.add_argument(
        "--unblock-ext",
        action="append",
        default=[],
        metavar="EXT",
        help="Remove an extension from the upload blocklist (repeatable)",
    )
    return parser.parse_args()


def describe(entry: FileEntry) -> Dict[str, Any]:
    """
    Flattens a listing entry into printable fields.

    Args:
        entry (FileEntry): One row of a directory listing.

    Returns:
        Dict[str, Any]: name, path, kind, human-readable size and local modified time.
    """
    return {
        "name": entry.name,
        "path": entry.path,
        "kind": "folder" if entry.is_dir else (entry.mime_type or "file"),
        "size": "" if entry.is_dir else human_size(entry.size),
        "modified": format_modified(entry.modified),
    }


def list_folder(client: FileHostClient, path: str, query: str, sort: str, direction: str) -> List[Dict]:
    return [describe(e) for e in project(client.list(path), query, sort, direction)]


def edit_blocked_extensions(
    client: FileHostClient, block: List[str], unblock: List[str]
) -> List[str]:
    """
    Applies blocklist edits to the server settings and saves them.

    Invalid or already-blocked extensions raise PreconditionError before
    anything is sent.

    Returns:
        List[str]: the blocklist as saved.
    """
    settings = client.get_settings()
    for ext in block:
        settings.block_extension(ext)
    for ext in unblock:
        settings.unblock_extension(ext)
    client.update_settings(settings)
    return list(settings.blocked_extensions)


if __name__ == "__main__":
    args = parse_args()
    if not args.base_url:
        raise SystemExit("--base-url or HOSTDECK_BASE_URL is required")
    secret = getpass("Enter access client secret (blank for none): ") if args.client_id else ""

    client = FileHostClient(
        args.base_url, access_client_id=args.client_id, access_client_secret=secret
    )
    if args.block_ext or args.unblock_ext:
        try:
            blocked = edit_blocked_extensions(client, args.block_ext, args.unblock_ext)
        except PreconditionError as e:
            raise SystemExit(str(e))
        pprint.pprint({"blocked_extensions": blocked})

    for row in list_folder(client, args.path, args.query, args.sort, args.dir):
        pprint.pprint(row)

    if args.logs:
        for log in client.logs(limit=args.logs):
            moved = log.transition()
            target = f"{moved[0]} -> {moved[1]}" if moved else log.normalized_path
            pprint.pprint(
                {"when": format_modified(log.timestamp), "action": log.action, "path": target}
            )
