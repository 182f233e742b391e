from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from memories_backend.uploader.file_queue import FileQueue
from memories_backend.uploader.files import FileHandle
from memories_backend.uploader.form import FormValidationError
from memories_backend.uploader.notifier import NotificationRelay
from memories_backend.uploader.orchestrator import UploadOrchestrator, UploadState
from memories_backend.uploader.settings import UploaderSettings

EXIT_OK = 0
EXIT_UPLOAD_FAILED = 1
EXIT_INVALID = 2


def build_parser(defaults: UploaderSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memories-upload",
        description="Share photos, videos and a message with the couple.",
    )
    parser.add_argument("files", nargs="*", help="Photos or videos to upload.")
    parser.add_argument("--name", required=True, help="Your name (2-120 characters).")
    parser.add_argument("--message", default="", help="Optional message (10-400 characters).")
    parser.add_argument(
        "--endpoint",
        default=defaults.upload_endpoint,
        help=f"Upload-target endpoint (default: {defaults.upload_endpoint})",
    )
    parser.add_argument(
        "--notify-endpoint",
        default=defaults.notify_endpoint,
        help="Email notification endpoint; pass an empty string to disable.",
    )
    parser.add_argument(
        "--max-files",
        type=int,
        default=defaults.max_files,
        help="Maximum number of queued files (0 = unbounded).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level.")
    return parser


def _load_candidates(paths: list[str]) -> tuple[list[FileHandle], list[str]]:
    handles: list[FileHandle] = []
    missing: list[str] = []
    for raw in paths:
        p = Path(raw)
        if not p.is_file():
            missing.append(raw)
            continue
        handles.append(FileHandle.from_path(p))
    return handles, missing


async def run(args: argparse.Namespace, defaults: UploaderSettings) -> int:
    handles, missing = _load_candidates(list(args.files))
    for raw in missing:
        print(f"No encontramos el archivo: {raw}", file=sys.stderr)

    with FileQueue(max_files=args.max_files or None) as queue:
        added = queue.add(handles)
        if added.message:
            print(added.message, file=sys.stderr)
        if added.truncated:
            print(f"Se omitieron {added.truncated} archivo(s) por superar el límite.", file=sys.stderr)

        names = {entry.id: entry.file.name for entry in queue}

        def _on_state(file_id: str, state: UploadState) -> None:
            if state.terminal:
                print(f"[{state.value}] {names.get(file_id, file_id)}")

        relay = NotificationRelay(endpoint=args.notify_endpoint or None)
        orchestrator = UploadOrchestrator(
            upload_endpoint=args.endpoint,
            notifier=relay,
            timeout_seconds=defaults.timeout_seconds,
            on_state=_on_state,
        )
        try:
            result = await orchestrator.submit(
                queue.files, {"full_name": args.name, "message": args.message}
            )
        except FormValidationError as e:
            for field_name, msg in e.errors.items():
                print(f"{field_name}: {msg}", file=sys.stderr)
            return EXIT_INVALID
        finally:
            await relay.aclose()

        print(result.message)
        if not result.ok:
            return EXIT_UPLOAD_FAILED
        queue.clear()
        return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    defaults = UploaderSettings()
    args = build_parser(defaults).parse_args(argv)
    level = logging.INFO if args.verbose else getattr(logging, defaults.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level)
    return asyncio.run(run(args, defaults))


if __name__ == "__main__":
    raise SystemExit(main())
