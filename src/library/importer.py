# library/importer.py
from __future__ import annotations

import logging
import mimetypes
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Tuple

from mutagen import File as MutagenFile
from mutagen import MutagenError

from core.errors import StorageError, ValidationError
from core.models import ImportReport, UploadItem
from db.blob_store import AUDIO_MIME_PREFIX, validate_mime_type

logger = logging.getLogger(__name__)

AUDIO_EXTS = {".mp3", ".m4a", ".flac", ".ogg", ".opus", ".wav", ".aac", ".weba"}

DEFAULT_WORKERS = 4


def iter_audio_paths(paths: Iterable[str]) -> list[str]:
    """
    Expand directories into the audio files they contain (by extension).
    Explicit file arguments are kept as-is; their type is checked on import.
    """
    out: list[str] = []
    for p in paths:
        if not p:
            continue
        if os.path.isdir(p):
            for dirpath, _, filenames in os.walk(p):
                for fn in sorted(filenames):
                    ext = os.path.splitext(fn)[1].lower()
                    if ext in AUDIO_EXTS:
                        out.append(os.path.join(dirpath, fn))
        else:
            out.append(p)
    return out


def detect_mime_type(path: str) -> Optional[str]:
    """Ask mutagen first (reads the header), then fall back to the extension."""
    try:
        audio = MutagenFile(path)
    except (MutagenError, OSError) as e:
        logger.debug("mutagen could not parse %s: %s", path, e)
        audio = None

    if audio is not None:
        for mime in getattr(audio, "mime", []) or []:
            if mime.startswith(AUDIO_MIME_PREFIX):
                return mime

    guessed, _ = mimetypes.guess_type(path)
    return guessed


def read_upload_item(path: str) -> UploadItem:
    with open(path, "rb") as fh:
        data = fh.read()
    return UploadItem(
        file_name=os.path.basename(path),
        mime_type=detect_mime_type(path) or "application/octet-stream",
        data=data,
    )


def load_batch(paths: Iterable[str], max_workers: int = DEFAULT_WORKERS) -> Tuple[List[UploadItem], List[Tuple[str, str]]]:
    """Read files concurrently; returns (items in input order, [(file_name, reason)] for unreadable files)."""
    paths = list(paths)
    items: List[UploadItem] = []
    failures: List[Tuple[str, str]] = []

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = [(p, pool.submit(read_upload_item, p)) for p in paths]
        for p, fut in futures:
            try:
                items.append(fut.result())
            except OSError as e:
                failures.append((os.path.basename(p), f"unreadable: {e.strerror or e}"))
    return items, failures


def _store_item(store, item: UploadItem) -> None:
    validate_mime_type(item.mime_type)
    store.put(item.file_name, item.data, item.mime_type)


def import_batch(store, items: Iterable[UploadItem], max_workers: int = DEFAULT_WORKERS) -> ImportReport:
    """
    Validate and store each item independently. Bad items are skipped with a
    reason and do not affect the rest of the batch.
    """
    items = list(items)
    report = ImportReport()

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = [(item, pool.submit(_store_item, store, item)) for item in items]
        for item, fut in futures:
            try:
                fut.result()
            except ValidationError as e:
                report.skipped.append((item.file_name, str(e)))
            except StorageError as e:
                report.skipped.append((item.file_name, str(e)))
                if report.storage_error is None:
                    report.storage_error = e
            else:
                report.saved.append(item.file_name)

    logger.info("Imported %d track(s), skipped %d", len(report.saved), len(report.skipped))
    return report


def first_playable(items: Iterable[UploadItem]) -> Optional[UploadItem]:
    for item in items:
        try:
            validate_mime_type(item.mime_type)
        except ValidationError:
            continue
        return item
    return None
