"""
Extract an Anki package (.apkg) archive.

APKG Layout
-----------
An .apkg file is a ZIP archive containing:

- collection.anki2 and/or collection.anki21 (SQLite database)
- collection.anki21b (zstd-compressed SQLite, Anki 2.1.50+, not supported)
- media (JSON mapping file IDs to filenames)
- 0, 1, 2, ... (media files named by numeric ID)

The database and the media manifest are written to a metadata directory,
everything else goes to the media directory. Archives are untrusted input:
entry names are checked before anything is written so that a crafted
``../../etc/passwd`` entry cannot escape the destination (zip-slip).
"""

import logging
import ntpath
import os
import shutil
import zipfile
from pathlib import Path

from anki_dump.errors import ArchiveError, PathTraversalError

logger = logging.getLogger(__name__)

MEDIA_MANIFEST = "media"
COLLECTION_ANKI2 = "collection.anki2"
COLLECTION_ANKI21 = "collection.anki21"
COLLECTION_ANKI21B = "collection.anki21b"

METADATA_ENTRIES = frozenset(
    {MEDIA_MANIFEST, COLLECTION_ANKI2, COLLECTION_ANKI21, COLLECTION_ANKI21B}
)


def safe_join(root: str | Path, name: str) -> Path:
    """
    Join an untrusted relative name onto a destination root.

    :param root: Destination directory.
    :param name: Untrusted name (zip entry or original media filename).
    :returns: The joined path.
    :raises PathTraversalError: If the name is absolute, starts with a ``..``
        segment, or otherwise resolves outside ``root``.
    """
    error = PathTraversalError(
        f"Archive contains malicious file path {name!r} - aborting for security reasons"
    )
    if not name or os.path.isabs(name) or ntpath.isabs(name):
        raise error

    normalized = os.path.normpath(name.replace("\\", "/"))
    if normalized == os.pardir or normalized.startswith(os.pardir + os.sep):
        raise error

    root_path = os.path.abspath(root)
    target = os.path.abspath(os.path.join(root_path, normalized))
    if os.path.commonpath([root_path, target]) != root_path:
        raise error

    return Path(target)


def _destination(info: zipfile.ZipInfo, meta_root: Path, media_root: Path) -> Path:
    if not info.is_dir() and info.filename in METADATA_ENTRIES:
        return safe_join(meta_root, info.filename)
    return safe_join(media_root, info.filename)


def extract(
    archive_path: str | Path, meta_root: str | Path, media_root: str | Path
) -> list[Path]:
    """
    Extract every entry of an .apkg archive.

    :param archive_path: Path to the .apkg file.
    :param meta_root: Directory for the collection database and media manifest.
    :param media_root: Directory for all other entries (numbered media files).
    :returns: Paths of the extracted files, in archive order.
    :raises ArchiveError: If the archive is missing or not a valid zip file.
    :raises PathTraversalError: If any entry would escape its root. Checked
        for all entries before the first one is written.

    .. note::
        Extraction is not rolled back on error, callers should discard both
        destination directories.
    """
    meta_root = Path(meta_root)
    media_root = Path(media_root)

    try:
        zip_ref = zipfile.ZipFile(archive_path, "r")
    except FileNotFoundError as exc:
        raise ArchiveError(f"Package not found: {archive_path}") from exc
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"Not a valid .apkg (zip) file: {archive_path}") from exc

    extracted = []
    with zip_ref:
        entries = [
            (info, _destination(info, meta_root, media_root))
            for info in zip_ref.infolist()
        ]

        for info, path in entries:
            if info.is_dir():
                path.mkdir(parents=True, exist_ok=True)
                continue

            path.parent.mkdir(parents=True, exist_ok=True)
            try:
                with zip_ref.open(info) as src, open(path, "wb") as dst:
                    shutil.copyfileobj(src, dst)
            except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
                raise ArchiveError(
                    f"Corrupt archive entry {info.filename!r} in {archive_path}"
                ) from exc

            logger.debug("Extracted %s -> %s", info.filename, path)
            extracted.append(path)

    logger.info("Extracted %d files from %s", len(extracted), archive_path)
    return extracted


def select_database(meta_root: str | Path) -> Path:
    """
    Select the collection database extracted into ``meta_root``.

    Newer Anki exports ship a small stub ``collection.anki2`` next to the real
    ``collection.anki21``, so the larger of the two wins.

    :param meta_root: Metadata directory passed to :func:`extract`.
    :returns: Path to the SQLite database to open.
    :raises ArchiveError: If only the unsupported anki21b format is present,
        or no collection database exists.
    """
    meta_root = Path(meta_root)
    path_2 = meta_root / COLLECTION_ANKI2
    path_21 = meta_root / COLLECTION_ANKI21
    path_21b = meta_root / COLLECTION_ANKI21B

    if path_21.exists():
        size_2 = path_2.stat().st_size if path_2.exists() else 0
        if path_21.stat().st_size > size_2:
            logger.info("Using %s", COLLECTION_ANKI21)
            return path_21

    if path_2.exists():
        logger.info("Using %s", COLLECTION_ANKI2)
        return path_2

    if path_21b.exists():
        raise ArchiveError(
            f"Package only contains {COLLECTION_ANKI21B} (zstd-compressed schema), "
            "which is not supported - re-export it with 'Support older Anki versions'"
        )
    raise ArchiveError("Package does not contain a collection database")
