"""
Read the media manifest and restore original media filenames.

Inside an .apkg the media files are stored under numeric names (``0``, ``1``,
...). The ``media`` entry maps those names back to the original filenames::

    {"0": "audio.mp3", "1": "image.png"}
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from anki_dump.archive import safe_join
from anki_dump.errors import ConfigurationError, IntegrityError

logger = logging.getLogger(__name__)

_MANIFEST = TypeAdapter(dict[str, str])


def resolve_media(manifest_path: str | Path) -> dict[str, str]:
    """
    Load the media manifest.

    :param manifest_path: Path to the extracted ``media`` file.
    :returns: Dict mapping numeric file IDs (as strings) to original filenames.
    :raises ConfigurationError: If the file is missing, is not valid JSON, or
        is not an object of strings. Media cannot be renamed blind.
    """
    try:
        content = Path(manifest_path).read_bytes()
    except FileNotFoundError as exc:
        raise ConfigurationError(
            f"Package has no media manifest ({manifest_path})"
        ) from exc

    try:
        return _MANIFEST.validate_json(content, strict=True)
    except ValidationError as exc:
        raise ConfigurationError(f"Malformed media manifest: {exc}") from exc


def rename_media(mapping: dict[str, str], media_root: str | Path) -> dict[str, Path]:
    """
    Rename extracted numeric media files to their original names.

    Original names come from the package and are untrusted, so each one is
    checked against ``media_root`` before renaming. An original name may equal
    another entry's numeric name (``{"0": "1", "1": "a.mp3"}``), so every
    source is first moved into a staging directory and only then to its final
    name.

    :param mapping: Manifest from :func:`resolve_media`.
    :param media_root: Directory the media files were extracted to.
    :returns: Dict mapping original filenames to their final paths.
    :raises PathTraversalError: If an original name escapes ``media_root``.
    :raises IntegrityError: If a file listed in the manifest was not extracted,
        or two entries restore to the same filename.
    """
    moves = [
        (file_id, original, safe_join(media_root, file_id), safe_join(media_root, original))
        for file_id, original in mapping.items()
    ]

    claimed = {}
    sources = set()
    for file_id, original, src, dst in moves:
        if src in sources:
            raise IntegrityError(f"Media file {file_id!r} is listed twice in manifest")
        sources.add(src)
        if not src.is_file():
            raise IntegrityError(
                f"Media file {file_id!r} ({original!r}) listed in manifest is missing"
            )
        if dst in claimed:
            raise IntegrityError(
                f"Media files {claimed[dst]!r} and {file_id!r} "
                f"are both named {original!r}"
            )
        claimed[dst] = file_id

    staging = Path(tempfile.mkdtemp(prefix=".staging-", dir=media_root))
    try:
        staged = []
        for index, (file_id, original, src, dst) in enumerate(moves):
            os.replace(src, staging / str(index))
            staged.append((staging / str(index), file_id, original, dst))

        renamed = {}
        for src, file_id, original, dst in staged:
            dst.parent.mkdir(parents=True, exist_ok=True)
            os.replace(src, dst)
            logger.debug("Renamed media %s -> %s", file_id, original)
            renamed[original] = dst
    finally:
        shutil.rmtree(staging, ignore_errors=True)

    logger.info("Restored %d media filenames", len(renamed))
    return renamed
