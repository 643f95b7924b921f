"""
Snapshot of the live source file.

Copies the source file's current bytes to a staging path so the rest of the
backup run works on a stable copy rather than the file being written to.
"""

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

# 1MB copy buffer
COPY_CHUNK_SIZE = 1024 * 1024


class BackupError(Exception):
    """Raised when the source file cannot be copied to the staging path."""
    pass


def create_snapshot(source_path: str, dest_path: str) -> str:
    """
    Copy source_path verbatim to dest_path.

    Missing parent directories of dest_path are created. A partially written
    destination is left in place; the caller is responsible for removing it.

    Args:
        source_path: File to back up
        dest_path: Staging file to create

    Returns:
        dest_path

    Raises:
        BackupError: If the source cannot be read or the destination written
    """
    source = Path(source_path)
    dest = Path(dest_path)

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BackupError(f"Failed to create backup directory {dest.parent}: {e}") from e

    try:
        src = open(source, 'rb')
    except FileNotFoundError as e:
        raise BackupError(f"Source file does not exist: {source_path}") from e
    except PermissionError as e:
        raise BackupError(f"Permission denied reading {source_path}: {e}") from e
    except OSError as e:
        raise BackupError(f"Failed to open source file {source_path}: {e}") from e

    with src:
        if not source.is_file():
            raise BackupError(f"Source is not a regular file: {source_path}")

        try:
            with open(dest, 'wb') as dst:
                shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)
        except PermissionError as e:
            raise BackupError(f"Permission denied writing to {dest_path}: {e}") from e
        except OSError as e:
            raise BackupError(f"Failed to copy {source_path}: {e}") from e

    logger.debug(f"Snapshot of {source_path} written to {dest_path}")
    return str(dest)
