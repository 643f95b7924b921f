"""
Gzip compression of staged backup files.

The staged file is streamed through gzip in fixed-size chunks so memory use
does not grow with the size of the source file.
"""

import gzip
import logging
import os
import shutil

from .snapshot import COPY_CHUNK_SIZE

logger = logging.getLogger(__name__)

COMPRESSED_EXTENSION = '.gz'


class CompressionError(Exception):
    """Raised when the compressed artifact cannot be produced."""
    pass


def compress_file(src_path: str, dst_path: str, compresslevel: int = 9) -> str:
    """
    Compress src_path into a gzip file at dst_path.

    The gzip trailer is written when the stream is closed; dst_path is only
    complete once this function returns. On failure any partial dst_path is
    removed.

    Args:
        src_path: Uncompressed input file
        dst_path: Gzip file to create
        compresslevel: gzip level (1-9)

    Returns:
        dst_path

    Raises:
        CompressionError: If reading, compressing or writing fails
    """
    try:
        with open(src_path, 'rb') as src:
            with gzip.open(dst_path, 'wb', compresslevel=compresslevel) as dst:
                shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)
    except Exception as e:
        # Never leave a truncated archive behind
        if os.path.exists(dst_path):
            try:
                os.remove(dst_path)
            except OSError as cleanup_error:
                logger.warning(f"Failed to remove partial archive {dst_path}: {cleanup_error}")
        raise CompressionError(f"Failed to compress {src_path}: {e}") from e

    return dst_path


def get_file_size(path: str) -> int:
    """
    Get the size of a file in bytes.

    Raises:
        CompressionError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(path)
    except FileNotFoundError:
        raise CompressionError(f"Archive not found: {path}")
    except OSError as e:
        raise CompressionError(f"Failed to get archive size: {e}")
