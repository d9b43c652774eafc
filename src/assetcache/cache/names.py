"""
Asset file names that carry their own metadata.

The file name is base64("<content_type>:<content_length>"), so no separate
index is needed to know what a cached file holds. Content types containing
":" are not supported.
"""

from __future__ import annotations

import base64
import binascii

from assetcache.exceptions import CorruptEntryError

DELIMITER = ":"

# "/" is part of the standard base64 alphabet but cannot appear in a file name.
_SLASH_SUBSTITUTE = "_"

TEMP_PREFIX = "."

# NAME_MAX on common filesystems (ext4, APFS, NTFS)
MAX_NAME_LENGTH = 255


def encode_asset_name(content_type: str, content_length: int | str) -> str:
    """Encode content type and length as a file name."""
    raw = f"{content_type}{DELIMITER}{content_length}".encode("utf-8")
    return base64.b64encode(raw).decode("ascii").replace("/", _SLASH_SUBSTITUTE)


def decode_asset_name(name: str) -> tuple[str, int]:
    """Decode a file name produced by encode_asset_name.

    Args:
        name: Base name of an asset file.

    Returns:
        Tuple of (content_type, content_length).

    Raises:
        CorruptEntryError: If the name is not valid base64, lacks the
            delimiter, or carries a length that is not a non-negative integer.
    """
    try:
        raw = base64.b64decode(name, altchars=b"+" + _SLASH_SUBSTITUTE.encode(), validate=True)
        decoded = raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise CorruptEntryError(
            "Asset file name is not decodable",
            context={"name": name, "error": str(e)},
        ) from e

    content_type, sep, length_text = decoded.partition(DELIMITER)
    if not sep or not (length_text.isascii() and length_text.isdigit()):
        raise CorruptEntryError(
            "Asset file name has no valid content length",
            context={"name": name, "decoded": decoded},
        )

    return content_type, int(length_text)


def is_temporary_name(name: str) -> bool:
    """Whether a directory entry is an in-flight write.

    Base64 output never starts with ".", so committed names never match.
    """
    return name.startswith(TEMP_PREFIX)
