"""
Tests for metadata-carrying asset file names.
"""

from __future__ import annotations

import pytest

from assetcache.cache.names import decode_asset_name, encode_asset_name, is_temporary_name
from assetcache.exceptions import CorruptEntryError


class TestEncodeAssetName:
    """Test file name encoding."""

    def test_encodes_content_type_and_length(self) -> None:
        assert encode_asset_name("image/png", 4096) == "aW1hZ2UvcG5nOjQwOTY="

    def test_string_length_encodes_the_same(self) -> None:
        assert encode_asset_name("image/png", "4096") == "aW1hZ2UvcG5nOjQwOTY="

    @pytest.mark.parametrize(
        ("content_type", "length", "expected"),
        [
            ("text/html; charset=utf-8", 120, "dGV4dC9odG1sOyBjaGFyc2V0PXV0Zi04OjEyMA=="),
            ("application/octet-stream", 0, "YXBwbGljYXRpb24vb2N0ZXQtc3RyZWFtOjA="),
            ("image/svg+xml", 999, "aW1hZ2Uvc3ZnK3htbDo5OTk="),
        ],
    )
    def test_matches_plain_base64(self, content_type: str, length: int, expected: str) -> None:
        assert encode_asset_name(content_type, length) == expected

    def test_slash_is_replaced(self) -> None:
        """Plain base64 of '?>?:1' is 'Pz4/OjE=', which is not a valid file name."""
        name = encode_asset_name("?>?", 1)
        assert "/" not in name
        assert name == "Pz4_OjE="


class TestDecodeAssetName:
    """Test file name decoding."""

    def test_decodes_content_type_and_length(self) -> None:
        assert decode_asset_name("aW1hZ2UvcG5nOjQwOTY=") == ("image/png", 4096)

    @pytest.mark.parametrize(
        ("content_type", "length"),
        [
            ("image/png", 0),
            ("text/html; charset=utf-8", 120),
            ("", 17),
            ("?>?", 1),
            ("application/vnd.ms-excel", 10 ** 12),
        ],
    )
    def test_inverts_encode(self, content_type: str, length: int) -> None:
        assert decode_asset_name(encode_asset_name(content_type, length)) == (
            content_type,
            length,
        )

    def test_content_type_with_delimiter_is_not_supported(self) -> None:
        """Only the first ':' separates the fields."""
        with pytest.raises(CorruptEntryError):
            decode_asset_name(encode_asset_name("weird:type", 5))

    @pytest.mark.parametrize(
        "name",
        [
            "not base64!",
            "aW1hZ2UvcG5n",  # "image/png", no delimiter
            "dGV4dC9wbGFpbjotMQ==",  # "text/plain:-1"
            "dGV4dC9wbGFpbjo=",  # "text/plain:"
            "//79",  # not UTF-8
        ],
    )
    def test_undecodable_names_are_corrupt(self, name: str) -> None:
        with pytest.raises(CorruptEntryError) as exc_info:
            decode_asset_name(name)
        assert exc_info.value.context["name"] == name


def test_temporary_names() -> None:
    assert is_temporary_name(".tmp_0191")
    assert not is_temporary_name(encode_asset_name("image/png", 1))
