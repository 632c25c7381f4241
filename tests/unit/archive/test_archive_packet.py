"""Tests for ArchivePacket construction and entry naming."""

import pytest

from indexvault.archive.packet import ArchivePacket


def test_packet_requires_index_and_type():
    with pytest.raises(ValueError):
        ArchivePacket(meta={"index": "idx1"}, payload="{}")

    with pytest.raises(ValueError):
        ArchivePacket(meta={"type": "t"}, payload="{}")


def test_settings_packet_has_no_id():
    packet = ArchivePacket.settings("idx1", '{"a":1}')

    assert packet.type == "_settings"
    assert packet.id is None
    assert packet.is_metadata
    assert packet.entry_name() == "idx1/_settings"


def test_mapping_and_alias_packets_are_metadata():
    mapping = ArchivePacket.mapping("idx1", "t", "{}")
    alias = ArchivePacket.alias("idx1", "current", "{}")

    assert mapping.entry_name() == "idx1/t/_mapping"
    assert alias.entry_name() == "idx1/current/_alias"
    assert mapping.is_metadata
    assert alias.is_metadata


def test_document_packet_entry_name():
    packet = ArchivePacket.document("idx1", "t", "42", "_source", '{"x":1}')

    assert not packet.is_metadata
    assert packet.entry_name() == "idx1/t/42/_source"


def test_entry_name_encoding_keeps_slashes_inside_segments():
    packet = ArchivePacket.document("idx1", "t", "a/b c", "_source", "{}")

    assert packet.entry_name() == "idx1/t/a/b c/_source"
    assert packet.entry_name(encode=True) == "idx1/t/a%2Fb%20c/_source"
