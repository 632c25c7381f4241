"""Unit tests for export command option parsing."""

import pytest
import typer

from indexvault.cli.commands.export import build_request, parse_query, parse_rename
from indexvault.cli.output import format_bytes


def test_parse_rename():
    assert parse_rename(["idx1=copy1", " idx1/t = copy1/u "]) == {
        "idx1": "copy1",
        "idx1/t": "copy1/u",
    }
    assert parse_rename(None) == {}


@pytest.mark.parametrize("pair", ["idx1", "=copy1", "idx1=", "idx1/t=copy1/", "idx1/=copy1"])
def test_parse_rename_rejects_malformed_pairs(pair):
    with pytest.raises(typer.BadParameter):
        parse_rename([pair])


def test_parse_query():
    assert parse_query('{"query": {"term": {"a": 1}}}') == {"query": {"term": {"a": 1}}}
    assert parse_query(None) is None


@pytest.mark.parametrize("text", ["{not json", "[1, 2]"])
def test_parse_query_rejects_non_objects(text):
    with pytest.raises(typer.BadParameter):
        parse_query(text)


def test_build_request_falls_back_to_config(sample_config):
    request = build_request(
        sample_config,
        index="idx1",
        type_="",
        path=None,
        overwrite=False,
        encode_entries=True,
        with_metadata=True,
        with_aliases=False,
        bytes_to_transfer=None,
        scroll_timeout=None,
        scroll_size=None,
        query=None,
        index_types=["idx2/t"],
        rename=["idx1=copy1"],
    )

    assert request.path == sample_config.export.default_path
    assert request.timeout == sample_config.export.scroll_timeout
    assert request.scroll_size == sample_config.export.scroll_size
    assert request.encode_entry is True
    assert request.with_aliases is False
    assert request.index_types == ["idx2/t"]
    assert request.rename == {"idx1": "copy1"}


def test_format_bytes():
    assert format_bytes(512) == "512 B"
    assert format_bytes(2048) == "2.0 KiB"
    assert format_bytes(5 * 1024 * 1024) == "5.0 MiB"
