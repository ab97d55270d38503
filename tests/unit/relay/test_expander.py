"""Unit tests for relay/expander.py — recursive listing expansion."""

import asyncio
from unittest.mock import MagicMock

import pytest

from ctfile_relay.errors import UpstreamError
from ctfile_relay.relay.expander import expand_listing
from ctfile_relay.upstream.client import UpstreamClient
from ctfile_relay.upstream.models import FlatFile, ListingEntry

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _file(id: str, name: str) -> ListingEntry:
    return ListingEntry(id=id, display_name=name, is_container=False)


def _folder(id: str, name: str) -> ListingEntry:
    return ListingEntry(id=id, display_name=name, is_container=True)


def _client_for(tree: dict[str | None, list[ListingEntry]]) -> MagicMock:
    """Return an UpstreamClient mock whose list_directory serves ``tree``."""
    client = MagicMock(spec=UpstreamClient)
    client.list_directory.side_effect = lambda link, credential, folder_id=None: tree[folder_id]
    return client


# ---------------------------------------------------------------------------
# expand_listing tests
# ---------------------------------------------------------------------------


class TestExpandListing:
    def test_flat_root_returns_files_with_bare_names(self) -> None:
        client = _client_for({None: [_file("f1", "a.txt"), _file("f2", "b.txt")]})

        files = asyncio.run(expand_listing(client, "ctfile://abc", "tok"))

        assert files == [FlatFile(id="f1", path="a.txt"), FlatFile(id="f2", path="b.txt")]
        client.list_directory.assert_called_once_with("ctfile://abc", "tok", None)

    def test_nested_folders_are_flattened_depth_first(self) -> None:
        tree = {
            None: [_file("f1", "readme.txt"), _folder("d1", "Docs"), _file("f2", "z.bin")],
            "d1": [_folder("d2", "Old"), _file("f3", "new.pdf")],
            "d2": [_file("f4", "old.pdf")],
        }
        client = _client_for(tree)

        files = asyncio.run(expand_listing(client, "ctfile://abc", "tok"))

        assert files == [
            FlatFile(id="f1", path="readme.txt"),
            FlatFile(id="f4", path="Docs/Old/old.pdf"),
            FlatFile(id="f3", path="Docs/new.pdf"),
            FlatFile(id="f2", path="z.bin"),
        ]

    def test_tree_of_depth_d_yields_one_file_per_leaf(self) -> None:
        # Three levels of two folders each, two files in every deepest folder.
        tree: dict[str | None, list[ListingEntry]] = {}
        expected: list[FlatFile] = []

        def build(folder_id: str | None, names: tuple[str, ...], depth: int) -> None:
            if depth == 3:
                tree[folder_id] = [
                    _file(f"f-{folder_id}-{i}", f"file{i}.bin") for i in range(2)
                ]
                expected.extend(
                    FlatFile(id=f"f-{folder_id}-{i}", path="/".join((*names, f"file{i}.bin")))
                    for i in range(2)
                )
                return
            children = [_folder(f"d{folder_id or ''}{i}", f"dir{i}") for i in range(2)]
            tree[folder_id] = children
            for child in children:
                build(child.id, (*names, child.display_name), depth + 1)

        build(None, (), 0)
        client = _client_for(tree)

        files = asyncio.run(expand_listing(client, "ctfile://abc", "tok"))

        assert len(files) == 16
        assert files == expected
        assert files[0].path == "dir0/dir0/dir0/file0.bin"

    def test_sibling_folders_are_listed_by_folder_id(self) -> None:
        tree = {
            None: [_folder("d1", "A"), _folder("d2", "B")],
            "d1": [_file("f1", "1.txt")],
            "d2": [_file("f2", "2.txt")],
        }
        client = _client_for(tree)

        asyncio.run(expand_listing(client, "ctfile://abc", "tok"))

        folder_ids = {c.args[2] for c in client.list_directory.call_args_list}
        assert folder_ids == {None, "d1", "d2"}
        assert client.list_directory.call_count == 3

    def test_empty_folders_contribute_nothing(self) -> None:
        client = _client_for({None: [_folder("d1", "Empty")], "d1": []})

        assert asyncio.run(expand_listing(client, "ctfile://abc", "tok")) == []

    def test_listing_failure_aborts_expansion(self) -> None:
        client = MagicMock(spec=UpstreamClient)

        def list_directory(link: str, credential: str, folder_id: str | None = None) -> list:
            if folder_id == "d1":
                raise UpstreamError(500, "Internal Server Error")
            return [_folder("d1", "Broken"), _file("f1", "ok.txt")]

        client.list_directory.side_effect = list_directory

        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(expand_listing(client, "ctfile://abc", "tok"))

        assert exc_info.value.status_code == 500
