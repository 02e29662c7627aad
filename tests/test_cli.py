"""
Tests for the command line interface.
"""
import json
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from booxsync.cli import UNREACHABLE_MESSAGE, cli, format_tree
from booxsync.exceptions import HostUnreachableError, UploadError
from booxsync.models import RemoteTreeIndex


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, sync_root):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"host": "192.168.1.20", "syncRoot": str(sync_root)}),
                    encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("booxsync.cli.setup_logging"):
        yield


def invoke(runner, client, *args):
    with patch("booxsync.cli.LibraryClient", return_value=client) as factory:
        result = runner.invoke(cli, list(args))
    return result, factory


def test_diff_lists_missing_files(runner, books_library, config_file, sync_root):
    result, factory = invoke(runner, books_library, "-c", str(config_file), "diff")

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "2 files not in library"
    assert sorted(lines[1:]) == sorted([
        str(sync_root / "Books" / "c.pdf"),
        str(sync_root / "Drafts" / "d.pdf"),
    ])
    factory.assert_called_once_with("http://192.168.1.20:8085", timeout=30.0)
    assert books_library.uploads == []
    assert books_library.closed


def test_diff_options_override_config(runner, books_library, config_file, tmp_path):
    other_root = tmp_path / "other"
    (other_root / "Books").mkdir(parents=True)
    (other_root / "Books" / "a.pdf").write_bytes(b"")

    result, factory = invoke(runner, books_library, "-c", str(config_file), "diff",
                             "--host", "10.0.0.7:9000", "--sync-root", str(other_root),
                             "--timeout", "0")

    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == ["0 files not in library"]
    factory.assert_called_once_with("http://10.0.0.7:9000", timeout=None)


def test_diff_unreachable_host(runner, books_library, config_file):
    books_library.get_root = Mock(side_effect=HostUnreachableError("no route"))

    result, _ = invoke(runner, books_library, "-c", str(config_file), "diff")

    assert result.exit_code == 1
    assert UNREACHABLE_MESSAGE in result.output


def test_invalid_config_exits(runner, books_library, tmp_path):
    bad = tmp_path / "config.json"
    bad.write_text("{oops", encoding="utf-8")

    result, factory = invoke(runner, books_library, "-c", str(bad), "diff")

    assert result.exit_code == 1
    assert "Invalid config" in result.output
    factory.assert_not_called()


def test_sync_uploads_and_skips(runner, books_library, config_file, sync_root):
    result, _ = invoke(runner, books_library, "-c", str(config_file), "sync")

    assert result.exit_code == 0, result.output
    assert "2 files missing in library" in result.output
    assert f"uploading {sync_root / 'Books' / 'c.pdf'} to L1" in result.output
    assert f"skipping '{sync_root / 'Drafts' / 'd.pdf'}'" in result.output
    assert result.output.rstrip().endswith("library synced")
    assert books_library.uploads == [(str(sync_root / "Books" / "c.pdf"), "L1")]


def test_sync_dry_run(runner, books_library, config_file, sync_root):
    result, _ = invoke(runner, books_library, "-c", str(config_file), "sync", "--dry-run")

    assert result.exit_code == 0, result.output
    assert f"pretending to upload {sync_root / 'Books' / 'c.pdf'} to L1" in result.output
    assert books_library.uploads == []


def test_sync_upload_failure_exits(runner, books_library, config_file, sync_root):
    target = str(sync_root / "Books" / "c.pdf")
    books_library.upload_errors[target] = UploadError(target, 500, "Internal Server Error",
                                                      "disk full")

    result, _ = invoke(runner, books_library, "-c", str(config_file), "sync")

    assert result.exit_code == 1
    assert "disk full" in result.output
    assert "library synced" not in result.output


def test_tree_prints_library(runner, books_library, tmp_path):
    books_library.add_library("Sci-Fi", "L2", files=["dune.pdf"], parent="L1")
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"host": "boox"}), encoding="utf-8")

    result, _ = invoke(runner, books_library, "-c", str(config_file), "tree")

    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == [
        "Books/  [L1]",
        "  Sci-Fi/  [L2]",
        "    dune.pdf",
        "  a.pdf",
        "  b.pdf",
        "Total: 3 file(s) in 2 folder(s)",
    ]


def test_format_tree_depth_limit():
    index = RemoteTreeIndex(
        files=["Books/a.pdf", "Books/Sub/b.pdf", "Papers/p.pdf"],
        folder_ids={"Books": "L1", "Books/Sub": "L2", "Papers": "L3"},
    )

    assert format_tree(index, depth=1) == ["Books/  [L1]", "Papers/  [L3]"]
    assert format_tree(index)[:2] == ["Books/  [L1]", "  Sub/  [L2]"]


def test_sync_create_folders(runner, books_library, config_file, sync_root):
    result, _ = invoke(runner, books_library, "-c", str(config_file), "sync",
                       "--create-folders")

    assert result.exit_code == 0, result.output
    draft = sync_root / "Drafts" / "d.pdf"
    assert f"creating folder Drafts for {draft}" in result.output
    assert f"uploading {draft} to N1" in result.output
    assert "skipping" not in result.output
    assert books_library.created_folders == [("Drafts", None, "N1")]


@pytest.mark.parametrize("timeout", ["soon", -1])
def test_bad_timeout_is_a_config_error(runner, books_library, tmp_path, sync_root, timeout):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"host": "boox", "syncRoot": str(sync_root),
                                       "timeout": timeout}), encoding="utf-8")

    result, factory = invoke(runner, books_library, "-c", str(config_file), "diff")

    assert result.exit_code == 1
    assert "Invalid config: timeout" in result.output
    factory.assert_not_called()


def test_negative_timeout_option_is_rejected(runner, books_library, config_file):
    result, factory = invoke(runner, books_library, "-c", str(config_file), "diff",
                             "--timeout=-1")

    assert result.exit_code == 1
    assert "Invalid config: timeout" in result.output
    factory.assert_not_called()
