"""
Shared fixtures.
"""
import pytest

from tests.fixtures.fake_client import FakeLibraryClient


@pytest.fixture
def fake_client():
    """An empty in-memory library."""
    return FakeLibraryClient()


@pytest.fixture
def books_library(fake_client):
    """Library with a single folder "Books" (id L1) holding a.pdf and b.pdf."""
    fake_client.add_library("Books", "L1", files=["a.pdf", "b.pdf"])
    return fake_client


@pytest.fixture
def sync_root(tmp_path):
    """Local folder with Books/a.pdf, Books/c.pdf and Drafts/d.pdf."""
    root = tmp_path / "library"
    (root / "Books").mkdir(parents=True)
    (root / "Drafts").mkdir()
    (root / "Books" / "a.pdf").write_bytes(b"%PDF-a")
    (root / "Books" / "c.pdf").write_bytes(b"%PDF-c")
    (root / "Drafts" / "d.pdf").write_bytes(b"%PDF-d")
    return root
