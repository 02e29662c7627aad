"""
Unit tests for client.py with a mocked requests session.
"""
import errno
import json
from unittest.mock import Mock

import pytest
import requests

from booxsync.client import LibraryClient, is_host_unreachable
from booxsync.exceptions import (
    CreateFolderError,
    HostUnreachableError,
    ListingError,
    TransportError,
    UploadError,
)

HOST = "http://192.168.1.20:8085"

ROOT_LISTING = {
    "bookCount": 0,
    "libraryCount": 2,
    "visibleLibraryList": [
        {"name": "Books", "title": "My Books", "idString": "L1",
         "childCount": 2, "libraryCount": 1},
        {"name": "Empty", "title": "Empty", "idString": "L2",
         "childCount": 0, "libraryCount": 0},
    ],
    "visibleBookList": [],
}


def make_response(status=200, payload=None, text=None, reason="OK"):
    response = Mock()
    response.ok = 200 <= status < 400
    response.status_code = status
    response.reason = reason
    response.text = text if text is not None else json.dumps(payload)
    response.content = response.text.encode()
    if payload is None:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return LibraryClient(HOST + "/", timeout=5, session=session)


def test_get_root_requests_plain_library_path(client, session):
    session.get.return_value = make_response(payload=ROOT_LISTING)

    listing = client.get_root()

    session.get.assert_called_once_with(f"{HOST}/api/library", params=None, timeout=5)
    assert listing.library_count == 2
    assert [node.unique_id for node in listing.folders] == ["L1", "L2"]
    books = listing.folders[0]
    assert books.name == "Books"
    assert books.title == "My Books"
    assert books.child_file_count == 2
    assert books.child_folder_count == 1


def test_list_library_sends_args_json(client, session):
    session.get.return_value = make_response(payload={
        "bookCount": 1,
        "libraryCount": 0,
        "visibleLibraryList": [],
        "visibleBookList": [{"name": "a.pdf", "metadata": {"_id": "doc1"}}],
    })

    listing = client.list_library("L1", limit=100, order="Desc", offset=None)

    _, kwargs = session.get.call_args
    assert json.loads(kwargs["params"]["args"]) == {
        "libraryUniqueId": "L1", "limit": 100, "order": "Desc",
    }
    assert listing.files[0].name == "a.pdf"
    assert listing.files[0].document_id == "doc1"


def test_listing_without_lists_decodes_empty(client, session):
    session.get.return_value = make_response(payload={"bookCount": 0})

    listing = client.list_library("L1")

    assert listing.folders == ()
    assert listing.files == ()


def test_listing_error_status(client, session):
    session.get.return_value = make_response(status=503, text="busy", reason="Service Unavailable")

    with pytest.raises(ListingError) as exc_info:
        client.list_library("L1")

    assert exc_info.value.status == 503
    assert "busy" in str(exc_info.value)


def test_listing_invalid_json(client, session):
    session.get.return_value = make_response(text="<html>")

    with pytest.raises(ListingError, match="invalid JSON"):
        client.get_root()


def test_unreachable_host_is_distinguished(client, session):
    cause = OSError(errno.EHOSTUNREACH, "No route to host")
    session.get.side_effect = requests.exceptions.ConnectionError(cause)

    with pytest.raises(HostUnreachableError):
        client.get_root()


def test_other_connection_errors_are_generic(client, session):
    session.get.side_effect = requests.exceptions.ConnectionError("Connection refused")

    with pytest.raises(TransportError) as exc_info:
        client.get_root()

    assert not isinstance(exc_info.value, HostUnreachableError)


def test_timeout_is_a_transport_error(client, session):
    session.get.side_effect = requests.exceptions.ReadTimeout("read timed out")

    with pytest.raises(TransportError):
        client.list_library("L1")


def test_upload_sends_multipart_fields(client, session, tmp_path):
    pdf = tmp_path / "c.pdf"
    pdf.write_bytes(b"%PDF-1.4")
    session.post.return_value = make_response(payload={"successful": True})

    body = client.upload(str(pdf), "L1")

    assert body == {"successful": True}
    args, kwargs = session.post.call_args
    assert args[0] == f"{HOST}/api/library/upload"
    assert kwargs["data"] == {"sender": "web", "parent": "L1"}
    filename, _, content_type = kwargs["files"]["file"]
    assert filename == "c.pdf"
    assert content_type == "application/pdf"
    assert kwargs["timeout"] == 5


def test_upload_error_carries_status_and_body(client, session, tmp_path):
    pdf = tmp_path / "c.pdf"
    pdf.write_bytes(b"%PDF-1.4")
    session.post.return_value = make_response(status=500, text="disk full",
                                              reason="Internal Server Error")

    with pytest.raises(UploadError) as exc_info:
        client.upload(str(pdf), "L1")

    error = exc_info.value
    assert error.status == 500
    assert error.reason == "Internal Server Error"
    assert error.body == "disk full"
    assert str(pdf) in str(error)


def test_upload_missing_file_raises_oserror(client, session, tmp_path):
    with pytest.raises(OSError):
        client.upload(str(tmp_path / "gone.pdf"), "L1")
    session.post.assert_not_called()


def test_is_host_unreachable_follows_cause_chain():
    try:
        try:
            raise OSError(errno.ENETUNREACH, "Network is unreachable")
        except OSError as inner:
            raise RuntimeError("wrapped") from inner
    except RuntimeError as outer:
        assert is_host_unreachable(outer)

    assert is_host_unreachable(Exception("[Errno 113] No route to host"))
    assert not is_host_unreachable(Exception("Connection refused"))


def test_client_closes_session(session):
    with LibraryClient(HOST, session=session):
        pass

    session.close.assert_called_once()


def test_create_folder_posts_name_and_parent(client, session):
    session.post.return_value = make_response(payload={
        "code": 0, "successful": True, "data": {"idString": "N9", "name": "Drafts"},
    })

    folder_id = client.create_folder("Drafts", "L1")

    assert folder_id == "N9"
    session.post.assert_called_once_with(f"{HOST}/api/library",
                                         json={"name": "Drafts", "parent": "L1"}, timeout=5)


def test_create_folder_in_library_root_omits_parent(client, session):
    session.post.return_value = make_response(payload={"data": {"idString": "N1"}})

    client.create_folder("Drafts")

    _, kwargs = session.post.call_args
    assert kwargs["json"] == {"name": "Drafts"}


@pytest.mark.parametrize("response", [
    make_response(status=500, text="nope", reason="Internal Server Error"),
    make_response(payload={"successful": False}),
    make_response(text="<html>"),
])
def test_create_folder_errors(client, session, response):
    session.post.return_value = response

    with pytest.raises(CreateFolderError) as exc_info:
        client.create_folder("Drafts", "L1")

    assert "Drafts" in str(exc_info.value)
