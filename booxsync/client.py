"""HTTP client for the Boox library API."""

import errno
import json
import os
from typing import Any, Dict, Optional

import requests

from .exceptions import (
    CreateFolderError,
    HostUnreachableError,
    ListingError,
    TransportError,
    UploadError,
)
from .logger import http_logger
from .models import RemoteListing

API_PATH = '/api/library'
UPLOAD_PATH = '/api/library/upload'
UPLOAD_SENDER = 'web'
UPLOAD_CONTENT_TYPE = 'application/pdf'

_UNREACHABLE_ERRNOS = {errno.EHOSTUNREACH, errno.ENETUNREACH}
_UNREACHABLE_MARKERS = ('no route to host', 'host is unreachable', 'network is unreachable')


def is_host_unreachable(error: BaseException) -> bool:
    """Check whether a transport error means the device cannot be reached.

    Walks the exception's cause/context chain looking for EHOSTUNREACH or
    ENETUNREACH, falling back to the message text urllib3 wraps them in.
    """
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, OSError) and current.errno in _UNREACHABLE_ERRNOS:
            return True
        for arg in getattr(current, 'args', ()):
            if isinstance(arg, BaseException) and id(arg) not in seen:
                if is_host_unreachable(arg):
                    return True
        current = current.__cause__ or current.__context__
    message = str(error).lower()
    return any(marker in message for marker in _UNREACHABLE_MARKERS)


class LibraryClient:
    """Talks to the library endpoints of one device."""

    def __init__(self, host: str, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None, logger=None):
        """Initialize client.

        Args:
            host: Base URL, e.g. http://192.168.1.20:8085
            timeout: Per-request timeout in seconds (None waits forever)
            session: requests session to use. A new one is created if None.
            logger: Logger for request lines. Defaults to booxsync.http
        """
        self.host = host.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or http_logger

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> 'LibraryClient':
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def get_root(self) -> RemoteListing:
        """List the library root.

        Returns:
            RemoteListing of the root

        Raises:
            TransportError: If the host cannot be reached
            ListingError: If the response is not a successful JSON listing
        """
        return self._fetch_listing(None)

    def list_library(self, unique_id: str, **params: Any) -> RemoteListing:
        """List one library (folder).

        Args:
            unique_id: The library's idString
            **params: Optional limit, offset, sortBy, order, passed through

        Returns:
            RemoteListing of that library
        """
        args: Dict[str, Any] = {'libraryUniqueId': unique_id}
        args.update({k: v for k, v in params.items() if v is not None})
        return self._fetch_listing(args)

    def _fetch_listing(self, args: Optional[Dict[str, Any]]) -> RemoteListing:
        url = f"{self.host}{API_PATH}"
        query = {'args': json.dumps(args, separators=(',', ':'))} if args else None
        self.logger.debug(f"GET {API_PATH} {query['args'] if query else ''}".rstrip())

        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise self._transport_error(e) from e

        if not response.ok:
            raise ListingError(
                f"listing {url} failed with {response.status_code} {response.reason}, "
                f"body: {response.text}",
                status=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ListingError(f"listing {url} returned invalid JSON: {e}",
                               status=response.status_code) from e
        if not isinstance(data, dict):
            raise ListingError(f"listing {url} returned unexpected payload",
                               status=response.status_code)
        return RemoteListing.from_json(data)

    def upload(self, local_path: str, parent_id: str) -> Any:
        """Upload a file into a library folder.

        Args:
            local_path: Absolute path of the local file
            parent_id: idString of the destination library

        Returns:
            Decoded JSON body of the response (None if the body is empty)

        Raises:
            TransportError: If the host cannot be reached
            UploadError: If the device answers with a non-success status
        """
        url = f"{self.host}{UPLOAD_PATH}"
        filename = os.path.basename(local_path)
        self.logger.debug(f"POST {UPLOAD_PATH} {filename} -> {parent_id}")

        with open(local_path, 'rb') as f:
            try:
                response = self.session.post(
                    url,
                    data={'sender': UPLOAD_SENDER, 'parent': parent_id},
                    files={'file': (filename, f, UPLOAD_CONTENT_TYPE)},
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as e:
                raise self._transport_error(e) from e

        if not response.ok:
            raise UploadError(local_path, response.status_code, response.reason or '',
                              response.text)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        """Create a library folder.

        Args:
            name: Folder name
            parent_id: idString of the library to create it in (None for
                the library root)

        Returns:
            idString of the new folder

        Raises:
            TransportError: If the host cannot be reached
            CreateFolderError: If the device refuses or answers without an id
        """
        url = f"{self.host}{API_PATH}"
        payload = {'name': name}
        if parent_id:
            payload['parent'] = parent_id
        self.logger.debug(f"POST {API_PATH} {payload}")

        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise self._transport_error(e) from e

        if not response.ok:
            raise CreateFolderError(name, response.status_code, response.reason or '',
                                    response.text)
        try:
            data = response.json()
        except ValueError as e:
            raise CreateFolderError(name, response.status_code, 'invalid JSON',
                                    response.text) from e
        folder = data.get('data') if isinstance(data, dict) else None
        folder_id = folder.get('idString') if isinstance(folder, dict) else None
        if not folder_id:
            raise CreateFolderError(name, response.status_code, 'no folder id in response',
                                    response.text)
        return folder_id

    def _transport_error(self, error: Exception) -> TransportError:
        if is_host_unreachable(error):
            return HostUnreachableError(f"{self.host} is unreachable: {error}")
        return TransportError(f"request to {self.host} failed: {error}")
