"""Remote and local tree traversal.

Both walkers hand their tree to ``traverse``: a node's children are
submitted to the shared pool as soon as that node has been listed, without
waiting for its siblings. No pool task ever waits on another, so a bounded
``max_workers`` cannot deadlock.
"""

import os
import posixpath
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from .client import LibraryClient
from .logger import diff_logger
from .models import RemoteListing, RemoteNode, RemoteTreeIndex

T = TypeVar('T', bound=Hashable)
R = TypeVar('R')

# No cap: the pool only grows while every existing thread is busy
UNBOUNDED_WORKERS = sys.maxsize


def traverse(visit: Callable[[T], Tuple[R, Iterable[T]]], roots: Iterable[T],
             max_workers: Optional[int] = None) -> Dict[T, R]:
    """Visit a tree concurrently.

    Args:
        visit: Called once per node, returns ``(result, children)``. The
            children are queued as soon as it returns.
        roots: Nodes to start from
        max_workers: Max visits running at once (None = unbounded)

    Returns:
        Mapping of every visited node to its result

    Raises:
        Exception: The first exception raised by ``visit``; visits that
            have not started yet are cancelled
    """
    results: Dict[T, R] = {}
    errors: List[Exception] = []
    lock = threading.Lock()
    finished = threading.Event()
    executor = ThreadPoolExecutor(max_workers=max_workers or UNBOUNDED_WORKERS)
    # The caller holds one slot until every root is queued
    state = {'pending': 1, 'closed': False}

    def release() -> None:
        state['pending'] -= 1
        if state['pending'] == 0:
            finished.set()

    def submit(node: T) -> None:
        with lock:
            if state['closed'] or errors:
                return
            state['pending'] += 1
            executor.submit(run, node)

    def run(node: T) -> None:
        try:
            result, children = visit(node)
        except Exception as e:
            with lock:
                errors.append(e)
                finished.set()
                release()
            return
        with lock:
            results[node] = result
        for child in children:
            submit(child)
        with lock:
            release()

    try:
        for root in roots:
            submit(root)
        with lock:
            release()
        finished.wait()
    finally:
        with lock:
            state['closed'] = True
        executor.shutdown(wait=True, cancel_futures=True)

    if errors:
        raise errors[0]
    return results


class RemoteTreeWalker:
    """Flattens the remote library into a RemoteTreeIndex."""

    def __init__(self, client: LibraryClient, max_workers: Optional[int] = None,
                 listing_params: Optional[Dict] = None, logger=None):
        """Initialize walker.

        Args:
            client: Library client used for listing requests
            max_workers: Max concurrent listing requests (None = unbounded)
            listing_params: limit/offset/sortBy/order passed to every listing
            logger: Logger for traversal lines. Defaults to booxsync.diff
        """
        self.client = client
        self.max_workers = max_workers
        self.listing_params = dict(listing_params or {})
        self.logger = logger or diff_logger

    def walk(self, nodes: Sequence[RemoteNode], root: str = '') -> RemoteTreeIndex:
        """Walk every library below ``nodes``.

        Args:
            nodes: Starting libraries, usually the root listing's folders
            root: Relative path the nodes live in ("" for the library root)

        Returns:
            RemoteTreeIndex of all reachable files and their folder ids

        Raises:
            TransportError, ListingError: If any listing fails. No partial
                index is returned.
        """
        roots = self._visitable(root, nodes)
        visited = traverse(self._visit, roots, self.max_workers)

        files: List[str] = []
        folder_ids: Dict[str, str] = {}
        stack = list(reversed(roots))
        while stack:
            item = stack.pop()
            parent_path, node = item
            listing, children = visited[item]
            current_path = posixpath.join(parent_path, node.name)
            files.extend(posixpath.join(current_path, book.name) for book in listing.files)
            folder_ids[current_path] = node.unique_id
            stack.extend(reversed(children))

        return RemoteTreeIndex(files=files, folder_ids=folder_ids)

    def _visitable(self, parent_path: str,
                   nodes: Iterable[RemoteNode]) -> List[Tuple[str, RemoteNode]]:
        visitable = []
        for node in nodes:
            # The device reports no books: neither files nor sub-libraries are explored
            if not node.child_file_count:
                self.logger.debug(f"not visiting empty library '{node.title}'")
                continue
            visitable.append((parent_path, node))
        return visitable

    def _visit(self, item: Tuple[str, RemoteNode]):
        parent_path, node = item
        self.logger.debug(f"visiting {node.title}")
        listing: RemoteListing = self.client.list_library(node.unique_id, **self.listing_params)
        current_path = posixpath.join(parent_path, node.name)
        self.logger.debug(f"books in '{current_path}': {[book.name for book in listing.files]}")
        children = self._visitable(current_path, listing.folders)
        return (listing, children), children


class LocalTreeWalker:
    """Lists every regular file below a local directory."""

    def __init__(self, max_workers: Optional[int] = None, logger=None):
        """Initialize walker.

        Args:
            max_workers: Max directories scanned at once (None = unbounded)
            logger: Logger for traversal lines. Defaults to booxsync.diff
        """
        self.max_workers = max_workers
        self.logger = logger or diff_logger

    def walk(self, root: str) -> List[str]:
        """Recursively list files below ``root``.

        Symlinks to files are listed. Symlinks to directories, broken links
        and special files are left out.

        Args:
            root: Directory to walk

        Returns:
            Absolute paths of every file, depth-first in directory-read order

        Raises:
            OSError: If any directory cannot be read
        """
        root = os.path.abspath(root)
        listings = traverse(self._visit, [root], self.max_workers)
        files = self._flatten(root, listings)
        self.logger.debug(f"found {len(files)} local file(s) in {root}")
        return files

    def _visit(self, directory: str):
        entries = self._scan(directory)
        return entries, [path for path, is_dir in entries if is_dir]

    def _scan(self, directory: str) -> List[Tuple[str, bool]]:
        entries = []
        with os.scandir(directory) as it:
            for entry in it:
                if entry.is_dir(follow_symlinks=False):
                    entries.append((entry.path, True))
                elif entry.is_file():
                    entries.append((entry.path, False))
                else:
                    self.logger.debug(f"ignoring {entry.path!r}: not a regular file")
        return entries

    @staticmethod
    def _flatten(root: str, listings: Dict[str, List[Tuple[str, bool]]]) -> List[str]:
        files = []
        stack = [iter(listings[root])]
        while stack:
            for path, is_dir in stack[-1]:
                if is_dir:
                    stack.append(iter(listings[path]))
                    break
                files.append(path)
            else:
                stack.pop()
        return files
