"""Diff local files against the remote index."""

import os
import posixpath
from typing import Iterable, List, Optional, Sequence

from .logger import diff_logger
from .models import RemoteTreeIndex, SyncCandidate

LOCK_FILE_NAME = '.booxsync.lock'


class PathReconciler:
    """Computes which local files are missing from the library.

    Two matching modes exist. The default (legacy) mode strips the sync root
    with a plain substring removal and treats skip paths as substrings of
    the relative path, exactly like earlier releases did. With
    ``boundary_aware=True`` the root is removed on path boundaries and skip
    paths must match whole path segments, so "Draft" no longer skips
    "Drafts/x.pdf". Switching modes can change which files sync.
    """

    def __init__(self, sync_root: str, skip_paths: Optional[Sequence[str]] = None,
                 boundary_aware: bool = False, logger=None):
        """Initialize reconciler.

        Args:
            sync_root: Local folder the relative paths are computed from
            skip_paths: Paths (legacy: substrings) never to sync
            boundary_aware: Use segment-exact matching instead of substrings
            logger: Logger for skip lines. Defaults to booxsync.diff
        """
        self.sync_root = sync_root
        self.skip_paths = [p for p in (skip_paths or []) if p]
        self.boundary_aware = boundary_aware
        self.logger = logger or diff_logger

    def reconcile(self, index: RemoteTreeIndex,
                  local_files: Iterable[str]) -> List[SyncCandidate]:
        """Find local files absent from the library.

        Args:
            index: Remote tree index
            local_files: Absolute local paths in discovery order

        Returns:
            Candidates in discovery order, each with the id of its remote
            parent folder or None when that folder does not exist remotely
        """
        candidates = []
        for local_path in local_files:
            relative_path = self.relative_path(local_path)
            if relative_path is None or posixpath.basename(relative_path) == LOCK_FILE_NAME:
                continue
            if index.contains(relative_path):
                continue
            if self.is_skipped(relative_path):
                self.logger.debug(f"skipping {relative_path!r}")
                continue
            candidates.append(SyncCandidate(
                relative_path=relative_path,
                local_path=local_path,
                parent_id=index.parent_id(relative_path),
            ))
        return candidates

    def relative_path(self, local_path: str) -> Optional[str]:
        """Convert a local path into a library-relative path.

        Returns:
            Path with "/" separators and no leading separator, or None if
            the file is outside the sync root (boundary-aware mode only)
        """
        if self.boundary_aware:
            relative = os.path.relpath(local_path, self.sync_root)
            if relative == os.curdir or relative == os.pardir or \
                    relative.startswith(os.pardir + os.sep):
                return None
        else:
            relative = local_path.replace(self.sync_root, '', 1)
        return relative.replace(os.sep, '/').lstrip('/')

    def is_skipped(self, relative_path: str) -> bool:
        if not self.boundary_aware:
            return any(skip in relative_path for skip in self.skip_paths)

        segments = relative_path.split('/')
        for skip in self.skip_paths:
            skip_segments = [s for s in skip.replace(os.sep, '/').split('/') if s]
            if skip_segments and _contains_run(segments, skip_segments):
                return True
        return False


def _contains_run(segments: List[str], run: List[str]) -> bool:
    width = len(run)
    return any(segments[i:i + width] == run for i in range(len(segments) - width + 1))
