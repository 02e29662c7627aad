"""Reconciliation pipeline: walk both trees, diff them, optionally upload."""

import os
import posixpath
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence

from .client import LibraryClient
from .config import Config
from .exceptions import (
    BooxSyncError,
    ConfigError,
    CreateFolderError,
    ListingError,
    TransportError,
    UploadError,
)
from .logger import logger as package_logger
from .models import RemoteTreeIndex, SyncCandidate, SyncResult
from .reconcile import PathReconciler
from .walker import LocalTreeWalker, RemoteTreeWalker

ProgressCallback = Callable[[str, SyncCandidate], None]

# Folder id recorded for folders a dry run pretends to create
DRY_RUN_FOLDER_ID = 'dryRun'


class SyncManager:
    """Manages reconciliation of a local folder with the device library."""

    def __init__(self, client: LibraryClient, sync_root: str,
                 skip_paths: Optional[Sequence[str]] = None,
                 boundary_aware: bool = False,
                 max_workers: Optional[int] = None,
                 listing_params: Optional[Dict] = None,
                 dry_run: bool = False,
                 create_folders: bool = False,
                 logger=None,
                 on_progress: Optional[ProgressCallback] = None):
        """Initialize sync manager.

        Args:
            client: Library client
            sync_root: Local folder to reconcile (relative paths are taken
                from the current directory)
            skip_paths: Paths never to sync
            boundary_aware: Segment-exact path matching instead of substrings
            max_workers: Concurrency limit for both walkers (None = unbounded)
            listing_params: limit/offset/sortBy/order for listing requests
            dry_run: Log uploads and folder creation instead of performing them
            create_folders: Create missing library folders instead of skipping
                the files that belong in them
            logger: Logger for the run. Defaults to the booxsync logger
            on_progress: Called with ("uploading" | "skipped" | "creating", candidate)
        """
        self.client = client
        self.sync_root = os.path.abspath(sync_root)
        self.dry_run = dry_run
        self.create_folders = create_folders
        self.logger = logger or package_logger
        self.on_progress = on_progress
        self.remote_index: Optional[RemoteTreeIndex] = None
        self.remote_walker = RemoteTreeWalker(client, max_workers=max_workers,
                                              listing_params=listing_params,
                                              logger=logger)
        self.local_walker = LocalTreeWalker(max_workers=max_workers, logger=logger)
        self.reconciler = PathReconciler(self.sync_root, skip_paths,
                                         boundary_aware=boundary_aware, logger=logger)

    @classmethod
    def from_config(cls, client: LibraryClient, config: Config, **kwargs) -> 'SyncManager':
        """Create a sync manager from a validated Config."""
        kwargs.setdefault('dry_run', config.dry_run)
        kwargs.setdefault('create_folders', config.create_folders)
        return cls(
            client,
            config.sync_root,
            skip_paths=config.skip_paths,
            boundary_aware=config.boundary_aware_paths,
            max_workers=config.max_workers,
            listing_params=config.listing_params,
            **kwargs,
        )

    def build_remote_index(self) -> RemoteTreeIndex:
        """Fetch the library root and walk everything below it."""
        root = self.client.get_root()
        self.remote_index = self.remote_walker.walk(root.folders)
        return self.remote_index

    def find_missing(self) -> List[SyncCandidate]:
        """Diff the local folder against the library.

        The remote and the local walk run at the same time; they share no
        state.

        Returns:
            Candidates in local discovery order

        Raises:
            TransportError, ListingError: If the remote walk fails
            OSError: If the local walk fails
        """
        with ThreadPoolExecutor(max_workers=2) as executor:
            remote = executor.submit(self.build_remote_index)
            local = executor.submit(self.local_walker.walk, self.sync_root)
            index = remote.result()
            local_files = local.result()

        self.logger.debug(f"{len(index)} file(s) in library, {len(local_files)} local file(s)")
        return self.reconciler.reconcile(index, local_files)

    def upload_candidates(self, candidates: Sequence[SyncCandidate],
                          result: Optional[SyncResult] = None) -> SyncResult:
        """Upload candidates one after another.

        Candidates without a remote parent are skipped with a warning, unless
        ``create_folders`` is set: then the missing folder chain is created
        first. Files directly in the sync root have no library folder and
        are always skipped. The first failed request stops the queue.

        Args:
            candidates: Files to upload, in order
            result: Result to record progress in. A new one is created if None.

        Returns:
            SyncResult with uploaded and skipped candidates

        Raises:
            UploadError: If the device rejects an upload
            CreateFolderError: If the device refuses to create a folder
            TransportError: If the device cannot be reached
        """
        if result is None:
            result = SyncResult.succeeded(candidates)
        folder_ids = dict(self.remote_index.folder_ids) if self.remote_index else {}

        for candidate in candidates:
            folder = posixpath.dirname(candidate.relative_path)
            if candidate.parent_id is None and self.create_folders and folder:
                if folder not in folder_ids:
                    self._report('creating', candidate)
                candidate = replace(candidate,
                                    parent_id=self._ensure_folder(folder, folder_ids))

            if candidate.parent_id is None:
                self.logger.warning(
                    f"skipping {candidate.relative_path!r}: no remote parent folder"
                )
                result.skipped.append(candidate)
                self._report('skipped', candidate)
                continue

            self._report('uploading', candidate)
            if self.dry_run:
                self.logger.info(f"pretending to upload {candidate.local_path!r}")
            else:
                self.logger.info(f"uploading {candidate.local_path} to {candidate.parent_id}")
                self.client.upload(candidate.local_path, candidate.parent_id)
            result.uploaded.append(candidate)

        return result

    def _ensure_folder(self, folder: str, folder_ids: Dict[str, str]) -> str:
        """Get the id of a library folder, creating it and its parents if needed.

        Args:
            folder: Relative folder path
            folder_ids: Known folder ids; new folders are added to it

        Returns:
            Folder id
        """
        if folder in folder_ids:
            return folder_ids[folder]

        parent = posixpath.dirname(folder)
        parent_id = self._ensure_folder(parent, folder_ids) if parent else None
        name = posixpath.basename(folder)
        if self.dry_run:
            self.logger.info(f"pretending to create folder {folder!r}")
            folder_id = DRY_RUN_FOLDER_ID
        else:
            self.logger.info(f"creating folder {folder!r}")
            folder_id = self.client.create_folder(name, parent_id)
        folder_ids[folder] = folder_id
        return folder_id

    def diff(self) -> SyncResult:
        """Compute the missing files without uploading anything.

        Returns:
            SyncResult holding the candidates, or the failure that stopped
            the reconciliation
        """
        try:
            candidates = self.find_missing()
        except (BooxSyncError, OSError) as e:
            self.logger.error(f"reconciliation failed: {e}")
            return SyncResult.failed(failure_kind(e), e)
        return SyncResult.succeeded(candidates)

    def apply(self, result: SyncResult) -> SyncResult:
        """Upload the candidates of a successful diff.

        Args:
            result: Result of diff(); updated in place

        Returns:
            The same result, marked failed if an upload stopped the queue
        """
        if not result.ok:
            return result
        try:
            self.upload_candidates(result.candidates, result)
        except (BooxSyncError, OSError) as e:
            self.logger.error(f"sync aborted: {e}")
            result.failure = failure_kind(e)
            result.error = e
        return result

    def run(self, upload: bool = False) -> SyncResult:
        """Run one reconciliation.

        Args:
            upload: Upload the missing files after diffing

        Returns:
            SyncResult; failures are reported in it rather than raised
        """
        result = self.diff()
        if upload:
            self.apply(result)
        return result

    def _report(self, event: str, candidate: SyncCandidate) -> None:
        if self.on_progress is not None:
            self.on_progress(event, candidate)


def failure_kind(error: BaseException) -> str:
    """Classify an error raised during a run into a SyncResult failure kind."""
    if isinstance(error, TransportError):
        return 'transport'
    if isinstance(error, ListingError):
        return 'listing'
    if isinstance(error, (UploadError, CreateFolderError)):
        return 'upload'
    if isinstance(error, ConfigError):
        return 'config'
    return 'local'