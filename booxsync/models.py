"""Data structures shared by the walkers, the reconciler and the sync pipeline."""

import posixpath
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class RemoteNode:
    """A library (folder) as reported by the device."""

    name: str
    title: str
    unique_id: str
    child_file_count: int = 0
    child_folder_count: int = 0

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'RemoteNode':
        """Build a node from a ``visibleLibraryList`` entry."""
        name = data.get('name', '')
        return cls(
            name=name,
            title=data.get('title') or name,
            unique_id=data.get('idString', ''),
            child_file_count=int(data.get('childCount') or 0),
            child_folder_count=int(data.get('libraryCount') or 0),
        )


@dataclass(frozen=True)
class RemoteFile:
    """A book stored in a library."""

    name: str
    document_id: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'RemoteFile':
        """Build a file from a ``visibleBookList`` entry."""
        metadata = data.get('metadata') or {}
        return cls(name=data.get('name', ''), document_id=metadata.get('_id'))


@dataclass(frozen=True)
class RemoteListing:
    """One decoded ``/api/library`` response."""

    book_count: int = 0
    library_count: int = 0
    folders: Tuple[RemoteNode, ...] = ()
    files: Tuple[RemoteFile, ...] = ()

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'RemoteListing':
        """Decode a listing response body.

        Args:
            data: Parsed JSON body

        Returns:
            RemoteListing; absent lists decode as empty
        """
        return cls(
            book_count=int(data.get('bookCount') or 0),
            library_count=int(data.get('libraryCount') or 0),
            folders=tuple(RemoteNode.from_json(item)
                          for item in data.get('visibleLibraryList') or []),
            files=tuple(RemoteFile.from_json(item)
                        for item in data.get('visibleBookList') or []),
        )


@dataclass(frozen=True)
class RemoteTreeIndex:
    """Flattened view of the remote library.

    ``files`` holds library-root-relative paths using ``/`` without a
    leading separator. ``folder_ids`` maps a folder's relative path to the
    id uploads into that folder must target.
    """

    files: Tuple[str, ...] = ()
    folder_ids: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'files', tuple(self.files))
        object.__setattr__(self, 'folder_ids',
                           MappingProxyType(dict(self.folder_ids)))
        object.__setattr__(self, '_file_set', frozenset(self.files))

    def __len__(self) -> int:
        return len(self.files)

    def contains(self, path: str) -> bool:
        """Check whether a relative file path exists remotely."""
        return path in self._file_set

    def parent_id(self, path: str) -> Optional[str]:
        """Get the id of the folder that holds ``path``.

        Args:
            path: Relative file path

        Returns:
            Folder id, or None when the folder is unknown (or is the root)
        """
        return self.folder_ids.get(posixpath.dirname(path))


@dataclass(frozen=True)
class SyncCandidate:
    """A local file missing from the library."""

    relative_path: str
    local_path: str
    parent_id: Optional[str] = None


FAILURE_KINDS = ('transport', 'listing', 'upload', 'config', 'local')


@dataclass
class SyncResult:
    """Outcome of one reconciliation run."""

    candidates: List[SyncCandidate] = field(default_factory=list)
    uploaded: List[SyncCandidate] = field(default_factory=list)
    skipped: List[SyncCandidate] = field(default_factory=list)
    failure: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def succeeded(cls, candidates: List[SyncCandidate],
                  uploaded: Optional[List[SyncCandidate]] = None,
                  skipped: Optional[List[SyncCandidate]] = None) -> 'SyncResult':
        return cls(candidates=list(candidates), uploaded=list(uploaded or []),
                   skipped=list(skipped or []))

    @classmethod
    def failed(cls, failure: str, error: BaseException,
               candidates: Optional[List[SyncCandidate]] = None,
               uploaded: Optional[List[SyncCandidate]] = None,
               skipped: Optional[List[SyncCandidate]] = None) -> 'SyncResult':
        if failure not in FAILURE_KINDS:
            raise ValueError(f"Unknown failure kind: {failure}")
        return cls(candidates=list(candidates or []), uploaded=list(uploaded or []),
                   skipped=list(skipped or []), failure=failure, error=error)
