"""Contract for the remote object store that chunks are reconciled against."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class ObjectStore(ABC):
    """
    Remote store capability used by the sync engine.

    Connection and authentication setup belong to the implementation;
    the sync engine only calls the three operations below.
    """

    #: Digest algorithm the store reports natively (hashlib name).
    digest_algorithm: str = "sha1"

    @abstractmethod
    def check_access(self) -> None:
        """
        Confirm the store is reachable and the credentials are accepted.

        Raises:
            RemoteUnavailableError: If the store cannot be reached
            RemoteAuthError: If the credentials are rejected
        """

    @abstractmethod
    def get_digest(self, name: str) -> Optional[str]:
        """
        Fetch the content digest of a remote object.

        Returns:
            Lowercase hex digest, or None if the object does not exist
        """

    @abstractmethod
    def upload(self, local_path: Path, name: str, digest: Optional[str] = None) -> None:
        """
        Upload a local file to the named remote object.

        Args:
            local_path: File to upload
            name: Remote object name
            digest: Local digest, passed along so the store can check the transfer

        Raises:
            UploadFailureError: If the upload did not complete
        """
