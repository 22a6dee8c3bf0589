"""Per-chunk state machine reconciling local chunks with a remote object store.

Every chunk index of the source is visited in order, whether or not its file
is currently present:

    LOCAL_ONLY -> LOCAL_HASHED -> VERIFIED | UPLOADED -> DELETED

A chunk that is absent locally starts in ABSENT. If its digest sidecar
matches the remote digest it ends in ALREADY_SYNCED without touching the
source; otherwise it is re-materialized from the source and follows the
path above. The digest sidecar is never deleted.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from common.logging_config import get_logger
from common.types import ChunkSpec, SourceFile
from remote_sync.object_store import ObjectStore
from splitter.checksum_validator import get_or_compute_digest, read_digest_record
from splitter.chunk_writer import chunk_path, write_chunk
from splitter.exceptions import (
    ConfigError,
    RemoteUnavailableError,
    UploadFailureError,
    UploadVerifyFailureError,
)
from splitter.models import RemoteTarget
from splitter.source_scanner import iter_chunk_specs, read_range

logger = get_logger(__name__)


class ChunkSyncState(Enum):
    ABSENT = "absent"
    LOCAL_ONLY = "local-only"
    LOCAL_HASHED = "local-hashed"
    VERIFIED = "verified"
    UPLOADED = "uploaded"
    DELETED = "deleted"
    ALREADY_SYNCED = "already-synced"
    FAILED = "failed"


TRANSITIONS = {
    ChunkSyncState.ABSENT: {ChunkSyncState.LOCAL_ONLY, ChunkSyncState.ALREADY_SYNCED, ChunkSyncState.FAILED},
    ChunkSyncState.LOCAL_ONLY: {ChunkSyncState.LOCAL_HASHED, ChunkSyncState.FAILED},
    ChunkSyncState.LOCAL_HASHED: {ChunkSyncState.VERIFIED, ChunkSyncState.UPLOADED, ChunkSyncState.FAILED},
    ChunkSyncState.VERIFIED: {ChunkSyncState.DELETED, ChunkSyncState.FAILED},
    ChunkSyncState.UPLOADED: {ChunkSyncState.DELETED, ChunkSyncState.FAILED},
    ChunkSyncState.DELETED: set(),
    ChunkSyncState.ALREADY_SYNCED: set(),
    ChunkSyncState.FAILED: set(),
}


class VerifyResult(Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    NOT_FOUND = "not-found"


@dataclass
class ChunkSyncRecord:
    """
    Progress of one chunk through the sync state machine.
    """
    spec: ChunkSpec
    path: Path
    remote_name: str
    state: ChunkSyncState
    local_digest: Optional[str] = None
    remote_digest: Optional[str] = None
    materialized: bool = False
    error: Optional[str] = None
    history: List[ChunkSyncState] = field(default_factory=list)

    def __post_init__(self):
        self.history.append(self.state)

    def advance(self, new_state: ChunkSyncState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal sync transition for {self.path.name}: {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)

    def fail(self, error: Exception) -> None:
        self.error = str(error)
        self.advance(ChunkSyncState.FAILED)

    @property
    def synced(self) -> bool:
        return self.state in (ChunkSyncState.DELETED, ChunkSyncState.ALREADY_SYNCED)

    @property
    def uploaded(self) -> bool:
        return ChunkSyncState.UPLOADED in self.history


@dataclass
class SyncReport:
    records: List[ChunkSyncRecord] = field(default_factory=list)

    def _count(self, predicate: Callable[[ChunkSyncRecord], bool]) -> int:
        return sum(1 for record in self.records if predicate(record))

    @property
    def verified(self) -> int:
        return self._count(lambda r: r.synced and ChunkSyncState.VERIFIED in r.history)

    @property
    def uploaded(self) -> int:
        return self._count(lambda r: r.synced and r.uploaded)

    @property
    def already_synced(self) -> int:
        return self._count(lambda r: r.state is ChunkSyncState.ALREADY_SYNCED)

    @property
    def materialized(self) -> int:
        return self._count(lambda r: r.materialized)

    @property
    def failures(self) -> List[ChunkSyncRecord]:
        return [r for r in self.records if r.state is ChunkSyncState.FAILED]


class RemoteSyncEngine:
    """
    Verifies, uploads and deletes chunks against an ObjectStore.

    Runs over the full logical range of the source. It does not gate on free
    space per chunk: each chunk is deleted once synced, so only one chunk's
    worth of headroom is needed at a time.
    """

    def __init__(
        self,
        store: ObjectStore,
        source: SourceFile,
        output_dir: Path,
        prefix: str,
        remote: RemoteTarget,
        digest_algorithm: str,
        suffix_length: int,
        reader: Callable[[Path, int, int], Iterator[bytes]] = read_range,
    ):
        self.store = store
        self.source = source
        self.output_dir = Path(output_dir)
        self.prefix = prefix
        self.remote = remote
        self.digest_algorithm = digest_algorithm
        self.suffix_length = suffix_length
        self.reader = reader

    def check_remote(self) -> None:
        """
        Fail fast before any chunk is touched.

        Raises:
            ConfigError: If the store's native digest differs from the configured one
            RemoteUnavailableError: If the store cannot be used
        """
        if self.store.digest_algorithm != self.digest_algorithm:
            raise ConfigError(
                f"Remote store reports {self.store.digest_algorithm} digests but the run uses "
                f"{self.digest_algorithm}; use --digest {self.store.digest_algorithm}"
            )
        self.store.check_access()
        logger.info(f"Remote store is available (bucket {self.remote.bucket})")

    def run(self) -> SyncReport:
        """
        Sync every chunk of the source in index order.

        Raises:
            CopyFailureError: If a missing chunk cannot be re-materialized
        """
        report = SyncReport()
        total = self.source.total_chunks
        logger.info(f"Remote sync mode: processing all {total} chunks of the source")

        for spec in iter_chunk_specs(self.source, self.suffix_length):
            logger.info(f"Processing chunk {spec.suffix} ({spec.index + 1}/{total})...")
            record = self.sync_chunk(spec)
            report.records.append(record)
            if record.state is ChunkSyncState.FAILED:
                logger.error(f"Sync failed for {record.path.name}, local chunk kept: {record.error}")

        return report

    def new_record(self, spec: ChunkSpec) -> ChunkSyncRecord:
        path = chunk_path(self.output_dir, self.prefix, spec)
        return ChunkSyncRecord(
            spec=spec,
            path=path,
            remote_name=self.remote.object_name(path.name),
            state=ChunkSyncState.LOCAL_ONLY if path.exists() else ChunkSyncState.ABSENT,
        )

    def sync_chunk(self, spec: ChunkSpec) -> ChunkSyncRecord:
        record = self.new_record(spec)

        if record.state is ChunkSyncState.ABSENT:
            cached = read_digest_record(record.path, self.digest_algorithm)
            if cached is not None:
                logger.info(f"Found hash file for missing chunk {record.path.name}, checking against remote...")
                try:
                    record.remote_digest = self.store.get_digest(record.remote_name)
                except RemoteUnavailableError as e:
                    record.fail(e)
                    return record
                if record.remote_digest == cached:
                    record.local_digest = cached
                    record.advance(ChunkSyncState.ALREADY_SYNCED)
                    logger.info(f"Cached hash matches remote, chunk {spec.suffix} already uploaded correctly")
                    return record

            logger.info(f"Creating chunk {spec.suffix} for upload...")
            write_chunk(self.source.path, self.output_dir, self.prefix, spec, self.reader)
            record.materialized = True
            record.advance(ChunkSyncState.LOCAL_ONLY)

        try:
            record.local_digest = get_or_compute_digest(record.path, self.digest_algorithm)
            record.advance(ChunkSyncState.LOCAL_HASHED)

            result = self.verify(record)
            if result is not VerifyResult.MATCH:
                self.upload(record)
        except (UploadFailureError, RemoteUnavailableError, OSError) as e:
            record.fail(e)
        return record

    def verify(self, record: ChunkSyncRecord) -> VerifyResult:
        """
        Compare the local digest with the remote one; delete the local chunk on a match.

        Raises:
            RemoteUnavailableError: If the remote digest cannot be fetched
        """
        logger.info(f"Verifying chunk against remote: {record.path.name}")
        record.remote_digest = self.store.get_digest(record.remote_name)

        if record.remote_digest is None:
            logger.info(f"Remote file not found: {record.remote_name}")
            return VerifyResult.NOT_FOUND
        if record.remote_digest != record.local_digest:
            logger.warning(
                f"Hash mismatch for {record.path.name}: local={record.local_digest} remote={record.remote_digest}"
            )
            return VerifyResult.MISMATCH

        logger.info(f"Hash verification successful for {record.path.name}")
        record.advance(ChunkSyncState.VERIFIED)
        self._delete_local(record)
        return VerifyResult.MATCH

    def upload(self, record: ChunkSyncRecord) -> None:
        """
        Upload the chunk, then re-fetch the remote digest before trusting it.

        Raises:
            UploadFailureError: If the upload fails
            UploadVerifyFailureError: If the remote digest differs after upload
        """
        logger.info(f"Uploading chunk to remote: {record.path.name}")
        self.store.upload(record.path, record.remote_name, record.local_digest)

        record.remote_digest = self.store.get_digest(record.remote_name)
        if record.remote_digest != record.local_digest:
            raise UploadVerifyFailureError(
                f"Upload verification failed for {record.path.name}: "
                f"local={record.local_digest} remote={record.remote_digest}"
            )

        logger.info(f"Upload verification successful for {record.path.name}")
        record.advance(ChunkSyncState.UPLOADED)
        self._delete_local(record)

    def _delete_local(self, record: ChunkSyncRecord) -> None:
        logger.info(f"Deleting local chunk: {record.path.name} (keeping hash file)")
        record.path.unlink()
        record.advance(ChunkSyncState.DELETED)
