"""Orchestrates a resumable split run: scan, validate, verify, then create or sync chunks."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional

from common.logging_config import get_logger
from common.types import SourceFile
from remote_sync.object_store import ObjectStore
from remote_sync.sync_engine import RemoteSyncEngine, SyncReport
from splitter.addressing import capacity, suffix_for, width_for
from splitter.checksum_validator import verify_boundary_chunk
from splitter.chunk_inventory import ChunkInventory, take_inventory, validate_chunk_sizes
from splitter.chunk_writer import write_chunk
from splitter.disk_space import DiskSpaceGovernor, FreeSpaceFn
from splitter.exceptions import ConfigError, SourceUnavailableError
from splitter.models import RunConfiguration
from splitter.source_scanner import chunk_spec, read_range, scan_source

logger = get_logger(__name__)


class StopReason(Enum):
    COMPLETE = "complete"
    INSUFFICIENT_SPACE = "insufficient-space"


@dataclass
class RunState:
    """
    Progress of a run, passed explicitly from step to step.
    """
    source: SourceFile
    next_index: int = 0
    chunks_created: int = 0
    stop_reason: StopReason = StopReason.COMPLETE

    @property
    def remaining(self) -> int:
        return max(self.source.total_chunks - self.next_index, 0)


@dataclass
class RunReport:
    """
    Result of a run, as shown to the operator.
    """
    total_chunks: int
    chunks_created: int
    next_index: int
    next_suffix: Optional[str]
    remaining: int
    stop_reason: StopReason
    inventory: ChunkInventory
    sync: Optional[SyncReport] = None

    @property
    def paused_for_space(self) -> bool:
        return self.stop_reason is StopReason.INSUFFICIENT_SPACE

    @property
    def complete(self) -> bool:
        return self.remaining == 0


class SplitEngine:
    """
    Splits one source file into chunk files, resuming from what is on disk.

    Fatal problems raise a SplitterError subclass. Running out of disk space
    is not an error: the run stops and the report says where to resume.
    """

    def __init__(
        self,
        config: RunConfiguration,
        free_space_fn: Optional[FreeSpaceFn] = None,
        object_store: Optional[ObjectStore] = None,
        reader: Callable[[Path, int, int], Iterator[bytes]] = read_range,
    ):
        if config.sync_enabled and object_store is None:
            raise ConfigError("Remote sync requested but no object store was supplied")
        self.config = config
        self.object_store = object_store
        self.reader = reader
        self.governor = DiskSpaceGovernor(
            config.output_dir,
            config.chunk_size_bytes,
            config.safety_buffer_bytes,
            free_space_fn,
        )

    def run(self) -> RunReport:
        """
        Execute one run.

        Raises:
            ConfigError: If the source needs more chunks than the suffix width can address
            SourceUnavailableError: If the source or output directory is missing
            SizeMismatchError: If an existing chunk has the wrong length
            IntegrityMismatchError: If the boundary chunk differs from the source
            CopyFailureError: If a chunk cannot be written completely
            RemoteUnavailableError: If sync is enabled and the store is unusable
        """
        config = self.config
        if not config.output_dir.is_dir():
            raise SourceUnavailableError(f"Output directory {config.output_dir} not found!")
        source = scan_source(config.source_path, config.chunk_size_bytes)
        self._check_capacity(source)

        sync_engine = None
        if config.sync_enabled:
            sync_engine = RemoteSyncEngine(
                store=self.object_store,
                source=source,
                output_dir=config.output_dir,
                prefix=config.prefix,
                remote=config.remote,
                digest_algorithm=config.digest_algorithm,
                suffix_length=config.suffix_length,
                reader=self.reader,
            )
            sync_engine.check_remote()

        inventory = self.prepare(source)
        state = RunState(source=source, next_index=inventory.resume_index)
        self._log_plan(state, inventory)

        sync_report = None
        if sync_engine is not None:
            sync_report = sync_engine.run()
            state.next_index = source.total_chunks
            state.chunks_created = sync_report.materialized
        else:
            self.create_chunks(state)

        return self._report(state, inventory, sync_report)

    def _check_capacity(self, source: SourceFile) -> None:
        limit = capacity(self.config.suffix_length)
        if source.total_chunks > limit:
            raise ConfigError(
                f"Source needs {source.total_chunks} chunks but {self.config.suffix_length}-letter "
                f"suffixes address only {limit}",
                remediation=(
                    f"Use a larger chunk size or --suffix-length {width_for(source.total_chunks)}."
                ),
            )

    def prepare(self, source: SourceFile) -> ChunkInventory:
        """
        Find the resume point, validate chunk sizes and verify the boundary chunk.
        """
        config = self.config
        inventory = take_inventory(
            config.output_dir, config.prefix, config.suffix_length, config.digest_extension
        )

        if inventory.last_index == -1:
            logger.info("No existing chunks found, starting from the beginning")
            return inventory

        logger.info(
            f"Found last chunk: {inventory.boundary_path().name} (chunk number {inventory.last_index})"
        )
        validate_chunk_sizes(inventory, source)
        boundary = chunk_spec(inventory.last_index, source.size, source.chunk_size, config.suffix_length)
        verify_boundary_chunk(
            inventory.boundary_path(), boundary, source.path, config.digest_algorithm, self.reader
        )
        return inventory

    def create_chunks(self, state: RunState) -> RunState:
        """
        Create chunks from ``state.next_index`` until done or out of space.
        """
        config = self.config
        source = state.source

        while state.next_index < source.total_chunks:
            space = self.governor.check()
            if not space.ok:
                logger.info(
                    f"Stopping: Not enough disk space for next chunk plus safety buffer "
                    f"(available {space.available} bytes, required {space.required} bytes)"
                )
                state.stop_reason = StopReason.INSUFFICIENT_SPACE
                break

            spec = chunk_spec(state.next_index, source.size, source.chunk_size, config.suffix_length)
            logger.info(f"Creating chunk {spec.suffix} ({spec.index + 1}/{source.total_chunks})...")
            write_chunk(source.path, config.output_dir, config.prefix, spec, self.reader)
            state.chunks_created += 1
            state.next_index += 1
            logger.info(f"Remaining space: {self.governor.available()} bytes")

        return state

    def _log_plan(self, state: RunState, inventory: ChunkInventory) -> None:
        source = state.source
        logger.info(f"Source file: {source.path}")
        logger.info(f"File size: {source.size} bytes")
        logger.info(f"Chunk size: {source.chunk_size} bytes")
        logger.info(f"Total chunks needed: {source.total_chunks}")
        if state.next_index < source.total_chunks:
            logger.info(
                f"Starting from chunk: {state.next_index} "
                f"({suffix_for(state.next_index, self.config.suffix_length)})"
            )
        if inventory.missing:
            logger.info(f"{len(inventory.missing)} chunk(s) below the last one are not present locally")
        logger.info(f"Output directory: {self.config.output_dir}")

    def _report(
        self,
        state: RunState,
        inventory: ChunkInventory,
        sync_report: Optional[SyncReport],
    ) -> RunReport:
        next_suffix = None
        if state.remaining:
            next_suffix = suffix_for(state.next_index, self.config.suffix_length)
        return RunReport(
            total_chunks=state.source.total_chunks,
            chunks_created=state.chunks_created,
            next_index=state.next_index,
            next_suffix=next_suffix,
            remaining=state.remaining,
            stop_reason=state.stop_reason,
            inventory=inventory,
            sync=sync_report,
        )
