"""Command handler for the split operation."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.models import SplitCommand
from cli.utils import format_file_size
from remote_sync.b2_client import B2ObjectStore
from remote_sync.object_store import ObjectStore
from splitter.disk_space import FreeSpaceFn
from splitter.engine import RunReport, SplitEngine
from splitter.models import RemoteTarget, RunConfiguration, load_run_configuration

logger = get_logger(__name__)


def build_run_configuration(cmd: SplitCommand) -> RunConfiguration:
    """
    Convert parsed arguments into a validated RunConfiguration.

    Raises:
        ConfigError: If any value is out of range
    """
    remote = None
    if cmd.upload_enabled:
        remote = {'bucket': cmd.b2_bucket, 'path': cmd.b2_remote_path or ''}
    return load_run_configuration(
        source_path=Path(cmd.source_file),
        output_dir=Path(cmd.output_dir),
        prefix=cmd.prefix,
        chunk_size_bytes=cmd.chunk_size_bytes,
        safety_buffer_bytes=cmd.safety_buffer_bytes,
        digest_algorithm=cmd.digest_algorithm,
        suffix_length=cmd.suffix_length,
        remote=remote,
    )


def build_object_store(remote: RemoteTarget, config: Config) -> B2ObjectStore:
    key_id, application_key = config.get_b2_credentials()
    retry = config.get_retry_config()
    return B2ObjectStore(
        key_id=key_id,
        application_key=application_key,
        bucket_name=remote.bucket,
        timeout=config.get_timeout(),
        max_retries=retry['max_retries'],
        retry_backoff_multiplier=retry['retry_backoff_multiplier'],
    )


def handle_split(
    cmd: SplitCommand,
    config: Config,
    store: Optional[ObjectStore] = None,
    free_space_fn: Optional[FreeSpaceFn] = None,
) -> RunReport:
    """
    Handle the split command.

    Args:
        cmd: Parsed SplitCommand
        config: CLI configuration (remote credentials and retry settings)
        store: Optional ObjectStore for dependency injection (testing)
        free_space_fn: Optional free-space reader for dependency injection (testing)

    Returns:
        RunReport of the run

    Raises:
        SplitterError: On any fatal condition
    """
    run_config = build_run_configuration(cmd)
    logger.info(
        f"Executing split: source={run_config.source_path} output={run_config.output_dir} "
        f"chunk_size={run_config.chunk_size_bytes} buffer={run_config.safety_buffer_bytes}"
    )

    owned_store = None
    if run_config.sync_enabled and store is None:
        owned_store = store = build_object_store(run_config.remote, config)

    try:
        engine = SplitEngine(run_config, free_space_fn=free_space_fn, object_store=store)
        return engine.run()
    finally:
        if owned_store is not None:
            owned_store.close()


def format_summary(report: RunReport, free_bytes: Optional[int] = None) -> str:
    """
    Render the end-of-run summary shown to the operator.
    """
    lines = ["", "Operation completed!"]
    if report.sync is not None:
        sync = report.sync
        lines.append(
            f"Chunks processed: {len(sync.records)} "
            f"(verified {sync.verified}, uploaded {sync.uploaded}, "
            f"already synced {sync.already_synced}, recreated {sync.materialized})"
        )
        if sync.failures:
            lines.append(f"Chunks that failed to sync (kept locally): {len(sync.failures)}")
            for record in sync.failures:
                lines.append(f"  {record.path.name}: {record.error}")
            lines.append("Run again to retry them.")
        else:
            lines.append("All chunks are synced with the remote store.")
    else:
        lines.append(f"Chunks created in this session: {report.chunks_created}")
        if report.remaining:
            lines.append(f"Remaining chunks to create: {report.remaining}")
            lines.append(f"Next chunk to create: {report.next_suffix}")
            lines.append("")
            lines.append("To continue, free up disk space and run the script again.")
        else:
            lines.append("All chunks have been created successfully!")

    if free_bytes is not None:
        lines.append("")
        lines.append(f"Final free disk space: {format_file_size(free_bytes)}")
    return "\n".join(lines)
