"""Tests for resumable split runs."""

import logging

import pytest

from splitter.checksum_validator import sidecar_path
from splitter.engine import SplitEngine, StopReason
from splitter.exceptions import (
    ConfigError,
    IntegrityMismatchError,
    SizeMismatchError,
    SourceUnavailableError,
)

PLENTY_OF_SPACE = 10 ** 12


def space_until(chunk_count):
    """
    Free-space reader that reports room until ``chunk_count`` chunk files exist.
    """
    def free_space(path):
        chunks = [p for p in path.iterdir() if p.name.startswith('split_') and '.' not in p.name]
        return PLENTY_OF_SPACE if len(chunks) < chunk_count else 0
    return free_space


def chunk_names(output_dir):
    return sorted(p.name for p in output_dir.iterdir() if '.' not in p.name)


def test_full_run_creates_all_chunks(make_config, plenty_of_space, output_dir, source_bytes):
    report = SplitEngine(make_config(), free_space_fn=plenty_of_space).run()

    assert report.total_chunks == 3
    assert report.chunks_created == 3
    assert report.complete
    assert report.next_suffix is None
    assert report.stop_reason is StopReason.COMPLETE
    assert chunk_names(output_dir) == ['split_aa', 'split_ab', 'split_ac']
    joined = b''.join((output_dir / name).read_bytes() for name in chunk_names(output_dir))
    assert joined == source_bytes


def test_rerun_is_idempotent(make_config, plenty_of_space, output_dir):
    SplitEngine(make_config(), free_space_fn=plenty_of_space).run()
    before = {name: (output_dir / name).read_bytes() for name in chunk_names(output_dir)}

    report = SplitEngine(make_config(), free_space_fn=plenty_of_space).run()

    assert report.chunks_created == 0
    assert report.complete
    assert sorted(report.inventory.present) == [0, 1, 2]
    assert {name: (output_dir / name).read_bytes() for name in chunk_names(output_dir)} == before


def test_insufficient_space_stops_cleanly(make_config, output_dir):
    config = make_config(safety_buffer_bytes=100)

    report = SplitEngine(config, free_space_fn=lambda path: 499).run()

    assert report.chunks_created == 0
    assert report.paused_for_space
    assert report.next_suffix == 'aa'
    assert report.remaining == 3
    assert chunk_names(output_dir) == []


def test_pause_then_resume(make_config, output_dir, plenty_of_space):
    first = SplitEngine(make_config(), free_space_fn=space_until(2)).run()

    assert first.chunks_created == 2
    assert first.paused_for_space
    assert first.next_suffix == 'ac'
    assert first.remaining == 1

    second = SplitEngine(make_config(), free_space_fn=plenty_of_space).run()

    assert second.chunks_created == 1
    assert second.complete
    assert chunk_names(output_dir) == ['split_aa', 'split_ab', 'split_ac']


def test_truncated_boundary_chunk_aborts_before_writing(make_config, output_dir, plenty_of_space):
    SplitEngine(make_config(), free_space_fn=space_until(2)).run()
    boundary = output_dir / 'split_ab'
    boundary.write_bytes(boundary.read_bytes()[:-1])

    with pytest.raises((SizeMismatchError, IntegrityMismatchError)):
        SplitEngine(make_config(), free_space_fn=plenty_of_space).run()

    assert not (output_dir / 'split_ac').exists()


def test_corrupted_boundary_chunk_fails_integrity(make_config, output_dir, plenty_of_space):
    SplitEngine(make_config(), free_space_fn=space_until(2)).run()
    boundary = output_dir / 'split_ab'
    data = bytearray(boundary.read_bytes())
    data[0] ^= 0xFF
    boundary.write_bytes(bytes(data))

    with pytest.raises(IntegrityMismatchError):
        SplitEngine(make_config(), free_space_fn=plenty_of_space).run()

    assert not (output_dir / 'split_ac').exists()
    assert not sidecar_path(boundary).exists()


def test_relocated_chunk_is_tolerated(make_config, output_dir, plenty_of_space, caplog):
    SplitEngine(make_config(), free_space_fn=space_until(2)).run()
    (output_dir / 'split_aa').unlink()

    with caplog.at_level(logging.WARNING):
        report = SplitEngine(make_config(), free_space_fn=plenty_of_space).run()

    assert 'Missing chunk file' in caplog.text
    assert report.inventory.missing == [0]
    assert report.chunks_created == 1
    assert chunk_names(output_dir) == ['split_ab', 'split_ac']


def test_only_boundary_chunk_is_content_verified(make_config, output_dir, plenty_of_space):
    SplitEngine(make_config(), free_space_fn=space_until(2)).run()
    lower = output_dir / 'split_aa'
    data = bytearray(lower.read_bytes())
    data[0] ^= 0xFF
    lower.write_bytes(bytes(data))

    report = SplitEngine(make_config(), free_space_fn=plenty_of_space).run()

    assert report.chunks_created == 1
    assert not sidecar_path(lower).exists()


def test_too_many_chunks_for_suffix_width(make_config, plenty_of_space, output_dir):
    with pytest.raises(ConfigError) as exc_info:
        SplitEngine(make_config(chunk_size_bytes=1), free_space_fn=plenty_of_space).run()

    assert '--suffix-length 3' in exc_info.value.remediation
    assert chunk_names(output_dir) == []


def test_wider_suffix_names_chunks(make_config, plenty_of_space, output_dir):
    SplitEngine(make_config(suffix_length=3), free_space_fn=plenty_of_space).run()

    assert chunk_names(output_dir) == ['split_aaa', 'split_aab', 'split_aac']


def test_missing_output_dir(make_config, tmp_path, plenty_of_space):
    config = make_config(output_dir=tmp_path / 'missing')

    with pytest.raises(SourceUnavailableError):
        SplitEngine(config, free_space_fn=plenty_of_space).run()


def test_missing_source(make_config, tmp_path, plenty_of_space):
    config = make_config(source_path=tmp_path / 'missing.img')

    with pytest.raises(SourceUnavailableError):
        SplitEngine(config, free_space_fn=plenty_of_space).run()


def test_sync_requires_object_store(make_config):
    with pytest.raises(ConfigError):
        SplitEngine(make_config(remote={'bucket': 'b', 'path': ''}))


def test_sync_run_uploads_and_deletes(make_config, output_dir, plenty_of_space, fake_store, source_bytes):
    SplitEngine(make_config(), free_space_fn=plenty_of_space).run()
    config = make_config(remote={'bucket': 'bucket', 'path': 'backups/'})

    report = SplitEngine(config, object_store=fake_store).run()

    assert report.sync.uploaded == 3
    assert report.sync.failures == []
    assert report.complete
    assert chunk_names(output_dir) == []
    assert sorted(fake_store.objects) == ['backups/split_aa', 'backups/split_ab', 'backups/split_ac']
    assert b''.join(fake_store.objects[f'backups/split_a{c}'] for c in 'abc') == source_bytes
    assert all(sidecar_path(output_dir / f'split_a{c}').exists() for c in 'abc')


def test_sync_rerun_uses_cached_digests(make_config, output_dir, plenty_of_space, fake_store):
    SplitEngine(make_config(), free_space_fn=plenty_of_space).run()
    config = make_config(remote={'bucket': 'bucket', 'path': ''})
    SplitEngine(config, object_store=fake_store).run()
    fake_store.uploads.clear()

    report = SplitEngine(config, object_store=fake_store).run()

    assert report.sync.already_synced == 3
    assert report.sync.materialized == 0
    assert report.chunks_created == 0
    assert fake_store.uploads == []
    assert chunk_names(output_dir) == []


def test_sync_from_scratch_materializes_every_chunk(make_config, output_dir, fake_store):
    config = make_config(remote={'bucket': 'bucket', 'path': ''})

    report = SplitEngine(config, object_store=fake_store).run()

    assert report.sync.materialized == 3
    assert report.sync.uploaded == 3
    assert chunk_names(output_dir) == []
