"""Tests for CLI parsing, the split handler and the entry point."""

import logging

import pytest

from cli.commands import build_run_configuration, format_summary, handle_split
from cli.config import Config
from cli.main import main
from cli.parser import ParseError, parse_command
from cli.utils import format_file_size, parse_size
from common.constants import GIB, PACKAGE_LOGGERS
from splitter.exceptions import ConfigError


@pytest.fixture
def temp_config(tmp_path):
    return Config(tmp_path / '.splitresume' / 'config.json')


@pytest.fixture
def isolated_cli(tmp_path, monkeypatch):
    """
    Point the CLI at a temporary config and undo its logging setup afterwards.
    """
    monkeypatch.setenv('SPLITRESUME_CONFIG', str(tmp_path / 'cli-config.json'))
    yield
    for name in PACKAGE_LOGGERS:
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


@pytest.mark.parametrize("text,expected", [
    ("8", 8 * GIB),
    ("0", 0),
    ("512M", 512 * 1024 ** 2),
    ("4GiB", 4 * GIB),
    ("2g", 2 * GIB),
    ("400B", 400),
    ("1T", 1024 ** 4),
])
def test_parse_size(text, expected):
    assert parse_size(text) == expected


@pytest.mark.parametrize("text", ["", "-1", "1.5", "8X", "GB"])
def test_parse_size_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_size(text)


def test_format_file_size():
    assert format_file_size(512) == "512 B"
    assert format_file_size(1536) == "1.50 KiB"
    assert format_file_size(8 * GIB) == "8.00 GiB"


def test_parse_defaults_come_from_config(temp_config):
    cmd = parse_command(['/data/file.img', '/chunks'], temp_config)

    assert cmd.source_file == '/data/file.img'
    assert cmd.output_dir == '/chunks'
    assert cmd.prefix == 'split_'
    assert cmd.chunk_size_bytes == 8 * GIB
    assert cmd.safety_buffer_bytes == 2 * GIB
    assert cmd.digest_algorithm == 'sha1'
    assert cmd.suffix_length == 2
    assert not cmd.upload_enabled


def test_parse_all_options(temp_config):
    cmd = parse_command(
        ['-p', 'backup_', '-s', '4', '-b', '1', '--upload-b2', 'my-bucket', 'backups/',
         '--suffix-length', '3', '-x', '/file.img', '/chunks'],
        temp_config,
    )

    assert cmd.prefix == 'backup_'
    assert cmd.chunk_size_bytes == 4 * GIB
    assert cmd.safety_buffer_bytes == GIB
    assert cmd.b2_bucket == 'my-bucket'
    assert cmd.b2_remote_path == 'backups/'
    assert cmd.suffix_length == 3
    assert cmd.debug


def test_parse_invalid_size(temp_config):
    with pytest.raises(ParseError):
        parse_command(['-s', 'lots', '/file.img', '/chunks'], temp_config)


def test_parse_missing_arguments_exits(temp_config):
    with pytest.raises(SystemExit):
        parse_command(['/file.img'], temp_config)


def test_zero_chunk_size_is_a_config_error(temp_config):
    cmd = parse_command(['-s', '0', '/file.img', '/chunks'], temp_config)

    with pytest.raises(ConfigError):
        build_run_configuration(cmd)


def test_explicit_zero_suffix_length_is_a_config_error(temp_config):
    cmd = parse_command(['--suffix-length', '0', '/file.img', '/chunks'], temp_config)

    assert cmd.suffix_length == 0
    with pytest.raises(ConfigError):
        build_run_configuration(cmd)


def test_prefix_with_separator_is_a_config_error(temp_config):
    cmd = parse_command(['-p', 'a/b_', '/file.img', '/chunks'], temp_config)

    with pytest.raises(ConfigError):
        build_run_configuration(cmd)


def test_handle_split_pauses_without_space(temp_config, source_file, output_dir):
    cmd = parse_command(['-s', '400B', '-b', '0', str(source_file), str(output_dir)], temp_config)

    report = handle_split(cmd, temp_config, free_space_fn=lambda path: 100)

    assert report.paused_for_space
    summary = format_summary(report, free_bytes=100)
    assert 'Chunks created in this session: 0' in summary
    assert 'Remaining chunks to create: 3' in summary
    assert 'Next chunk to create: aa' in summary


def test_handle_split_with_injected_store(temp_config, source_file, output_dir, fake_store):
    cmd = parse_command(
        ['-s', '400B', '--upload-b2', 'bucket', 'remote/', str(source_file), str(output_dir)],
        temp_config,
    )

    report = handle_split(cmd, temp_config, store=fake_store)

    assert report.sync.uploaded == 3
    assert 'All chunks are synced' in format_summary(report)
    assert sorted(fake_store.objects) == ['remote/split_aa', 'remote/split_ab', 'remote/split_ac']


def test_main_completes(isolated_cli, source_file, output_dir, capsys):
    code = main(['-s', '400B', '-b', '0', str(source_file), str(output_dir)])

    assert code == 0
    assert 'All chunks have been created successfully!' in capsys.readouterr().out
    assert (output_dir / 'split_ac').stat().st_size == 200


def test_main_fails_on_partial_chunk(isolated_cli, source_file, output_dir):
    (output_dir / 'split_aa').write_bytes(b'short')

    assert main(['-s', '400B', '-b', '0', str(source_file), str(output_dir)]) == 1
    assert not (output_dir / 'split_ab').exists()


def test_main_fails_on_missing_source(isolated_cli, tmp_path, output_dir):
    assert main(['-s', '400B', str(tmp_path / 'nope'), str(output_dir)]) == 1


def test_main_rejects_bad_size(isolated_cli, source_file, output_dir):
    assert main(['-s', 'huge', str(source_file), str(output_dir)]) == 2


def test_main_pauses_cleanly_without_space(isolated_cli, source_file, output_dir, monkeypatch, capsys):
    monkeypatch.setattr('splitter.disk_space.available_bytes', lambda path: 100)
    monkeypatch.setattr('cli.main.available_bytes', lambda path: 100)

    code = main(['-s', '400B', '-b', '0', str(source_file), str(output_dir)])

    assert code == 0
    out = capsys.readouterr().out
    assert 'Next chunk to create: aa' in out
    assert 'Remaining chunks to create: 3' in out
    assert list(output_dir.iterdir()) == []
