"""Command-line argument parser."""

import argparse
from typing import Optional, Sequence

from cli.config import Config
from cli.constants import DESCRIPTION, EPILOG
from cli.models import SplitCommand
from cli.utils import parse_size


class ParseError(Exception):
    """Raised when argument values are invalid."""

    pass


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="splitresume",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("source_file", metavar="SOURCE_FILE", help="Path to the source file to split")
    parser.add_argument("output_dir", metavar="OUTPUT_DIR", help="Directory where chunks will be created")
    parser.add_argument("-p", "--prefix", help="Prefix for chunk filenames (default: split_)")
    parser.add_argument("-s", "--size", help="Chunk size; bare numbers are GiB (default: 8)")
    parser.add_argument("-b", "--buffer", help="Safety buffer; bare numbers are GiB (default: 2)")
    parser.add_argument(
        "--upload-b2",
        nargs=2,
        metavar=("BUCKET", "REMOTE_PATH"),
        help="Verify/upload chunks to B2 and delete them locally once verified",
    )
    parser.add_argument("--digest", help="Digest algorithm for hash files (default: sha1)")
    parser.add_argument("--suffix-length", type=int, help="Letters per chunk suffix (default: 2)")
    parser.add_argument("-x", "--debug", action="store_true", help="Enable debug logging")
    return parser


def parse_command(argv: Optional[Sequence[str]], config: Config) -> SplitCommand:
    """
    Parse command-line arguments into a SplitCommand, filling gaps from config.

    Args:
        argv: Arguments without the program name (None reads sys.argv)
        config: Loaded CLI configuration

    Returns:
        SplitCommand

    Raises:
        ParseError: If a size value is malformed
        SystemExit: On usage errors or --help (raised by argparse)
    """
    args = build_parser().parse_args(argv)

    size_text = args.size if args.size is not None else str(config.get('chunk_size'))
    buffer_text = args.buffer if args.buffer is not None else str(config.get('safety_buffer'))
    try:
        chunk_size_bytes = parse_size(size_text)
    except ValueError as e:
        raise ParseError(f"Chunk size must be a positive size: {e}") from e
    try:
        safety_buffer_bytes = parse_size(buffer_text)
    except ValueError as e:
        raise ParseError(f"Safety buffer must be a non-negative size: {e}") from e

    bucket, remote_path = args.upload_b2 if args.upload_b2 else (None, None)
    if args.upload_b2 and not bucket:
        raise ParseError("B2 bucket name is required when using --upload-b2")

    return SplitCommand(
        source_file=args.source_file,
        output_dir=args.output_dir,
        prefix=args.prefix if args.prefix is not None else config.get('prefix'),
        chunk_size_bytes=chunk_size_bytes,
        safety_buffer_bytes=safety_buffer_bytes,
        digest_algorithm=args.digest or config.get('digest_algorithm'),
        suffix_length=args.suffix_length if args.suffix_length is not None else int(config.get('suffix_length')),
        b2_bucket=bucket,
        b2_remote_path=remote_path,
        debug=args.debug,
    )
