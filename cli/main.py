"""CLI entry point."""

import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from common.constants import EXIT_FAILURE, EXIT_OK, EXIT_USAGE
from common.logging_config import setup_logging
from cli.commands import format_summary, handle_split
from cli.config import Config, default_config_path
from cli.parser import ParseError, parse_command
from splitter.disk_space import available_bytes
from splitter.exceptions import SplitterError


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Entry point for CLI.

    Returns:
        0 when the run completed or paused for disk space, 1 on a fatal
        error, 2 on invalid arguments
    """
    args = list(sys.argv[1:] if argv is None else argv)
    debug = '-x' in args or '--debug' in args
    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'INFO')
    logger = setup_logging(log_level=log_level)
    if debug:
        logger.info("Debug logging enabled")

    config = Config(default_config_path())
    try:
        cmd = parse_command(args, config)
    except ParseError as e:
        logger.error(f"Error: {e}")
        return EXIT_USAGE

    try:
        report = handle_split(cmd, config)
    except SplitterError as e:
        logger.error(f"ERROR: {e}")
        if e.remediation:
            logger.error(e.remediation)
        return EXIT_FAILURE

    free_bytes = None
    try:
        free_bytes = available_bytes(Path(cmd.output_dir))
    except OSError as e:
        logger.debug(f"Could not read final free space: {e}")
    print(format_summary(report, free_bytes))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
