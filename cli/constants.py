"""CLI constants (help text)."""

DESCRIPTION = "Split a large file into smaller chunks with resume capability."

EPILOG = """B2 upload:
  With --upload-b2, every chunk of the source is checked against B2 by SHA1.
  Chunks already present remotely are deleted locally; others are uploaded,
  re-verified, then deleted. Hash files (<chunk>.sha1) are always kept.
  Credentials come from B2_APPLICATION_KEY_ID / B2_APPLICATION_KEY or the
  config file (~/.splitresume/config.json).

Sizes:
  Bare numbers are GiB. K, M, G, T suffixes are binary units, B is bytes.

Examples:
  splitresume /path/to/large.file /path/to/output/
  splitresume -p backup_ -s 4 -b 1 /data/file.img /backup/chunks/
  splitresume --prefix media_ --size 10 /media.zfs /chunks/
  splitresume --upload-b2 my-bucket backups/ /file.img /chunks/
"""
