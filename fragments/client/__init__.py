"""Client-side helpers used by the CLI."""

from fragments.client.manifest import check_duplicates, load
from fragments.client.source import checksum, collect_source, compress
from fragments.client.upload import upload
from fragments.client.walk import walk

__all__ = ["check_duplicates", "checksum", "collect_source", "compress", "load", "upload", "walk"]
