"""
Paths
=====
Centralises the on-disk locations used by docvec so that a single import
(`from docvec.utils.paths import PATHS`) provides **typed** access to the
directories used by the vector store, the catalog and the document blobs.
"""
from pathlib import Path
from typing import TypedDict

from docvec.config.settings import Settings


class _Paths(TypedDict):
    home:  Path
    index: Path


HOME = Path(Settings.get("DOCVEC_HOME", ".docvec")).expanduser().resolve()

PATHS: _Paths = {
    "home":  HOME,            # config.json (saved sources and extensions)
    "index": HOME / "index",  # index.json, catalog.json, <documentId>.txt/.json
}
