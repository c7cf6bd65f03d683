"""
DocumentLoader
==============
Discovers and reads text files from a file or a directory tree.
"""

from pathlib import Path
from typing import Iterable, Iterator, Optional, Set, Tuple

from docvec.utils.logging import SimpleLogger

NO_EXTENSION = "none"


class DocumentLoader:
    """Walks a source path and yields (uri, text, extension) tuples."""

    def iter_documents(
        self, source: str | Path, extensions: Optional[Iterable[str]] = None
    ) -> Iterator[Tuple[str, str, str]]:
        """
        Yield every file under `source` (or `source` itself when it is a file).

        :param source: File or directory. A missing path yields nothing.
        :param extensions: Optional whitelist, with or without the leading dot.
        :return: Iterator of (absolute_path_str, file_text, extension); the
                 extension has no dot and is "none" for files without one.
        """
        root = Path(source).resolve()
        if not root.exists():
            SimpleLogger.warning(f"Source does not exist: {root}")
            return

        wanted: Optional[Set[str]] = None
        if extensions is not None:
            wanted = {e.lower().lstrip(".") for e in extensions}

        files = [root] if root.is_file() else sorted(p for p in root.rglob("*") if p.is_file())
        for file_path in files:
            extension = file_path.suffix[1:].lower() if file_path.suffix else NO_EXTENSION
            if wanted is not None and extension not in wanted:
                continue
            # newline="" keeps the text identical to the bytes on disk
            try:
                with file_path.open("r", encoding="utf-8", newline="") as f:
                    text = f.read()
            except UnicodeDecodeError:
                # Fallback: try latin-1 to avoid crash on non-UTF8 files
                with file_path.open("r", encoding="latin-1", newline="") as f:
                    text = f.read()
            yield str(file_path), text, extension
