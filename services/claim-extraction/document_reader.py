"""Document-to-text conversion for file-path requests."""

import logging
from pathlib import Path
from typing import Protocol

import pdfplumber

logger = logging.getLogger(__name__)


class DocumentReadError(Exception):
    """File is missing, unreadable, or not a parseable document."""


def resolve_under_root(path: str, root: str) -> str:
    """Resolve ``path`` against ``root``; reject anything that lands outside it.

    Relative paths are taken relative to ``root``. Symlinks and ``..`` are
    resolved before the containment check.
    """
    if not root:
        raise DocumentReadError("File paths are not accepted: no document root is configured")

    root_path = Path(root).resolve()
    candidate = (root_path / path).resolve()
    if not candidate.is_relative_to(root_path):
        raise DocumentReadError("File path is outside the document root")
    return str(candidate)


class DocumentReader(Protocol):
    def read(self, path: str) -> str: ...


class FileDocumentReader:
    """Reads PDFs with pdfplumber and everything else as UTF-8 text."""

    def read(self, path: str) -> str:
        file_path = Path(path)
        if not file_path.is_file():
            raise DocumentReadError(f"File not found: {path}")

        if file_path.suffix.lower() == ".pdf":
            return self._read_pdf(file_path)

        try:
            return file_path.read_bytes().decode("utf-8", errors="replace")
        except OSError as e:
            raise DocumentReadError(f"Cannot read {file_path.name}: {e}") from e

    @staticmethod
    def _read_pdf(file_path: Path) -> str:
        try:
            with pdfplumber.open(file_path) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except Exception as e:
            raise DocumentReadError(f"Cannot parse PDF {file_path.name}: {e}") from e

        logger.info("Read %d page(s) from %s", len(pages), file_path.name)
        return "\n".join(pages)
