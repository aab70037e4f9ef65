"""
Corpus loading for reference documents.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from ..models import ExampleDoc
from .metadata import extract_metadata

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS: tuple[str, ...] = (".json",)


@dataclass(frozen=True)
class LoadReport:
    """Documents read from a source directory plus the files that were skipped."""

    source_dir: str
    documents: list[ExampleDoc] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    found: bool = True


class CorpusLoader:
    """Read a bounded set of reference documents from a directory tree."""

    def __init__(
        self,
        *,
        extensions: tuple[str, ...] = DEFAULT_EXTENSIONS,
        max_documents: int = 5,
    ) -> None:
        if max_documents < 0:
            raise ValueError("max_documents must be >= 0")
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.max_documents = max_documents

    def load(self, source_dir: str) -> LoadReport:
        root = Path(source_dir).expanduser().resolve()
        if not root.is_dir():
            logger.info("Examples directory %s not found, using an empty corpus", root)
            return LoadReport(source_dir=str(root), found=False)

        files = self._iter_supported_files(root)
        documents: list[ExampleDoc] = []
        skipped: list[str] = []
        for file_path in files[: self.max_documents]:
            try:
                content = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Failed to read example file %s: %s", file_path, exc)
                skipped.append(str(file_path))
                continue
            doc = ExampleDoc(path=self._document_path(root, file_path), content=content)
            # Structure-derived; cache hits and embedding passes overwrite it.
            doc.metadata = extract_metadata(doc)
            documents.append(doc)

        logger.info(
            "Loaded %d examples from %s (%d found, %d skipped)",
            len(documents),
            root,
            len(files),
            len(skipped),
        )
        return LoadReport(source_dir=str(root), documents=documents, skipped=skipped)

    def _iter_supported_files(self, root: Path) -> list[Path]:
        files: list[Path] = []
        for current_root, dirnames, filenames in os.walk(root, onerror=self._log_walk_error):
            dirnames.sort()
            for filename in sorted(filenames):
                if Path(filename).suffix.lower() in self.extensions:
                    files.append(Path(current_root) / filename)
        return files

    @staticmethod
    def _document_path(root: Path, file_path: Path) -> str:
        # Paths keep the source directory name so ids read like "examples/x.json".
        return file_path.relative_to(root.parent).as_posix()

    @staticmethod
    def _log_walk_error(error: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", error.filename, error)
