import hashlib
import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from ..config import settings
from ..types import CodeFile
from ..utils.logger import app_logger


class LocalCodebaseScanner:
    """Scanner that discovers indexable source files under a root directory."""

    def __init__(
        self,
        root_path: Optional[str] = None,
        extension_languages: Optional[Dict[str, str]] = None,
        ignored_dirs: Optional[Iterable[str]] = None,
        max_file_size: Optional[int] = None,
    ):
        if root_path is None:
            self.root_path = Path.cwd().resolve()
        else:
            self.root_path = Path(root_path).resolve()

        # extension -> language name, e.g. {".py": "python"}
        self.extension_languages = {
            ext.lower(): language for ext, language in (extension_languages or {}).items()
        }
        self.ignored_dirs = set(ignored_dirs) if ignored_dirs is not None else settings.ignored_dirs_set
        self.max_file_size = max_file_size if max_file_size is not None else settings.max_file_size
        self.logger = app_logger.bind(component="scanner")

    def scan_directory(self) -> List[CodeFile]:
        """Scan the root and return matching files ordered by relative path."""
        self.logger.info(f"Scanning directory: {self.root_path}")

        code_files = sorted(self._walk_directory(), key=lambda code_file: code_file.path)

        self.logger.info(f"Found {len(code_files)} files to process")
        return code_files

    def _walk_directory(self) -> Iterator[CodeFile]:
        for root, dirs, files in os.walk(self.root_path):
            # Prune ignored directories in place so os.walk skips them
            dirs[:] = [d for d in dirs if d not in self.ignored_dirs]

            for file_name in files:
                file_path = Path(root) / file_name
                if self._should_include_file(file_path):
                    code_file = self._create_code_file(file_path)
                    if code_file:
                        yield code_file

    def _should_include_file(self, file_path: Path) -> bool:
        """Check if file should be included in scan."""
        if file_path.suffix.lower() not in self.extension_languages:
            return False

        try:
            if file_path.stat().st_size > self.max_file_size:
                self.logger.warning(f"Skipping large file: {file_path}")
                return False
        except OSError:
            return False

        return True

    def _create_code_file(self, file_path: Path) -> Optional[CodeFile]:
        try:
            stat = file_path.stat()
        except OSError as e:
            self.logger.error(f"Error reading file metadata for {file_path}: {e}")
            return None

        extension = file_path.suffix.lower()
        return CodeFile(
            path=file_path.relative_to(self.root_path).as_posix(),
            absolute_path=str(file_path.resolve()),
            language=self.extension_languages[extension],
            extension=extension,
            size=stat.st_size,
            last_modified=stat.st_mtime,
        )

    def read_file(self, code_file: CodeFile) -> str:
        """Read a file's text. Raises OSError when the file cannot be read."""
        with open(code_file.absolute_path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()

    @staticmethod
    def hash_content(content: str) -> str:
        """Content fingerprint used for change detection."""
        return hashlib.md5(content.encode("utf-8")).hexdigest()
