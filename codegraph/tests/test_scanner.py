from pathlib import Path

import pytest

from codegraph.scanner.local_codebase_scanner import LocalCodebaseScanner

from .helpers import write_source

EXTENSIONS = {".py": "python", ".ts": "typescript", ".js": "javascript"}


class TestLocalCodebaseScanner:
    """Test local codebase scanner functionality."""

    def test_scan_directory(self, temp_codebase: Path):
        """Test scanning a directory for indexable files."""
        scanner = LocalCodebaseScanner(str(temp_codebase), extension_languages=EXTENSIONS)
        files = scanner.scan_directory()

        assert [f.path for f in files] == [
            "app.py", "src/caller.js", "src/service.ts", "tests/test_app.py", "widgets.py",
        ]
        by_path = {f.path: f for f in files}
        assert by_path["src/service.ts"].language == "typescript"
        assert by_path["src/service.ts"].extension == ".ts"
        assert Path(by_path["app.py"].absolute_path).is_absolute()
        assert by_path["app.py"].size > 0

    def test_extension_filter(self, temp_codebase: Path):
        scanner = LocalCodebaseScanner(str(temp_codebase), extension_languages={".py": "python"})
        assert all(f.language == "python" for f in scanner.scan_directory())

    def test_ignored_directories(self, tmp_path: Path):
        write_source(tmp_path / "keep.py", "x = 1\n")
        write_source(tmp_path / "node_modules" / "dep.js", "var x;\n")
        write_source(tmp_path / "build" / "out.js", "var y;\n")
        write_source(tmp_path / ".codegraph" / "cache.py", "z = 1\n")

        scanner = LocalCodebaseScanner(str(tmp_path), extension_languages=EXTENSIONS)
        assert [f.path for f in scanner.scan_directory()] == ["keep.py"]

        custom = LocalCodebaseScanner(str(tmp_path), extension_languages=EXTENSIONS, ignored_dirs=["build"])
        assert "node_modules/dep.js" in [f.path for f in custom.scan_directory()]

    def test_large_files_skipped(self, tmp_path: Path):
        write_source(tmp_path / "small.py", "x = 1\n")
        write_source(tmp_path / "large.py", "x = 1\n" * 100)

        scanner = LocalCodebaseScanner(str(tmp_path), extension_languages=EXTENSIONS, max_file_size=50)
        assert [f.path for f in scanner.scan_directory()] == ["small.py"]

    def test_read_and_hash(self, temp_codebase: Path):
        scanner = LocalCodebaseScanner(str(temp_codebase), extension_languages=EXTENSIONS)
        app = next(f for f in scanner.scan_directory() if f.path == "app.py")

        content = scanner.read_file(app)

        assert content.startswith("def a():")
        assert scanner.hash_content("") == "d41d8cd98f00b204e9800998ecf8427e"
        assert scanner.hash_content(content) == scanner.hash_content(content)
        assert scanner.hash_content(content) != scanner.hash_content(content + "\n")

    def test_read_missing_file_raises(self, temp_codebase: Path):
        scanner = LocalCodebaseScanner(str(temp_codebase), extension_languages=EXTENSIONS)
        app = next(f for f in scanner.scan_directory() if f.path == "app.py")
        (temp_codebase / "app.py").unlink()

        with pytest.raises(OSError):
            scanner.read_file(app)
