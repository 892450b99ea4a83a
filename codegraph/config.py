from pathlib import Path
from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CODEGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage Configuration
    db_dir: str = Field(default=".codegraph")
    db_name: str = Field(default="graph.db")

    # Indexing Configuration
    default_languages: str = Field(default="typescript,javascript,python")
    ignored_dirs: str = Field(
        default="node_modules,dist,build,.git,coverage,__pycache__,.venv,venv,.codegraph,.pytest_cache,.mypy_cache"
    )
    max_file_size: int = Field(default=2 * 1024 * 1024)
    signature_max_length: int = Field(default=200)

    # Savings estimate (informational only)
    tokens_per_symbol: int = Field(default=200)
    tokens_per_edge: int = Field(default=100)
    cost_per_million_tokens: float = Field(default=3.0)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    @property
    def default_languages_list(self) -> List[str]:
        """Get default languages as a list."""
        return [lang.strip() for lang in self.default_languages.split(",") if lang.strip()]

    @property
    def ignored_dirs_set(self) -> set:
        """Get ignored directory names as a set."""
        return {name.strip() for name in self.ignored_dirs.split(",") if name.strip()}

    def db_path_for(self, project_path: Path) -> Path:
        """Get the database file location for a project root."""
        return Path(project_path) / self.db_dir / self.db_name


settings = Settings()
