"""Configuration helpers for the board review queues."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_DATA_ROOT = Path.home() / "boardreview-data"
DEFAULT_PAGE_SIZE = 10
PAGE_SIZES = (10, 25, 50, 100)


class Settings(BaseModel):
    """Runtime configuration loaded from env vars with sensible defaults."""

    data_dir: Path = Field(default_factory=lambda: DEFAULT_DATA_ROOT)
    db_filename: str = "review.sqlite3"
    log_level: str = "INFO"
    default_page_size: int = DEFAULT_PAGE_SIZE
    pubmed_base_url: str = "https://pubmed.ncbi.nlm.nih.gov"

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename

    def ensure_directories(self) -> None:
        """Create data directories if they are missing."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Settings":
        load_dotenv()
        data_dir = Path(os.environ.get("BOARDREVIEW_DATA_DIR", DEFAULT_DATA_ROOT))
        return cls(
            data_dir=data_dir,
            db_filename=os.environ.get("BOARDREVIEW_DB_FILENAME", "review.sqlite3"),
            log_level=os.environ.get("BOARDREVIEW_LOG_LEVEL", "INFO"),
            default_page_size=int(
                os.environ.get("BOARDREVIEW_PAGE_SIZE", DEFAULT_PAGE_SIZE)
            ),
            pubmed_base_url=os.environ.get(
                "BOARDREVIEW_PUBMED_URL", "https://pubmed.ncbi.nlm.nih.gov"
            ),
        )


def get_settings() -> Settings:
    """Convenience accessor for lazy modules."""
    settings = Settings.load()
    settings.ensure_directories()
    return settings
