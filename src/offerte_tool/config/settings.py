"""
Centralized settings and path configuration for the offerte tool.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def get_package_root() -> Path:
    return Path(__file__).resolve().parent.parent


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path

    # Reference data: a directory of CSV/JSON files or an Excel workbook
    reference_dir: Path
    reference_workbook: Optional[Path] = None

    # Tenant overrides for correction factors (optional)
    correctie_overrides: Optional[Path] = None

    # Output files
    load_report: Optional[Path] = None

    @property
    def reference_source(self) -> Path:
        """Workbook when one is configured and present, else the CSV directory."""
        if self.reference_workbook and self.reference_workbook.exists():
            return self.reference_workbook
        return self.reference_dir

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()

        reference_dir = Path(os.environ.get(
            'OFFERTE_REFERENCE_DIR',
            get_package_root() / 'data' / 'reference',
        ))
        workbook = os.environ.get('OFFERTE_REFERENCE_WORKBOOK')
        overrides = reference_dir / 'correctiefactoren_overrides.csv'

        return cls(
            project_root=root,
            reference_dir=reference_dir,
            reference_workbook=Path(workbook) if workbook else None,
            correctie_overrides=overrides if overrides.exists() else None,
            load_report=root / 'outputs' / 'reference_report.json',
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
