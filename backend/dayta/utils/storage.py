"""Filesystem helpers for rendered reports."""

import os
from pathlib import Path

# Determine base data directory:
# 1. Use DATA_ROOT env var if set.
# 2. Else, if /data exists, assume Docker environment and use /data.
# 3. Otherwise, use project_root/data (development environment).
_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_DATA_ROOT = os.getenv("DATA_ROOT")
if _ENV_DATA_ROOT:
    DATA_ROOT = Path(_ENV_DATA_ROOT)
elif Path("/data").exists():
    DATA_ROOT = Path("/data")
else:
    DATA_ROOT = _PROJECT_ROOT / "data"

# Locally rendered PDF reports, served by the outputs router
REPORTS_DIR = DATA_ROOT / "reports"


def ensure_dir_exists(path: Path) -> Path:
    """Ensure that the given directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_report_pdf(filename: str, pdf_bytes: bytes, reports_dir: Path = REPORTS_DIR) -> Path:
    """Write a rendered report and return its absolute path."""
    ensure_dir_exists(reports_dir)
    path = reports_dir / filename
    with open(path, "wb") as f:
        f.write(pdf_bytes)
    return path
