"""Path management for mercado-qa.

Manages the ~/.mercado-qa/ directory structure.
"""

from pathlib import Path

# Base directory for all mercado-qa data
MERCADO_QA_DIR = Path.home() / ".mercado-qa"

# Persistent CLI configuration
CONFIG_FILE = MERCADO_QA_DIR / "config.yaml"

# Default location for JSON run reports
REPORTS_DIR = MERCADO_QA_DIR / "reports"


def ensure_dirs() -> None:
    """Create directory structure if missing.

    Creates:
    - ~/.mercado-qa/ (mode 0o700 - user-only access)
    - ~/.mercado-qa/reports/ (mode 0o700)
    """
    MERCADO_QA_DIR.mkdir(mode=0o700, exist_ok=True)
    REPORTS_DIR.mkdir(mode=0o700, exist_ok=True)


def get_report_file(run_id: str) -> Path:
    """Get path to a run report.

    Args:
        run_id: Run identifier (e.g., a UTC timestamp)

    Returns:
        Path to the JSON report file
    """
    return REPORTS_DIR / f"run-{run_id}.json"
