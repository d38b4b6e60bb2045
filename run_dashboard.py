#!/usr/bin/env python3
"""Direct launcher for the Household Budget dashboard."""

import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.resolve()
dashboard = project_root / "household_budget" / "dashboard.py"

if __name__ == "__main__":
    # Extra arguments are passed on to ``streamlit run``, e.g. --server.port 8502
    subprocess.run(
        [sys.executable, "-m", "streamlit", "run", str(dashboard), *sys.argv[1:]],
        cwd=str(project_root),
        check=False,
    )
