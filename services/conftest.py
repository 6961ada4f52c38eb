"""Shared pytest configuration for all services."""

import sys
from pathlib import Path

import pytest

# Make the service sources importable without an install
SERVICES_DIR = Path(__file__).parent
for src_path in (SERVICES_DIR / "common" / "src", SERVICES_DIR / "analysis" / "src"):
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless --integration flag is passed."""
    run_integration = config.getoption("--integration", default=False)
    if not run_integration:
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests against a real Stockfish binary",
    )
