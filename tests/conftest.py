"""Pytest configuration and shared fixtures."""

import os


# Settings are read at import time, so pin the environment before pairplan is imported
os.environ["REFERENCE_TIMEZONE"] = "UTC"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ.pop("LOGFIRE_TOKEN", None)

import logfire  # noqa: E402
import pytest  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _offline_logfire() -> None:
    """Keep spans and logs local during tests."""
    logfire.configure(send_to_logfire=False, console=False)
