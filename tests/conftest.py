"""Shared fixtures for checkclaw tests."""

import io
from pathlib import Path

import pytest
from rich.console import Console

from checkclaw.config import AUTH_APIKEY, Config


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every test at an empty config directory with no env overrides."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv("CHECKCLAW_CONFIG_DIR", str(config_dir))
    monkeypatch.delenv("CHECKCLAW_API_KEY", raising=False)
    monkeypatch.delenv("CHECKCLAW_API_URL", raising=False)
    return config_dir


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(output: io.StringIO) -> Console:
    """Console that records plain text into the output fixture."""
    return Console(file=output, width=200, color_system=None, force_terminal=False)


@pytest.fixture
def config(isolated_config_dir: Path) -> Config:
    """An authenticated config persisted inside the isolated directory."""
    return Config(
        api_url="https://api.example.test",
        auth_type=AUTH_APIKEY,
        api_key="ck_test_key",
        path=isolated_config_dir / "config.yaml",
    )
