"""Tests for environment based configuration."""

import pytest
from pydantic import ValidationError

from py_lloyd.config import Settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("ITERATIONS", "TIME_LIMIT", "CONVERGENCE_RATIO", "FREEZE_BOUND", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(f"LLOYD_{name}", raising=False)
    return monkeypatch


class TestSettings:
    """Test loading settings and turning them into engine options."""

    def test_defaults_mean_unlimited(self, clean_env):
        """Test that zero limits become unlimited options."""
        options = Settings(_env_file=None).to_options()

        assert options.iterations is None
        assert options.time_limit is None
        assert options.convergence_ratio == 0.0
        assert options.freeze_bound == 0.0

    def test_environment_overrides(self, clean_env):
        """Test reading LLOYD_* variables."""
        clean_env.setenv("LLOYD_ITERATIONS", "50")
        clean_env.setenv("LLOYD_TIME_LIMIT", "2.5")
        clean_env.setenv("LLOYD_CONVERGENCE_RATIO", "0.01")
        clean_env.setenv("LLOYD_FREEZE_BOUND", "0.001")
        clean_env.setenv("LLOYD_LOG_FORMAT", "json")

        settings = Settings(_env_file=None)
        options = settings.to_options()

        assert settings.log_format == "json"
        assert options.iterations == 50
        assert options.time_limit == 2.5
        assert options.convergence_ratio == 0.01
        assert options.freeze_bound == 0.001

    @pytest.mark.parametrize("name,value", [
        ("LLOYD_ITERATIONS", "-1"),
        ("LLOYD_TIME_LIMIT", "-0.5"),
        ("LLOYD_CONVERGENCE_RATIO", "1.5"),
        ("LLOYD_FREEZE_BOUND", "-0.1"),
        ("LLOYD_LOG_FORMAT", "xml"),
    ])
    def test_invalid_values(self, clean_env, name, value):
        """Test that invalid values are rejected when loading."""
        clean_env.setenv(name, value)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
