from decimal import Decimal

from sessionguard.config import Settings


def test_defaults():
    settings = Settings()

    assert settings.recovery_dust_threshold_sol == Decimal("0.001")
    assert settings.sweep_max_attempts == 1
    assert settings.sweep_settle_delay_seconds == 2.0
    assert settings.stranded_monitor_enabled is False


def test_env_overrides(monkeypatch):
    """Recovery settings load from the environment."""

    monkeypatch.setenv("RECOVERY_DUST_THRESHOLD_SOL", "0.005")
    monkeypatch.setenv("SWEEP_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("UPSTREAM_API_KEY", "key-123")

    settings = Settings()

    assert settings.recovery_dust_threshold_sol == Decimal("0.005")
    assert settings.sweep_max_attempts == 3
    assert settings.has_upstream_key is True
