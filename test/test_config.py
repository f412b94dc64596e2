import pytest

from flatchat.core import config


class TestEnvOverrides:

    def test_fractional_lock_timeout(self, monkeypatch):
        monkeypatch.setenv("FLATCHAT_LOCK_TIMEOUT_SECONDS", "2.5")
        assert config._env_float("FLATCHAT_LOCK_TIMEOUT_SECONDS", 5.0) == 2.5

    def test_unset_uses_default(self, monkeypatch):
        monkeypatch.delenv("FLATCHAT_LOCK_TIMEOUT_SECONDS", raising=False)
        assert config._env_float("FLATCHAT_LOCK_TIMEOUT_SECONDS", 5.0) == 5.0

    def test_garbage_fails_fast(self, monkeypatch):
        monkeypatch.setenv("FLATCHAT_LOCK_TIMEOUT_SECONDS", "soon")
        with pytest.raises(RuntimeError):
            config._env_float("FLATCHAT_LOCK_TIMEOUT_SECONDS", 5.0)

    def test_octal_file_mode(self, monkeypatch):
        monkeypatch.setenv("FLATCHAT_FILE_MODE", "0640")
        assert config._env_mode("FLATCHAT_FILE_MODE", 0o660) == 0o640

    def test_default_lock_timeout_is_a_float(self):
        assert isinstance(config.LOCK_TIMEOUT_SECONDS, float)
