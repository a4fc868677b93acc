"""Tests for configuration loading and validation."""

import pytest
import yaml

from investpro.services.config import ConfigService, ConfigValidationException, DEFAULTS


def write_config(tmp_path, data):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestConfigValidation:
    """Test schema validation of config files."""

    def test_valid_config(self, tmp_path):
        path = write_config(tmp_path, {
            "database": {"url": "sqlite+aiosqlite:///./other.db", "timeout_seconds": 30},
            "auth": {"jwt_secret": "x" * 32, "token_ttl_days": 3, "bcrypt_rounds": 10},
            "sweep": {"enabled": False, "interval_seconds": 5},
            "investments": {"refund_on_cancel": False},
            "cors": {"allow_origins": ["https://invest.example.com"]},
            "logging": {"level": "DEBUG"},
        })
        service = ConfigService(path)
        service.load_and_validate()

        assert service.get("database.timeout_seconds") == 30
        assert service.get("sweep.enabled") is False
        assert service.get("cors.allow_origins") == ["https://invest.example.com"]
        # Keys not in the file fall back to defaults
        assert service.get("logging.format") == DEFAULTS["logging"]["format"]

    def test_missing_file_means_defaults(self, tmp_path):
        service = ConfigService(str(tmp_path / "absent.yaml"))
        assert service.load_and_validate() == {}
        assert service.get("sweep.interval_seconds") == 60
        assert service.get("auth.token_ttl_days") == 7
        assert service.get("no.such.key", "fallback") == "fallback"

    def test_empty_file_means_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        service = ConfigService(str(path))
        service.load_and_validate()
        assert service.get("investments.refund_on_cancel") is True

    @pytest.mark.parametrize("data,fragment", [
        ({"unknown_section": {}}, "Unknown configuration key"),
        ({"sweep": {"interval_seconds": "often"}}, "Expected int"),
        ({"sweep": {"interval_seconds": 0}}, "below minimum"),
        ({"sweep": {"enabled": "yes"}}, "Expected bool"),
        ({"auth": {"bcrypt_rounds": True}}, "Expected int"),
        ({"auth": {"jwt_secret": "short"}}, "at least 16"),
        ({"logging": {"level": "VERBOSE"}}, "not in allowed options"),
        ({"cors": {"allow_origins": ["ok", 5]}}, "Expected str"),
        ({"database": {"pool": 5}}, "Unknown configuration key"),
    ])
    def test_invalid_values(self, tmp_path, data, fragment):
        service = ConfigService(write_config(tmp_path, data))
        with pytest.raises(ConfigValidationException) as exc_info:
            service.load_and_validate()
        assert fragment in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("sweep: [unclosed")
        with pytest.raises(ConfigValidationException, match="Invalid YAML"):
            ConfigService(str(path)).load_and_validate()

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigValidationException, match="must be a dictionary"):
            ConfigService(str(path)).load_and_validate()


class TestEnvironmentOverrides:
    """Test environment variables taking precedence over the file."""

    def test_overrides_apply(self, tmp_path, monkeypatch):
        monkeypatch.setenv("INVESTPRO_DATABASE_URL", "sqlite+aiosqlite:///./env.db")
        monkeypatch.setenv("INVESTPRO_JWT_SECRET", "secret-from-the-environment")
        path = write_config(tmp_path, {"database": {"url": "sqlite+aiosqlite:///./file.db"}})

        service = ConfigService(path)
        service.load_and_validate()

        assert service.get("database.url") == "sqlite+aiosqlite:///./env.db"
        assert service.get("auth.jwt_secret") == "secret-from-the-environment"

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, {"sweep": {"interval_seconds": 15}})
        monkeypatch.setenv("INVESTPRO_CONFIG", path)

        service = ConfigService()
        service.load_and_validate()

        assert service.config_path == path
        assert service.get("sweep.interval_seconds") == 15
