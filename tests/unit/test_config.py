"""Tests for settings.json, pool.yaml defaults and pool settings parsing."""

import json

import pytest
import yaml

from tippool.sdk import (
    ClosingTime,
    ConfigurationError,
    PeriodDuration,
    PoolSettings,
    RoundingStep,
    ValidationError,
    get_config_dir,
    get_data_path,
    get_default_team,
    load_pool_defaults,
    load_pool_settings,
    parse_pool_settings,
    save_pool_defaults,
    set_setting,
    update_pool_settings,
)


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Point configuration at a temp directory."""
    config_dir = tmp_path / "config"
    data_dir = tmp_path / "data"
    config_dir.mkdir()

    monkeypatch.setenv("TIP_POOL_CONFIG_PATH", str(config_dir))
    (config_dir / "settings.json").write_text(json.dumps({"data_dir": str(data_dir)}))

    return {"config_dir": config_dir, "data_dir": data_dir}


class TestSettingsFile:

    def test_config_dir_from_env(self, isolated_env):
        assert get_config_dir() == isolated_env["config_dir"]

    def test_data_dir_from_settings_is_created(self, isolated_env):
        assert get_data_path() == isolated_env["data_dir"]
        assert isolated_env["data_dir"].is_dir()

    def test_default_team(self, isolated_env):
        assert get_default_team() == "default"
        set_setting("team", "bar-north")
        assert get_default_team() == "bar-north"
        saved = json.loads((isolated_env["config_dir"] / "settings.json").read_text())
        assert saved == {"data_dir": str(isolated_env["data_dir"]), "team": "bar-north"}


class TestPoolSettings:

    def test_defaults(self):
        settings = PoolSettings()
        assert settings.period_duration is PeriodDuration.WEEK
        assert settings.auto_close_periods is True
        assert settings.align_with_calendar is False
        assert settings.closing_time == ClosingTime(hour=0, minute=0)
        assert settings.rounding_step is RoundingStep.NONE

    def test_parse_stored_document(self):
        settings = parse_pool_settings({
            "period_duration": "day",
            "closing_time": {"hour": 2, "minute": 30},
            "rounding_step": "5.00",
        })
        assert settings.period_duration is PeriodDuration.DAY
        assert settings.closing_time == ClosingTime(hour=2, minute=30)
        assert settings.rounding_step is RoundingStep.FIVE

    def test_to_dict_round_trip(self):
        settings = PoolSettings(closing_time="21:15", rounding_step=2)
        assert PoolSettings.model_validate(settings.to_dict()) == settings

    @pytest.mark.parametrize("raw", [
        {"period_duration": "fortnight"},
        {"closing_time": {"hour": 30, "minute": 0}},
        {"rounding_step": "3"},
        {"auto_close": True},
        ["week"],
    ])
    def test_strict_parse_rejects_malformed(self, raw):
        with pytest.raises(ConfigurationError):
            parse_pool_settings(raw)

    def test_malformed_falls_back_to_defaults(self, caplog):
        settings = load_pool_settings({"period_duration": "fortnight"}, source="team 'bar'")
        assert settings == PoolSettings()
        assert "Falling back to default pool settings" in caplog.text

    def test_update_rejects_invalid_values(self):
        current = PoolSettings()
        with pytest.raises(ValidationError) as exc:
            update_pool_settings(current, period_duration="year", rounding_step="3")
        assert len(exc.value.errors) == 2

    def test_update_ignores_unset_values(self):
        updated = update_pool_settings(PoolSettings(), period_duration="month", closing_time=None)
        assert updated.period_duration is PeriodDuration.MONTH
        assert updated.closing_time == ClosingTime()


class TestPoolDefaults:

    def test_missing_file_uses_builtin_defaults(self, isolated_env):
        assert load_pool_defaults() == PoolSettings()

    def test_save_and_load(self, isolated_env):
        wanted = PoolSettings(period_duration="day", closing_time="03:00", rounding_step="1")
        path = save_pool_defaults(wanted)
        assert path == isolated_env["config_dir"] / "pool.yaml"
        assert yaml.safe_load(path.read_text())["defaults"]["period_duration"] == "day"
        assert load_pool_defaults() == wanted

    def test_malformed_yaml_uses_builtin_defaults(self, isolated_env):
        (isolated_env["config_dir"] / "pool.yaml").write_text("defaults: [unclosed")
        assert load_pool_defaults() == PoolSettings()

    def test_invalid_values_use_builtin_defaults(self, isolated_env):
        (isolated_env["config_dir"] / "pool.yaml").write_text(
            yaml.dump({"defaults": {"period_duration": "decade"}})
        )
        assert load_pool_defaults() == PoolSettings()
