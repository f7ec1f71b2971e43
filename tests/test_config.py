"""
Tests for settings loading
"""
from config import Settings


class TestSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PORT", "4000")
        monkeypatch.setenv("ARTIFACT_RENDERER", "lite")

        loaded = Settings(_env_file=None)

        assert loaded.PORT == 4000
        assert loaded.ARTIFACT_RENDERER == "lite"

    def test_unknown_variables_are_ignored(self, monkeypatch):
        monkeypatch.setenv("SOME_OTHER_SERVICE_TOKEN", "x")
        Settings(_env_file=None)

    def test_settings_config(self):
        assert Settings.model_config["env_file"] == ".env"
        assert Settings.model_config["case_sensitive"] is True
        assert Settings.model_config["extra"] == "ignore"

    def test_celery_broker_defaults_to_redis(self, monkeypatch):
        monkeypatch.delenv("CELERY_BROKER_URL", raising=False)
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/0")

        assert Settings(_env_file=None).celery_broker == "redis://cache:6379/0"
