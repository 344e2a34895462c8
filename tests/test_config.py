"""
Tests for settings loading.
"""
from stock_audit.config import Settings


class TestSettings:

    def test_env_file_configured(self):
        assert Settings.model_config["env_file"] == ".env"
        assert Settings.model_config["env_file_encoding"] == "utf-8"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SAMPLE_CAP_WAREHOUSE", "7")

        assert Settings(_env_file=None).SAMPLE_CAP_WAREHOUSE == 7

    def test_names_are_case_sensitive(self, monkeypatch):
        monkeypatch.delenv("SAMPLE_CAP_WAREHOUSE", raising=False)
        monkeypatch.setenv("sample_cap_warehouse", "9")

        assert Settings(_env_file=None).SAMPLE_CAP_WAREHOUSE == 100

    def test_cors_origins_from_json(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", '["http://a.test", "http://b.test"]')

        assert Settings(_env_file=None).CORS_ORIGINS == ["http://a.test", "http://b.test"]
