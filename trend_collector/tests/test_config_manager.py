"""ConfigManager 테스트"""

from trend_collector.utils.config_manager import ConfigManager


class TestConfigManager:
    """YAML 로드 및 조회."""

    def test_load_real_config(self, config_manager):
        assert config_manager.get("scraping.scraper_timeout_ms") == 9000
        assert config_manager.get("domains.designs.min_interval_minutes") == 120
        assert config_manager.get("domains.competitions.min_interval_minutes") == 30

    def test_default_for_missing_key(self, config_manager):
        assert config_manager.get("does.not.exist", "fallback") == "fallback"

    def test_get_section(self, config_manager):
        assert "ttl_ms" in config_manager.get_section("cache")
        assert config_manager.get_section("nope") == {}

    def test_file_config(self, config_manager):
        assert "behance" in config_manager.get_file_config("sources_registry")["sources"]

    def test_logging_file_not_merged(self, config_manager):
        assert config_manager.get("handlers") is None

    def test_env_override(self, config_manager, monkeypatch):
        monkeypatch.setenv("TREND_COLLECTOR_DOMAINS_DESIGNS_MIN_INTERVAL_MINUTES", "5")
        assert config_manager.get("domains.designs.min_interval_minutes") == "5"
        assert config_manager.get_int("domains.designs.min_interval_minutes", 120) == 5

    def test_get_bool_from_env(self, config_manager, monkeypatch):
        monkeypatch.setenv("TREND_COLLECTOR_SCRAPING_ENABLED", "false")
        assert config_manager.get_bool("scraping.enabled", True) is False

    def test_get_int_invalid_falls_back(self, config_manager, monkeypatch):
        monkeypatch.setenv("TREND_COLLECTOR_SCRAPING_MAX_RETRIES", "many")
        assert config_manager.get_int("scraping.max_retries", 3) == 3

    def test_tmp_config(self, tmp_config_dir):
        config = ConfigManager(tmp_config_dir)
        assert config.get_bool("scraping.enabled", True) is False
        assert config.get("domains.designs.categories") == ["ui-ux"]

    def test_missing_dir(self, tmp_path):
        config = ConfigManager(str(tmp_path / "missing"))
        assert config.get("scraping.enabled") is None
