import logging

from rank_bridge.config import BridgeSettings
from rank_bridge.tier_table import DEFAULT_TIERS, Tier


class TestBridgeSettings:
    def test_defaults(self):
        settings = BridgeSettings.from_env({})

        assert settings.port == 3000
        assert settings.max_managed_rank == 10
        assert settings.retry_max_attempts == 4
        assert settings.retry_base_delay == 0.25
        assert settings.tiers == DEFAULT_TIERS
        assert settings.groups_api_base == "https://groups.roblox.com"
        assert settings.missing_required() == ["GROUP_ID", "ROBLOX_API_KEY", "SHARED_SECRET"]

    def test_reads_and_trims_values(self):
        settings = BridgeSettings.from_env(
            {
                "GROUP_ID": " 4242 ",
                "ROBLOX_API_KEY": "key",
                "SHARED_SECRET": "secret\n",
                "PORT": "8080",
                "MAX_MANAGED_RANK": "8",
                "RETRY_MAX_ATTEMPTS": "6",
                "RETRY_BASE_DELAY": "0.5",
                "XP_TIERS": "0:1,10:2",
                "ROBLOX_CLOUD_API_BASE": "http://localhost:9000/",
            }
        )

        assert settings.group_id == "4242"
        assert settings.shared_secret == "secret"
        assert settings.port == 8080
        assert settings.max_managed_rank == 8
        assert settings.retry_max_attempts == 6
        assert settings.retry_base_delay == 0.5
        assert settings.tiers == (Tier(0, 1), Tier(10, 2))
        assert settings.cloud_api_base == "http://localhost:9000"
        assert settings.missing_required() == []

    def test_cap_can_be_disabled(self):
        assert BridgeSettings.from_env({"MAX_MANAGED_RANK": "none"}).max_managed_rank is None

    def test_invalid_numbers_fall_back(self, caplog):
        with caplog.at_level(logging.WARNING, logger="rank_bridge"):
            settings = BridgeSettings.from_env(
                {"PORT": "eighty", "RETRY_MAX_ATTEMPTS": "0", "RETRY_BASE_DELAY": "-1"}
            )

        assert settings.port == 3000
        assert settings.retry_max_attempts == 1
        assert settings.retry_base_delay == 0.25
        assert "Invalid PORT" in caplog.text

    def test_warn_missing(self, caplog):
        with caplog.at_level(logging.WARNING, logger="rank_bridge"):
            BridgeSettings.from_env({"GROUP_ID": "1"}).warn_missing()

        assert "[ENV] Missing ROBLOX_API_KEY" in caplog.text
        assert "[ENV] Missing SHARED_SECRET" in caplog.text
        assert "GROUP_ID" not in caplog.text
