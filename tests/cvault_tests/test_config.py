"""
Tests for environment and YAML configuration.
"""
import textwrap

import pytest
import yaml

from cvault.core import config
from cvault.core.config import VaultSettings, load_settings, read_yaml
from cvault.core.vault_exceptions import ConfigurationError
from vault_helpers import ASSET_ADDRESS, PRIMARY_ADDRESS, vault_settings_dict


class TestEnvironment:

    def test_env_int_default(self, monkeypatch):
        monkeypatch.delenv("CVAULT_TEST_VALUE", raising=False)
        assert config._env_int("CVAULT_TEST_VALUE", 7) == 7

    @pytest.mark.parametrize("raw, expected", [("1500", 1500), ("1_000", 1000), ("0x10", 16)])
    def test_env_int_parses(self, monkeypatch, raw, expected):
        monkeypatch.setenv("CVAULT_TEST_VALUE", raw)
        assert config._env_int("CVAULT_TEST_VALUE", 0) == expected

    def test_env_int_rejects_garbage(self, monkeypatch):
        monkeypatch.setenv("CVAULT_TEST_VALUE", "lots")
        with pytest.raises(ConfigurationError) as exc_info:
            config._env_int("CVAULT_TEST_VALUE", 0)
        assert exc_info.value.details["env_var"] == "CVAULT_TEST_VALUE"

    def test_defaults_are_sane(self):
        assert config.MAX_CLAIMER_INCENTIVE_BPS <= 10_000
        assert config.MAX_LOCKER_INCENTIVE_BPS <= 10_000
        assert config.ORACLE_MAX_STALENESS > 0


class TestVaultSettings:

    def test_from_dict(self):
        settings = VaultSettings.from_dict(vault_settings_dict(max_claimer_incentive_bps=300))

        assert settings.asset.symbol == "LP"
        assert settings.secondary_reward.symbol == "CVX"
        assert settings.max_claimer_incentive_bps == 300
        assert settings.emission.total_cliffs == config.EMISSION_TOTAL_CLIFFS

    def test_secondary_reward_is_optional(self):
        settings = VaultSettings.from_dict(vault_settings_dict(secondary_reward=None))
        assert settings.secondary_reward is None

    def test_duplicate_token_addresses_rejected(self):
        data = vault_settings_dict()
        data["primary_reward"] = dict(data["primary_reward"], address=ASSET_ADDRESS)
        with pytest.raises(ConfigurationError):
            VaultSettings.from_dict(data)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"admin": "0x" + "0" * 40},
            {"operator": "not-an-address"},
            {"asset": {"name": "LP", "symbol": "LP"}},
            {"primary_reward": {"name": "CRV", "symbol": "CRV", "address": "0x1234"}},
            {"reward_duration": 0},
            {"max_claimer_incentive_bps": "many"},
        ],
    )
    def test_invalid_settings(self, overrides):
        with pytest.raises(ConfigurationError):
            VaultSettings.from_dict(vault_settings_dict(**overrides))

    def test_emission_overrides(self):
        settings = VaultSettings.from_dict(
            vault_settings_dict(emission={"total_cliffs": 10, "initial_mint_amount": 0})
        )
        assert settings.emission.total_cliffs == 10
        assert settings.emission.initial_mint_amount == 0


class TestYamlLoading:

    def test_load_vault_section(self, tmp_path):
        path = tmp_path / "vault.yaml"
        path.write_text(yaml.safe_dump({"vault": vault_settings_dict(name="YAML Vault")}))

        settings = load_settings(path)

        assert settings.name == "YAML Vault"
        assert settings.primary_reward.address == PRIMARY_ADDRESS

    def test_load_root_mapping(self, tmp_path):
        path = tmp_path / "vault.yaml"
        path.write_text(yaml.safe_dump(vault_settings_dict()))
        assert load_settings(path).symbol == "cvLP"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            read_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text(textwrap.dedent("""
            vault: [unclosed
        """))
        with pytest.raises(ConfigurationError):
            read_yaml(path)

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError):
            read_yaml(path)
