"""Unit tests for guardrail config models, presets and the config manager."""

import json
import pytest
from unittest.mock import MagicMock
from pydantic import ValidationError

from data_guardrails.core.config_manager import CONFIG_STORAGE_KEY, GuardrailConfigManager
from data_guardrails.database.store import MemoryKeyValueStore, StorageError
from data_guardrails.models.guardrails import (
    ConsensusMethod,
    CustomValidationRule,
    GuardrailConfig,
    GuardrailMode,
    MetricClass,
    OutlierRule,
    PRESET_CONFIGS,
    RuleAction,
    get_preset,
)


@pytest.fixture
def manager(store):
    return GuardrailConfigManager(store)


class TestPresets:
    """Tests for the named presets."""

    def test_strict_preset(self):
        config = get_preset(GuardrailMode.STRICT)

        assert config.mode == GuardrailMode.STRICT
        assert config.max_price_age == 5
        assert config.max_supply_age == 60
        assert config.max_volume_age == 10
        assert config.max_on_chain_data_age == 30
        assert config.max_social_data_age == 60
        assert config.max_dev_activity_age == 1440
        assert config.min_consensus_sources == 3
        assert config.consensus_method == ConsensusMethod.MEDIAN
        assert config.max_price_relative_deviation == 5
        assert config.max_supply_relative_deviation == 1
        assert config.max_volume_relative_deviation == 15
        assert config.outlier_rule == OutlierRule.MAD
        assert config.auto_blacklist_after_stale_count == 3
        assert config.custom_rules == []

    def test_web_scraping_preset(self):
        config = get_preset(GuardrailMode.WEB_SCRAPING)

        assert config.max_price_age == 30
        assert config.max_dev_activity_age == 2880
        assert config.min_consensus_sources == 2
        assert config.consensus_method == ConsensusMethod.MEAN
        assert config.max_price_relative_deviation == 15
        assert config.outlier_rule == OutlierRule.IQR
        assert config.auto_blacklist_after_stale_count == 5

        assert len(config.custom_rules) == 1
        rule = config.custom_rules[0]
        assert rule.id == "low_volume_price_deviation"
        assert rule.name == "Disregard price deviation for low volume tokens"
        assert rule.condition == "volume < 500000"
        assert rule.action == RuleAction.DISREGARD_PRICE_DEVIATION
        assert rule.enabled is True

    def test_custom_preset(self):
        config = get_preset(GuardrailMode.CUSTOM)

        assert config.max_price_age == 15
        assert config.max_supply_age == 120
        assert config.max_price_relative_deviation == 10
        assert config.max_supply_relative_deviation == 2
        assert config.max_volume_relative_deviation == 20

    def test_preset_copies_are_independent(self):
        first = get_preset(GuardrailMode.WEB_SCRAPING)
        first.custom_rules.clear()

        assert len(get_preset(GuardrailMode.WEB_SCRAPING).custom_rules) == 1
        assert len(PRESET_CONFIGS[GuardrailMode.WEB_SCRAPING]['custom_rules']) == 1


class TestGuardrailConfigModel:
    """Tests for GuardrailConfig validation and serialization."""

    def test_json_uses_camel_case(self):
        data = json.loads(get_preset(GuardrailMode.STRICT).to_json())

        assert data["maxPriceAge"] == 5
        assert data["minConsensusSources"] == 3
        assert data["autoBlacklistAfterStaleCount"] == 3
        assert data["mode"] == "strict"

    def test_json_round_trip(self):
        config = get_preset(GuardrailMode.WEB_SCRAPING)

        assert GuardrailConfig.from_json(config.to_json()) == config

    def test_accepts_snake_case(self):
        data = get_preset(GuardrailMode.STRICT).model_dump()

        assert GuardrailConfig.model_validate(data).max_price_age == 5

    def test_rejects_non_positive_age(self):
        data = get_preset(GuardrailMode.STRICT).model_dump()
        data["max_price_age"] = 0

        with pytest.raises(ValidationError):
            GuardrailConfig.model_validate(data)

    def test_rejects_negative_deviation(self):
        data = get_preset(GuardrailMode.STRICT).model_dump()
        data["max_price_relative_deviation"] = -1

        with pytest.raises(ValidationError):
            GuardrailConfig.model_validate(data)

    def test_max_age_for(self):
        config = get_preset(GuardrailMode.STRICT)

        assert config.max_age_for(MetricClass.PRICE) == 5
        assert config.max_age_for(MetricClass.SUPPLY) == 60
        assert config.max_age_for(MetricClass.VOLUME) == 10
        assert config.max_age_for(MetricClass.ON_CHAIN) == 30
        assert config.max_age_for(MetricClass.SOCIAL) == 60
        assert config.max_age_for("dev_activity") == 1440

    def test_max_deviation_for(self):
        config = get_preset(GuardrailMode.STRICT)

        assert config.max_deviation_for("BTC Price") == 5
        assert config.max_deviation_for("circulating_supply") == 1
        assert config.max_deviation_for("24h Volume") == 15
        assert config.max_deviation_for("market_cap") == 5


class TestCustomValidationRule:
    """Tests for CustomValidationRule."""

    def test_generated_id(self):
        rule = CustomValidationRule(name="r", condition="volume < 1")

        assert rule.id.startswith("rule_")
        assert rule.action == RuleAction.WARNING
        assert rule.enabled is True

    def test_ids_are_unique(self):
        ids = {CustomValidationRule(name="r", condition="volume < 1").id for _ in range(50)}

        assert len(ids) == 50

    def test_invalid_condition_rejected(self):
        with pytest.raises(ValidationError):
            CustomValidationRule(name="r", condition="volume is small")

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            CustomValidationRule(name="", condition="volume < 1")

    def test_serialized_keys_match_field_names(self):
        rule = CustomValidationRule(id="rule_1", name="r", condition="volume < 1")

        assert set(json.loads(rule.model_dump_json())) == {"id", "name", "condition", "action", "enabled"}
        assert CustomValidationRule.model_validate_json(rule.model_dump_json()) == rule

    def test_comparison_property(self):
        rule = CustomValidationRule(name="r", condition=" volume < 10 ")

        assert rule.condition == "volume < 10"
        assert rule.comparison.matches({"volume": 5})


class TestGuardrailConfigManager:
    """Tests for GuardrailConfigManager."""

    def test_defaults_to_strict(self, manager):
        assert manager.get_config().mode == GuardrailMode.STRICT

    def test_default_mode_override(self, store):
        manager = GuardrailConfigManager(store, default_mode=GuardrailMode.WEB_SCRAPING)

        assert manager.get_config().mode == GuardrailMode.WEB_SCRAPING

    def test_get_config_returns_copy(self, manager):
        config = manager.get_config()
        config.max_price_age = 999

        assert manager.get_config().max_price_age == 5

    def test_set_mode_replaces_all_thresholds(self, manager):
        manager.update_config(max_price_age=42)
        manager.set_mode(GuardrailMode.WEB_SCRAPING)

        assert manager.get_config() == get_preset(GuardrailMode.WEB_SCRAPING)

    def test_set_mode_persists(self, manager, store):
        manager.set_mode(GuardrailMode.WEB_SCRAPING)

        stored = json.loads(store.get(CONFIG_STORAGE_KEY))
        assert stored["mode"] == "web_scraping"
        assert stored["maxPriceAge"] == 30

    def test_config_restored_from_store(self, manager, store):
        manager.set_mode(GuardrailMode.WEB_SCRAPING)
        manager.update_config(max_price_age=45)

        reloaded = GuardrailConfigManager(store)

        assert reloaded.get_config().mode == GuardrailMode.WEB_SCRAPING
        assert reloaded.get_config().max_price_age == 45

    def test_corrupt_stored_config_falls_back_to_preset(self):
        store = MemoryKeyValueStore({CONFIG_STORAGE_KEY: "{not json"})

        manager = GuardrailConfigManager(store)

        assert manager.get_config() == get_preset(GuardrailMode.STRICT)

    def test_failing_store_falls_back_to_preset(self):
        store = MagicMock()
        store.get.side_effect = StorageError("unavailable")
        store.set.side_effect = StorageError("unavailable")

        manager = GuardrailConfigManager(store)
        manager.update_config(max_price_age=20)

        assert manager.get_config().max_price_age == 20

    def test_update_config_merges_and_keeps_mode(self, manager):
        manager.update_config({"max_price_age": 20}, min_consensus_sources=4)

        config = manager.get_config()
        assert config.mode == GuardrailMode.STRICT
        assert config.max_price_age == 20
        assert config.min_consensus_sources == 4
        assert config.max_supply_age == 60

    def test_update_config_accepts_camel_case(self, manager):
        manager.update_config({"maxPriceAge": 25})

        assert manager.get_config().max_price_age == 25

    def test_update_config_ignores_mode(self, manager):
        manager.update_config(mode="web_scraping", max_price_age=7)

        config = manager.get_config()
        assert config.mode == GuardrailMode.STRICT
        assert config.max_price_age == 7

    def test_update_config_rejects_unknown_fields(self, manager):
        with pytest.raises(ValueError, match="Unknown guardrail config fields"):
            manager.update_config(max_banana_age=5)

    def test_invalid_update_leaves_state_unchanged(self, manager):
        with pytest.raises(ValidationError):
            manager.update_config(max_price_age=-1)

        assert manager.get_config().max_price_age == 5

    def test_custom_mode_restores_last_custom_edits(self, manager):
        manager.set_mode(GuardrailMode.CUSTOM)
        manager.update_config(max_price_age=99)
        manager.set_mode(GuardrailMode.STRICT)

        manager.set_mode(GuardrailMode.CUSTOM)

        assert manager.get_config().max_price_age == 99

    def test_custom_mode_without_edits_uses_preset(self, manager):
        manager.set_mode(GuardrailMode.CUSTOM)

        assert manager.get_config() == get_preset(GuardrailMode.CUSTOM)


class TestCustomRuleCrud:
    """Tests for custom rule add / remove / update."""

    def test_add_rule(self, manager):
        rule = manager.add_custom_rule(
            CustomValidationRule(name="Low volume", condition="volume < 500000",
                                 action=RuleAction.DISREGARD_PRICE_DEVIATION)
        )

        assert [r.id for r in manager.get_config().custom_rules] == [rule.id]

    def test_add_rule_from_mapping(self, manager):
        rule = manager.add_custom_rule({"name": "Low volume", "condition": "volume < 10"})

        assert isinstance(rule, CustomValidationRule)
        assert manager.get_config().custom_rules[0].condition == "volume < 10"

    def test_add_rule_persists(self, manager, store):
        manager.add_custom_rule({"name": "Low volume", "condition": "volume < 10"})

        assert len(GuardrailConfigManager(store).get_config().custom_rules) == 1

    def test_add_rule_with_existing_id_rejected(self, manager):
        manager.set_mode(GuardrailMode.WEB_SCRAPING)

        with pytest.raises(ValueError, match="already exists"):
            manager.add_custom_rule({"id": "low_volume_price_deviation", "name": "dup",
                                     "condition": "volume < 10"})

        assert [r.id for r in manager.get_config().custom_rules] == ["low_volume_price_deviation"]

    def test_remove_rule(self, manager):
        keep = manager.add_custom_rule({"name": "keep", "condition": "volume < 10"})
        drop = manager.add_custom_rule({"name": "drop", "condition": "volume < 20"})

        manager.remove_custom_rule(drop.id)

        assert [r.id for r in manager.get_config().custom_rules] == [keep.id]

    def test_remove_unknown_rule_is_noop(self, manager):
        manager.add_custom_rule({"name": "keep", "condition": "volume < 10"})

        manager.remove_custom_rule("rule_missing")

        assert len(manager.get_config().custom_rules) == 1

    def test_update_rule(self, manager):
        rule = manager.add_custom_rule({"name": "r", "condition": "volume < 10"})

        updated = manager.update_custom_rule(rule.id, enabled=False, condition="volume < 99")

        assert updated.id == rule.id
        stored = manager.get_config().custom_rules[0]
        assert stored.enabled is False
        assert stored.condition == "volume < 99"

    def test_update_rule_keeps_id(self, manager):
        rule = manager.add_custom_rule({"name": "r", "condition": "volume < 10"})

        manager.update_custom_rule(rule.id, id="rule_other")

        assert manager.get_config().custom_rules[0].id == rule.id

    def test_update_unknown_rule_returns_none(self, manager):
        assert manager.update_custom_rule("rule_missing", enabled=False) is None

    def test_update_with_invalid_condition_raises(self, manager):
        rule = manager.add_custom_rule({"name": "r", "condition": "volume < 10"})

        with pytest.raises(ValidationError):
            manager.update_custom_rule(rule.id, condition="volume ~ 10")

        assert manager.get_config().custom_rules[0].condition == "volume < 10"
