"""Guardrail configuration state, presets and custom rule CRUD."""

from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel
import structlog

from data_guardrails.database.store import KeyValueStore, StorageError
from data_guardrails.models.guardrails import (
    CustomValidationRule,
    GuardrailConfig,
    GuardrailMode,
    get_preset,
)

logger = structlog.get_logger(__name__)

CONFIG_STORAGE_KEY = 'crypto_intelligence_data_guardrails'

_ALIAS_TO_FIELD = {to_camel(name): name for name in GuardrailConfig.model_fields}


class GuardrailConfigManager:
    """
    Owns the single active GuardrailConfig and keeps it persisted.

    Every mutation writes the full config to the store. A store that fails
    is logged and ignored; in-memory state stays authoritative.
    """

    def __init__(self, store: KeyValueStore,
                 default_mode: GuardrailMode = GuardrailMode.STRICT):
        self.store = store
        self.default_mode = GuardrailMode(default_mode)
        self.logger = logger.bind(component="guardrail_config")

        self._config = self._load_config()
        # Last edits made while in custom mode, restored by set_mode(CUSTOM)
        self._custom_edits: Optional[GuardrailConfig] = (
            self._config.model_copy(deep=True)
            if self._config.mode == GuardrailMode.CUSTOM else None
        )

        self.logger.info("Guardrail config loaded", mode=self._config.mode.value)

    def _load_config(self) -> GuardrailConfig:
        """Load from the store, falling back to the default preset."""
        try:
            stored = self.store.get(CONFIG_STORAGE_KEY)
            if stored:
                return GuardrailConfig.from_json(stored)
        except (StorageError, ValidationError, ValueError) as e:
            self.logger.error("Failed to load guardrail config, using preset",
                              preset=self.default_mode.value, error=str(e))
        return get_preset(self.default_mode)

    def _save_config(self) -> None:
        try:
            self.store.set(CONFIG_STORAGE_KEY, self._config.to_json())
        except StorageError as e:
            self.logger.error("Failed to save guardrail config", error=str(e))

    def _commit(self, config: GuardrailConfig) -> None:
        self._config = config
        if config.mode == GuardrailMode.CUSTOM:
            self._custom_edits = config.model_copy(deep=True)
        self._save_config()

    # ============================================================
    # Read
    # ============================================================

    @property
    def config(self) -> GuardrailConfig:
        """Live config; use get_config() when handing it to callers."""
        return self._config

    def get_config(self) -> GuardrailConfig:
        """Defensive copy of the current configuration."""
        return self._config.model_copy(deep=True)

    # ============================================================
    # Mutations
    # ============================================================

    def set_mode(self, mode: GuardrailMode) -> None:
        """Switch mode, replacing every threshold with the mode's preset."""
        mode = GuardrailMode(mode)

        if mode == GuardrailMode.CUSTOM and self._custom_edits is not None:
            config = self._custom_edits.model_copy(deep=True)
        else:
            config = get_preset(mode)

        self._commit(config)
        self.logger.info("Guardrail mode set", mode=mode.value)

    def update_config(self, updates: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        """
        Shallow-merge updates into the current config.

        Keys may be snake_case field names or their camelCase aliases. The
        mode is never changed here; use set_mode().

        Raises:
            ValidationError: If the merged config is invalid (state unchanged)
        """
        merged_updates: Dict[str, Any] = {}
        for key, value in {**(updates or {}), **kwargs}.items():
            merged_updates[_ALIAS_TO_FIELD.get(key, key)] = value

        if 'mode' in merged_updates:
            requested = merged_updates.pop('mode')
            self.logger.warning("Ignoring mode in config update, use set_mode",
                                requested_mode=str(requested))

        unknown = set(merged_updates) - set(GuardrailConfig.model_fields)
        if unknown:
            raise ValueError(f"Unknown guardrail config fields: {sorted(unknown)}")

        data = self._config.model_dump()
        data.update(merged_updates)
        self._commit(GuardrailConfig.model_validate(data))

        self.logger.debug("Guardrail config updated", fields=sorted(merged_updates))

    def add_custom_rule(self, rule: CustomValidationRule) -> CustomValidationRule:
        """
        Append a rule; returns the stored rule.

        Raises:
            ValueError: If a rule with the same id already exists
        """
        if isinstance(rule, Mapping):
            rule = CustomValidationRule.model_validate(rule)

        if any(existing.id == rule.id for existing in self._config.custom_rules):
            raise ValueError(f"Custom rule id already exists: {rule.id}")

        config = self._config.model_copy(deep=True)
        config.custom_rules.append(rule)
        self._commit(config)

        self.logger.info("Custom rule added", rule_id=rule.id, condition=rule.condition,
                         action=rule.action.value)
        return rule

    def remove_custom_rule(self, rule_id: str) -> None:
        """Remove a rule by id; unknown ids leave the list unchanged."""
        config = self._config.model_copy(deep=True)
        config.custom_rules = [r for r in config.custom_rules if r.id != rule_id]
        self._commit(config)

    def update_custom_rule(self, rule_id: str, **updates: Any) -> Optional[CustomValidationRule]:
        """Update a rule in place by id; unknown ids are a no-op."""
        config = self._config.model_copy(deep=True)

        for index, rule in enumerate(config.custom_rules):
            if rule.id == rule_id:
                updates.pop('id', None)
                updated = CustomValidationRule.model_validate({**rule.model_dump(), **updates})
                config.custom_rules[index] = updated
                self._commit(config)
                return updated

        self.logger.debug("Custom rule not found", rule_id=rule_id)
        return None
