"""Evaluation of custom validation rules against a caller-supplied context."""

from typing import Any, Dict, Iterable, Mapping, Optional

import structlog

from data_guardrails.models.guardrails import CustomValidationRule, RuleAction

logger = structlog.get_logger(__name__)


def normalize_context(context: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Lowercase context keys and drop None values."""
    if not context:
        return {}
    return {str(k).lower(): v for k, v in context.items() if v is not None}


class RuleEvaluator:
    """Finds the rule, if any, that overrides a validation check."""

    def matching_rules(self, rules: Iterable[CustomValidationRule],
                       context: Optional[Mapping[str, Any]],
                       action: RuleAction) -> Iterable[CustomValidationRule]:
        """Enabled rules with the given action whose condition holds, in list order."""
        values = normalize_context(context)
        if not values:
            return

        for rule in rules:
            if not rule.enabled or rule.action != action:
                continue
            if rule.comparison.matches(values):
                yield rule

    def find_deviation_override(self, rules: Iterable[CustomValidationRule],
                                context: Optional[Mapping[str, Any]]) -> Optional[CustomValidationRule]:
        """First rule that disables the deviation check for this context."""
        for rule in self.matching_rules(rules, context, RuleAction.DISREGARD_PRICE_DEVIATION):
            logger.debug("Deviation check overridden", rule_id=rule.id, rule=rule.name,
                         condition=str(rule.comparison))
            return rule
        return None
