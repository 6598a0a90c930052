"""Check the user's custom alert rules against current conditions."""
from __future__ import annotations

from typing import Iterable, List, Optional

from weatherlens.domain import CurrentConditions, CustomAlertRule


def rule_matches(rule: CustomAlertRule, current: CurrentConditions) -> bool:
    """
    True when an active rule fires: the temperature has reached the
    threshold, or the keyword shows up in the condition group/description.

    Thresholds are compared in whatever unit system `current` was fetched in.
    """
    if not rule.active:
        return False
    if current.temperature >= rule.temperature:
        return True
    keyword = rule.condition.strip().lower()
    if not keyword:
        return False
    haystack = f"{current.condition_main} {current.description}".lower()
    return keyword in haystack


def matching_rules(
    rules: Iterable[CustomAlertRule],
    current: Optional[CurrentConditions],
) -> List[CustomAlertRule]:
    """Return the rules that fire for `current`, in their stored order."""
    if current is None:
        return []
    return [rule for rule in rules if rule_matches(rule, current)]
