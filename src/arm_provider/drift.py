"""Drift suppression for desired vs observed state.

Some services report placeholder values for settings that hang off a
disabled feature (a disabled flow log reports retention days as 0 and
retention enabled as false). Comparing those literally would register a
difference on every read. Suppression rules name such fields together with
the toggle that governs them:

- Explicit rules: only the configured fields are ever suppressed
- Asymmetric: suppression needs a non-empty declared value and the toggle
  in a disabled position; nothing is hidden while the feature is on
- Audit trail: every suppressed difference is logged at debug level
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def normalize_location(value: Any) -> Any:
    """Canonical Azure region: lower case without spaces ("West Europe" -> "westeurope")."""
    if not isinstance(value, str):
        return value
    return value.replace(" ", "").lower()


def normalize_case(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    return value.lower()


def normalize_timestamp(value: Any) -> Any:
    """RFC3339 timestamps compare as instants ("...Z" equals "...+00:00")."""
    if not isinstance(value, str):
        return value
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return value


@dataclass(frozen=True)
class SuppressionRule:
    """Suppress differences on `field` while `toggle` is disabled.

    Attributes:
        field: Dotted path of the governed field (e.g. "retention_policy.days").
        toggle: Dotted path of the governing toggle in the desired state.
        disabled_values: Toggle values that count as disabled.
        reason: Human-readable explanation for audit logging.
    """

    field: str
    toggle: str
    disabled_values: tuple[Any, ...] = (False,)
    reason: str = ""


@dataclass(frozen=True)
class FieldDiff:
    """One remaining difference between declared and observed state."""

    path: str
    declared: Any
    observed: Any


def lookup(state: BaseModel | Mapping[str, Any] | None, path: str) -> Any:
    """Resolve a dotted path against a model or mapping; None when absent."""
    current: Any = state
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, BaseModel):
            current = getattr(current, part, None)
        elif isinstance(current, Mapping):
            current = current.get(part)
        else:
            return None
    return current


@dataclass(frozen=True)
class DriftPolicy:
    """Per-type drift rules: suppressions plus per-field value normalizers."""

    suppressions: tuple[SuppressionRule, ...] = ()
    normalizers: Mapping[str, Callable[[Any], Any]] = field(default_factory=dict)

    def suppress(
        self,
        field_name: str,
        declared: Any,
        observed: Any,
        desired: BaseModel | Mapping[str, Any],
    ) -> bool:
        """Decide whether a difference on one field should be ignored.

        Pure: depends only on the arguments and the configured rules.

        Args:
            field_name: Dotted path of the differing field.
            declared: Value in the desired state.
            observed: Value reported by the service.
            desired: Full desired state, used to read the governing toggle.

        Returns:
            True if the difference should not be reported.
        """
        if declared is None or declared == "":
            return False
        for rule in self.suppressions:
            if rule.field != field_name:
                continue
            if lookup(desired, rule.toggle) in rule.disabled_values:
                return True
        return False

    def equivalent(self, path: str, declared: Any, observed: Any) -> bool:
        normalize = self.normalizers.get(path)
        if normalize is not None:
            return normalize(declared) == normalize(observed)
        return declared == observed

    def diff(self, desired: BaseModel, observed: BaseModel | None) -> list[FieldDiff]:
        """Compare desired against observed state field by field.

        Computed fields left undeclared and sensitive fields the service does
        not report are skipped.

        Returns:
            Differences that survive normalization and suppression.
        """
        computed = getattr(type(desired), "computed_attributes", frozenset())
        sensitive = getattr(type(desired), "sensitive_fields", frozenset())

        differences: list[FieldDiff] = []
        for path, declared, actual in _walk(desired, observed):
            top = path.split(".", 1)[0]
            if declared is None and top in computed:
                continue
            if actual is None and (path in sensitive or top in sensitive):
                continue
            if self.equivalent(path, declared, actual):
                continue
            if self.suppress(path, declared, actual, desired):
                reason = next((r.reason for r in self.suppressions if r.field == path), "")
                logger.debug(
                    "Drift suppressed",
                    extra={"path": path, "declared": declared, "observed": actual, "reason": reason},
                )
                continue
            differences.append(FieldDiff(path=path, declared=declared, observed=actual))
        return differences


def _as_model(value: Any) -> BaseModel | None:
    return value if isinstance(value, BaseModel) else None


def _walk(
    declared: BaseModel | None, observed: BaseModel | None, prefix: str = ""
) -> Iterator[tuple[str, Any, Any]]:
    model = declared if declared is not None else observed
    if model is None:
        return
    for name in type(model).model_fields:
        path = f"{prefix}{name}"
        left = getattr(declared, name, None) if declared is not None else None
        right = getattr(observed, name, None) if observed is not None else None

        if isinstance(left, BaseModel) or isinstance(right, BaseModel):
            # A block missing on one side is walked against None so leaf rules apply
            yield from _walk(_as_model(left), _as_model(right), f"{path}.")
        elif isinstance(left, Mapping) and isinstance(right, Mapping):
            for key in sorted(set(left) | set(right)):
                yield f"{path}.{key}", left.get(key), right.get(key)
        else:
            yield path, left, right
