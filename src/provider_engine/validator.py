"""Configuration validator.

Each resource family declares an ordered list of rules. Validation walks the
list and stops at the first violation, so callers always present exactly one
error message and repeated calls with the same input report the same rule.

Rules are plain data built with the constructors below:

- known_cloud_type: the cloud type must be a single known type in a union
- mutually_exclusive: two groups of fields must not both be populated
- requires / required_for_clouds: a field needs other fields to be set
- cloud_scoped: a field is only legal for a subset of cloud types
- coupled: a secondary toggle needs its primary toggle
- in_range / one_of: numeric bounds and enumerations
- custom: anything else, with an explicit category

Update-only constraints (fields that cannot change, enable-only features)
are expressed as TransitionRule and evaluated against a ChangeSet.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .cloud_types import describe, is_known, label, supports
from .differ import ChangeSet, Mutability
from .models import BaseSpec

if TYPE_CHECKING:
    from .resources.base import ResourceFamily

logger = logging.getLogger(__name__)


class RuleCategory(str, Enum):
    """Categories of validation rule."""

    CLOUD_TYPE = "cloud_type"
    MUTUAL_EXCLUSIVITY = "mutual_exclusivity"
    CONDITIONAL_REQUIREMENT = "conditional_requirement"
    CLOUD_SCOPING = "cloud_scoping"
    ENABLE_COUPLING = "enable_coupling"
    RANGE = "range"
    TRANSITION = "transition"


@dataclass(frozen=True)
class Violation:
    """A single rejected constraint."""

    rule: str
    category: RuleCategory
    message: str
    fields: tuple[str, ...] = ()

    def __str__(self) -> str:
        return self.message


class ValidationError(Exception):
    """Raised when a desired configuration is rejected.

    Never retried: the configuration itself must change.
    """

    def __init__(self, violation: Violation) -> None:
        self.violation = violation
        super().__init__(violation.message)


Check = Callable[[BaseSpec, int], bool]


@dataclass(frozen=True)
class Rule:
    """One ordered validation rule.

    Attributes:
        name: Stable identifier, reported in the Violation.
        category: Rule category.
        fields: Fields the rule inspects.
        check: Returns True when the configuration violates the rule.
        message: Error message shown to the user.
        asymmetric: Marks a rule that reproduces a one-directional product
            constraint awaiting confirmation.
    """

    name: str
    category: RuleCategory
    fields: tuple[str, ...]
    check: Check
    message: str
    asymmetric: bool = False

    def evaluate(self, cfg: BaseSpec, cloud_type: int) -> Violation | None:
        if self.check(cfg, cloud_type):
            return Violation(self.name, self.category, self.message, self.fields)
        return None


def is_set(value: Any) -> bool:
    """Whether a field value carries meaning (non-empty, non-zero, True)."""
    if value is None or value is False:
        return False
    if isinstance(value, str | Collection):
        return len(value) > 0
    if isinstance(value, int):
        return value != 0
    return True


def _any_set(cfg: BaseSpec, names: Sequence[str]) -> bool:
    return any(is_set(getattr(cfg, name)) for name in names)


def _all_set(cfg: BaseSpec, names: Sequence[str]) -> bool:
    return all(is_set(getattr(cfg, name)) for name in names)


def _quote(names: Sequence[str]) -> str:
    return ", ".join(f"'{name}'" for name in names)


# =============================================================================
# Rule constructors
# =============================================================================


def known_cloud_type(union: int, resource: str) -> Rule:
    """The cloud type must be one known single type within ``union``."""

    def check(cfg: BaseSpec, cloud_type: int) -> bool:
        return not (is_known(cloud_type) and supports(cloud_type, union))

    return Rule(
        name="known_cloud_type",
        category=RuleCategory.CLOUD_TYPE,
        fields=("cloud_type",),
        check=check,
        message=f"{resource} is only supported for cloud types {describe(union)}",
    )


def mutually_exclusive(
    name: str,
    first: Sequence[str],
    second: Sequence[str],
    message: str | None = None,
) -> Rule:
    """Fields of ``first`` and ``second`` must not both be populated."""
    first, second = tuple(first), tuple(second)
    return Rule(
        name=name,
        category=RuleCategory.MUTUAL_EXCLUSIVITY,
        fields=first + second,
        check=lambda cfg, _ct: _any_set(cfg, first) and _any_set(cfg, second),
        message=message or f"{_quote(first)} and {_quote(second)} cannot be set together",
    )


def requires(
    name: str,
    trigger: Sequence[str],
    required: Sequence[str],
    message: str | None = None,
    *,
    union: int | None = None,
) -> Rule:
    """If any ``trigger`` field is set, every ``required`` field must be set.

    With ``union``, the rule only applies to cloud types in that union.
    """
    trigger, required = tuple(trigger), tuple(required)

    def check(cfg: BaseSpec, cloud_type: int) -> bool:
        if union is not None and not supports(cloud_type, union):
            return False
        return _any_set(cfg, trigger) and not _all_set(cfg, required)

    return Rule(
        name=name,
        category=RuleCategory.CONDITIONAL_REQUIREMENT,
        fields=trigger + required,
        check=check,
        message=message or f"{_quote(required)} must be set when {_quote(trigger)} is set",
    )


def required_for_clouds(
    name: str,
    required: Sequence[str],
    union: int,
    message: str | None = None,
) -> Rule:
    """Every ``required`` field must be set for cloud types in ``union``."""
    required = tuple(required)
    return Rule(
        name=name,
        category=RuleCategory.CONDITIONAL_REQUIREMENT,
        fields=required,
        check=lambda cfg, ct: supports(ct, union) and not _all_set(cfg, required),
        message=message or f"{_quote(required)} must be set for {describe(union)}",
    )


def cloud_scoped(
    name: str,
    fields: Sequence[str],
    union: int,
    message: str | None = None,
    *,
    asymmetric: bool = False,
) -> Rule:
    """Fields may only be set for cloud types in ``union``."""
    fields = tuple(fields)
    return Rule(
        name=name,
        category=RuleCategory.CLOUD_SCOPING,
        fields=fields,
        check=lambda cfg, ct: _any_set(cfg, fields) and not supports(ct, union),
        message=message or f"{_quote(fields)} is only valid for {describe(union)}",
        asymmetric=asymmetric,
    )


def coupled(
    name: str,
    secondary: str,
    primary: str,
    message: str | None = None,
) -> Rule:
    """``secondary`` may only be set when ``primary`` is set."""
    return Rule(
        name=name,
        category=RuleCategory.ENABLE_COUPLING,
        fields=(secondary, primary),
        check=lambda cfg, _ct: is_set(getattr(cfg, secondary))
        and not is_set(getattr(cfg, primary)),
        message=message or f"'{secondary}' requires '{primary}' to be enabled",
    )


def in_range(name: str, field_name: str, low: int, high: int, *, optional: bool = False) -> Rule:
    """Numeric field bounded to ``[low, high]``; 0 means unset when optional."""

    def check(cfg: BaseSpec, _ct: int) -> bool:
        value = getattr(cfg, field_name)
        if optional and not value:
            return False
        return not low <= value <= high

    return Rule(
        name=name,
        category=RuleCategory.RANGE,
        fields=(field_name,),
        check=check,
        message=f"'{field_name}' must be between {low} and {high}",
    )


def one_of(name: str, field_name: str, choices: Sequence[Any]) -> Rule:
    """Field restricted to an enumeration."""
    allowed = tuple(choices)
    return Rule(
        name=name,
        category=RuleCategory.RANGE,
        fields=(field_name,),
        check=lambda cfg, _ct: getattr(cfg, field_name) not in allowed,
        message=f"'{field_name}' must be one of {[c for c in allowed if c != '']}",
    )


def custom(
    name: str,
    category: RuleCategory,
    fields: Sequence[str],
    check: Check,
    message: str,
    *,
    asymmetric: bool = False,
) -> Rule:
    return Rule(name, category, tuple(fields), check, message, asymmetric)


# =============================================================================
# Transition rules
# =============================================================================


@dataclass(frozen=True)
class TransitionRule:
    """Constraint on how an existing resource may change.

    ``check`` receives the ChangeSet and the desired configuration and
    returns True when the transition must be rejected.
    """

    name: str
    fields: tuple[str, ...]
    check: Callable[[ChangeSet, BaseSpec], bool]
    message: str
    asymmetric: bool = False


def enable_only(name: str, field_name: str, message: str | None = None) -> TransitionRule:
    """A boolean feature that can be switched on but never off."""
    return TransitionRule(
        name=name,
        fields=(field_name,),
        check=lambda changes, _cfg: field_name in changes and changes[field_name].new is False,
        message=message or f"can't disable '{field_name}' once enabled",
        asymmetric=True,
    )


def changes_with(
    name: str,
    dependent: str,
    anchor: str,
    message: str | None = None,
) -> TransitionRule:
    """``dependent`` may only change in the same pass as ``anchor``."""
    return TransitionRule(
        name=name,
        fields=(dependent, anchor),
        check=lambda changes, _cfg: dependent in changes and anchor not in changes,
        message=message or f"'{anchor}' must change if '{dependent}' changes",
    )


# =============================================================================
# Entry points
# =============================================================================


def validate(
    cfg: BaseSpec,
    cloud_type: int | None = None,
    *,
    rules: Sequence[Rule] | None = None,
    fail_fast: bool = True,
) -> list[Violation]:
    """Evaluate the ordered rule list for a desired configuration.

    Args:
        cfg: Desired configuration.
        cloud_type: Cloud type to validate against (defaults to the
            configuration's own cloud_type).
        rules: Rule list (defaults to the family's declared rules).
        fail_fast: Stop at the first violation.

    Returns:
        Violations in rule order; at most one when fail_fast is set.
    """
    if cloud_type is None:
        cloud_type = cfg.cloud_type
    if rules is None:
        # Import here to avoid circular import
        from .resources import get_family

        rules = get_family(cfg.kind).rules

    violations: list[Violation] = []
    for rule in rules:
        violation = rule.evaluate(cfg, cloud_type)
        if violation is None:
            continue
        violations.append(violation)
        if fail_fast:
            break

    if violations:
        logger.info(
            "Configuration rejected",
            extra={
                "kind": cfg.kind,
                "key": cfg.resource_key,
                "cloud_type": label(cloud_type) if is_known(cloud_type) else cloud_type,
                "rule": violations[0].rule,
            },
        )
    return violations


def ensure_valid(cfg: BaseSpec, cloud_type: int | None = None) -> None:
    """Raise ValidationError carrying the first violation, if any."""
    violations = validate(cfg, cloud_type)
    if violations:
        raise ValidationError(violations[0])


def validate_transition(
    family: ResourceFamily,
    changes: ChangeSet,
    desired: BaseSpec,
) -> Violation | None:
    """Check update-only constraints for an existing resource.

    FIXED fields are rejected first, then the family's transition rules in
    declaration order.
    """
    for spec in family.fields:
        if spec.mutability is Mutability.FIXED and spec.name in changes:
            return Violation(
                rule=f"fixed_{spec.name}",
                category=RuleCategory.TRANSITION,
                message=f"updating '{spec.name}' is not allowed",
                fields=(spec.name,),
            )

    for rule in family.transition_rules:
        if rule.check(changes, desired):
            return Violation(rule.name, RuleCategory.TRANSITION, rule.message, rule.fields)
    return None
