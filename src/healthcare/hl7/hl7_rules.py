"""HL7 Validation Rules.

Rules are plain callables taking a message and returning ``True`` when the
message passes or an issue string when it does not. Messages own an ordered
list of rules and evaluate all of them on every validation.
"""

import re
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Sequence, Tuple, Union

from src.core.exceptions import HL7ValueError

if TYPE_CHECKING:
    from .hl7_message import HL7Message

RuleResult = Union[bool, str]
Rule = Callable[["HL7Message"], RuleResult]


def _pattern_text(pattern: Union[str, re.Pattern[str]]) -> str:
    return pattern.pattern if isinstance(pattern, re.Pattern) else pattern


def required_rule(path: str, error_text: str = "") -> Rule:
    """Build a rule failing when the value at ``path`` is empty.

    Args:
        path: Path to the required value
        error_text: Text appended to the issue

    Returns:
        Rule callable
    """

    def is_required(message: "HL7Message") -> RuleResult:
        if not message.get(path):
            return f"{path} is missing. {error_text or ''}".strip()
        return True

    return is_required


def matches_rule(
    path: str, pattern: Union[str, re.Pattern[str]], error_text: str = ""
) -> Rule:
    """Build a rule failing when the value at ``path`` does not match ``pattern``.

    The pattern may match anywhere in the value; anchor it with ``^`` and
    ``$`` to require a full match.

    Args:
        path: Path to the value
        pattern: Regular expression
        error_text: Text appended to the issue

    Returns:
        Rule callable
    """
    if not path:
        raise HL7ValueError("path is required")
    if not isinstance(pattern, (str, re.Pattern)):
        raise HL7ValueError("pattern must be a regular expression")
    regex = re.compile(pattern)

    def matches(message: "HL7Message") -> RuleResult:
        if not regex.search(message.get_text(path)):
            return (
                f"{path} does not match the required pattern: "
                f"{_pattern_text(pattern)} {error_text or ''}"
            ).strip()
        return True

    return matches


def enum_rule(path: str, values: Sequence[Any], error_text: str = "") -> Rule:
    """Build a rule failing when the value at ``path`` is not one of ``values``.

    Args:
        path: Path to the value
        values: Allowed values, compared as strings
        error_text: Text appended to the issue

    Returns:
        Rule callable
    """
    if not path:
        raise HL7ValueError("path is required")
    if not isinstance(values, (list, tuple)):
        raise HL7ValueError("values must be a list")
    allowed = [str(value) for value in values]

    def is_one_of(message: "HL7Message") -> RuleResult:
        if message.get_text(path) not in allowed:
            return (
                f"{path} does not match the required values: "
                f"[{', '.join(allowed)}] {error_text or ''}"
            ).strip()
        return True

    return is_one_of


class HL7ValidationMixin:
    """Rule registration and validation for HL7 messages."""

    _rules: List[Rule]
    _validation_issues: List[str]

    @property
    def rules(self) -> List[Rule]:
        """Get the registered rules in evaluation order."""
        return self._rules

    @property
    def validation_issues(self) -> List[str]:
        """Get the issues found by the last validation."""
        return self._validation_issues

    @property
    def is_valid(self) -> bool:
        """Validate the message and check that no issue was found."""
        return len(self.validate()) == 0

    def validate(self) -> List[str]:
        """Validate the message against every registered rule.

        Returns:
            List of validation issues, empty when the message is valid
        """
        issues = []
        for rule in self._rules:
            result = rule(self)  # type: ignore[arg-type]
            if result is True:
                continue
            if isinstance(result, str):
                issues.append(result)
            else:
                issues.append(f"{getattr(rule, '__name__', 'rule')} failed")

        self._validation_issues = issues
        return issues

    def add_rule(self, rule: Rule) -> "HL7ValidationMixin":
        """Add a validation rule.

        Args:
            rule: Callable returning True or an issue string

        Returns:
            Self for chaining
        """
        if not callable(rule):
            raise HL7ValueError("Rule must be a function")
        self._rules.append(rule)
        return self

    def add_rules(self, rules: Iterable[Rule]) -> "HL7ValidationMixin":
        """Add multiple validation rules."""
        for rule in _as_list(rules):
            self.add_rule(rule)
        return self

    def add_rule_is_required(self, path: str, error_text: str = "") -> "HL7ValidationMixin":
        """Add a rule that checks if a value is present."""
        return self.add_rule(required_rule(path, error_text))

    def add_rules_is_required(
        self, rules: Iterable[Tuple[str, str]]
    ) -> "HL7ValidationMixin":
        """Add required rules from ``(path, error_text)`` pairs."""
        for path, error_text in _as_list(rules):
            self.add_rule_is_required(path, error_text)
        return self

    def add_rule_matches(
        self, path: str, pattern: Union[str, re.Pattern[str]], error_text: str = ""
    ) -> "HL7ValidationMixin":
        """Add a rule that checks if a value matches a regular expression."""
        return self.add_rule(matches_rule(path, pattern, error_text))

    def add_rules_matches(
        self, rules: Iterable[Tuple[str, Union[str, re.Pattern[str]], str]]
    ) -> "HL7ValidationMixin":
        """Add pattern rules from ``(path, pattern, error_text)`` triples."""
        for path, pattern, error_text in _as_list(rules):
            self.add_rule_matches(path, pattern, error_text)
        return self

    def add_rule_enum(
        self, path: str, values: Sequence[Any], error_text: str = ""
    ) -> "HL7ValidationMixin":
        """Add a rule that checks if a value is one of a list of values."""
        return self.add_rule(enum_rule(path, values, error_text))

    def add_rules_enum(
        self, rules: Iterable[Tuple[str, Sequence[Any], str]]
    ) -> "HL7ValidationMixin":
        """Add enum rules from ``(path, values, error_text)`` triples."""
        for path, values, error_text in _as_list(rules):
            self.add_rule_enum(path, values, error_text)
        return self


def _as_list(rules: Any) -> List[Any]:
    if not isinstance(rules, (list, tuple)):
        raise HL7ValueError("Rules must be an array")
    return list(rules)
