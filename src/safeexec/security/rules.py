"""
Dangerous-content rule sets and the scanner that applies them.

Exactly two rule sets exist. STRICT applies to paths, flags and flag
values. PATTERN_PERMISSIVE applies to search patterns and grouping
tokens: it lets regex/glob punctuation through but keeps every
substitution primitive blocked.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Rule:
    """One dangerous-content pattern with a human-readable description."""

    pattern: re.Pattern[str]
    description: str
    positional_only: bool = False

    def matches(self, argument: str, *, positional: bool = True) -> bool:
        if self.positional_only and not positional:
            return False
        return self.pattern.search(argument) is not None


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Ordered, immutable collection of rules."""

    name: str
    rules: tuple[Rule, ...]

    def scan(self, argument: str, *, positional: bool = True) -> Rule | None:
        """Return the first rule matching ``argument``, or None."""
        for rule in self.rules:
            if rule.matches(argument, positional=positional):
                return rule
        return None


def _rule(pattern: str, description: str, *, positional_only: bool = False) -> Rule:
    return Rule(re.compile(pattern), description, positional_only)


# Shared by both sets; permissiveness never widens these.
_SUBSTITUTION_RULES: tuple[Rule, ...] = (
    _rule(r"\x00", "Null byte"),
    _rule(r"[\r\n]", "Line break"),
    _rule(r"`", "Backtick command substitution"),
    _rule(r"\$\(", "Command substitution"),
    _rule(r"\$\{", "Parameter expansion"),
    _rule(r"\$'", "ANSI-C quoted string"),
    _rule(r";", "Command separator"),
    _rule(r"&&", "Command chaining (&&)"),
    _rule(r"[<>]", "Redirection operator"),
)

STRICT = RuleSet(
    name="strict",
    rules=_SUBSTITUTION_RULES
    + (
        _rule(r"\|\|", "Command chaining (||)"),
        _rule(r"\|", "Pipe operator"),
        _rule(r"&", "Background operator"),
        _rule(r"\$", "Shell variable expansion"),
        _rule(r"\\(?:[xX][0-9A-Fa-f]|[uU][0-9A-Fa-f]|[0-7])", "Escape sequence"),
        # Signed integers such as find's "-mtime -7" are values, not flags.
        _rule(r"^-(?![0-9]+$)", "Leading dash in positional argument", positional_only=True),
    ),
)

PATTERN_PERMISSIVE = RuleSet(name="pattern-permissive", rules=_SUBSTITUTION_RULES)


def scan(argument: str, rule_set: RuleSet, *, positional: bool = True) -> Rule | None:
    """
    Check a single argument against a rule set.

    Args:
        argument: The raw argument string.
        rule_set: STRICT or PATTERN_PERMISSIVE.
        positional: False for tokens in a flag slot, where a leading dash
            is expected.

    Returns:
        The first matching rule, or None if the argument is clean.
    """
    return rule_set.scan(argument, positional=positional)
