"""
Rules deciding which requests must carry a token.

A rule answers two questions about a request: is it inside the rule's
protected scope (``required``) and is it explicitly let through
(``exempt``). A RuleSet combines every rule: any exemption wins, and
otherwise the request is protected when some rule places it in scope.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, NamedTuple, Protocol, runtime_checkable


class RuleMatch(NamedTuple):
    """
    A rule's verdict for one request.

    ``required`` is None when the rule has no opinion about scope, as a
    method rule that only lists exempt methods.
    """
    required: bool | None
    exempt: bool = False


@runtime_checkable
class Rule(Protocol):
    def matches(self, path: str, method: str) -> RuleMatch: ...


def _normalize_prefixes(prefixes: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(prefixes, str):
        prefixes = (prefixes,)
    return tuple(prefixes)


def _starts_with_any(path: str, prefixes: tuple[str, ...]) -> bool:
    return any(path.startswith(prefix) for prefix in prefixes)


@dataclass(frozen=True, init=False)
class RequestPathRule:
    """
    Protects paths under ``path`` and exempts paths under ``ignore``.

    Args:
        path: Protected path prefixes. Empty means every path ("/").
        ignore: Exempt path prefixes; these win over ``path``.
        methods: Methods the protected scope applies to, "*" for all.
            Matching is exact and case-sensitive.

    Example:
        >>> rule = RequestPathRule(["/api"], ["/api/login"])
        >>> rule.matches("/api/users", "GET")
        RuleMatch(required=True, exempt=False)
        >>> rule.matches("/api/login", "POST")
        RuleMatch(required=True, exempt=True)
    """
    path: tuple[str, ...]
    ignore: tuple[str, ...]
    methods: str | frozenset[str]

    def __init__(
        self,
        path: str | Iterable[str] = ("/",),
        ignore: str | Iterable[str] = (),
        methods: str | Iterable[str] = "*",
    ):
        path = _normalize_prefixes(path)
        if not path:
            # Empty means every path
            path = ("/",)
        object.__setattr__(self, "path", path)
        object.__setattr__(self, "ignore", _normalize_prefixes(ignore))
        if methods != "*":
            methods = frozenset(_normalize_prefixes(methods))
            if "*" in methods:
                methods = "*"
        object.__setattr__(self, "methods", methods)

    def _method_matches(self, method: str) -> bool:
        return self.methods == "*" or method in self.methods

    def matches(self, path: str, method: str) -> RuleMatch:
        required = _starts_with_any(path, self.path) and self._method_matches(method)
        exempt = _starts_with_any(path, self.ignore)
        return RuleMatch(required=required, exempt=exempt)


@dataclass(frozen=True, init=False)
class RequestMethodRule:
    """
    Exempts requests whose method is listed in ``ignore``.

    Says nothing about which paths are protected.
    """
    ignore: frozenset[str]

    def __init__(self, ignore: str | Iterable[str] = ("OPTIONS",)):
        object.__setattr__(self, "ignore", frozenset(_normalize_prefixes(ignore)))

    def matches(self, path: str, method: str) -> RuleMatch:
        return RuleMatch(required=None, exempt=method in self.ignore)


class CallableRule:
    """
    Adapts a plain function into a rule.

    The function receives ``(path, method)`` and returns either a RuleMatch
    or a bool, where True means "protect this request" and False means
    "let it through".
    """

    def __init__(self, func: Callable[[str, str], RuleMatch | bool]):
        self.func = func

    def __repr__(self) -> str:
        return f"CallableRule({self.func!r})"

    def matches(self, path: str, method: str) -> RuleMatch:
        verdict = self.func(path, method)
        if isinstance(verdict, RuleMatch):
            return verdict
        if verdict:
            return RuleMatch(required=True, exempt=False)
        return RuleMatch(required=None, exempt=True)


@dataclass(frozen=True, init=False)
class RuleSet:
    """
    Ordered collection of rules.

    Every rule is evaluated; there is no first-match-wins.

    - Any exempting rule skips authentication.
    - Otherwise authentication is required when a rule with a scope opinion
      places the request in scope.
    - With no scope opinion at all (including no rules) every request is
      protected.
    """
    rules: tuple[Rule, ...]

    def __init__(self, rules: Iterable[Rule | Callable[[str, str], RuleMatch | bool]] = ()):
        object.__setattr__(self, "rules", tuple(_coerce_rule(rule) for rule in rules))

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def add(self, rule: Rule | Callable[[str, str], RuleMatch | bool]) -> RuleSet:
        return RuleSet(self.rules + (rule,))

    def should_authenticate(self, path: str, method: str) -> bool:
        verdicts = [rule.matches(path, method) for rule in self.rules]

        if any(verdict.exempt for verdict in verdicts):
            return False

        scoped = [verdict.required for verdict in verdicts if verdict.required is not None]
        if not scoped:
            return True
        return any(scoped)


def _coerce_rule(rule: Rule | Callable[[str, str], RuleMatch | bool]) -> Rule:
    if isinstance(rule, Rule):
        return rule
    if callable(rule):
        return CallableRule(rule)
    raise TypeError(f"Not a rule: {rule!r}")
