"""Typed view over a Cloudflare Access policy document."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

SINGLE_HOST_SUFFIXES = ("/32", "/128")


def strip_single_host(value: str) -> str:
    """Drop a ``/32`` or ``/128`` qualifier; other prefixes are left intact."""

    for suffix in SINGLE_HOST_SUFFIXES:
        if value.endswith(suffix):
            return value[: -len(suffix)]
    return value


@dataclass(frozen=True)
class IpRule:
    """An include rule granting access to one address."""

    address: str
    raw: Mapping[str, Any]

    @classmethod
    def for_address(cls, address: str) -> "IpRule":
        return cls(address=address, raw={"ip": {"ip": address}})

    def matches(self, address: str) -> bool:
        return strip_single_host(self.address) == address

    def to_payload(self) -> Dict[str, Any]:
        return copy.deepcopy(dict(self.raw))


@dataclass(frozen=True)
class OpaqueRule:
    """Any include rule shape the whitelist does not manage."""

    raw: Any

    def matches(self, address: str) -> bool:
        return False

    def to_payload(self) -> Any:
        return copy.deepcopy(self.raw)


PolicyRule = Union[IpRule, OpaqueRule]


def parse_rule(raw: Any) -> PolicyRule:
    if isinstance(raw, Mapping) and len(raw) == 1:
        selector = raw.get("ip")
        if isinstance(selector, Mapping):
            address = selector.get("ip")
            if isinstance(address, str) and address:
                return IpRule(address=address, raw=raw)
    return OpaqueRule(raw=raw)


@dataclass
class PolicyDocument:
    """Reusable Access policy: name, decision and three rule collections.

    Only ``include`` is parsed; ``exclude`` and ``require`` are carried as
    received and written back untouched.
    """

    name: str
    decision: str
    include: List[PolicyRule] = field(default_factory=list)
    exclude: List[Any] = field(default_factory=list)
    require: List[Any] = field(default_factory=list)

    @classmethod
    def from_result(cls, result: Optional[Mapping[str, Any]]) -> "PolicyDocument":
        result = result or {}
        return cls(
            name=result.get("name") or "",
            decision=result.get("decision") or "",
            include=[parse_rule(rule) for rule in result.get("include") or []],
            exclude=list(result.get("exclude") or []),
            require=list(result.get("require") or []),
        )

    def contains(self, address: str) -> bool:
        return any(rule.matches(address) for rule in self.include)

    def with_address(self, address: str) -> "PolicyDocument":
        return PolicyDocument(
            name=self.name,
            decision=self.decision,
            include=[*self.include, IpRule.for_address(address)],
            exclude=self.exclude,
            require=self.require,
        )

    def without_address(self, address: str) -> "PolicyDocument":
        return PolicyDocument(
            name=self.name,
            decision=self.decision,
            include=[rule for rule in self.include if not rule.matches(address)],
            exclude=self.exclude,
            require=self.require,
        )

    def addresses(self) -> List[str]:
        return [rule.address for rule in self.include if isinstance(rule, IpRule)]

    def to_update_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "decision": self.decision,
            "include": [rule.to_payload() for rule in self.include],
            "exclude": copy.deepcopy(self.exclude),
            "require": copy.deepcopy(self.require),
        }


__all__ = [
    "IpRule",
    "OpaqueRule",
    "PolicyDocument",
    "PolicyRule",
    "parse_rule",
    "strip_single_host",
]
