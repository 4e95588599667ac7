"""WebDriver capabilities that can be used as W3C, JWP or mixed-mode requests."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from webtestlauncher.merging import Resolver, merge, resolve_value

W3C_SUPPORTED_CAPABILITIES = frozenset(
    {
        "acceptInsecureCerts",
        "browserName",
        "browserVersion",
        "pageLoadStrategy",
        "platformName",
        "proxy",
        "setWindowRect",
        "strictFileInteractability",
        "timeouts",
        "unhandledPromptBehavior",
    }
)

_LEGACY_GOOG_CAPABILITIES = ("chromeOptions", "loggingPrefs")


@dataclass
class Capabilities:
    """A capabilities object modelled after W3C alwaysMatch/firstMatch."""

    always_match: dict[str, Any] = field(default_factory=dict)
    first_match: list[dict[str, Any]] = field(default_factory=list)
    w3c_supported: bool = False

    @classmethod
    def from_new_session_args(cls, args: Mapping[str, Any]) -> Capabilities:
        """Build capabilities from the body of a New Session request.

        alwaysMatch, requiredCapabilities and desiredCapabilities are merged
        shallowly into always_match; any conflict raises ValueError, as does
        a firstMatch entry that conflicts with them.
        """
        always: dict[str, Any] = {}
        w3c = args.get("capabilities")
        if not isinstance(w3c, dict):
            w3c = None

        sources = []
        if w3c is not None and isinstance(w3c.get("alwaysMatch"), dict):
            sources.append(w3c["alwaysMatch"])
        for key in ("requiredCapabilities", "desiredCapabilities"):
            if isinstance(args.get(key), dict):
                sources.append(args[key])
        for source in sources:
            _merge_into_no_replace(always, normalize(source))

        first: list[dict[str, Any]] = []
        if w3c is not None:
            entries = w3c.get("firstMatch")
            if not isinstance(entries, list):
                entries = []
            for entry in entries:
                if not isinstance(entry, dict):
                    raise ValueError(f"firstMatch entries must be JSON Objects, found {entry!r}")
                new_entry: dict[str, Any] = {}
                for key, value in normalize(entry).items():
                    if key in always:
                        if always[key] != value:
                            raise ValueError(
                                f"alwaysMatch|required|desired[{key!r}] == {always[key]!r}, "
                                f"firstMatch[{key!r}] == {value!r}, they must be equal"
                            )
                        continue
                    new_entry[key] = value
                first.append(new_entry)

        reduced = [entry for i, entry in enumerate(first) if entry not in first[i + 1:]]

        if len(reduced) == 1:
            _merge_into_no_replace(always, reduced[0])
            reduced = []

        return cls(always_match=always, first_match=reduced, w3c_supported=w3c is not None)

    def merge_over(self, other: Mapping[str, Any] | None) -> Capabilities:
        """Return capabilities with this object deeply merged over ``other``.

        Keys of ``other`` that appear in any firstMatch entry are merged
        under each firstMatch entry; the rest are merged under always_match.
        """
        if not other:
            return self

        always: dict[str, Any] = {}
        first: dict[str, Any] = {}
        for key, value in other.items():
            if any(key in entry for entry in self.first_match):
                first[key] = value
            else:
                always[key] = value

        first_match = self.first_match
        if first:
            first_match = [merge(first, entry) for entry in self.first_match]

        return Capabilities(
            always_match=merge(always, self.always_match),
            first_match=first_match,
            w3c_supported=self.w3c_supported,
        )

    def merge_under(self, other: Mapping[str, Any] | None) -> Capabilities:
        """Return capabilities with ``other`` removed from firstMatch and merged over always_match."""
        if not other:
            return self

        first: list[dict[str, Any]] = []
        for entry in self.first_match:
            trimmed = {key: value for key, value in entry.items() if key not in other}
            if trimmed not in first:
                first.append(trimmed)

        always = self.always_match
        if len(first) == 1:
            always = merge(first[0], always)
            first = []

        return Capabilities(
            always_match=merge(always, dict(other)),
            first_match=first,
            w3c_supported=self.w3c_supported,
        )

    def to_jwp(self) -> dict[str, Any]:
        """Return New Session arguments for a JSON Wire Protocol remote end.

        Raises ValueError if there is more than one firstMatch entry.
        """
        if len(self.first_match) > 1:
            raise ValueError("can not convert Capabilities with multiple FirstMatch entries to JWP")
        desired = self.always_match
        if len(self.first_match) == 1:
            desired = merge(desired, self.first_match[0])
        return {"desiredCapabilities": denormalize_jwp(desired)}

    def to_w3c(self) -> dict[str, Any]:
        """Return New Session arguments for a W3C remote end."""
        caps: dict[str, Any] = {}
        always_match = denormalize_w3c(self.always_match)
        first_match = [denormalize_w3c(entry) for entry in self.first_match]
        if always_match:
            caps["alwaysMatch"] = always_match
        if first_match:
            caps["firstMatch"] = first_match
        return {"capabilities": caps}

    def to_mixed_mode(self) -> dict[str, Any]:
        """Return New Session arguments for an arbitrary remote end.

        W3C-only if there are several firstMatch entries, JWP-only if W3C
        is not supported, and both otherwise.
        """
        try:
            jwp = self.to_jwp()
        except ValueError:
            return self.to_w3c()
        if not self.w3c_supported:
            return jwp
        return {
            "capabilities": self.to_w3c()["capabilities"],
            "desiredCapabilities": jwp["desiredCapabilities"],
        }

    def strip(self, *caps_to_strip: str) -> Capabilities:
        """Return a copy without the named top-level capabilities or None values."""
        removed = set(caps_to_strip)
        return Capabilities(
            always_match=_without(self.always_match, lambda key: key in removed),
            first_match=[
                _without(entry, lambda key: key in removed) for entry in self.first_match
            ],
            w3c_supported=self.w3c_supported,
        )

    def strip_all_prefixed_except(self, *exemptions: str) -> Capabilities:
        """Return a copy without prefixed capabilities whose prefix is not exempt."""
        exempt = set(exemptions)

        def stripped(key: str) -> bool:
            tokens = key.split(":")
            return len(tokens) == 2 and tokens[0] not in exempt

        return Capabilities(
            always_match=_without(self.always_match, stripped),
            first_match=[_without(entry, stripped) for entry in self.first_match],
            w3c_supported=self.w3c_supported,
        )

    def resolve(self, resolver: Resolver) -> Capabilities:
        """Return a copy with every %PREFIX:NAME% replaced using ``resolver``."""
        return Capabilities(
            always_match=resolve_value(self.always_match, resolver),
            first_match=[resolve_value(entry, resolver) for entry in self.first_match],
            w3c_supported=self.w3c_supported,
        )


def merge_over(caps: Capabilities | None, other: Mapping[str, Any] | None) -> Capabilities:
    """Like Capabilities.merge_over, also accepting None for ``caps``."""
    if caps is None:
        return Capabilities(always_match=dict(other or {}))
    return caps.merge_over(other)


def merge_under(
    caps: Capabilities | None, other: Mapping[str, Any] | None
) -> Capabilities | None:
    """Like Capabilities.merge_under, also accepting None for ``caps``."""
    if not other:
        return caps
    if caps is None:
        return Capabilities(always_match=dict(other))
    return caps.merge_under(other)


def to_mixed_mode(caps: Capabilities | None) -> dict[str, Any]:
    """Like Capabilities.to_mixed_mode, also accepting None for ``caps``."""
    if caps is None:
        return {"capabilities": {}, "desiredCapabilities": {}}
    return caps.to_mixed_mode()


def normalize(caps: Mapping[str, Any]) -> dict[str, Any]:
    """Return normalized capabilities.

    Drops underscore-prefixed keys at every depth, folds legacy Google
    capabilities into their goog: names and normalizes the proxy.
    Raises ValueError on malformed or conflicting values.
    """
    remaining = _strip_underscore_caps(caps)
    out: dict[str, Any] = {}
    for name in _LEGACY_GOOG_CAPABILITIES:
        _normalize_legacy_goog(remaining, out, name)
    _normalize_proxy(remaining, out)
    out.update(remaining)
    return out


def denormalize_w3c(caps: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return only the W3C and extension (prefixed) capabilities."""
    return {
        key: value
        for key, value in (caps or {}).items()
        if ":" in key or key in W3C_SUPPORTED_CAPABILITIES
    }


def denormalize_jwp(caps: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return capabilities in the form JWP remote ends expect.

    goog:chromeOptions and goog:loggingPrefs are duplicated under their
    legacy names, and a proxy noProxy list becomes a comma-separated string.
    """
    out: dict[str, Any] = {}
    for key, value in (caps or {}).items():
        if key in ("goog:chromeOptions", "goog:loggingPrefs"):
            out[key.removeprefix("goog:")] = value
            out[key] = value
        elif key == "proxy" and isinstance(value, dict):
            proxy = dict(value)
            no_proxy = proxy.get("noProxy")
            if isinstance(no_proxy, list):
                proxy["noProxy"] = ",".join(no_proxy)
            out[key] = proxy
        else:
            out[key] = value
    return out


def can_reuse_session(caps: Capabilities) -> bool:
    """Return True if google:canReuseSession is set to true."""
    value = caps.always_match.get("google:canReuseSession")
    return isinstance(value, bool) and value


def _without(caps: Mapping[str, Any], drop: Any) -> dict[str, Any]:
    return {key: value for key, value in caps.items() if value is not None and not drop(key)}


def _strip_underscore_caps(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            key: _strip_underscore_caps(item)
            for key, item in value.items()
            if not key.startswith("_")
        }
    if isinstance(value, list):
        return [_strip_underscore_caps(item) for item in value]
    return value


def _merge_into_no_replace(dst: dict[str, Any], src: Mapping[str, Any]) -> None:
    for key, value in src.items():
        if key in dst and dst[key] != value:
            raise ValueError(
                f"dst[{key!r}] == {dst[key]!r}, src[{key!r}] == {value!r}, they must be equal"
            )
        dst[key] = value


def _normalize_legacy_goog(caps: dict[str, Any], out: dict[str, Any], name: str) -> None:
    merged: dict[str, Any] = {}
    for key in (name, "goog:" + name):
        if key in caps:
            value = caps[key]
            if not isinstance(value, dict):
                raise ValueError(f"{key} {value!r} is {type(value).__name__}, should be an object")
            _merge_into_no_replace(merged, value)
    if merged:
        out["goog:" + name] = merged
    caps.pop(name, None)
    caps.pop("goog:" + name, None)


def _normalize_proxy(caps: dict[str, Any], out: dict[str, Any]) -> None:
    result: dict[str, Any] = {}
    if "proxy" in caps:
        proxy = caps["proxy"]
        if not isinstance(proxy, dict):
            raise ValueError(f"proxy {proxy!r} is {type(proxy).__name__}, should be an object")
        for key, value in proxy.items():
            if key == "proxyType":
                if not isinstance(value, str):
                    raise ValueError(f"proxyType {value!r} should be a string")
                result["proxyType"] = value.lower()
            elif key == "noProxy":
                if isinstance(value, list):
                    hosts = list(value)
                elif isinstance(value, str):
                    hosts = value.split(",")
                else:
                    raise ValueError(f"noProxy {value!r} should be a string or a list")
                if hosts:
                    result["noProxy"] = hosts
            elif value is not None:
                result[key] = value
    if result:
        out["proxy"] = result
    caps.pop("proxy", None)