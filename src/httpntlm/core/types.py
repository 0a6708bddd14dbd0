"""
httpntlm Core Types

Values exchanged between the request facade, the handshake state machine
and the injected transport.

Design Principles:
- Immutable: options and responses are frozen attrs values; a redirect
  clones the options instead of mutating them
- Transport-agnostic: native transport responses are adapted into
  ``Response`` at the boundary
- Header names are case-insensitive everywhere
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Tuple

import attrs
from attrs import field, validators

from httpntlm.core.exceptions import ConfigurationError


# =============================================================================
# ENUMS
# =============================================================================


class NTLMMode(Enum):
    """
    Handshake strictness.

    STRICT rejects a 401 without a challenge; LENIENT hands it back.
    """

    STRICT = "strict"
    LENIENT = "lenient"

    @classmethod
    def coerce(cls, value: Any) -> "NTLMMode":
        """Accept an NTLMMode, its name/value, a bool, or ``{"strict": bool}``."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.LENIENT
        if isinstance(value, bool):
            return cls.STRICT if value else cls.LENIENT
        if isinstance(value, Mapping):
            return cls.STRICT if value.get("strict") else cls.LENIENT
        if isinstance(value, str):
            return cls(value.lower())
        raise TypeError(f"Cannot interpret {value!r} as an NTLM mode")


# =============================================================================
# HEADERS
# =============================================================================


def _iter_pairs(source: Any) -> Iterable[Tuple[str, Any]]:
    if source is None:
        return ()
    if isinstance(source, Headers):
        return source._items.values()
    if isinstance(source, Mapping) or hasattr(source, "items"):
        return source.items()
    return source


class Headers(Mapping):
    """
    Immutable, case-insensitive HTTP header mapping.

    Lookups ignore case; iteration yields names as first given.
    Repeated names in the source are joined with ", " the way HTTP
    folds repeated fields.
    """

    __slots__ = ("_items",)

    def __init__(self, source: Any = None) -> None:
        items: Dict[str, Tuple[str, str]] = {}
        for name, value in _iter_pairs(source):
            key = name.lower()
            if key in items:
                first_name, previous = items[key]
                items[key] = (first_name, f"{previous}, {value}")
            else:
                items[key] = (name, str(value))
        self._items = items

    @classmethod
    def from_native(cls, source: Any) -> "Headers":
        """Adapt a transport's header container (mapping, items(), or pairs)."""
        return source if isinstance(source, cls) else cls(source)

    def __getitem__(self, name: str) -> str:
        return self._items[name.lower()][1]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        return {k: v for k, (_, v) in self._items.items()} == {
            k: v for k, (_, v) in Headers(other)._items.items()
        }

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Headers({dict(self.items())!r})"

    def merged(self, *others: Any) -> "Headers":
        """Return new headers with ``others`` layered on top; later sources win."""
        combined = dict(self._items)
        for other in others:
            for key, entry in Headers(other)._items.items():
                combined[key] = entry
        result = Headers()
        result._items = combined
        return result


# =============================================================================
# REQUEST OPTIONS
# =============================================================================


def _empty_if_none(value: Optional[str]) -> str:
    return "" if value is None else value


def _upper_or_none(value: Optional[str]) -> Optional[str]:
    return None if value is None else value.upper()


def _nt_hash_bytes(value: Any) -> Optional[bytes]:
    if value is None:
        return None
    if isinstance(value, str):
        value = bytes.fromhex(value)
    value = bytes(value)
    if len(value) != 16:
        raise ValueError(f"NT hash must be 16 bytes, got {len(value)}")
    return value


def _frozen_mapping(value: Optional[Mapping]) -> Mapping[str, Any]:
    return MappingProxyType(dict(value or {}))


@attrs.define(frozen=True, slots=True)
class Credentials:
    """
    What the codec needs to answer a challenge.

    INVARIANT: username, password, domain and workstation are strings, never None
    """

    username: str = field(default="", converter=_empty_if_none)
    password: str = field(default="", repr=False, converter=_empty_if_none)
    domain: str = field(default="", converter=_empty_if_none)
    workstation: str = field(default="", converter=_empty_if_none)
    nt_hash: Optional[bytes] = field(default=None, repr=False, converter=_nt_hash_bytes)


# Original mapping spellings accepted by RequestOptions.from_mapping
_KEY_ALIASES = {
    "request": "transport",
    "nt_password": "nt_hash",
    "ntlm": "ntlm_mode",
}

# Credential-only keys that must never reach the transport.
# LM hashes are not used by NTLMv2.
_DISCARDED_KEYS = frozenset({"lm_password"})


@attrs.define(frozen=True, slots=True)
class RequestOptions:
    """
    One logical call as the caller described it.

    Created once per call by the facade and never mutated; a redirect
    produces a copy through ``with_url``. Everything in ``extra`` is
    passed through to the transport untouched.
    """

    url: str = field(validator=validators.instance_of(str))
    method: Optional[str] = field(default=None, converter=_upper_or_none)
    headers: Headers = field(factory=Headers, converter=Headers)
    body: Any = None

    # NTLM-only options, never forwarded to the transport
    username: str = field(default="", converter=_empty_if_none)
    password: str = field(default="", repr=False, converter=_empty_if_none)
    domain: str = field(default="", converter=_empty_if_none)
    workstation: str = field(default="", converter=_empty_if_none)
    nt_hash: Optional[bytes] = field(default=None, repr=False, converter=_nt_hash_bytes)
    ntlm_mode: NTLMMode = field(default=NTLMMode.LENIENT, converter=NTLMMode.coerce)
    transport: Optional[Callable[..., Any]] = field(default=None, eq=False, repr=False)

    timeout: Optional[float] = None
    extra: Mapping[str, Any] = field(factory=dict, converter=_frozen_mapping)

    @property
    def is_strict(self) -> bool:
        return self.ntlm_mode is NTLMMode.STRICT

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            username=self.username,
            password=self.password,
            domain=self.domain,
            workstation=self.workstation,
            nt_hash=self.nt_hash,
        )

    def with_url(self, url: str) -> "RequestOptions":
        """Clone these options for a new logical call against ``url``."""
        return attrs.evolve(self, url=url)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "RequestOptions":
        """
        Build options from a plain dict.

        Recognised keys become fields (``request``, ``nt_password`` and
        ``ntlm`` are accepted as spellings of ``transport``, ``nt_hash``
        and ``ntlm_mode``); anything else lands in ``extra``.
        """
        known = {a.name for a in attrs.fields(cls)} - {"extra"}
        kwargs: Dict[str, Any] = {}
        extra = dict(mapping.get("extra") or {})

        for key, value in mapping.items():
            if key == "extra" or key in _DISCARDED_KEYS:
                continue
            name = _KEY_ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
            else:
                extra[key] = value

        return cls(extra=extra, **kwargs)

    @classmethod
    def coerce(
        cls,
        options: Any,
        default_method: Optional[str] = None,
    ) -> "RequestOptions":
        """
        Normalize facade input into RequestOptions.

        ``default_method`` only applies when the caller gave no method.

        Raises:
            ConfigurationError: If the options cannot be interpreted
        """
        try:
            if isinstance(options, cls):
                value = options
            elif isinstance(options, Mapping):
                value = cls.from_mapping(options)
            else:
                raise TypeError(
                    f"Expected RequestOptions or a mapping, got {type(options).__name__}"
                )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid request options: {e}") from e

        if value.method is None and default_method is not None:
            value = attrs.evolve(value, method=default_method)
        return value


# =============================================================================
# TRANSPORT-FACING VALUES
# =============================================================================


@attrs.define(frozen=True, slots=True)
class RequestDescription:
    """A single physical request, as handed to the transport."""

    url: str
    method: str
    headers: Headers = field(factory=Headers, converter=Headers)
    body: Any = None
    timeout: Optional[float] = None
    follow_redirects: bool = False
    extra: Mapping[str, Any] = field(factory=dict, converter=_frozen_mapping)


_BODY_ATTRIBUTES = ("content", "body", "text")


@attrs.define(frozen=True, slots=True)
class Response:
    """
    Transport-agnostic response.

    ``raw`` keeps the transport's own response object for callers that
    need more than status, headers and body.
    """

    status: int = field(converter=int)
    headers: Headers = field(factory=Headers, converter=Headers.from_native)
    body: Any = None
    raw: Any = field(default=None, eq=False, repr=False)

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header accessor."""
        return self.headers.get(name, default)

    @classmethod
    def from_native(cls, native: Any) -> "Response":
        """
        Adapt a transport response.

        Understands objects exposing ``status_code`` or ``status`` plus
        ``headers`` and one of ``content``/``body``/``text``, and plain
        mappings with the same keys.

        Raises:
            TypeError: If no status can be found
        """
        if isinstance(native, cls):
            return native

        if isinstance(native, Mapping):
            status = native.get("status", native.get("status_code"))
            headers = native.get("headers")
            body = next((native[a] for a in _BODY_ATTRIBUTES if a in native), None)
        else:
            status = getattr(native, "status_code", None)
            if status is None:
                status = getattr(native, "status", None)
            headers = getattr(native, "headers", None)
            body = next(
                (getattr(native, a) for a in _BODY_ATTRIBUTES if hasattr(native, a)),
                None,
            )

        if status is None:
            raise TypeError(f"{type(native).__name__} has no HTTP status")

        return cls(status=status, headers=headers, body=body, raw=native)
