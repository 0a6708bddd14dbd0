"""
httpntlm Configuration

Client-wide handshake settings. Per-call behaviour lives in RequestOptions.
"""

from __future__ import annotations

from typing import Any, Mapping

import attrs
from attrs import field, validators


DEFAULT_MAX_REDIRECTS = 5


@attrs.define(frozen=True)
class HandshakeConfig:
    """
    Handshake configuration.

    Attributes:
        max_redirects: How many times a negotiate step may be restarted
            at a ``Location`` the server pointed to
        warn_on_unexposed_headers: Log a warning when lenient mode hands
            back a 401 that carried no challenge (usually a CORS
            ``Access-Control-Expose-Headers`` problem)
    """

    max_redirects: int = field(
        default=DEFAULT_MAX_REDIRECTS,
        validator=[validators.instance_of(int), validators.ge(0)],
    )
    warn_on_unexposed_headers: bool = field(
        default=True,
        validator=validators.instance_of(bool),
    )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "HandshakeConfig":
        """Create config from a mapping, ignoring unknown keys."""
        names = {a.name for a in attrs.fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in names})
