"""Caller identification modes."""

from __future__ import annotations

from enum import Enum


class AuthMode(str, Enum):
    """How inbound requests prove which directory profile is calling.

    ``local`` expects the shared bearer token plus an ``X-Actor-Id`` header.
    ``proxy`` trusts an upstream gateway that has already authenticated the
    caller and forwards only ``X-Actor-Id``.
    """

    LOCAL = "local"
    PROXY = "proxy"
