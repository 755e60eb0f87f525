# =============================================================================
# Runtime settings for obtcrypt
# =============================================================================
"""
Settings are resolved on every call, in this order:
  1) explicit mapping passed to load_settings()
  2) os.environ (optionally primed from a .env file)
  3) built-in defaults

Nothing is cached at module level, so concurrent callers never share
mutable state and tests can adjust the environment freely.

Recognized variables
- OBT_PUBLIC_KEY_PREFIX: prefix written by encode_public() (default "FIO")
- OBT_ACCEPTED_KEY_PREFIXES: comma-separated legacy prefixes that
  decode_public() accepts (default "FIO,EOS"). "PUB_K1_" keys are always accepted.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

DEFAULT_PUBLIC_KEY_PREFIX = "FIO"
DEFAULT_ACCEPTED_KEY_PREFIXES: Tuple[str, ...] = ("FIO", "EOS")

ENV_PUBLIC_KEY_PREFIX = "OBT_PUBLIC_KEY_PREFIX"
ENV_ACCEPTED_KEY_PREFIXES = "OBT_ACCEPTED_KEY_PREFIXES"


@dataclass(frozen=True)
class CryptoSettings:
    public_key_prefix: str = DEFAULT_PUBLIC_KEY_PREFIX
    accepted_key_prefixes: Tuple[str, ...] = DEFAULT_ACCEPTED_KEY_PREFIXES


def _split_prefixes(raw: str) -> Tuple[str, ...]:
    out = tuple(p.strip() for p in raw.split(",") if p.strip())
    if not out:
        raise ValueError(f"{ENV_ACCEPTED_KEY_PREFIXES} must name at least one prefix")
    return out


def _validate_prefix(prefix: str) -> str:
    if not prefix.isalpha():
        raise ValueError(f"invalid public key prefix: {prefix!r}")
    return prefix


def load_settings(
    *,
    mapping: Optional[Mapping[str, str]] = None,
    auto_dotenv: bool = False,
    dotenv_path: Optional[str] = None,
    dotenv_override: bool = False,
) -> CryptoSettings:
    if auto_dotenv:
        load_dotenv(dotenv_path=dotenv_path, override=dotenv_override)

    explicit = dict(mapping or {})

    def get(name: str) -> Optional[str]:
        if name in explicit:
            return explicit[name]
        return os.environ.get(name)

    prefix = _validate_prefix(get(ENV_PUBLIC_KEY_PREFIX) or DEFAULT_PUBLIC_KEY_PREFIX)

    raw_accepted = get(ENV_ACCEPTED_KEY_PREFIXES)
    if raw_accepted is None:
        accepted = DEFAULT_ACCEPTED_KEY_PREFIXES
    else:
        accepted = tuple(_validate_prefix(p) for p in _split_prefixes(raw_accepted))

    # The write prefix is always readable back.
    if prefix not in accepted:
        accepted = accepted + (prefix,)

    return CryptoSettings(public_key_prefix=prefix, accepted_key_prefixes=accepted)


def get_settings() -> CryptoSettings:
    return load_settings()


__all__ = [
    "CryptoSettings",
    "load_settings",
    "get_settings",
    "DEFAULT_PUBLIC_KEY_PREFIX",
    "DEFAULT_ACCEPTED_KEY_PREFIXES",
    "ENV_PUBLIC_KEY_PREFIX",
    "ENV_ACCEPTED_KEY_PREFIXES",
]
