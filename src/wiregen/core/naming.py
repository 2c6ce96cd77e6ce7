"""Symbol naming and the per-service name registry."""

import keyword
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from itertools import count

from wiregen.errors import NamingError

logger = logging.getLogger(__name__)

_WORD_BOUNDARY = re.compile(r"[^0-9a-zA-Z]+")
_CAMEL_BOUNDARY_1 = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY_2 = re.compile(r"([a-z0-9])([A-Z])")

_RESERVED_IDENTIFIERS = frozenset(keyword.kwlist)

# Candidates are tried with numeric suffixes up to this bound before giving up.
_MAX_SUFFIX = 10_000


def to_pascal_case(text: str) -> str:
    """Convert a snake, kebab, dotted or camel string into PascalCase."""
    parts = [part for part in _WORD_BOUNDARY.split(text) if part]
    return "".join(part[:1].upper() + part[1:] for part in parts)


def to_snake_case(text: str) -> str:
    """Convert a PascalCase, camelCase or delimited string into snake_case."""
    text = _CAMEL_BOUNDARY_1.sub(r"\1_\2", text)
    text = _CAMEL_BOUNDARY_2.sub(r"\1_\2", text)
    parts = [part for part in _WORD_BOUNDARY.split(text) if part]
    return "_".join(part.lower() for part in parts)


def safe_identifier(name: str) -> str:
    """Make *name* usable as a Python attribute or parameter name."""
    if not name:
        return "field_"
    if name[0].isdigit():
        name = f"f_{name}"
    if name in _RESERVED_IDENTIFIERS:
        return f"{name}_"
    return name


@dataclass(frozen=True)
class StructuralKey:
    """Identity of one emitted artifact within a generation unit.

    ``kind`` separates artifact families (domain type, body type, validator, helper), ``origin``
    names what the artifact derives from (a user type, a method role or an inline field path),
    ``role`` is the body role and ``view`` the projected result view, if any.
    """

    kind: str
    origin: str
    role: str = ""
    view: str = ""


class NameRegistry:
    """Tracks every symbol emitted into one generated module.

    Names handed out are unique within the registry. Looking up the same structural key a second
    time returns the original name and reports it as already existing, which tells callers to
    reference the existing artifact instead of emitting it again.
    """

    def __init__(self, reserved: Iterable[str] = ()) -> None:
        self._taken: set[str] = set(reserved)
        self._by_key: dict[StructuralKey, str] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._taken

    def reserve(self, candidate: str, disambiguator: str = "") -> str:
        if not candidate:
            raise NamingError("cannot reserve an empty name")
        if candidate not in self._taken:
            self._taken.add(candidate)
            return candidate
        if disambiguator:
            qualified = f"{candidate}{disambiguator}"
            if qualified not in self._taken:
                logger.debug("name %s already taken, using %s", candidate, qualified)
                self._taken.add(qualified)
                return qualified
            candidate = qualified
        for index in count(2):
            if index > _MAX_SUFFIX:
                raise NamingError(f"could not find a free name for {candidate!r}")
            numbered = f"{candidate}{index}"
            if numbered not in self._taken:
                logger.debug("name %s already taken, using %s", candidate, numbered)
                self._taken.add(numbered)
                return numbered
        raise AssertionError("unreachable")

    def lookup(self, key: StructuralKey) -> str | None:
        return self._by_key.get(key)

    def lookup_or_reserve(self, key: StructuralKey, candidate: str, disambiguator: str = "") -> tuple[str, bool]:
        existing = self._by_key.get(key)
        if existing is not None:
            return existing, True
        name = self.reserve(candidate, disambiguator)
        self._by_key[key] = name
        return name, False
