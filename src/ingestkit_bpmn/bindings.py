"""Data-binding reference detection.

A data binding is a textual reference inside an attribute value that
points at a process variable.  Two matcher kinds are recognised:

* dotted paths such as ``tw.local.customer.address``
* brace expressions such as ``#{tw.local.total * 2}``

``extract_references()`` is a pure function over a string; the matchers
are plain values so callers can swap or extend them.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from pydantic import BaseModel, ConfigDict


class ReferenceMatcher(BaseModel):
    """A named regular expression whose matches are data bindings."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    pattern: re.Pattern[str]

    def find(self, text: str) -> list[str]:
        return [m.group(0) for m in self.pattern.finditer(text)]


def dotted_path_matcher(
    root: str = "tw",
    scopes: Sequence[str] = ("local", "system", "env"),
) -> ReferenceMatcher:
    """Build a matcher for ``<root>.<scope>.identifier[.identifier]*``."""
    scope_alt = "|".join(re.escape(s) for s in scopes)
    pattern = re.compile(rf"{re.escape(root)}\.(?:{scope_alt})\.\w+(?:\.\w+)*")
    return ReferenceMatcher(name="dotted_path", pattern=pattern)


DOTTED_PATH = dotted_path_matcher()
BRACE_EXPRESSION = ReferenceMatcher(name="brace_expression", pattern=re.compile(r"#\{[^}]+\}"))

DEFAULT_MATCHERS: tuple[ReferenceMatcher, ...] = (DOTTED_PATH, BRACE_EXPRESSION)


def extract_references(
    text: str,
    matchers: Iterable[ReferenceMatcher] = DEFAULT_MATCHERS,
) -> set[str]:
    """Return every distinct binding found in *text* by any of *matchers*."""
    found: set[str] = set()
    if not text:
        return found
    for matcher in matchers:
        found.update(matcher.find(text))
    return found


def matchers_from_config(root: str, scopes: Sequence[str]) -> tuple[ReferenceMatcher, ...]:
    if root == "tw" and tuple(scopes) == ("local", "system", "env"):
        return DEFAULT_MATCHERS
    return (dotted_path_matcher(root, scopes), BRACE_EXPRESSION)
