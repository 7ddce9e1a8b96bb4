"""Link/referrer registry.

Tracks every place a URL was linked from so that a single broken target can
be reported once per referring page.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List

from siteaudit.urls import canonicalize


@dataclass(frozen=True)
class LinkReference:
    """One occurrence of a link to ``target_url``."""

    target_url: str
    found_on_page: str
    link_text: str
    element_context: str


class LinkRegistry:
    """Mapping of canonical URL to the ordered references that point at it.

    The registry only grows: references are appended in discovery order and
    never removed. A reference whose ``(found_on_page, link_text)`` pair is
    already registered for the same target is ignored.
    """

    def __init__(self):
        self._references: Dict[str, List[LinkReference]] = {}

    def register(
        self,
        url: str,
        found_on_page: str,
        link_text: str,
        element_context: str,
    ) -> bool:
        """Register a reference to ``url``.

        Returns:
            True if the reference was new, False if it was a duplicate.
        """
        target = canonicalize(url)
        refs = self._references.setdefault(target, [])
        if any(r.found_on_page == found_on_page and r.link_text == link_text for r in refs):
            return False
        refs.append(LinkReference(
            target_url=target,
            found_on_page=found_on_page,
            link_text=link_text,
            element_context=element_context,
        ))
        return True

    def references(self, url: str) -> List[LinkReference]:
        """References to ``url`` in insertion order (a copy)."""
        return list(self._references.get(canonicalize(url), ()))

    def __contains__(self, url: str) -> bool:
        return canonicalize(url) in self._references

    def __len__(self) -> int:
        return len(self._references)

    def __iter__(self) -> Iterator[str]:
        return iter(self._references)

    def reference_count(self) -> int:
        return sum(len(refs) for refs in self._references.values())
