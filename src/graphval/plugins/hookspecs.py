"""Pluggy hook specifications for graphval.

One metadata-time hook lets plugins attach rules and markers to members of
types they do not own. Hooks run once per member, when the owning type's
metadata is first computed; results are cached for the process lifetime.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("graphval")
hookimpl = pluggy.HookimplMarker("graphval")


class GraphvalHookSpec:
    """Hook specifications for the graphval plugin system."""

    @hookspec
    def member_rules(self, owner: type, member_name: str) -> list[Any] | None:
        """Return extra rules and markers for ``owner.member_name``.

        May return ``ValidationRule`` instances and ``Display``,
        ``SkipRecursion`` or ``SkipValidation`` markers. Results from all
        plugins are merged with the member's declared rules; duplicates
        (by equality) are dropped.
        """
