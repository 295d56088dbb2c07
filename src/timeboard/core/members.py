"""Member name resolution with alias folding."""

from typing import Optional


def _lookup_key(value: str) -> str:
    return value.strip().lower()


class MemberDirectory:
    """Resolve raw member names to canonical display names.

    Aliases fold case-insensitively onto one canonical name, so ``"rahman"``,
    ``"Rahman "`` and ``"REHMAN"`` all resolve to ``"Rehman"`` when configured.
    """

    def __init__(
        self,
        members: Optional[list[str]] = None,
        aliases: Optional[dict[str, str]] = None,
    ):
        """Initialize directory.

        Args:
            members: Canonical member names
            aliases: Mapping of alias -> canonical name
        """
        self._members: dict[str, str] = {}
        for name in members or []:
            if name and name.strip():
                self._members[_lookup_key(name)] = name.strip()

        self._canonical_by_key: dict[str, str] = {}
        self._aliases_by_canonical: dict[str, list[str]] = {}
        for alias, canonical in (aliases or {}).items():
            canonical = canonical.strip()
            self._canonical_by_key[_lookup_key(alias)] = canonical
            self._canonical_by_key[_lookup_key(canonical)] = canonical
            known = self._aliases_by_canonical.setdefault(canonical, [canonical])
            if alias.strip() not in known:
                known.append(alias.strip())

    @property
    def members(self) -> list[str]:
        """Canonical member names in configuration order."""
        return list(self._members.values())

    def canonicalize(self, value: str) -> str:
        """Fold an alias to its canonical spelling. Unknown names are trimmed."""
        trimmed = (value or "").strip()
        if not trimmed:
            return ""
        return self._canonical_by_key.get(_lookup_key(trimmed), trimmed)

    def resolve(self, value: str) -> Optional[str]:
        """Resolve a raw name to a configured member's canonical name.

        Returns:
            Canonical name, or None if the name is not a configured member
        """
        canonical = self.canonicalize(value)
        if not canonical:
            return None
        return self._members.get(_lookup_key(canonical))

    def expand_aliases(self, value: str) -> list[str]:
        """All spellings that refer to the same member, canonical first."""
        canonical = self.canonicalize(value)
        if not canonical:
            return []
        return list(self._aliases_by_canonical.get(canonical, [canonical]))

    def names_match(self, a: str, b: str) -> bool:
        """Check whether two raw names refer to the same member."""
        if not (a or "").strip() or not (b or "").strip():
            return False
        return _lookup_key(self.canonicalize(a)) == _lookup_key(self.canonicalize(b))
