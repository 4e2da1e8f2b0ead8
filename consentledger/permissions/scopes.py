from typing import Iterable, Iterator, List


def parse_scopes(scope_str: str) -> List[str]:
    """
    Split an OAuth ``scope`` parameter into tokens.

    Splits on single spaces, trims each piece and drops empty ones, so
    "read  write " yields ["read", "write"]. Duplicates are kept; wrap the
    result in a ScopeSet when set semantics are needed.
    """
    if not scope_str:
        return []
    return [s.strip() for s in scope_str.split(" ") if s.strip()]


class ScopeSet:
    """
    Set of scope identifiers that remembers first-insertion order.

    Membership follows set semantics; iteration and
    ``to_list`` follow insertion order, which is what gets persisted.
    """

    def __init__(self, scopes: Iterable[str] = ()):
        self._items = dict.fromkeys(scopes)

    def add(self, scope: str) -> bool:
        if scope in self._items:
            return False
        self._items[scope] = None
        return True

    def update(self, scopes: Iterable[str]) -> List[str]:
        """Append unseen scopes in the given order and return the ones added."""
        return [s for s in scopes if self.add(s)]

    def discard_all(self, scopes: Iterable[str]) -> List[str]:
        """Remove the given scopes, keeping the order of what remains."""
        revoke = set(scopes)
        removed = [s for s in self._items if s in revoke]
        for s in removed:
            del self._items[s]
        return removed

    def covers(self, scopes: Iterable[str]) -> bool:
        return all(s in self for s in scopes)

    def to_list(self) -> List[str]:
        return list(self._items)

    def __contains__(self, scope: object) -> bool:
        return scope in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"ScopeSet({self.to_list()!r})"
