from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from consentledger.permissions.errors import InvalidScopeError
from consentledger.permissions.scopes import ScopeSet

UNDEFINED_SCOPE_DESCRIPTION = "This scope is not defined in the application"


class ScopeDescription(BaseModel):
    """
    A consentable scope declared by an application.
    - scope: identifier requested in the OAuth ``scope`` parameter
    - display_name / description: shown on the consent screen only
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    scope: str
    display_name: str = ""
    description: str = ""


DEFAULT_SCOPES: List[ScopeDescription] = [
    ScopeDescription(scope="openid", display_name="OpenID", description="Authenticate the user and obtain an ID token"),
    ScopeDescription(scope="profile", display_name="Profile", description="Read all user profile data"),
    ScopeDescription(scope="email", display_name="Email", description="Access user email addresses (read-only)"),
    ScopeDescription(scope="address", display_name="Address", description="Access the user's address information"),
    ScopeDescription(scope="phone", display_name="Phone", description="Access the user's phone number information"),
    ScopeDescription(scope="offline_access", display_name="Offline Access", description="Obtain refresh tokens for offline access"),
]


def validate_custom_scopes(scopes: Iterable[Optional[ScopeDescription]]) -> None:
    """
    Configuration-time check of an application's custom scopes: every entry
    needs a non-blank identifier, and identifiers must be unique.
    """
    seen = set()
    for item in scopes:
        if item is None or not item.scope.strip():
            raise InvalidScopeError("Missing parameter: custom scope name")
        if item.scope in seen:
            raise InvalidScopeError(f"Duplicate custom scope: {item.scope}")
        seen.add(item.scope)


class ScopeCatalog:
    """Read-only view over the custom scopes an application declares."""

    def __init__(self, scopes: Optional[Iterable[ScopeDescription]] = None):
        self._entries = {}
        for item in scopes or []:
            if item.scope and item.scope not in self._entries:
                self._entries[item.scope] = item

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, scope: object) -> bool:
        return scope in self._entries

    def is_empty(self) -> bool:
        return not self._entries

    def entries(self) -> List[ScopeDescription]:
        return list(self._entries.values())

    def filter(self, requested: Iterable[str]) -> ScopeSet:
        """Keep only requested scopes the application declares, deduplicated."""
        return ScopeSet(s for s in requested if s in self._entries)

    def describe(self, requested: Iterable[str]) -> List[ScopeDescription]:
        described = []
        for scope in requested:
            item = self._entries.get(scope)
            if item is not None:
                described.append(ScopeDescription(
                    scope=item.scope,
                    display_name=item.display_name or item.scope,
                    description=item.description,
                ))
            else:
                described.append(ScopeDescription(
                    scope=scope, display_name=scope, description=UNDEFINED_SCOPE_DESCRIPTION,
                ))
        return described


def _normalize(scope: Optional[str]) -> str:
    return (scope or "").strip().lower()


def suggest_default_scopes(catalog: ScopeCatalog) -> List[ScopeDescription]:
    """Standard OIDC scopes the application has not declared yet."""
    existing = {_normalize(item.scope) for item in catalog.entries()}
    return [item for item in DEFAULT_SCOPES if _normalize(item.scope) not in existing]
