from typing import Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from consentledger.permissions.errors import InvalidRequestError
from consentledger.permissions.scopes import ScopeSet


class ConsentRecord(BaseModel):
    """Scopes a user granted to one application (``owner/name``)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    application: str
    granted_scopes: List[str] = Field(default_factory=list)


def validate_revoke_request(application: str, scopes: List[str]) -> None:
    """Revoking requires an application and at least one scope."""
    if not application:
        raise InvalidRequestError("Application cannot be empty")
    if not scopes:
        raise InvalidRequestError("Granted scopes cannot be empty")


class ConsentLedger:
    """
    Per-user consent state: an ordered list of (application id, granted
    ScopeSet) entries, loaded from and saved back to the user's records.

    Mutations only touch entries of the application they target; every
    other entry is carried forward exactly as loaded. A target entry whose
    scope set becomes empty is removed, so an application without a record
    is indistinguishable from one never granted.
    """

    def __init__(self):
        self._entries: List[Tuple[str, ScopeSet]] = []

    @classmethod
    def from_records(cls, records: Optional[Iterable[ConsentRecord]]) -> "ConsentLedger":
        ledger = cls()
        for record in records or []:
            ledger._entries.append((record.application, ScopeSet(record.granted_scopes)))
        return ledger

    def records(self) -> List[ConsentRecord]:
        return [
            ConsentRecord(application=app, granted_scopes=scopes.to_list())
            for app, scopes in self._entries
        ]

    def _targets(self, application: str) -> List[ScopeSet]:
        targets = [scopes for app, scopes in self._entries if app == application]
        if len(targets) > 1:
            logger.bind(event="ledger_duplicate_record", application=application).warning(
                f"Found {len(targets)} consent records for one application"
            )
        return targets

    def grant(self, application: str, scopes: Iterable[str]) -> List[str]:
        """
        Merge scopes into the application's record, creating it if needed.
        Existing scopes keep their position; new ones are appended in the
        order given. Returns the scopes that were actually added.
        """
        targets = self._targets(application)
        if targets:
            added = targets[0].update(scopes)
        else:
            current = ScopeSet()
            added = current.update(scopes)
            if added:
                self._entries.append((application, current))
        logger.bind(event="consent_grant", application=application).info(
            f"Granted {len(added)} new scope(s)"
        )
        return added

    def revoke(self, application: str, scopes: Iterable[str]) -> List[str]:
        """
        Remove scopes from the application's record; the record is dropped
        once nothing is left. A missing record is not an error.
        """
        scopes = list(scopes)
        validate_revoke_request(application, scopes)

        targets = self._targets(application)
        if not targets:
            logger.bind(event="consent_revoke", application=application).info("No consent record to revoke")
            return []
        removed = ScopeSet()
        for current in targets:
            removed.update(current.discard_all(scopes))
        self._entries = [(app, s) for app, s in self._entries if app != application or s]
        remaining = sum(len(s) for s in targets)
        if not remaining:
            logger.bind(event="consent_revoke", application=application).info("Consent record removed")
        else:
            logger.bind(event="consent_revoke", application=application).info(
                f"Revoked {len(removed)} scope(s), {remaining} remaining"
            )
        return removed.to_list()
