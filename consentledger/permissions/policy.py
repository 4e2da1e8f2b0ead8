from typing import Iterable

from loguru import logger

from consentledger.permissions.catalog import ScopeCatalog
from consentledger.permissions.consent import ConsentRecord
from consentledger.permissions.scopes import ScopeSet, parse_scopes


def is_consent_required(records: Iterable[ConsentRecord], application: str,
                        catalog: ScopeCatalog, scope_str: str) -> bool:
    """
    Ask-once decision for an authorization request.

    - Applications without custom scopes never ask.
    - Requested tokens outside the catalog (e.g. openid, profile) are ignored.
    - Consent is skipped when some record for the application already holds
      every remaining requested scope.
    """
    if catalog.is_empty():
        return False

    requested = catalog.filter(parse_scopes(scope_str))
    if not requested:
        return False

    for record in records:
        if record.application != application:
            continue
        if ScopeSet(record.granted_scopes).covers(requested):
            logger.bind(event="consent_check", application=application).info("Consent already granted")
            return False

    logger.bind(event="consent_check", application=application).info(
        f"Consent required for {len(requested)} scope(s)"
    )
    return True
