from typing import Any, Dict, List, Optional

from loguru import logger
from sqlmodel import Session

from consentledger.database import User, get_application_by_client_id, get_user, update_user
from consentledger.permissions.catalog import ScopeDescription, suggest_default_scopes
from consentledger.permissions.consent import ConsentLedger, ConsentRecord, validate_revoke_request
from consentledger.permissions.errors import (
    ApplicationMismatchError,
    NotAuthenticatedError,
    UnknownClientError,
    UserNotFoundError,
)
from consentledger.permissions.oauth import CodeIssuer, OAuthParams
from consentledger.permissions.policy import is_consent_required
from consentledger.permissions.scopes import parse_scopes


def load_user(session: Session, user_id: Optional[str]) -> User:
    if not user_id:
        raise NotAuthenticatedError()
    user = get_user(session, user_id)
    if user is None:
        raise UserNotFoundError()
    return user


def _save_ledger(session: Session, user: User, ledger: ConsentLedger) -> bool:
    # Always a full replacement of the column; concurrent writers race last-writer-wins.
    records = [r.model_dump(by_alias=True) for r in ledger.records()]
    return update_user(session, user, {"application_scopes": records})


def list_consents(session: Session, user_id: Optional[str]) -> List[ConsentRecord]:
    user = load_user(session, user_id)
    return ConsentLedger.from_records(user.consent_records()).records()


def suggest_scopes(session: Session, user_id: Optional[str], client_id: str) -> List[ScopeDescription]:
    """Standard OIDC scopes an application could still add to its custom scopes."""
    load_user(session, user_id)
    application = get_application_by_client_id(session, client_id)
    if application is None:
        raise UnknownClientError()
    return suggest_default_scopes(application.catalog())


def check_consent(session: Session, user_id: Optional[str], client_id: str, scope: str) -> Dict[str, Any]:
    """
    Decide whether the consent screen must be shown for a request, and
    describe the requested scopes for it.
    """
    user = load_user(session, user_id)
    application = get_application_by_client_id(session, client_id)
    if application is None:
        raise UnknownClientError()
    catalog = application.catalog()
    required = is_consent_required(user.consent_records(), application.qualified_name, catalog, scope)
    return {
        "required": required,
        "application": application.qualified_name,
        "scopes": catalog.describe(parse_scopes(scope)) if required else [],
    }


def revoke_consent(session: Session, user_id: Optional[str], application: str, scopes: List[str]) -> bool:
    if not user_id:
        raise NotAuthenticatedError()
    validate_revoke_request(application, scopes)
    user = load_user(session, user_id)

    ledger = ConsentLedger.from_records(user.consent_records())
    ledger.revoke(application, scopes)
    return _save_ledger(session, user, ledger)


def grant_consent(session: Session, user: User, application: str, scopes: List[str]) -> List[ConsentRecord]:
    ledger = ConsentLedger.from_records(user.consent_records())
    ledger.grant(application, scopes)
    _save_ledger(session, user, ledger)
    return ledger.records()


def grant_and_issue(session: Session, user_id: Optional[str], application_id: str, scopes: List[str],
                    client_id: str, params: OAuthParams, issuer: CodeIssuer,
                    host: str = "", accept_language: str = "") -> str:
    """
    Record consent, then issue an authorization code.

    The two steps commit separately: when issuance fails the grant stays
    recorded and the error is raised to the caller.
    """
    if not user_id:
        raise NotAuthenticatedError()
    application = get_application_by_client_id(session, client_id)
    if application is None:
        raise UnknownClientError()
    if application_id != application.qualified_name:
        raise ApplicationMismatchError()
    user = load_user(session, user_id)

    grant_consent(session, user, application.qualified_name, scopes)
    code = issuer.issue(session, user.qualified_name, application, params, host=host, accept_language=accept_language)
    logger.bind(event="consent_grant", application=application.qualified_name).info(
        "Consent granted and authorization code issued"
    )
    return code.code
