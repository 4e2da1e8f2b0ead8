from datetime import timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import Field
from sqlmodel import Session
from starlette.middleware.sessions import SessionMiddleware

from consentledger.audit.logger import configure_logging
from consentledger.audit.store import list_events, record_event
from consentledger.database import get_application_by_client_id, get_session, init_db
from consentledger.permissions.consent import ConsentRecord
from consentledger.permissions.errors import (
    ConsentError,
    InvalidRequestError,
    IssuanceError,
    NotAuthenticatedError,
    UnknownClientError,
)
from consentledger.permissions.oauth import CodeIssuer, OAuthParams, build_denial_redirect
from consentledger.permissions.service import (
    check_consent,
    grant_and_issue,
    list_consents,
    revoke_consent,
    suggest_scopes,
)
from consentledger.settings import get_settings

app = FastAPI(
    title="Consent Ledger API",
    description="Tracks which OAuth scopes each user has consented to and decides when to ask again.",
    version="0.1.0",
)
app.add_middleware(SessionMiddleware, secret_key=get_settings().session_secret)


@app.on_event("startup")
def _startup():
    configure_logging()
    # Creates user, application, authorization code and audit tables
    init_db()


def get_current_user_id(request: Request) -> Optional[str]:
    """Qualified ``owner/name`` of the signed-in user, set by the login flow."""
    return request.session.get("user_id")


def get_issuer() -> CodeIssuer:
    return CodeIssuer()


def _error(session: Session, exc: ConsentError, actor: Optional[str], action: str,
           application: Optional[str] = None, scopes: Optional[List[str]] = None) -> JSONResponse:
    record_event(session, actor=actor, action=action, status="error", application=application,
                 scopes=scopes, reasons=[str(exc)])
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


# ----- Consent -----
class GrantRequest(OAuthParams):
    application: str
    granted_scopes: List[str] = Field(default_factory=list)
    client_id: str


class DenyRequest(OAuthParams):
    client_id: str


@app.get("/api/consents", tags=["Consent"])
async def get_consents(session: Session = Depends(get_session),
                       user_id: Optional[str] = Depends(get_current_user_id)):
    try:
        records = list_consents(session, user_id)
    except ConsentError as e:
        return JSONResponse({"error": str(e)}, status_code=e.status_code)
    return {"status": "ok", "data": [r.model_dump(by_alias=True) for r in records]}


@app.get("/api/consent-required", tags=["Consent"])
async def consent_required(client_id: str, scope: str = "",
                           session: Session = Depends(get_session),
                           user_id: Optional[str] = Depends(get_current_user_id)):
    """
    Tells the authorization page whether to show the consent screen.

    - **client_id**: OAuth client identifier of the requesting application
    - **scope**: the space-separated scope parameter of the request
    """
    try:
        result = check_consent(session, user_id, client_id, scope)
    except ConsentError as e:
        return JSONResponse({"error": str(e)}, status_code=e.status_code)
    return {
        "status": "ok",
        "required": result["required"],
        "application": result["application"],
        "scopes": [s.model_dump(by_alias=True) for s in result["scopes"]],
    }


@app.get("/api/default-scopes", tags=["Consent"])
async def default_scopes(client_id: str,
                         session: Session = Depends(get_session),
                         user_id: Optional[str] = Depends(get_current_user_id)):
    """Standard OIDC scopes the application has not declared as custom scopes yet."""
    try:
        scopes = suggest_scopes(session, user_id, client_id)
    except ConsentError as e:
        return JSONResponse({"error": str(e)}, status_code=e.status_code)
    return {"status": "ok", "data": [s.model_dump(by_alias=True) for s in scopes]}


@app.post("/api/grant-consent", tags=["Consent"])
async def grant_consent(payload: GrantRequest, request: Request,
                        session: Session = Depends(get_session),
                        user_id: Optional[str] = Depends(get_current_user_id),
                        issuer: CodeIssuer = Depends(get_issuer)):
    """
    Records the user's consent for the application, then returns an
    authorization code for the original request.
    """
    try:
        code = grant_and_issue(
            session, user_id, payload.application, payload.granted_scopes, payload.client_id,
            payload, issuer,
            host=request.headers.get("host", ""),
            accept_language=request.headers.get("accept-language", ""),
        )
    except ConsentError as e:
        action = "CODE_ISSUED" if isinstance(e, IssuanceError) else "GRANTED"
        return _error(session, e, user_id, action, payload.application, payload.granted_scopes)
    record_event(session, actor=user_id, action="GRANTED", status="ok",
                 application=payload.application, scopes=payload.granted_scopes)
    record_event(session, actor=user_id, action="CODE_ISSUED", status="ok",
                 application=payload.application)
    return {"status": "ok", "code": code}


@app.post("/api/revoke-consent", tags=["Consent"])
async def revoke(payload: ConsentRecord,
                 session: Session = Depends(get_session),
                 user_id: Optional[str] = Depends(get_current_user_id)):
    try:
        success = revoke_consent(session, user_id, payload.application, payload.granted_scopes)
    except ConsentError as e:
        return _error(session, e, user_id, "REVOKED", payload.application, payload.granted_scopes)
    record_event(session, actor=user_id, action="REVOKED", status="ok",
                 application=payload.application, scopes=payload.granted_scopes)
    return {"status": "ok", "success": success}


@app.post("/api/deny-consent", tags=["Consent"])
async def deny_consent(payload: DenyRequest,
                       session: Session = Depends(get_session),
                       user_id: Optional[str] = Depends(get_current_user_id)):
    application = get_application_by_client_id(session, payload.client_id)
    try:
        if application is None:
            raise UnknownClientError()
        if payload.redirect_uri not in (application.redirect_uris or []):
            raise InvalidRequestError(f"Redirect URI not allowed: {payload.redirect_uri}")
    except ConsentError as e:
        return _error(session, e, user_id, "DENIED")
    record_event(session, actor=user_id, action="DENIED", status="ok",
                 application=application.qualified_name)
    return {"status": "ok", "redirect": build_denial_redirect(payload.redirect_uri, payload.state)}


# ----- Audit -----
@app.get("/api/audit/recent", tags=["Audit"])
async def recent_audit(limit: int = 50, action: Optional[str] = None,
                       session: Session = Depends(get_session),
                       user_id: Optional[str] = Depends(get_current_user_id)):
    """Recent consent events of the signed-in user."""
    if not user_id:
        e = NotAuthenticatedError()
        return JSONResponse({"error": str(e)}, status_code=e.status_code)
    events = list_events(session, limit=limit, actor=user_id, action=action)
    return [{
        "id": e.id,
        # stored in UTC; SQLite hands the value back without tzinfo
        "created_at": e.created_at.replace(tzinfo=timezone.utc).isoformat(),
        "actor": e.actor,
        "action": e.action,
        "status": e.status,
        "application": e.application,
        "scopes": e.scopes,
        "reasons": e.reasons,
    } for e in events]


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
