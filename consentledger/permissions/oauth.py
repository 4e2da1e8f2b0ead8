from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

from authlib.common.security import generate_token
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Field, Session

from consentledger.database import Application
from consentledger.permissions.errors import IssuanceError
from consentledger.settings import get_settings


class OAuthParams(BaseModel):
    """Parameters of the original authorization request, passed through to issuance."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    provider: str = ""
    signin_method: str = ""
    response_type: str = "code"
    redirect_uri: str = ""
    scope: str = ""
    state: str = ""
    nonce: str = ""
    challenge: str = ""
    resource: str = ""


class AuthorizationCode(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)
    user: str = Field(index=True)
    client_id: str = Field(index=True)
    application: str
    redirect_uri: str
    scope: str = ""
    state: str = ""
    nonce: str = ""
    code_challenge: str = ""
    resource: str = ""
    provider: str = ""
    signin_method: str = ""
    host: str = ""
    accept_language: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime


class CodeIssuer:
    """
    Issues short-lived authorization codes.
    The PKCE challenge is stored as-is; it is checked when the code is exchanged.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else get_settings().code_ttl_seconds

    def issue(self, session: Session, user_id: str, application: Application, params: OAuthParams,
              host: str = "", accept_language: str = "") -> AuthorizationCode:
        if params.response_type != "code":
            raise IssuanceError(f"Unsupported response type: {params.response_type}")
        if params.redirect_uri not in (application.redirect_uris or []):
            raise IssuanceError(f"Redirect URI not allowed: {params.redirect_uri}")

        now = datetime.now(timezone.utc)
        code = AuthorizationCode(
            code=generate_token(40),
            user=user_id,
            client_id=application.client_id,
            application=application.qualified_name,
            redirect_uri=params.redirect_uri,
            scope=params.scope,
            state=params.state,
            nonce=params.nonce,
            code_challenge=params.challenge,
            resource=params.resource,
            provider=params.provider,
            signin_method=params.signin_method,
            host=host,
            accept_language=accept_language,
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        try:
            session.add(code)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.bind(event="code_issue_failed", application=application.qualified_name).error(str(e))
            raise IssuanceError(str(e)) from e
        session.refresh(code)
        logger.bind(event="code_issue", application=application.qualified_name).info("Issued authorization code")
        return code


def build_denial_redirect(redirect_uri: str, state: str) -> str:
    """Redirect target telling the client the user declined consent."""
    query = urlencode({
        "error": "access_denied",
        "error_description": "User denied consent",
        "state": state,
    })
    concat = "&" if "?" in redirect_uri else "?"
    return f"{redirect_uri}{concat}{query}"
