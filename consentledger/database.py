from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import JSON, Column, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Field, Session, create_engine, select

from consentledger.permissions.catalog import ScopeCatalog, ScopeDescription, validate_custom_scopes
from consentledger.permissions.consent import ConsentRecord
from consentledger.permissions.errors import PersistenceError
from consentledger.settings import get_settings


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    owner: str = Field(index=True)
    name: str = Field(index=True)
    email: Optional[str] = None
    # list of {"application": "owner/name", "grantedScopes": [...]}
    application_scopes: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    @property
    def qualified_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def consent_records(self) -> List[ConsentRecord]:
        return [ConsentRecord.model_validate(r) for r in self.application_scopes or []]


class Application(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    owner: str = Field(index=True)
    name: str = Field(index=True)
    client_id: str = Field(index=True, unique=True)
    custom_scopes: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    redirect_uris: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    @property
    def qualified_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def scope_descriptions(self) -> List[ScopeDescription]:
        return [ScopeDescription.model_validate(s) for s in self.custom_scopes or []]

    def catalog(self) -> ScopeCatalog:
        return ScopeCatalog(self.scope_descriptions())


_engine = None


def get_engine():
    global _engine
    if _engine is None:
        db_url = get_settings().database_url
        connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
        _engine = create_engine(db_url, echo=False, connect_args=connect_args)
    return _engine


def init_db():
    engine = get_engine()
    SQLModel.metadata.create_all(engine)
    return engine


def get_session():
    with Session(get_engine()) as session:
        yield session


def _split_id(qualified: str):
    owner, _, name = (qualified or "").partition("/")
    return owner, name


def get_user(session: Session, user_id: str) -> Optional[User]:
    owner, name = _split_id(user_id)
    if not owner or not name:
        return None
    stmt = select(User).where(User.owner == owner, User.name == name)
    return session.exec(stmt).first()


def get_application_by_client_id(session: Session, client_id: str) -> Optional[Application]:
    if not client_id:
        return None
    stmt = select(Application).where(Application.client_id == client_id)
    return session.exec(stmt).first()


def _commit(session: Session, obj):
    try:
        session.add(obj)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.bind(event="persistence_error").error(f"Failed to save {type(obj).__name__}: {e}")
        raise PersistenceError(str(e)) from e
    session.refresh(obj)
    return obj


def add_user(session: Session, user: User) -> User:
    return _commit(session, user)


def add_application(session: Session, application: Application) -> Application:
    """Store an application after validating its custom scope catalog."""
    validate_custom_scopes(
        ScopeDescription.model_validate(s) if s else None for s in application.custom_scopes or []
    )
    return _commit(session, application)


def update_user(session: Session, user: User, values: Dict[str, Any]) -> bool:
    """
    Write only the given columns of a user row and commit.
    The in-memory object is refreshed from the database afterwards.
    """
    stmt = update(User).where(User.id == user.id).values(**values)
    try:
        result = session.connection().execute(stmt)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.bind(event="persistence_error", user=user.qualified_name).error(f"Failed to update user: {e}")
        raise PersistenceError(str(e)) from e
    session.refresh(user)
    return result.rowcount > 0
