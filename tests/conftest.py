"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- In-memory SQLite engine, sessions, and a get_db_context-style factory
- User factory returning (user, bearer token)
"""

from collections.abc import Callable, Generator
from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from relaychat.api.middleware.auth import issue_token
from relaychat.db.models import Base, User, UserType


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across sessions via StaticPool."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def testing_session_local(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def test_db(testing_session_local) -> Generator[Session, None, None]:
    """Session for direct use in tests."""
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory(testing_session_local) -> Callable:
    """Context-manager factory with get_db_context semantics on the test DB."""

    @contextmanager
    def _factory() -> Generator[Session, None, None]:
        db = testing_session_local()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    return _factory


# ============================================================================
# Users
# ============================================================================


@pytest.fixture
def make_user(test_db: Session) -> Callable[..., tuple[User, str]]:
    """Create users on the test DB.

    Returns:
        Callable (email, user_type) -> (User, raw bearer token).
    """

    def _make(
        email: str = "ada@example.com",
        user_type: str = UserType.regular.value,
    ) -> tuple[User, str]:
        token, digest = issue_token()
        user = User(email=email, user_type=user_type, token_hash=digest)
        test_db.add(user)
        test_db.commit()
        test_db.refresh(user)
        return user, token

    return _make
