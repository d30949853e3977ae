"""
Shared fixtures: in-memory SQLite session, repository, upload histories.
"""
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from upload_reminders.config import EngineSettings
from upload_reminders.database import init_db
from upload_reminders.models import DocumentType, UploadEvent
from upload_reminders.services import UploadReminderRepository


@pytest.fixture
def settings():
    return EngineSettings()


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def repository(db_session):
    return UploadReminderRepository(db_session)


@pytest.fixture
def monthly_uploads():
    """Six ANZ bank statements on the 15th, Jan-Jun 2026."""
    return [
        UploadEvent(
            document_type=DocumentType.BANK_STATEMENT,
            source="ANZ",
            upload_date=date(2026, month, 15),
            id=f"upload-anz-{month}",
        )
        for month in range(1, 7)
    ]
