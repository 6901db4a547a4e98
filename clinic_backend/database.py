import os
from datetime import timezone
from threading import Lock

from sqlalchemy import DateTime, create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator

from clinic_backend.core import config


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")

engine = create_engine(DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False


class UTCDateTime(TypeDecorator):
    """Stores instants as naive UTC and hands them back timezone-aware."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_scheduling_schema() -> None:
    global _scheduling_schema_checked

    if _scheduling_schema_checked:
        return

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        table_names = set(inspect(engine).get_table_names())
        index_steps = [
            (
                'time_slots',
                'CREATE INDEX IF NOT EXISTS idx_time_slots_professional_start '
                'ON time_slots(professional_id, start_at)',
            ),
            (
                'time_slots',
                'CREATE INDEX IF NOT EXISTS idx_time_slots_status_start ON time_slots(status, start_at)',
            ),
            (
                'appointments',
                'CREATE INDEX IF NOT EXISTS idx_appointments_patient ON appointments(patient_id)',
            ),
            (
                'appointments',
                'CREATE INDEX IF NOT EXISTS idx_appointments_professional ON appointments(professional_id)',
            ),
            (
                'availability_exceptions',
                'CREATE INDEX IF NOT EXISTS idx_availability_exceptions_professional_date '
                'ON availability_exceptions(professional_id, date)',
            ),
        ]

        with engine.begin() as connection:
            for table_name, statement in index_steps:
                if table_name in table_names:
                    connection.execute(text(statement))

        _scheduling_schema_checked = True
