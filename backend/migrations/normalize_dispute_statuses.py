"""
Migration: Rewrite legacy dispute statuses to the canonical vocabulary.

Older rows carry GENERATED, SENT or IN_PROGRESS. They are rewritten to
READY_TO_MAIL, MAILED and IN_INVESTIGATION. Safe to run more than once.
"""
from sqlalchemy import create_engine, text
import os

from riseora.models.workflow import LEGACY_STATUS_MAP

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg2://{os.getenv('USER', 'postgres')}@localhost:5432/riseora"
)


def run_migration(database_url: str = DATABASE_URL):
    """Rewrite legacy status values in the disputes table."""
    engine = create_engine(database_url)

    with engine.connect() as conn:
        for legacy, canonical in LEGACY_STATUS_MAP.items():
            result = conn.execute(
                text("UPDATE disputes SET status = :canonical WHERE status = :legacy"),
                {"canonical": canonical.value, "legacy": legacy},
            )
            if result.rowcount:
                print(f"Rewrote {result.rowcount} disputes from {legacy} to {canonical.value}")
            else:
                print(f"No disputes with status {legacy}")

        conn.commit()


if __name__ == "__main__":
    run_migration()
