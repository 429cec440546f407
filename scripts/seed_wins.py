"""Seed script for the `win_collections` and `users` tables.

Creates a demo account with a short streak of wins so local UIs and API
calls have data to read right after `alembic upgrade head`.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

from winjournal.config import load_settings
from winjournal.domain.entrystore import Entry, SqlCollectionStore
from winjournal.domain.errors import DuplicateUserError
from winjournal.domain.session import AuthService, SqlCredentialRepository
from winjournal.infra.db import get_engine

DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "demo-password"


def build_seed_wins(timestamp: datetime) -> List[Entry]:
    """Return newest-first demo wins spread over the last three days."""

    specs = [
        ("Shipped the weekly report", "work", "Sent before lunch.", 0),
        ("Ran 5k", "health", "", 1),
        ("Finished a chapter of the SQL book", "learning", "", 2),
        ("Called grandma", "personal", "She loved the photos.", 2),
    ]
    return [
        Entry(
            entry_id=f"00000000-0000-0000-0000-00000000000{index}",
            title=title,
            description=description,
            category=category,
            created_at=timestamp - timedelta(days=days_ago),
        )
        for index, (title, category, description, days_ago) in enumerate(
            specs, start=1
        )
    ]


def seed_wins() -> int:
    settings = load_settings()
    engine = get_engine(settings.database_url)

    auth = AuthService(SqlCredentialRepository(engine))
    try:
        auth.register(DEMO_EMAIL, DEMO_PASSWORD)
    except DuplicateUserError:
        print(f"Account {DEMO_EMAIL} already exists; reseeding its wins.")

    wins = build_seed_wins(datetime.now(timezone.utc))
    SqlCollectionStore(engine).write_collection(DEMO_EMAIL, wins)
    return len(wins)


def main() -> None:
    inserted = seed_wins()
    print(f"Seeded {inserted} wins for {DEMO_EMAIL}.")


if __name__ == "__main__":
    main()
