#!/usr/bin/env python
"""Seed development database with fixture data.

Seeds an admin, a regular user and the sample library mirror for local
testing of restriction rules, hidden entities and recomputes.

Constraints:
- Refuses to run in staging or prod (CURTAIN_ENV check)
- Idempotent: existing users are kept, mirror rows are only added once
- Never runs automatically (manual invocation only)

Usage:
    cd python && DATABASE_URL=... uv run python ../scripts/seed_dev.py
"""

import os
import sys


def main():
    # 1. Environment check (hard fail in staging/prod)
    curtain_env = os.getenv("CURTAIN_ENV", "local")
    if curtain_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in CURTAIN_ENV={curtain_env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    # 3. Import fixture data (single source of truth)
    from sqlalchemy import func, select

    from curtain.db.engine import create_db_engine
    from curtain.db.models import MirroredEntity, User
    from curtain.db.session import create_session_factory
    from tests.fixtures import LIBRARY_INSTANCE, seed_mirror

    engine = create_db_engine(database_url)
    db = create_session_factory(engine)()

    try:
        # 4. Idempotent seeding
        created_users = []
        for username, role in (("admin", "admin"), ("viewer", "user")):
            if db.scalar(select(User).where(User.username == username)) is None:
                db.add(User(username=username, role=role))
                created_users.append(username)
        db.commit()

        existing = db.scalar(
            select(func.count()).where(MirroredEntity.instance_id == LIBRARY_INSTANCE)
        )
        mirrored = 0 if existing else seed_mirror(db)
    finally:
        db.close()
        engine.dispose()

    # 5. Report
    db_display = database_url.split("@")[1] if "@" in database_url else database_url
    print(f"Database: {db_display}")
    print(f"CURTAIN_ENV: {curtain_env}")
    print()
    for username in ("admin", "viewer"):
        print(f"{'✓ Created' if username in created_users else '• Exists'}: user {username}")
    if mirrored:
        print(f"✓ Created: {mirrored} mirrored entities in instance {LIBRARY_INSTANCE!r}")
    else:
        print(f"• Exists: mirror for instance {LIBRARY_INSTANCE!r}")
    print()
    print("Note: Exclusions are not computed. Use POST /recompute-all.")


if __name__ == "__main__":
    main()
