"""Retire a chat account. The name stays reserved and cannot be registered again.

Usage: python bin/deactivate-user.py <username>
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from chat.server.settings import ChatServerSettings
from shared.auth.repository import CredentialStoreError
from shared.db import Database, SqliteUserRepository


async def main() -> None:
    if len(sys.argv) != 2:
        print(f"Usage: {sys.argv[0]} <username>")
        sys.exit(1)

    username = sys.argv[1]
    settings = ChatServerSettings()
    db = Database(settings.database_path)
    db.connect()

    try:
        try:
            retired = await SqliteUserRepository(db).deactivate(username)
        except CredentialStoreError as e:
            print(f"Error: {e}")
            sys.exit(1)
        if not retired:
            print(f"Error: no active user named {username!r}")
            sys.exit(1)
        print(f"User deactivated: {username}")
    finally:
        db.close()


if __name__ == "__main__":
    asyncio.run(main())
