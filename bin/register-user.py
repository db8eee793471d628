"""Create a chat account from the command line.

Usage: python bin/register-user.py <username>

The password is read from the terminal and never echoed or stored; only
its salted hash reaches the database.
"""

import asyncio
import getpass
import sys
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from chat.server.settings import ChatServerSettings
from chat.session.session import REGISTER_REPLIES
from shared.auth.password import generate_salt, hash_password
from shared.auth.service import CredentialService, RegisterResult
from shared.db import Database, SqliteUserRepository


async def main() -> None:
    if len(sys.argv) != 2:
        print(f"Usage: {sys.argv[0]} <username>")
        sys.exit(1)

    username = sys.argv[1]
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("Error: passwords do not match")
        sys.exit(1)

    settings = ChatServerSettings()
    db = Database(settings.database_path)
    db.connect()

    try:
        credentials = CredentialService(SqliteUserRepository(db))
        salt = generate_salt()
        result = await credentials.register(username, hash_password(password, salt), salt)
        if result is not RegisterResult.OK:
            print(f"Error: {REGISTER_REPLIES[result]}")
            sys.exit(1)
        print(f"User registered: {username}")
    finally:
        db.close()


if __name__ == "__main__":
    asyncio.run(main())
