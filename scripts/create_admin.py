"""
Provision an administrator account.
Run: python -m scripts.create_admin admin@example.gov  (from project root, with DB reachable).
The password is read from the terminal (or ADMIN_PASSWORD) and stored as a bcrypt hash.
"""
import argparse
import asyncio
import getpass
import os
import sys

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.enums import UserRole
from core.exceptions import ConflictError, ValidationError
from core.logging import setup_logging
from database import AsyncSessionLocal, init_db
from repositories import UserRepository
from services.auth_service import AuthService


async def create_admin(email: str, password: str) -> int:
    await init_db()
    async with AsyncSessionLocal() as session:
        auth = AuthService(UserRepository(session))
        try:
            user = await auth.register({"email": email, "password": password}, role=UserRole.ADMIN)
        except ConflictError:
            print(f"An account for {email} already exists; nothing changed.")
            return 1
        except ValidationError as e:
            print(f"Invalid input: {e.message}")
            return 2
        await session.commit()
    print(f"Created admin {user.email} ({user.id})")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create an administrator account")
    parser.add_argument("email")
    args = parser.parse_args()

    setup_logging()
    password = os.environ.get("ADMIN_PASSWORD") or getpass.getpass("Password: ")
    return asyncio.run(create_admin(args.email, password))


if __name__ == "__main__":
    sys.exit(main())
