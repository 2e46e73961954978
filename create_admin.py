# create_admin.py
"""Bootstrap the first admin account. Run from the project root: ``python create_admin.py``."""
import asyncio
from getpass import getpass

from app.db.database import init_db, close_db
from app.models.user import User, UserRole
from app.core.security import get_password_hash


async def create_initial_admin():
    print("--- Create Initial Admin User ---")
    await init_db()

    try:
        while True:
            username = input("Enter admin username: ").strip()
            if username:
                break
            print("Username cannot be empty.")

        if await User.find_one(User.username == username):
            print(f"Error: Username '{username}' already exists.")
            return

        while True:
            password = getpass("Enter admin password (min 8 characters): ")
            if len(password) < 8:
                print("Password must be at least 8 characters.")
                continue
            if password == getpass("Confirm admin password: "):
                break
            print("Passwords do not match. Please try again.")

        email = input("Enter admin email (optional, press Enter to skip): ").strip() or None
        full_name = input("Enter admin full name (optional, press Enter to skip): ").strip() or None

        admin_user = User(
            username=username,
            email=email,
            full_name=full_name,
            hashed_password=get_password_hash(password),
            role=UserRole.ADMIN,
            disabled=False,
        )
        await admin_user.insert()
        print(f"Admin user '{username}' created successfully!")
    finally:
        close_db()


if __name__ == "__main__":
    asyncio.run(create_initial_admin())
