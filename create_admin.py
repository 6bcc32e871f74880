# create_admin.py
import asyncio
import sys

from app.core.config import DATABASE_NAME, setup_logging
from app.core.exceptions import PortalError
from app.db.database import init_db
from app.services.profiles import ProfileService


async def create_initial_admin():
    """Jadikan akun auth provider yang sudah ada sebagai admin portal."""
    print("--- Create Initial Admin Profile ---")
    setup_logging()

    store = await init_db()
    print(f"Connected to database: {DATABASE_NAME}")

    try:
        while True:
            user_id = input("Enter auth user id (JWT 'sub'): ").strip()
            if user_id:
                break
            print("User id cannot be empty.")

        profiles = ProfileService(store)
        existing = await profiles.find(user_id)
        if existing:
            print(f"Profile found ({existing.email}, role '{existing.role.value}'). Promoting to admin...")
            email = existing.email
            full_name = existing.nama_lengkap
        else:
            email = input("Enter admin email: ").strip()
            full_name = input("Enter admin full name (optional, press Enter to skip): ").strip() or None

        try:
            profile = await profiles.create_admin(user_id, email, full_name)
        except PortalError as e:
            print(f"Error: {e.message}")
            return 1
        print(f"Profile '{profile.id}' is now admin (status '{profile.status.value}').")
        return 0
    finally:
        store.database.client.close()
        print("Database connection closed.")


if __name__ == "__main__":
    print("Starting admin creation script...")
    sys.exit(asyncio.run(create_initial_admin()))
