"""
Seed demo users and default pricing settings for local development.

Usage:
    DATABASE_URL=sqlite+aiosqlite:///./jelantah.db SECRET_KEY=dev python -m scripts.seed_demo_data

Prints a bearer token per user so the API can be exercised with curl or the
Swagger UI. Running it twice does not duplicate users.
"""
import asyncio
import uuid

from sqlalchemy import select

from jelantah.core.security import create_access_token
from jelantah.database import async_session_factory, init_db
from jelantah.models import User, UserRole
from jelantah.services.settings_service import SettingsService


DEMO_USERS = [
    {"email": "admin@jelantahgo.com", "name": "Admin JelantahGO", "role": UserRole.ADMIN},
    {"email": "warehouse@jelantahgo.com", "name": "Gudang Utama", "role": UserRole.WAREHOUSE},
    {"email": "kurir.budi@jelantahgo.com", "name": "Budi Kurir", "role": UserRole.COURIER},
    {"email": "kurir.sari@jelantahgo.com", "name": "Sari Kurir", "role": UserRole.COURIER},
    {"email": "warung.ani@example.com", "name": "Warung Bu Ani", "role": UserRole.CUSTOMER,
     "referral_code": "ANI2024"},
    {"email": "resto.padang@example.com", "name": "Resto Padang Sederhana", "role": UserRole.CUSTOMER,
     "referred_by": "warung.ani@example.com"},
]


async def seed():
    """Seed users and settings."""
    await init_db()

    async with async_session_factory() as db:
        try:
            print("Seeding demo data...")

            users = {}
            for data in DEMO_USERS:
                result = await db.execute(select(User).where(User.email == data["email"]))
                user = result.scalar_one_or_none()
                if user is None:
                    user = User(
                        id=uuid.uuid4(),
                        email=data["email"],
                        name=data["name"],
                        role=data["role"].value,
                        referral_code=data.get("referral_code"),
                        is_active=True,
                    )
                    db.add(user)
                    print(f"  Created {data['role'].value}: {data['email']}")
                users[data["email"]] = user

            await db.flush()

            for data in DEMO_USERS:
                referrer_email = data.get("referred_by")
                if referrer_email:
                    users[data["email"]].referred_by_id = users[referrer_email].id

            await SettingsService(db).get_or_create()
            await db.commit()

            print("\nBearer tokens:")
            for email, user in users.items():
                print(f"  {user.role:<10} {email:<30} {create_access_token(user.id)}")

            print("\nDone.")
        except Exception as e:
            await db.rollback()
            print(f"Error seeding data: {e}")
            raise


if __name__ == "__main__":
    asyncio.run(seed())
