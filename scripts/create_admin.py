"""
Create the platform administrator (SUPER_ADMIN), or promote an existing user.
Run: cd backend && python ../scripts/create_admin.py --email admin@example.com --password '...'
"""
import argparse
import asyncio
import os
import sys
from pathlib import Path

# Ensure backend is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))
os.chdir(str(Path(__file__).resolve().parent.parent / "backend"))

from sqlalchemy import select  # noqa: E402

from compliancehub.database import async_session  # noqa: E402
from compliancehub.middleware.auth import hash_password  # noqa: E402
from compliancehub.models.user import User  # noqa: E402


async def create_admin(email: str, password: str, name: str) -> int:
    async with async_session() as s:
        user = (await s.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if user:
            user.platform_role = "SUPER_ADMIN"
            user.password_hash = hash_password(password)
            user.is_active = True
            await s.commit()
            print(f"Promoted existing user {email} (id={user.id}) to super admin")
            return 0

        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            platform_role="SUPER_ADMIN",
        )
        s.add(user)
        await s.commit()
        print(f"Created super admin {email} (id={user.id})")
        print("Change the password after the first login.")
        return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the platform super admin")
    parser.add_argument("--email", default="admin@compliancehub.local")
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="Platform Administrator")
    args = parser.parse_args()
    if len(args.password) < 8:
        print("Password must be at least 8 characters")
        return 1
    return asyncio.run(create_admin(args.email.strip().lower(), args.password, args.name))


if __name__ == "__main__":
    sys.exit(main())
