"""Create an admin identity and print a bearer token for it."""

import argparse
import asyncio

from courier.state.identities import IdentityStore
from courier.state.manager import StateManager
from courier.utils.security import create_access_token


async def create_admin(email: str, name: str, phone: str | None) -> None:
    state_manager = StateManager()
    await state_manager.connect()
    identities = IdentityStore(state_manager)

    try:
        existing = await identities.get_by_email(email)
        if existing is not None:
            if existing.role != "admin":
                print(f"⚠️  {email} is registered with role {existing.role!r}; not changing it.")
                return
            admin = existing
            print("⚠️  Admin already exists")
        else:
            admin = await identities.create_identity(
                email=email, name=name, phone=phone, role="admin"
            )
            print("✓ Admin created")
    finally:
        await state_manager.disconnect()

    print(f"  Email: {admin.email}")
    print(f"  Identity: {admin.id}")
    print(f"\nBearer token:\n{create_access_token(sub=str(admin.id), role='admin')}\n")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--email", default="admin@courier.com")
    parser.add_argument("--name", default="Admin User")
    parser.add_argument("--phone", default=None)
    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.name, args.phone))


if __name__ == "__main__":
    main()
