"""
Script to create a password user who owns a studio, for local testing.
"""

import argparse
import asyncio
import uuid

from sqlmodel import select

from app.core.auth import Identity, hash_password, normalize_email
from app.core.database import get_session_context, set_rls_context
from app.core.errors import Err
from app.core.studio_ref import StudioRef
from app.models.user import User
from app.services.studios import create_studio
from studiodesk_shared.schemas.studios import StudioCreateRequest


async def create_owner(email: str, password: str, studio_name: str) -> None:
    email = normalize_email(email)
    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(
                id=uuid.uuid4(),
                email=email,
                full_name=email.split("@")[0],
                password_hash=hash_password(password),
            )
            session.add(user)
            await session.flush()
            print(f"Created user: {email}")
        else:
            print(f"User {email} already exists.")

        await set_rls_context(session, user_id=user.id)
        created = await create_studio(
            StudioCreateRequest(name=studio_name),
            Identity(id=user.id, email=email),
            StudioRef(),
            session,
        )
        if isinstance(created, Err):
            raise SystemExit(f"Could not create studio: {created.message}")
        print(f"Created studio '{created.value.name}' ({created.value.slug}) owned by {email}.")
    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local studio owner.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--studio", default="My Studio", help="Name of the studio to create")

    args = parser.parse_args()

    asyncio.run(create_owner(args.email, args.password, args.studio))
