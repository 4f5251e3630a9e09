"""
Script to create a local user (and optionally an org they own) for testing.

Prints a session token to use as ``Authorization: Bearer <token>``.
"""

import argparse
import asyncio
from typing import Optional

from sqlmodel import select

from app.core.auth import create_jwt
from app.core.database import get_session_context, init_db
from app.models.user import User
from app.services.organizations import create_org
from app.services.users import create_user
from rockimages_shared.schemas.common import Visibility
from rockimages_shared.schemas.organizations import OrgCreateRequest


async def create_local_user(username: str, org_name: Optional[str], private: bool, create_tables: bool):
    if create_tables:
        await init_db()

    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()
        if user:
            print(f"User {username} already exists (id={user.id}).")
        else:
            user = await create_user(session, username)
            print(f"Created user: {username} (id={user.id})")

        if org_name:
            visibility = Visibility.PRIVATE if private else Visibility.PUBLIC
            org = await create_org(
                session, OrgCreateRequest(name=org_name, visibility=visibility), user.id
            )
            print(f"Created {visibility.value} org: {org.name} (id={org.id})")

        user_id = user.id

    print(f"Token: {create_jwt(user_id)}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local user and print a session token.")
    parser.add_argument("--username", required=True, help="Username to create or reuse")
    parser.add_argument("--org", help="Also create an org owned by the user")
    parser.add_argument("--private", action="store_true", help="Make the new org private")
    parser.add_argument("--create-tables", action="store_true", help="Create tables first (dev only)")

    args = parser.parse_args()

    asyncio.run(create_local_user(args.username, args.org, args.private, args.create_tables))
