#!/usr/bin/env python
#
# -------------------------------------------------------------------------------
"""
Print a bearer token for an existing user.

    python scripts/issue_token.py editor1
"""

import asyncio, sys

from app.core.database import init_db, get_session_factory
from app.core.security import create_access_token
from app.services.users import get_user_by_username


async def issue(username):
    init_db()
    async with get_session_factory()() as db:
        user = await get_user_by_username(db, username)
    if user is None:
        sys.exit(f"no such user: {username}")
    print(create_access_token(user.id, {"role": user.role}))

if len(sys.argv) != 2:
    sys.exit("usage: issue_token.py <username>")

asyncio.run(issue(sys.argv[1]))
