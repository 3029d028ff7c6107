#!/usr/bin/env python
#
# -------------------------------------------------------------------------------

import asyncio
from app.core.config import get_settings
from app.core.roles import capabilities_for
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy import select
from app.models import User

async def check():
    s = get_settings()
    print("DATABASE_URL:", s.database_url)
    engine = create_async_engine(s.database_url)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db:
        result = await db.execute(select(User).order_by(User.id))
        for u in result.scalars().all():
            caps = ",".join(sorted(capabilities_for(u.role)))
            print(f"  id={u.id} username={u.username} role={u.role} is_active={u.is_active}")
            print(f"      caps={caps}")
    await engine.dispose()

asyncio.run(check())
