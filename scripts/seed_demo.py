#!/usr/bin/env python
#
# -------------------------------------------------------------------------------
"""
Fill an empty database with demo users, posts, pages and terms.

    python scripts/seed_demo.py
"""

import asyncio
from datetime import datetime, timedelta

from app.core.database import init_db, create_all_tables, get_session_factory
from app.models import Post, PostMeta, Term
from app.services.users import create_user


async def seed():
    init_db()
    await create_all_tables()

    async with get_session_factory()() as db:
        admin  = await create_user(db, "admin",  "admin@example.com",  role="administrator")
        editor = await create_user(db, "editor", "editor@example.com", role="editor")
        author = await create_user(db, "author", "author@example.com", role="author")

        news   = Term(taxonomy="category", name="News",   slug="news")
        events = Term(taxonomy="category", name="Events", slug="events")
        python = Term(taxonomy="post_tag", name="Python", slug="python")
        db.add_all([news, events, python])
        await db.flush()

        photo = Post(post_type="attachment", status="inherit", title="Header",
                     slug="header", mime_type="image/jpeg",
                     guid="http://localhost:8000/uploads/header.jpg", author_id=admin.id)
        db.add(photo)
        await db.flush()

        start = datetime(2024, 1, 1, 9, 0, 0)
        for n in range(12):
            post = Post(
                post_type="post",
                title=f"Demo post {n + 1}",
                slug=f"demo-post-{n + 1}",
                content=f"<p>Body of demo post {n + 1}.</p>",
                author_id=(editor if n % 2 else author).id,
                date=start + timedelta(days=n),
                sticky=(n == 0),
            )
            post.terms.append(news if n % 3 else events)
            if n % 4 == 0:
                post.terms.append(python)
                post.meta.append(PostMeta(meta_key="primary_image", meta_value=str(photo.id)))
            db.add(post)

        for n, title in enumerate(["About", "Contact", "Draft Page"]):
            db.add(Post(
                post_type="page",
                status="draft" if title == "Draft Page" else "publish",
                title=title,
                slug=title.lower().replace(" ", "-"),
                content=f"<p>{title}</p>",
                author_id=admin.id,
                menu_order=n,
                date=start + timedelta(days=n),
            ))

        await db.commit()
    print('done')

asyncio.run(seed())
