#!/usr/bin/env python3
############################################################
#
# bloghut - Community Blogging Platform
#
# seed_dev_data.py: Seed database with development data
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Seed development data for Blog Hut: an admin account and starter categories."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.core.text import slugify
from backend.app.db import crud
from backend.app.db.models import UserRole
from backend.app.db.session import get_async_db_context, init_db
from backend.app.security.password_hash import hash_password
from backend.app.services.badges import award_registration_badge

DEFAULT_CATEGORIES = [
    ("Technology", "Software, gadgets and the web"),
    ("Travel", "Trips, trails and places worth visiting"),
    ("Food", "Recipes and restaurant notes"),
    ("Lifestyle", "Everyday life, health and hobbies"),
]

USERS = [
    {
        "username": "admin",
        "email": "admin@bloghut.local",
        "password": "admin123",
        "role": UserRole.ADMIN,
    },
]


async def seed_categories(db):
    for name, description in DEFAULT_CATEGORIES:
        slug = slugify(name)
        if await crud.get_category_by_slug(db, slug):
            print(f"  Category '{name}' already exists, skipping...")
            continue
        await crud.create_category(db, name, slug, description)
        print(f"  Created category: {name}")


async def seed_users(db):
    """Create default users for development."""
    for user_data in USERS:
        existing = await crud.get_user_by_username(db, user_data["username"])
        if existing:
            print(f"  User {user_data['username']} already exists, skipping...")
            continue

        user = await crud.create_user(
            db=db,
            username=user_data["username"],
            email=user_data["email"],
            password_hash=hash_password(user_data["password"]),
            role=user_data["role"],
        )
        await award_registration_badge(db, user.id)
        print(f"  Created user: {user.username} ({user.role.value})")


async def main():
    """Main entry point."""
    print("=" * 60)
    print("Blog Hut Development Data Seeder")
    print("=" * 60)
    print()

    await init_db()

    async with get_async_db_context() as db:
        print("Creating categories...")
        await seed_categories(db)
        print("Creating users...")
        await seed_users(db)

    print()
    print("=" * 60)
    print("Seeding complete!")
    print()
    print("Default credentials:")
    print("  admin / admin123")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
