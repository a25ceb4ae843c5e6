#!/usr/bin/env python3

import asyncio
import sys

from alumnilink.auth import get_password_hash
from alumnilink.database import create_tables, AsyncSessionLocal
from alumnilink.models.user import UserRole
from alumnilink.repositories.user_repository import UserRepository
from alumnilink.repositories.post_repository import PostRepository
from alumnilink.repositories.message_repository import MessageRepository

PASSWORD = "password123"

USERS = [
    {"name": "Alice Carter", "email": "alice@example.com", "role": UserRole.STUDENT},
    {"name": "Bob Nguyen", "email": "bob@example.com", "role": UserRole.ALUMNI},
    {"name": "Charlie Diaz", "email": "charlie@example.com", "role": UserRole.STUDENT},
    {"name": "Diana Okafor", "email": "diana@example.com", "role": UserRole.ALUMNI},
]

FOLLOWS = [(0, 1), (0, 3), (2, 1), (1, 3)]

POSTS = [
    (1, "Our team is hiring interns for the summer. DM me if interested! #internship #hiring"),
    (3, "Five things I wish I knew before my first tech interview #career"),
    (0, "Just finished my capstone project on graph databases #python #databases"),
]

MESSAGES = [
    (0, 1, "Hi Bob! I saw your post about the internship."),
    (1, 0, "Hey Alice, happy to tell you more. What are you studying?"),
    (0, 1, "Computer science, graduating next year."),
    (2, 3, "Diana, could you review my resume?"),
    (3, 2, "Sure, send it over!"),
]


async def create_test_users():
    async with AsyncSessionLocal() as db:
        user_repo = UserRepository(db)

        users = []
        for user_data in USERS:
            user = await user_repo.get_by_email(user_data["email"])
            if user:
                print(f"User {user.email} exists (ID: {user.id})")
            else:
                user = await user_repo.create(hashed_password=get_password_hash(PASSWORD), **user_data)
                print(f"Created user: {user.name} (ID: {user.id})")
            users.append(user)

        for follower, followed in FOLLOWS:
            if not await user_repo.is_following(users[follower].id, users[followed].id):
                await user_repo.toggle_follow(users[follower].id, users[followed].id)

        return users


async def create_test_posts(users):
    async with AsyncSessionLocal() as db:
        post_repo = PostRepository(db)

        posts = []
        for author, description in POSTS:
            post = await post_repo.create(users[author].id, description)
            print(f"Created post by {users[author].name}: '{description[:30]}...'")
            posts.append(post)

        await post_repo.toggle_like(posts[0].id, users[0].id)
        await post_repo.add_comment(posts[0].id, users[2].id, "Applied, thanks for sharing!")
        return posts


async def create_test_messages(users):
    async with AsyncSessionLocal() as db:
        message_repo = MessageRepository(db)

        messages = []
        for sender, recipient, content in MESSAGES:
            message = await message_repo.send(users[sender].id, users[recipient].id, content=content)
            messages.append(message)
        return messages


async def main():
    print("Creating test data for AlumniLink...\n")

    try:
        await create_tables()
        users = await create_test_users()
        posts = await create_test_posts(users)
        messages = await create_test_messages(users)
    except Exception as e:
        print(f"Error creating test data: {e}")
        sys.exit(1)

    print(f"\nUsers: {len(users)} (password: {PASSWORD})")
    for user in users:
        print(f"  - {user.name} <{user.email}> {user.role.value} (ID: {user.id})")
    print(f"Posts: {len(posts)}")
    print(f"Messages: {len(messages)}")
    print("\nAPI docs: http://localhost:8000/docs")


if __name__ == "__main__":
    asyncio.run(main())
