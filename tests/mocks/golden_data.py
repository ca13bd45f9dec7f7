"""
Golden Test Data - sample database content for fixpoint tests.

A small blog schema: users, posts, comments and an (empty) audit log.
Timestamps are fixed so captures are reproducible.
"""

import copy
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List
from uuid import UUID

from pg_fixpoint.snapshot import JsonDocument


T0 = datetime(2024, 1, 15, 9, 30, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(hours=2)


USERS: List[Dict[str, Any]] = [
    {
        "id": 1,
        "email": "ada@example.com",
        "name": "Ada",
        "admin": True,
        "balance": Decimal("10.50"),
        "api_token": UUID("7a9c5c0e-1b7e-4e4e-9a53-5e1f6a0f2b11"),
        "created_at": T0,
        "updated_at": T0,
    },
    {
        "id": 2,
        "email": "grace@example.com",
        "name": "Grace",
        "admin": False,
        "balance": Decimal("0.00"),
        "api_token": None,
        "created_at": T0,
        "updated_at": T0,
    },
]

POSTS: List[Dict[str, Any]] = [
    {
        "id": 1,
        "user_id": 1,
        "title": "Hello",
        "body": None,
        "tags": ["intro", "meta"],
        "published_on": date(2024, 1, 16),
        "metadata": JsonDocument({"draft": False, "views": 3}),
        "created_at": T0,
        "updated_at": T0,
    },
]

COMMENTS: List[Dict[str, Any]] = [
    {"id": 1, "post_id": 1, "user_id": 2, "body": "Welcome!", "score": 1.5},
    {"id": 2, "post_id": 1, "user_id": 1, "body": "Thanks", "score": 0.0},
]


def base_state() -> Dict[str, List[Dict[str, Any]]]:
    """users, posts and comments with rows; audit_logs empty."""
    return copy.deepcopy({
        "users": USERS,
        "posts": POSTS,
        "comments": COMMENTS,
        "audit_logs": [],
    })


def touched(rows: List[Dict[str, Any]], **changes) -> List[Dict[str, Any]]:
    """Copy of rows with the given columns changed in every row."""
    result = copy.deepcopy(rows)
    for row in result:
        row.update(changes)
    return result


def new_user(user_id: int, email: str) -> Dict[str, Any]:
    return {
        "id": user_id,
        "email": email,
        "name": email.split("@")[0].title(),
        "admin": False,
        "balance": Decimal("0.00"),
        "api_token": None,
        "created_at": T1,
        "updated_at": T1,
    }
