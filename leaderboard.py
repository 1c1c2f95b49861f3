"""
Leaderboard ranking

Users are ordered by points (highest first), then by account age (oldest
first), then by address so that no two users share a position. The top list
and the single-user rank use the same order.
"""

from typing import Optional, Dict, Any, List

from pymongo import ASCENDING, DESCENDING

import config
from database import count_documents, find_one, get_documents

RANK_ORDER = [("points", DESCENDING), ("created_at", ASCENDING), ("address", ASCENDING)]
SUMMARY_PROJECTION = {"_id": 0, "address": 1, "username": 1, "points": 1, "streak": 1, "nfts": 1}


def _summary(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "address": doc["address"],
        "username": doc.get("username"),
        "points": doc.get("points", 0),
        "streak": doc.get("streak", 0),
        "nfts": doc.get("nfts") or [],
    }


def top_n(n: int = config.LEADERBOARD_SIZE) -> List[Dict[str, Any]]:
    if n <= 0:
        return []
    docs = get_documents("user", {}, limit=n, sort=RANK_ORDER, projection=SUMMARY_PROJECTION)
    return [{**_summary(d), "rank": i + 1} for i, d in enumerate(docs)]


def _outranks(user: Dict[str, Any]) -> dict:
    """Filter matching every user placed strictly above `user`."""
    points, created_at, address = user.get("points", 0), user["created_at"], user["address"]
    return {"$or": [
        {"points": {"$gt": points}},
        {"points": points, "created_at": {"$lt": created_at}},
        {"points": points, "created_at": created_at, "address": {"$lt": address}},
    ]}


def rank_of(address: str) -> Optional[Dict[str, Any]]:
    user = find_one("user", {"address": address.lower()})
    if not user:
        return None
    return {"rank": count_documents("user", _outranks(user)) + 1, "user": _summary(user)}


def get_leaderboard(user_address: Optional[str] = None) -> Dict[str, Any]:
    return {
        "success": True,
        "leaderboard": top_n(),
        "user_rank": rank_of(user_address) if user_address else None,
    }
