"""User Repository - Profiles and role membership"""
from typing import List, Optional
from pymongo.collection import Collection

from .mongo_client import get_collection, translate_errors, strip_id
from ..domain.models import User


class UserRepository:
    """Read access to user profiles"""

    def __init__(self, profiles: Optional[Collection] = None):
        self._profiles: Collection = profiles if profiles is not None else get_collection("profiles")

    def get_user(self, user_id: str) -> Optional[User]:
        with translate_errors("get_user"):
            doc = self._profiles.find_one({"id": user_id})
        if doc is None:
            return None
        return User.model_validate(strip_id(doc))

    def list_user_ids_by_roles(self, roles: List[str], group_id: Optional[str] = None) -> List[str]:
        """IDs of users holding any of the roles, optionally only members of a group"""
        if not roles:
            return []
        query = {"roles": {"$in": roles}}
        if group_id:
            query["group_ids"] = group_id
        with translate_errors("list_users_by_roles"):
            docs = list(self._profiles.find(query, {"id": 1}))
        return [doc["id"] for doc in docs if doc.get("id")]
