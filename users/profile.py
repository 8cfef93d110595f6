"""User profiles stored at users/{uid}/profile/info."""
import logging
from typing import Any, Dict, Optional

from database import get_store, now_iso
from database.paths import profile_path

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = 'User'

def display_name(user, profile: Optional[Dict[str, Any]] = None) -> str:
    """Name to show for a user: nickname, provider name, email local part, then "User"."""
    profile = profile or {}
    if profile.get('nickname'):
        return profile['nickname']
    if user is None:
        return DEFAULT_DISPLAY_NAME
    if user.display_name:
        return user.display_name
    if user.email:
        return user.email.split('@')[0]
    return DEFAULT_DISPLAY_NAME

class ProfileManager:
    """Reads and merge-updates user profiles."""

    def __init__(self, store=None):
        self.store = store

    async def ensure_store(self):
        if not self.store:
            self.store = await get_store()

    async def upsert_on_auth(self, user) -> None:
        """Record the provider identity on every sign-in.

        Existing fields such as the nickname are kept; createdAt is only set
        the first time.
        """
        await self.ensure_store()
        path = profile_path(user.uid)
        now = now_iso()
        data = {
            'uid': user.uid,
            'email': user.email,
            'displayName': user.display_name,
            'photoURL': user.photo_url,
            'updatedAt': now
        }
        if await self.store.get(path) is None:
            data['createdAt'] = now
        await self.store.set(path, data, merge=True)
        logger.debug(f"Upserted profile for {user.uid}")

    async def get_profile(self, user) -> Dict[str, Any]:
        """Profile of the signed-in user, filled in from the provider identity."""
        await self.ensure_store()
        stored = await self.store.get(profile_path(user.uid)) or {}
        nickname = stored.get('nickname') or stored.get('displayName') or user.display_name
        return {
            'uid': user.uid,
            'nickname': nickname,
            'email': stored.get('email') or user.email,
            'photoURL': stored.get('photoURL') or user.photo_url,
            'displayName': display_name(user, {'nickname': nickname}),
            'createdAt': stored.get('createdAt'),
            'updatedAt': stored.get('updatedAt')
        }

    async def update_nickname(self, user, nickname: Optional[str]) -> Dict[str, Any]:
        """Set or clear (empty input) the nickname."""
        await self.ensure_store()
        nickname = (nickname or '').strip()
        await self.store.set(
            profile_path(user.uid),
            {
                'nickname': nickname or None,
                'email': user.email,
                'photoURL': user.photo_url,
                'updatedAt': now_iso()
            },
            merge=True
        )
        logger.info(f"Updated nickname for {user.uid}")
        return await self.get_profile(user)

    async def get_nickname(self, uid: str) -> Optional[str]:
        await self.ensure_store()
        profile = await self.store.get(profile_path(uid))
        return (profile or {}).get('nickname')
