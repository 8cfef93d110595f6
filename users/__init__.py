"""Users module: profiles, carts, likes and collections.

Everything here lives under the users/{uid} subtree of the document store.
"""

from .profile import ProfileManager, display_name
from .cart import CartManager
from .likes import LikeManager, like_doc_id
from .collection import CollectionManager

__all__ = [
    'ProfileManager', 'display_name', 'CartManager', 'LikeManager', 'like_doc_id',
    'CollectionManager'
]
