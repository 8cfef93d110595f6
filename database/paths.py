"""Document paths of the marketplace data layout.

listings/{listingId}
users/{uid}/profile/info
users/{uid}/cart/{listingId}
users/{uid}/likes/{likeId}
users/{uid}/purchases/{listingId}
users/{uid}/nfts/{tokenId}
users/{uid}/settlements/{listingId}
"""

LISTINGS = 'listings'

def listing_path(listing_id: str) -> str:
    return f"{LISTINGS}/{listing_id}"

def profile_path(uid: str) -> str:
    return f"users/{uid}/profile/info"

def cart_collection(uid: str) -> str:
    return f"users/{uid}/cart"

def likes_collection(uid: str) -> str:
    return f"users/{uid}/likes"

def purchases_collection(uid: str) -> str:
    return f"users/{uid}/purchases"

def nfts_collection(uid: str) -> str:
    return f"users/{uid}/nfts"

def settlements_collection(uid: str) -> str:
    return f"users/{uid}/settlements"
