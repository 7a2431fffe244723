from enum import Enum


class CartMode(str, Enum):
    ANONYMOUS = "anonymous"          # Backed by local storage only
    AUTHENTICATED = "authenticated"  # Backed by the remote document store, subscribed live
