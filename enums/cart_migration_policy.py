from enum import Enum


class CartMigrationPolicy(str, Enum):
    """
    What happens to the anonymous cart when a user logs in.

    DISCARD: the anonymous cart is dropped and the remote cart wins.
    MERGE:   anonymous lines are merged into the remote cart by product id,
             quantities summed, and written back once.
    """
    DISCARD = "discard"
    MERGE = "merge"
