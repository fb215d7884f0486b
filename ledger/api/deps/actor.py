from fastapi import Header
from typing import Optional


def get_actor_id(
    x_actor_id: Optional[str] = Header(default=None, alias="X-Actor-ID"),
) -> Optional[str]:
    """
    Identity of the operator issuing the request.

    Authentication happens upstream; the ledger only records who acted.
    """
    if x_actor_id is None:
        return None
    return x_actor_id.strip() or None
