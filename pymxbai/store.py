"""Store resolution helpers."""

import logging
from typing import Any

from .api import MxbaiClient
from .config import config
from .exceptions import MxbaiNotFoundError, StoreNotFoundError

logger = logging.getLogger(__name__)


async def resolve_store(client: MxbaiClient, name_or_id: str) -> dict[str, Any]:
    """Resolve a store by alias, identifier or fuzzy name match.

    The configured alias is applied first. If the store cannot be retrieved
    directly, all stores are listed and matched case-insensitively by name
    containment.

    Args:
        client: API client
        name_or_id: Store alias, name or ID

    Returns:
        The store object

    Raises:
        StoreNotFoundError: If no store or more than one store matches
    """
    resolved = config.resolve_store_name(name_or_id)
    if resolved != name_or_id:
        logger.debug(f"Resolved alias {name_or_id!r} to {resolved!r}")

    try:
        return await client.retrieve_store(resolved)
    except MxbaiNotFoundError:
        logger.debug(f"Store {resolved!r} not found by identifier, trying name match")

    needle = resolved.lower()
    matches = [
        store
        async for store in client.iter_stores()
        if needle in str(store.get("name", "")).lower()
    ]

    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise StoreNotFoundError(name_or_id)
    raise StoreNotFoundError(name_or_id, [str(s.get("name")) for s in matches])
