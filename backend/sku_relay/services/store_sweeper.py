from __future__ import annotations

import asyncio
import logging
from typing import Dict

from sku_relay.repositories.memory_store import BaseStore

logger = logging.getLogger(__name__)


def sweep_stores(stores: Dict[str, BaseStore]) -> int:
    total = 0
    for name, store in stores.items():
        evicted = store.sweep()
        if evicted:
            logger.info(f"Evicted {evicted} expired entr{'y' if evicted == 1 else 'ies'} from {name}")
        total += evicted
    return total


async def sweep_periodically(stores: Dict[str, BaseStore], interval_seconds: float) -> None:
    """Run ``sweep_stores`` every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            sweep_stores(stores)
        except Exception:
            logger.exception("Store sweep failed")
