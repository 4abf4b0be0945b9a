"""
Shared dependencies for the Grouping API.

This module provides:
- PocketBase client management (global instance, authenticated on startup)
- The grouping repository selected by settings
- The configuration loader
- A per-request GroupingEngine bound to the camp in the path
"""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache

from fastapi import Depends
from pocketbase import PocketBase

from grouping.config import ConfigLoader
from grouping.engine import GroupingEngine
from grouping.repository import GroupingRepository, InMemoryGroupingRepository, PocketBaseGroupingRepository

from .settings import get_settings

logger = logging.getLogger(__name__)

# ========================================
# PocketBase Client
# ========================================

_settings = get_settings()
pb = PocketBase(_settings.pocketbase_url)


async def authenticate_pb() -> None:
    """Authenticate with PocketBase as admin."""
    settings = get_settings()
    try:
        await asyncio.to_thread(
            pb.collection("_superusers").auth_with_password,
            settings.pocketbase_admin_email,
            settings.pocketbase_admin_password,
        )
        logger.info("Successfully authenticated with PocketBase")
    except Exception as e:
        logger.error(f"Failed to authenticate with PocketBase: {e}")
        raise


# ========================================
# Grouping
# ========================================

# Process-local store used when GROUPING_STORE=memory
memory_repository = InMemoryGroupingRepository()


def get_repository() -> GroupingRepository:
    """FastAPI dependency returning the configured grouping repository."""
    if get_settings().grouping_store == "pocketbase":
        return PocketBaseGroupingRepository(pb)
    return memory_repository


@lru_cache
def get_config_loader() -> ConfigLoader:
    """FastAPI dependency returning the shared configuration loader."""
    settings = get_settings()
    return ConfigLoader(pb_client=pb if settings.config_from_pocketbase else None)


def get_engine(
    camp_id: str,
    repository: GroupingRepository = Depends(get_repository),
    loader: ConfigLoader = Depends(get_config_loader),
) -> GroupingEngine:
    """Engine bound to the camp in the request path.

    Configuration is only used as the default for camps with no stored
    grouping yet; existing states carry their own.
    """
    return GroupingEngine(camp_id, repository, config=loader.grouping_config(), seed=loader.random_seed())
