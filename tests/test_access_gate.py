"""Tests for business access checks and settings lookups."""

import pytest

from catalog_sync.errors import (
    FailedPreconditionError,
    NotFoundError,
    PermissionDeniedError,
    UnauthenticatedError,
)
from catalog_sync.services.business_settings import get_business_settings, get_whatsapp_config
from catalog_sync.services.storage import collections
from tests.conftest import BUSINESS_ID, OWNER_ID


@pytest.mark.asyncio
async def test_owner_is_authorized(gate, seed):
    await seed.business()

    business = await gate.authorize(OWNER_ID, BUSINESS_ID)

    assert business.id == BUSINESS_ID
    assert business.name == "Kofi's Crafts"


@pytest.mark.asyncio
async def test_rejections_in_order(gate, seed):
    await seed.business(owner_id="someone-else", enabled=False)

    with pytest.raises(UnauthenticatedError):
        await gate.authorize(None, BUSINESS_ID)
    with pytest.raises(NotFoundError):
        await gate.authorize(OWNER_ID, "ghost")
    with pytest.raises(PermissionDeniedError):
        await gate.authorize(OWNER_ID, BUSINESS_ID)
    with pytest.raises(FailedPreconditionError):
        await gate.authorize("someone-else", BUSINESS_ID)


@pytest.mark.asyncio
async def test_inactive_config_is_precondition_failure(store, seed):
    await seed.business()
    await store.update(collections.WHATSAPP_CONFIGS, BUSINESS_ID, {"active": False})

    with pytest.raises(FailedPreconditionError):
        await get_whatsapp_config(store, BUSINESS_ID)


@pytest.mark.asyncio
async def test_settings_default_when_missing(store, seed):
    assert (await get_business_settings(store, BUSINESS_ID)).notifications.order_updates is True

    await seed.settings(order_updates=False)

    assert (await get_business_settings(store, BUSINESS_ID)).notifications.order_updates is False
