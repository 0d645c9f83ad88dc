"""Tests for demo content seeding."""

import asyncio

import pytest
from editorial.client.context import ClientContext
from editorial.client.local_store import KeyValueStorage
from editorial.config import ClientSectionConfig, EditorialConfig
from editorial.content.validation import validate_item_payload
from editorial.demo import demo_payloads, seed_demo


@pytest.fixture
def ctx():
    context = ClientContext(
        EditorialConfig(client=ClientSectionConfig(api_base="", rate_limit_delay_ms=0)),
        storage=KeyValueStorage(),
    )
    yield context
    context.close()


@pytest.mark.parametrize(("per_section", "expected"), [(1, 4), (3, 12), (0, 4), (9, 12)])
def test_payload_counts(per_section, expected):
    assert len(demo_payloads(per_section)) == expected


def test_payloads_pass_validation():
    for payload in demo_payloads(3):
        item = validate_item_payload(payload)
        assert item.is_demo is True


def test_seed_then_delete(ctx):
    items = asyncio.run(seed_demo(ctx, 2))
    assert len(items) == 8
    assert asyncio.run(ctx.stats(demo_only=True)) == {"critics": 2, "news": 2, "interviews": 2, "charts": 2}
    assert asyncio.run(ctx.delete_demo()) == 8
    assert asyncio.run(ctx.stats()) == {"critics": 0, "news": 0, "interviews": 0, "charts": 0}
