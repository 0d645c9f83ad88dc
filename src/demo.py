"""Demo content for trying out a fresh site.

Everything published from here carries ``isDemo: true`` so it can be
removed in one go with :meth:`ClientContext.delete_demo`.
"""

from __future__ import annotations

import logging
from typing import Any

from editorial.client.admin_log import log_success
from editorial.client.context import ClientContext
from editorial.content.models import Item, utc_now

logger = logging.getLogger("editorial.client.demo")

MAX_PER_SECTION = 3
PLACEHOLDER_HERO = "assets/images/placeholder-hero.svg"

DEMO_CRITICS: list[dict[str, Any]] = [
    {
        "album": "The Tortured Poets Department",
        "artist": "Taylor Swift",
        "score": 9.0,
        "subtitle": "A bruised diary in widescreen pop",
        "content": (
            "Swift's most introspective work yet explores heartbreak and healing with "
            "literary precision. Each track feels like a carefully crafted chapter in an "
            "emotional memoir."
        ),
        "pullQuote": "Every chorus reads like a confession.",
        "author": "Rob Sheffield",
    },
    {
        "album": "Cowboy Carter",
        "artist": "Beyoncé",
        "score": 10.0,
        "subtitle": "Tradition, rewritten in real time",
        "content": (
            "Beyoncé redefines country music with a bold genre-bending record that honors "
            "tradition while blazing new trails."
        ),
        "pullQuote": "A once-in-a-generation pivot that still feels inevitable.",
        "author": "Angie Martoccio",
    },
    {
        "album": "Short n' Sweet",
        "artist": "Sabrina Carpenter",
        "score": 8.0,
        "subtitle": "Pop craft with a wicked grin",
        "content": (
            "Carpenter proves she's a pop force to be reckoned with. Clever lyrics meet "
            "infectious melodies in this tightly crafted collection."
        ),
        "pullQuote": "A tight set of hooks that never overstays.",
        "author": "Brittany Spanos",
    },
]

DEMO_NEWS: list[dict[str, Any]] = [
    {
        "category": "BREAKING",
        "headline": "Kendrick Lamar Surprise Album Drops at Midnight",
        "subtitle": "The Compton rapper releases his most experimental work yet",
        "heroImageUrl": PLACEHOLDER_HERO,
        "content": (
            "In a move that shocked the music industry, Kendrick Lamar dropped a surprise "
            "album at midnight with no rollout and no singles.\n\n"
            "Early listens suggest a restless, fractured record with production that feels "
            "intentionally unfinished in the best way."
        ),
        "pullQuote": "This is music for the soul, not the algorithm",
        "author": "Marcus Johnson",
    },
    {
        "category": "EXCLUSIVE",
        "headline": "Glastonbury 2026 Lineup Revealed",
        "subtitle": "Festival announces biggest headliners in a decade",
        "heroImageUrl": PLACEHOLDER_HERO,
        "content": (
            "Glastonbury has unveiled its 2026 lineup, with Arctic Monkeys, Dua Lipa and "
            "Radiohead confirmed as headliners.\n\n"
            "Organizers say the bill aims to balance legacy names with new breakthroughs."
        ),
        "pullQuote": "The most diverse and exciting lineup we've ever assembled",
        "author": "Sarah Mitchell",
    },
    {
        "category": "FEATURE",
        "headline": "Streaming Royalties Under Federal Investigation",
        "subtitle": "Congress examines payment structures after artist complaints",
        "heroImageUrl": PLACEHOLDER_HERO,
        "content": (
            "The U.S. Senate has launched a formal investigation into streaming platform "
            "royalty structures.\n\n"
            "At the center: opaque payout calculations and bundled subscriptions."
        ),
        "pullQuote": "The current model exploits creators while tech giants profit",
        "author": "David Chen",
    },
]

DEMO_INTERVIEWS: list[dict[str, Any]] = [
    {
        "guest": "Olivia Rodrigo",
        "title": "Olivia Rodrigo on Growing Beyond 'Sour'",
        "subtitle": "The pop star discusses evolution, heartbreak, and her sophomore album",
        "heroImageUrl": PLACEHOLDER_HERO,
        "content": (
            "Q: When you look back at the \"Sour\" era now, what feels most different?\n\n"
            "A: I'm less interested in being perceived as \"good\" all the time. Now I want "
            "to be honest, even if it's messy.\n\n"
            "Q: Does writing still start with a feeling, or a line?\n\n"
            "A: Usually a feeling. Then a line pops out and I chase it."
        ),
        "keyQuote": "I just make music that feels true to me",
        "author": "Jennifer Lopez",
    },
    {
        "guest": "Jack Antonoff",
        "title": "Jack Antonoff: The Man Behind the Hits",
        "subtitle": "The super-producer opens up about collaboration and creativity",
        "heroImageUrl": PLACEHOLDER_HERO,
        "content": (
            "Jack Antonoff has produced albums for Taylor Swift, Lana Del Rey and The 1975.\n\n"
            "He talks about building trust in the room and chasing accidents."
        ),
        "keyQuote": "Every artist deserves a unique sonic fingerprint",
        "author": "Tom Harrison",
    },
    {
        "guest": "Dua Lipa",
        "title": "Dua Lipa's Disco Revolution Continues",
        "subtitle": "The pop icon discusses her upcoming world tour and new music",
        "heroImageUrl": PLACEHOLDER_HERO,
        "content": (
            "Dua Lipa brought disco back to the mainstream with \"Future Nostalgia\".\n\n"
            "She breaks down choreography as storytelling and the thrill of big rooms."
        ),
        "keyQuote": "Music should make you move and feel alive",
        "author": "Rachel Green",
    },
]

DEMO_CHART_ENTRIES: list[tuple[str, str, str]] = [
    ("Cruel Summer", "Taylor Swift", "up"),
    ("Paint The Town Red", "Doja Cat", "down"),
    ("Vampire", "Olivia Rodrigo", "up"),
    ("Snooze", "SZA", "new"),
    ("greedy", "Tate McRae", "down"),
    ("Flowers", "Miley Cyrus", "up"),
    ("Anti-Hero", "Taylor Swift", "new"),
    ("Calm Down", "Rema & Selena Gomez", "down"),
    ("Kill Bill", "SZA", "up"),
    ("Just Wanna Rock", "Lil Uzi Vert", "new"),
]

DEMO_CHART_TITLE = "The Hot 15"


def demo_chart_payload() -> dict[str, Any]:
    now = utc_now()
    return {
        "type": "chart",
        "chartTitle": DEMO_CHART_TITLE,
        "issueNumber": now.year,
        "entries": [
            {"position": position, "trackTitle": title, "artist": artist, "movement": movement}
            for position, (title, artist, movement) in enumerate(DEMO_CHART_ENTRIES, start=1)
        ],
    }


def demo_payloads(per_section: int = 1) -> list[dict[str, Any]]:
    """Build demo payloads: *per_section* of each section plus as many charts.

    *per_section* is clamped to 1..3.
    """
    count = max(1, min(MAX_PER_SECTION, per_section))
    sections = [
        ("critic", DEMO_CRITICS),
        ("news", DEMO_NEWS),
        ("interview", DEMO_INTERVIEWS),
    ]
    payloads = [
        {**data, "type": item_type}
        for item_type, samples in sections
        for data in samples[:count]
    ]
    payloads.extend(demo_chart_payload() for _ in range(count))
    for payload in payloads:
        payload.update(isDemo=True, status="published", publishedAt=utc_now().isoformat())
    return payloads


async def seed_demo(client: ClientContext, per_section: int = 1) -> list[Item]:
    """Publish demo content through *client* and return the stored items."""
    payloads = demo_payloads(per_section)
    logger.info("Publishing %d demo item(s)", len(payloads))
    published = [await client.publish_item(payload) for payload in payloads]
    log_success(logger, "Demo publish completed: %d item(s)", len(published))
    return published
