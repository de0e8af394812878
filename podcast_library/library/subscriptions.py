"""Merge subscription lists from exchange files into the store."""

import logging
from typing import Any, Dict, List

from podcast_library.db.repository import LibraryRepositoryInterface
from podcast_library.errors import MalformedSnapshot
from podcast_library.vault.integrity import verify_subscription_list_integrity

logger = logging.getLogger(__name__)


def import_subscription_list(
    repository: LibraryRepositoryInterface, items: List[Dict[str, Any]]
) -> Dict[str, int]:
    """
    Subscribe to every feed in a list of ``{title, feedUrl}`` items.

    Feeds that are already subscribed, or repeated within the list, are skipped.

    Parameters:
        repository: The library store.
        items: Items in list order; `title` falls back to the feed URL when missing.

    Returns:
        Dict with `added` and `skipped` counts.

    Raises:
        MalformedSnapshot: If any item lacks an http(s) feedUrl.
    """
    result = verify_subscription_list_integrity(items)
    if not result.is_valid:
        raise MalformedSnapshot(result.error)

    added = 0
    skipped = 0
    seen = set()

    for item in items:
        feed_url = item["feedUrl"].strip()
        if feed_url in seen or repository.get_subscription_by_feed_url(feed_url):
            skipped += 1
            continue
        seen.add(feed_url)
        repository.add_subscription(
            feed_url=feed_url,
            title=(item.get("title") or "").strip() or feed_url,
        )
        added += 1

    logger.info(f"Subscription import: {added} added, {skipped} skipped")
    return {"added": added, "skipped": skipped}
