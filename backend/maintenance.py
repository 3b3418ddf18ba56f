"""
Background maintenance: reconcile the denormalised counters on `profiles`
(post_count, follower_count, following_count) with the posts and follows
tables. Runs on a configurable interval via APScheduler.
"""

import logging
from collections import Counter

from supabase import Client

logger = logging.getLogger("globe.maintenance")

PAGE_SIZE = 1000

COUNTERS = {
    # profile column: (table, column holding the profile id)
    "post_count": ("posts", "user_id"),
    "follower_count": ("follows", "following_id"),
    "following_count": ("follows", "follower_id"),
}


def _tally(db: Client, table: str, column: str) -> Counter:
    """Count rows per value of `column`, paging past the PostgREST row cap."""
    counts = Counter()
    start = 0
    while True:
        rows = db.table(table).select(column).range(start, start + PAGE_SIZE - 1).execute().data
        counts.update(str(r[column]) for r in rows if r.get(column))
        if len(rows) < PAGE_SIZE:
            return counts
        start += PAGE_SIZE


def _profiles(db: Client) -> list[dict]:
    columns = "id, " + ", ".join(COUNTERS)
    out = []
    start = 0
    while True:
        rows = db.table("profiles").select(columns).range(start, start + PAGE_SIZE - 1).execute().data
        out.extend(rows)
        if len(rows) < PAGE_SIZE:
            return out
        start += PAGE_SIZE


def run_maintenance(db: Client) -> dict:
    tallies = {field: _tally(db, table, column) for field, (table, column) in COUNTERS.items()}
    profiles = _profiles(db)
    stats = {"profiles_checked": len(profiles), "profiles_updated": 0}

    for profile in profiles:
        pid = str(profile["id"])
        updates = {
            field: tallies[field][pid]
            for field in COUNTERS
            if (profile.get(field) or 0) != tallies[field][pid]
        }
        if not updates:
            continue
        try:
            db.table("profiles").update(updates).eq("id", pid).execute()
            stats["profiles_updated"] += 1
        except Exception as exc:
            logger.warning("Counter refresh failed for %s: %s", pid, exc)

    if stats["profiles_updated"]:
        logger.info("Maintenance run: %s", stats)
    else:
        logger.debug("Maintenance run: counters already in sync")
    return stats
