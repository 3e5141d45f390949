"""
The grouping engine partitions pending signups into small cohorts.

It is responsible for:

- Deriving each signup's primary section (first listed interest)
- Bucketing signups by (date preference, coffee personality)
- Packing each bucket into groups of at most `group_size`:
    - Diversity pass: take members whose primary section is not yet in the group
    - Fill pass: top up in arrival order regardless of section
    - Minimum-size gate: a group under 3 is never emitted; its members go back to
      the front of the pool and the bucket stops for this run

The engine is pure. Persisting groups and flagging members is the caller's job
(see `grouping.runner`).
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .data_models import FormedGroup, Signup

MIN_GROUP_SIZE = 3
DEFAULT_GROUP_SIZE = 6
UNKNOWN_SECTION = "Unknown"
UNSPECIFIED_DATE = "Unspecified"
ANY_VIBE = "Any"

BucketKey = Tuple[str, str]


def primary_section(sections: Optional[Union[str, Sequence[str]]]) -> str:
    """
    Return the first non-empty comma-separated token of `sections`.

    Args:
        sections: The comma-joined sections string as stored, or a list of labels.

    Returns:
        str: The trimmed first token, or "Unknown" when there is none.
    """
    if not sections:
        return UNKNOWN_SECTION
    if not isinstance(sections, str):
        sections = ",".join(str(s) for s in sections)
    parts = [p.strip() for p in sections.split(",")]
    parts = [p for p in parts if p]
    return parts[0] if parts else UNKNOWN_SECTION


def bucket_key(signup: Signup) -> BucketKey:
    date_pref = (signup.date_preference or "").strip() or UNSPECIFIED_DATE
    vibe = (signup.coffee_personality or "").strip() or ANY_VIBE
    return date_pref, vibe


def bucket_signups(signups: Iterable[Signup]) -> Dict[BucketKey, List[Signup]]:
    """
    Partition signups by (date preference, vibe).

    Buckets keep first-seen order, and members keep arrival order within a bucket.
    Every signup lands in exactly one bucket.
    """
    buckets: Dict[BucketKey, List[Signup]] = {}
    for signup in signups:
        buckets.setdefault(bucket_key(signup), []).append(signup)
    return buckets


def _diversity_pass(pool: List[Signup], group_size: int) -> List[Signup]:
    """Select members with unseen primary sections, removing them from `pool` in place."""
    group: List[Signup] = []
    used = set()
    i = 0
    while i < len(pool) and len(group) < group_size:
        candidate = pool[i]
        section = primary_section(candidate.sections)
        if section not in used:
            group.append(pool.pop(i))
            used.add(section)
            continue
        i += 1
    return group


def pack_bucket(
    people: Sequence[Signup],
    group_size: int = DEFAULT_GROUP_SIZE,
    min_size: int = MIN_GROUP_SIZE,
) -> Tuple[List[List[Signup]], List[Signup]]:
    """
    Greedily pack one bucket into groups.

    Pseudocode:
    1. pool = copy of people (arrival order).
    2. While pool is not empty:
       a. Diversity pass over pool.
       b. Fill pass: pop from the front of pool until the group is full.
       c. If the group has fewer than min_size members, put them back at the
          front of pool in their original relative order and stop.
       d. Otherwise emit the group.
    3. Return (groups, leftover pool).

    Args:
        people: Signups sharing one bucket key.
        group_size: Maximum members per group.
        min_size: Smallest group that may be emitted.

    Returns:
        Tuple of the emitted member lists and the signups left in the pool.
    """
    if group_size < 1:
        raise ValueError(f"group_size must be a positive integer, got {group_size}")

    pool: List[Signup] = list(people)
    groups: List[List[Signup]] = []
    while pool:
        snapshot = list(pool)
        group = _diversity_pass(pool, group_size)
        while pool and len(group) < group_size:
            group.append(pool.pop(0))

        if len(group) < min_size:
            # Restore the pool exactly as it was before this attempt
            pool[:] = snapshot
            break
        groups.append(group)
    return groups, pool


def form_groups(signups: Iterable[Signup], group_size: int = DEFAULT_GROUP_SIZE) -> List[FormedGroup]:
    """
    Run the whole engine over the currently ungrouped signups.

    Args:
        signups: Ungrouped signups, in the order the store returned them.
        group_size: Maximum members per group.

    Returns:
        List[FormedGroup]: Groups in bucket-iteration order, then formation order.
    """
    if group_size < 1:
        raise ValueError(f"group_size must be a positive integer, got {group_size}")

    formed: List[FormedGroup] = []
    for (date_pref, vibe), people in bucket_signups(signups).items():
        groups, _ = pack_bucket(people, group_size=group_size)
        for members in groups:
            formed.append(FormedGroup(date_preference=date_pref, vibe=vibe, members=members))
    return formed


def leftover_signups(signups: Iterable[Signup], group_size: int = DEFAULT_GROUP_SIZE) -> List[Signup]:
    """Signups the engine would leave ungrouped for the next run."""
    leftover: List[Signup] = []
    for people in bucket_signups(signups).values():
        _, pool = pack_bucket(people, group_size=group_size)
        leftover.extend(pool)
    return leftover
