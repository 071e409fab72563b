"""Greedy first-fit matching of a party onto one table or a joined pair."""

from __future__ import annotations

from collections.abc import Sequence
from itertools import combinations

from backend.app.scheduling.models import Table

Candidate = tuple[Table, ...]


def candidate_tables(party_size: int, tables: Sequence[Table]) -> list[Candidate]:
    """Return candidate table sets for ``party_size`` in preference order.

    Tables are scanned in the order given. Single tables whose capacity range
    contains the party rank first, then oversized single tables, then pairs
    of joinable tables whose summed range contains the party. Lower-ranked
    candidates are only used when every higher-ranked one is taken, so a
    booked-out room can still seat a party on a join. Joins never exceed two
    tables.
    """
    snug = [(t,) for t in tables if t.seats(party_size)]
    oversized = [(t,) for t in tables if t.capacity_max >= party_size and not t.seats(party_size)]

    joinable = [t for t in tables if t.is_joinable]
    joins = [
        (first, second)
        for first, second in combinations(joinable, 2)
        if first.capacity_min + second.capacity_min <= party_size <= first.capacity_max + second.capacity_max
    ]
    return snug + oversized + joins
