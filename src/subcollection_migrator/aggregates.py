from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from subcollection_migrator.targets import AggregateSpec


def compute_aggregates(children: Iterable[Mapping[str, Any]], spec: AggregateSpec) -> Dict[str, int]:
    """Tally children into the denormalised counts declared by ``spec``.

    Every derived field is present in the result, zero when nothing matched.
    Children are counted once per tally, so each tally sums to the total when
    it has an ``other_field``.
    """
    counts: Dict[str, int] = {name: 0 for name in spec.derived_fields()}
    for child in children:
        counts[spec.total_field] += 1
        for tally in spec.tallies:
            value = child.get(tally.field)
            target = tally.counts.get(value) if isinstance(value, str) else None
            if target is None:
                target = tally.other_field
            if target is not None:
                counts[target] += 1
    return counts


def check_consistency(counts: Mapping[str, int], spec: AggregateSpec) -> List[str]:
    """Return the fields of tallies whose category counts do not sum to the total."""
    total = counts.get(spec.total_field, 0)
    inconsistent: List[str] = []
    for tally in spec.tallies:
        if not tally.other_field:
            continue
        if sum(counts.get(name, 0) for name in tally.derived_fields()) != total:
            inconsistent.append(tally.field)
    return inconsistent
