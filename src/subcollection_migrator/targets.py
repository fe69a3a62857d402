from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from subcollection_migrator.exceptions import ConfigurationError


class CategoryTally(BaseModel):
    """Count children by the value of one field.

    ``counts`` maps a field value to the derived parent field that receives
    its count. Values are mutually exclusive; anything unmatched (including a
    missing value) lands in ``other_field`` when one is configured.
    """

    field: str
    counts: Dict[str, str]
    other_field: Optional[str] = None

    def derived_fields(self) -> List[str]:
        fields = list(self.counts.values())
        if self.other_field:
            fields.append(self.other_field)
        return fields


class AggregateSpec(BaseModel):
    total_field: str
    tallies: List[CategoryTally] = Field(default_factory=list)

    def derived_fields(self) -> List[str]:
        fields = [self.total_field]
        for tally in self.tallies:
            fields.extend(tally.derived_fields())
        return fields


class MigrationTarget(BaseModel):
    collection: str = Field(..., description="Parent collection")
    field: str = Field(..., description="Embedded-array field on the parent")
    subcollection: str = Field(..., description="Destination subcollection name")
    parent_id_alias: Optional[str] = Field(
        None, description="Extra field on each child holding the parent id"
    )
    copy_parent_fields: List[str] = Field(default_factory=list)
    timestamp_fields: List[str] = Field(default_factory=lambda: ["createdAt"])
    aggregates: Optional[AggregateSpec] = None
    write_empty_aggregates: bool = False

    @property
    def key(self) -> str:
        return f"{self.collection}.{self.field}"

    @property
    def stat_name(self) -> str:
        return f"{self.field}Migrated"

    @property
    def label(self) -> str:
        """Singular, capitalised collection name used in messages ("Litter")."""
        name = self.collection[:-1] if self.collection.endswith("s") else self.collection
        return name[:1].upper() + name[1:]


PUPPY_AGGREGATES = AggregateSpec(
    total_field="puppyCount",
    tallies=[
        CategoryTally(
            field="sex",
            counts={"male": "maleCount", "female": "femaleCount"},
            other_field="unknownSexCount",
        ),
        CategoryTally(
            field="status",
            counts={
                "available": "availableCount",
                "reserved": "reservedCount",
                "sold": "soldCount",
                "kept": "keptCount",
            },
            other_field="otherStatusCount",
        ),
    ],
)


DEFAULT_TARGETS: List[MigrationTarget] = [
    MigrationTarget(collection="dogs", field="healthTests", subcollection="health_tests", parent_id_alias="dogId"),
    MigrationTarget(collection="dogs", field="shotRecords", subcollection="shot_records", parent_id_alias="dogId"),
    MigrationTarget(collection="dogs", field="vetVisits", subcollection="vet_visits", parent_id_alias="dogId"),
    MigrationTarget(
        collection="dogs",
        field="weightHistory",
        subcollection="weight_history",
        parent_id_alias="dogId",
        timestamp_fields=[],
    ),
    MigrationTarget(collection="dogs", field="medications", subcollection="medications", parent_id_alias="dogId"),
    MigrationTarget(collection="dogs", field="dewormings", subcollection="dewormings", parent_id_alias="dogId"),
    MigrationTarget(
        collection="litters",
        field="puppies",
        subcollection="puppies",
        parent_id_alias="litterId",
        copy_parent_fields=["userId"],
        timestamp_fields=["createdAt", "updatedAt"],
        aggregates=PUPPY_AGGREGATES,
    ),
    MigrationTarget(collection="litters", field="expenses", subcollection="expenses", parent_id_alias="litterId"),
]


def select_targets(
    targets: Iterable[MigrationTarget],
    keys: Optional[Iterable[str]] = None,
) -> List[MigrationTarget]:
    """Filter targets by ``collection.field`` key or by bare collection name."""
    targets = list(targets)
    wanted = [k for k in (keys or []) if k]
    if not wanted:
        return targets

    known = {t.key for t in targets} | {t.collection for t in targets}
    unknown = [k for k in wanted if k not in known]
    if unknown:
        raise ConfigurationError(
            f"Unknown migration target(s): {', '.join(unknown)}. "
            f"Known targets: {', '.join(sorted(t.key for t in targets))}"
        )
    return [t for t in targets if t.key in wanted or t.collection in wanted]


def group_by_collection(targets: Iterable[MigrationTarget]) -> Dict[str, List[MigrationTarget]]:
    grouped: Dict[str, List[MigrationTarget]] = {}
    for target in targets:
        grouped.setdefault(target.collection, []).append(target)
    return grouped
