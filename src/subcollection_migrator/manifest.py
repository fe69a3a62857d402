"""Run manifest: a YAML record of which targets have been migrated and cleaned."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from subcollection_migrator.exceptions import ManifestError
from subcollection_migrator.report import RunReport
from subcollection_migrator.targets import MigrationTarget


class ManifestEntry(BaseModel):
    migrated_at: datetime
    parents_scanned: int = 0
    children_created: int = 0
    failed_parents: List[str] = Field(default_factory=list)
    cleaned_at: Optional[datetime] = None
    fields_removed: int = 0


class RunManifest(BaseModel):
    targets: Dict[str, ManifestEntry] = Field(default_factory=dict)

    def is_migrated(self, target: MigrationTarget) -> bool:
        return target.key in self.targets

    def parent_failed(self, target: MigrationTarget, parent_id: str) -> bool:
        entry = self.targets.get(target.key)
        return entry is not None and parent_id in entry.failed_parents

    def record_migration(self, targets: Iterable[MigrationTarget], report: RunReport) -> None:
        for target in targets:
            self.targets[target.key] = ManifestEntry(
                migrated_at=report.started_at,
                parents_scanned=report.parents_scanned,
                children_created=report.items.get(target.stat_name, 0),
                failed_parents=sorted(report.failed_parents.get(target.key, ())),
            )

    def record_cleanup(self, targets: Iterable[MigrationTarget], report: RunReport) -> None:
        for target in targets:
            entry = self.targets.get(target.key)
            if entry is None:
                continue
            entry.cleaned_at = report.started_at
            entry.fields_removed = report.items.get(f"{target.field}Removed", 0)


def load_manifest(path: Path) -> RunManifest:
    if not path.exists():
        return RunManifest()
    try:
        data = yaml.safe_load(path.read_text()) or {}
        return RunManifest(**data)
    except (OSError, yaml.YAMLError, TypeError, ValidationError) as e:
        raise ManifestError(f"Could not read run manifest {path}: {e}") from e


def write_manifest(path: Path, manifest: RunManifest) -> Path:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(manifest.model_dump(mode="json"), sort_keys=True))
    except OSError as e:
        raise ManifestError(f"Could not write run manifest {path}: {e}") from e
    return path
