# network/backup.py
from __future__ import annotations
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import yaml

from errors import PreconditionError
from logger import log

BACKUP_PREFIX = "network_backup_"
MANIFEST = "manifest.yaml"


@dataclass(frozen=True)
class Backup:
    """Immutable snapshot of the configuration files touched by a run."""

    path: Path
    created: datetime
    files: Tuple[Path, ...]     # originals that were copied
    absent: Tuple[Path, ...]    # originals that did not exist at backup time

    def copy_of(self, original: Path) -> Optional[Path]:
        original = Path(original)
        if original not in self.files:
            return None
        return self.path / original.relative_to(original.anchor)

    def covers(self, original: Path) -> bool:
        original = Path(original)
        return original in self.files or original in self.absent

    def restore(self, paths: Optional[Iterable[Path]] = None) -> List[Path]:
        """Put originals back: copy saved files, delete files that were absent.

        With no `paths`, every file in the backup is restored.
        """
        targets = [Path(p) for p in paths] if paths is not None else list(self.files + self.absent)
        restored = []
        for original in targets:
            copy = self.copy_of(original)
            if copy is not None:
                shutil.copy2(copy, original)
                log.info("Restored %s from %s", original, copy)
                restored.append(original)
            elif original in self.absent:
                if original.exists():
                    original.unlink()
                    log.info("Removed %s (not present before the run)", original)
                restored.append(original)
            else:
                log.warning("%s is not part of backup %s", original, self.path)
        return restored


def _unique_dir(root: Path, now: datetime) -> Path:
    base = root / f"{BACKUP_PREFIX}{now:%Y%m%d_%H%M%S}"
    candidate, n = base, 1
    while candidate.exists():
        candidate = base.with_name(f"{base.name}_{n}")
        n += 1
    return candidate


def create_backup(
    required: Iterable[Path],
    optional: Iterable[Path] = (),
    root: Path = Path("/root"),
    now: Optional[datetime] = None,
) -> Backup:
    """Copy every file of interest into a fresh timestamped directory.

    A missing required file raises PreconditionError before anything is
    written. Missing optional files are recorded as absent.
    """
    required = [Path(p) for p in required]
    optional = [Path(p) for p in optional if Path(p) not in required]
    for p in required:
        if not p.is_file():
            raise PreconditionError(f"{p} file not found!")

    now = now or datetime.now()
    dest = _unique_dir(Path(root), now)
    dest.mkdir(parents=True)

    files, absent = [], []
    for original in required + optional:
        if not original.is_file():
            absent.append(original)
            log.debug("Not backing up %s: not present", original)
            continue
        copy = dest / original.relative_to(original.anchor)
        copy.parent.mkdir(parents=True, exist_ok=True)
        try:
            shutil.copy2(original, copy)
        except OSError as e:
            if original in required:
                raise
            # /etc/pve is a FUSE mount and may refuse reads when quorum is lost
            log.warning("Could not back up %s: %s", original, e)
            continue
        files.append(original)

    backup = Backup(path=dest, created=now, files=tuple(files), absent=tuple(absent))
    _write_manifest(backup)
    log.info("Backup created at: %s", dest)
    return backup


def _write_manifest(backup: Backup) -> None:
    data = {
        "created": backup.created.isoformat(timespec="seconds"),
        "files": [str(p) for p in backup.files],
        "absent": [str(p) for p in backup.absent],
    }
    with open(backup.path / MANIFEST, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False)


def load_backup(path: Path) -> Backup:
    path = Path(path)
    manifest = path / MANIFEST
    if not manifest.is_file():
        raise PreconditionError(f"{path} has no {MANIFEST}; not a backup directory")
    with open(manifest) as f:
        data = yaml.safe_load(f) or {}
    created = data["created"]
    if not isinstance(created, datetime):
        created = datetime.fromisoformat(created)
    return Backup(
        path=path,
        created=created,
        files=tuple(Path(p) for p in data.get("files", [])),
        absent=tuple(Path(p) for p in data.get("absent", [])),
    )


def latest_backup(root: Path = Path("/root")) -> Backup:
    candidates = [
        d for d in Path(root).glob(f"{BACKUP_PREFIX}*")
        if (d / MANIFEST).is_file()
    ]
    if not candidates:
        raise PreconditionError(f"No backups found under {root}")
    newest = max(candidates, key=lambda d: (load_backup(d).created, d.name))
    return load_backup(newest)
