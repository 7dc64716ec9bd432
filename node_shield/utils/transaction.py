"""Snapshot, mutate, then commit or roll back a set of files."""

import shutil
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .logging import get_logger


BACKUP_SUFFIX = ".backup"


@dataclass
class FileSnapshot:
    """Backup state of one file."""

    path: Path
    backup_path: Optional[Path] = None

    @property
    def existed(self) -> bool:
        return self.backup_path is not None


@dataclass
class FileTransaction:
    """Backups of a group of files taken before mutating them."""

    paths: List[Path]
    suffix: str = BACKUP_SUFFIX
    snapshots: List[FileSnapshot] = field(default_factory=list)
    state: str = "pending"

    def __post_init__(self) -> None:
        self.logger = get_logger("FileTransaction")

    def snapshot(self) -> None:
        """Copy every existing file to its backup path."""
        for path in self.paths:
            if path.exists():
                backup_path = path.with_name(path.name + self.suffix)
                shutil.copy2(path, backup_path)
                self.snapshots.append(FileSnapshot(path, backup_path))
            else:
                self.snapshots.append(FileSnapshot(path))
        self.state = "open"

    def commit(self) -> None:
        """Keep the new contents and delete the backups."""
        for snapshot in self.snapshots:
            if snapshot.existed and snapshot.backup_path.exists():
                snapshot.backup_path.unlink()
        self.state = "committed"

    def rollback(self) -> None:
        """Restore every file to its snapshot and delete the backups.

        Files that did not exist at snapshot time are removed.
        """
        for snapshot in self.snapshots:
            try:
                if snapshot.existed:
                    shutil.copy2(snapshot.backup_path, snapshot.path)
                    snapshot.backup_path.unlink()
                    self.logger.warning(f"Restored {snapshot.path.name} from backup")
                elif snapshot.path.exists():
                    snapshot.path.unlink()
            except OSError as e:
                self.logger.error(f"Failed to restore {snapshot.path}: {e}")
        self.state = "rolled_back"


@contextmanager
def file_transaction(*paths: Union[str, Path], suffix: str = BACKUP_SUFFIX) -> Iterator[FileTransaction]:
    """Run a block of file mutations transactionally.

    Backups are written next to each file before the block runs. If the
    block raises, every file is restored and the exception propagates;
    otherwise the backups are deleted.

    Args:
        *paths: Files the block may modify, create or delete
        suffix: Backup file suffix

    Yields:
        The open transaction
    """
    transaction = FileTransaction([Path(p) for p in paths], suffix=suffix)
    transaction.snapshot()

    try:
        yield transaction
    except BaseException:
        transaction.rollback()
        raise
    else:
        transaction.commit()
