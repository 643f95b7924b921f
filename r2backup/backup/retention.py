"""
Retention policy enforcement for remote backups.

Deletes objects under the backup prefix whose last-modified time is older
than the retention cutoff. Pruning is best-effort: a failed delete is
recorded and the remaining objects are still processed.
"""

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import List, Tuple

from .storage import ObjectStore, StorageError

logger = logging.getLogger(__name__)


class PruneResult:
    """
    Outcome of one pruning pass.

    Attributes:
        deleted: Keys that were deleted
        errors: (key, exception) pairs; a failed listing is recorded under
            the prefix itself
    """

    def __init__(self):
        self.deleted: List[str] = []
        self.errors: List[Tuple[str, Exception]] = []

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)

    @property
    def ok(self) -> bool:
        return not self.errors

    def __repr__(self):
        return f"<PruneResult deleted={self.deleted_count} errors={len(self.errors)}>"


def retention_cutoff(retention_days: int, tz: tzinfo = timezone.utc, now: datetime = None) -> datetime:
    """
    Compute the pruning cutoff: now minus retention_days days.

    Args:
        retention_days: Retention window
        tz: Timezone the wall-clock reading is taken in
        now: Reference time (default: current time)

    Returns:
        Timezone-aware cutoff datetime
    """
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    return now - timedelta(days=retention_days)


def _as_aware(value: datetime) -> datetime:
    # Stores that report naive timestamps report them in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RetentionManager:
    """
    Prunes expired backups under one prefix of an ObjectStore.
    """

    def __init__(self, store: ObjectStore, prefix: str):
        """
        Args:
            store: Store holding the backups
            prefix: Key prefix shared by every backup object (e.g. 'backups/')

        Raises:
            ValueError: If prefix is empty, which would expose the whole bucket
        """
        if not prefix:
            raise ValueError("Retention prefix must not be empty")

        self.store = store
        self.prefix = prefix

    def prune(self, cutoff: datetime) -> PruneResult:
        """
        Delete every object under the prefix last modified strictly before cutoff.

        Args:
            cutoff: Timezone-aware cutoff (see retention_cutoff())

        Returns:
            PruneResult with deleted keys and per-object errors
        """
        result = PruneResult()
        cutoff = _as_aware(cutoff)

        try:
            objects = self.store.list_objects(self.prefix)
        except StorageError as e:
            logger.warning(f"Failed to list objects under {self.prefix}: {e}")
            result.errors.append((self.prefix, e))
            return result

        for obj in objects:
            if not obj.key.startswith(self.prefix):
                logger.warning(f"Ignoring object outside prefix {self.prefix}: {obj.key}")
                continue

            if _as_aware(obj.last_modified) >= cutoff:
                continue

            try:
                self.store.delete(obj.key)
            except StorageError as e:
                logger.warning(f"Failed to delete old backup {obj.key}: {e}")
                result.errors.append((obj.key, e))
            else:
                logger.info(f"Deleted old backup: {obj.key}")
                result.deleted.append(obj.key)

        logger.info(
            f"Retention pass complete for {self.prefix} "
            f"(cutoff {cutoff.isoformat()}): "
            f"deleted={result.deleted_count}, errors={len(result.errors)}"
        )
        return result


def prune_backups(store: ObjectStore, prefix: str, retention_days: int,
                  tz: tzinfo = timezone.utc) -> PruneResult:
    """
    Prune backups older than retention_days, measured from now in tz.
    """
    manager = RetentionManager(store, prefix)
    return manager.prune(retention_cutoff(retention_days, tz))
