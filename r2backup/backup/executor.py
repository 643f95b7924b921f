"""
Backup executor - orchestrates one complete backup run.

Workflow:
1. Derive the staged, compressed and remote names from a fresh timestamp
2. Snapshot the source file into the staging directory
3. Compress the snapshot with gzip
4. Upload the compressed file under the backup prefix
5. Prune expired backups under the same prefix (failures are warnings)
6. Remove the local staged and compressed files, whatever happened above
"""

import logging
import os
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .snapshot import create_snapshot
from .compression import compress_file, get_file_size, COMPRESSED_EXTENSION
from .storage import ObjectStore, UploadError
from .retention import prune_backups, PruneResult

logger = logging.getLogger(__name__)

REMOTE_PREFIX = 'backups/'
TIMESTAMP_FORMAT = '%Y%m%d_%H%M%S'

STATUS_SUCCESS = 'success'
STATUS_FAILED = 'failed'

STAGE_BACKUP = 'backup'
STAGE_COMPRESSION = 'compression'
STAGE_UPLOAD = 'upload'


class BackupArtifact:
    """
    Local and remote names for one run, all derived from the same timestamp.
    """

    def __init__(self, backup_dir: str, backup_name: str, timestamp: datetime):
        self.timestamp = timestamp
        stamp = timestamp.strftime(TIMESTAMP_FORMAT)

        self.staged_path = os.path.join(backup_dir, f"{backup_name}_backup_{stamp}.sql")
        self.compressed_path = self.staged_path + COMPRESSED_EXTENSION
        self.remote_key = REMOTE_PREFIX + os.path.basename(self.compressed_path)

    @property
    def local_paths(self) -> List[str]:
        return [self.staged_path, self.compressed_path]

    def __repr__(self):
        return f"<BackupArtifact {self.remote_key}>"


class JobResult:
    """
    Outcome of one backup run.

    status is 'success' or 'failed'. For failed runs, stage names the step
    that failed ('backup', 'compression' or 'upload') and error holds the
    exception. Pruning problems never fail a run; they are carried in
    prune_result and warnings.
    """

    def __init__(self, artifact: BackupArtifact):
        self.artifact = artifact
        self.status = None
        self.stage = None
        self.error = None
        self.started_at = None
        self.completed_at = None
        self.file_size_bytes = None
        self.remote_key = None
        self.prune_result: Optional[PruneResult] = None
        self.warnings: List[str] = []
        self.logs: List[str] = []

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS

    def __repr__(self):
        if self.succeeded:
            return f"<JobResult success {self.remote_key}>"
        return f"<JobResult failed at {self.stage}: {self.error}>"


class BackupExecutor:
    """
    Runs the backup workflow for a BackupConfig against an ObjectStore.
    """

    def __init__(self, config, store: ObjectStore, clock: Callable[[], datetime] = None):
        """
        Initialize backup executor.

        Args:
            config: BackupConfig for the job
            store: Remote store to upload to and prune
            clock: Returns the current time (default: now in config timezone)
        """
        self.config = config
        self.store = store
        self.clock = clock or (lambda: datetime.now(config.tzinfo))
        self.result = None

    def execute(self) -> JobResult:
        """
        Execute one backup run.

        Stage failures are caught here and reported on the result; this
        method does not raise for them.

        Returns:
            JobResult describing the run
        """
        now = self.clock()
        artifact = BackupArtifact(self.config.backup_dir, self.config.backup_name, now)

        self.result = JobResult(artifact)
        self.result.started_at = now
        self._log(f"Starting backup of {self.config.db_path} ({artifact.remote_key})")

        try:
            self._execute_workflow(artifact)

            self.result.status = STATUS_SUCCESS
            self._log("Backup completed successfully")

        except Exception as e:
            # BackupError, CompressionError and UploadError are the expected
            # causes; anything else is reported against the same stage
            self.result.status = STATUS_FAILED
            self.result.error = e
            stage = (self.result.stage or STAGE_BACKUP).capitalize()
            self._log(f"{stage} failed for {artifact.remote_key}: {e}", level=logging.ERROR)

        finally:
            self._cleanup(artifact)
            self.result.completed_at = self.clock()

        return self.result

    def _execute_workflow(self, artifact: BackupArtifact):
        """Execute the main backup workflow steps."""
        # Step 1: Snapshot
        self.result.stage = STAGE_BACKUP
        self._log(f"Copying {self.config.db_path} to {artifact.staged_path}")
        create_snapshot(self.config.db_path, artifact.staged_path)

        # Step 2: Compress
        self.result.stage = STAGE_COMPRESSION
        self._log(f"Compressing to {os.path.basename(artifact.compressed_path)}")
        compress_file(artifact.staged_path, artifact.compressed_path, self.config.compression_level)
        file_size = get_file_size(artifact.compressed_path)
        self.result.file_size_bytes = file_size
        self._log(f"Archive created ({file_size / 1024 / 1024:.2f} MB)")

        # Step 3: Upload
        self.result.stage = STAGE_UPLOAD
        self._log(f"Uploading to bucket {self.store.bucket_name}")
        self._upload(artifact)
        self.result.remote_key = artifact.remote_key
        self._log(f"Uploaded: {artifact.remote_key}")

        # Step 4: Prune - the backup itself is already stored
        self.result.stage = None
        self._prune()

    def _upload(self, artifact: BackupArtifact):
        try:
            f = open(artifact.compressed_path, 'rb')
        except OSError as e:
            raise UploadError(f"Failed to open file for upload: {e}") from e

        with f:
            self.store.put(artifact.remote_key, f)

    def _prune(self):
        self._log(f"Pruning backups older than {self.config.retention_days} days")

        try:
            prune_result = prune_backups(
                self.store,
                REMOTE_PREFIX,
                self.config.retention_days,
                self.config.tzinfo
            )
        except Exception as e:
            self._warn(f"Cleanup warning: retention pass failed: {e}")
            return

        self.result.prune_result = prune_result

        for key, error in prune_result.errors:
            self._warn(f"Cleanup warning: {key}: {error}")

        self._log(f"Pruned {prune_result.deleted_count} old backup(s)")

    def _cleanup(self, artifact: BackupArtifact):
        """Remove local staged and compressed files; absent files are fine."""
        for path in artifact.local_paths:
            try:
                os.remove(path)
                self._log(f"Removed local file {os.path.basename(path)}", level=logging.DEBUG)
            except FileNotFoundError:
                pass
            except OSError as e:
                self._warn(f"Failed to remove local file {path}: {e}")

    def _warn(self, message: str):
        self.result.warnings.append(message)
        self._log(message, level=logging.WARNING)

    def _log(self, message: str, level: int = logging.INFO):
        """
        Record a run log line and forward it to the module logger.

        Args:
            message: Log message
            level: logging level for the forwarded record
        """
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.result.logs.append(f"[{timestamp}] {message}")
        logger.log(level, f"[{self.config.backup_name}] {message}")


def run_backup_job(config, store: ObjectStore) -> JobResult:
    """
    Execute one backup run for config against store.

    Returns:
        JobResult with execution results
    """
    executor = BackupExecutor(config, store)
    return executor.execute()
