"""
Backup module for r2backup.

This module handles the core backup functionality including:
- Snapshot of the source file
- Gzip compression
- Object storage (S3-compatible)
- Retention pruning
- Execution orchestration
"""

from .executor import BackupExecutor, BackupArtifact, JobResult, run_backup_job
from .snapshot import create_snapshot, BackupError
from .compression import compress_file, CompressionError
from .storage import ObjectStore, S3Storage, RemoteObject, StorageError, UploadError, ListError, DeleteError
from .retention import RetentionManager, PruneResult, prune_backups

__all__ = [
    'BackupExecutor',
    'BackupArtifact',
    'JobResult',
    'run_backup_job',
    'create_snapshot',
    'BackupError',
    'compress_file',
    'CompressionError',
    'ObjectStore',
    'S3Storage',
    'RemoteObject',
    'StorageError',
    'UploadError',
    'ListError',
    'DeleteError',
    'RetentionManager',
    'PruneResult',
    'prune_backups'
]
