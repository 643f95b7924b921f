"""
Shared pytest fixtures for r2backup tests.

This module provides fixtures for:
- A validated BackupConfig pointing at temporary paths
- A source file to back up
- An in-memory ObjectStore with failure injection
- A moto-backed S3 bucket
- Environment variables for load_config()
"""

from datetime import datetime, timezone

import pytest
import boto3
from moto import mock_aws

from r2backup.config import BackupConfig
from r2backup.backup.storage import ObjectStore, RemoteObject, UploadError, ListError, DeleteError


class FakeObjectStore(ObjectStore):
    """
    Dict-backed ObjectStore.

    Failures are injected with fail_put, fail_list and fail_delete_keys.
    Calls are recorded in put_calls, list_calls and delete_calls.
    """

    def __init__(self, bucket_name='test-bucket'):
        self.bucket_name = bucket_name
        self.objects = {}
        self.fail_put = False
        self.fail_list = False
        self.fail_delete_keys = set()
        self.put_calls = []
        self.list_calls = []
        self.delete_calls = []

    def add(self, key, last_modified, data=b'data'):
        self.objects[key] = (data, last_modified)

    def put(self, key, body):
        self.put_calls.append(key)
        if self.fail_put:
            raise UploadError("injected upload failure")
        self.objects[key] = (body.read(), datetime.now(timezone.utc))

    def list_objects(self, prefix):
        self.list_calls.append(prefix)
        if self.fail_list:
            raise ListError("injected list failure")
        return [
            RemoteObject(key=key, last_modified=last_modified, size=len(data))
            for key, (data, last_modified) in self.objects.items()
            if key.startswith(prefix)
        ]

    def delete(self, key):
        self.delete_calls.append(key)
        if key in self.fail_delete_keys:
            raise DeleteError(f"injected delete failure for {key}")
        self.objects.pop(key, None)


@pytest.fixture
def fake_store():
    """Empty in-memory object store for bucket 'test-bucket'."""
    return FakeObjectStore()


@pytest.fixture
def source_file(tmp_path):
    """
    Source database file with some binary content.
    """
    source_dir = tmp_path / 'data'
    source_dir.mkdir()
    path = source_dir / 'app.db'
    path.write_bytes(b'SQLite format 3\x00' + bytes(range(256)) * 512)
    return path


@pytest.fixture
def backup_dir(tmp_path):
    """Staging directory (not created; the snapshot step creates it)."""
    return tmp_path / 'staging'


@pytest.fixture
def backup_config(source_file, backup_dir):
    """
    BackupConfig backing up source_file, named after ./data/app.db.
    """
    return BackupConfig(
        access_key_id='test_access_key',
        secret_access_key='test_secret_key',
        account_id='test-account',
        bucket='test-bucket',
        db_path=str(source_file),
        host_db_path='./data/app.db',
        backup_dir=str(backup_dir),
        retention_days=30,
        timezone='UTC'
    )


@pytest.fixture
def backup_env():
    """
    Complete environment for load_config().
    """
    return {
        'R2_ACCESS_KEY_ID': 'test_access_key',
        'R2_SECRET_ACCESS_KEY': 'test_secret_key',
        'R2_ACCOUNT_ID': 'test-account',
        'R2_BUCKET': 'test-bucket',
        'DB_PATH': '/data/app.db',
        'HOST_DB_PATH': './data/app.db',
    }


@pytest.fixture
def mock_s3():
    """
    Mock AWS S3 service using moto.

    Creates a test bucket 'test-bucket' in us-east-1 region.
    """
    with mock_aws():
        s3 = boto3.resource('s3', region_name='us-east-1')
        s3.create_bucket(Bucket='test-bucket')
        yield s3
