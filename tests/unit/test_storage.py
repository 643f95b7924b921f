"""
Unit tests for storage handlers (r2backup/backup/storage.py).

Tests S3Storage against a moto bucket.
"""

import io
import os
from unittest.mock import MagicMock, patch

import pytest
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError

from r2backup.backup.storage import (
    S3Storage,
    RemoteObject,
    StorageError,
    UploadError,
    ListError,
    DeleteError
)


def make_storage(bucket_name='test-bucket'):
    return S3Storage(
        access_key='test_access_key',
        secret_key='test_secret_key',
        bucket_name=bucket_name,
        endpoint_url=None,
        region='us-east-1'
    )


class TestS3Storage:
    """Test S3Storage for S3 operations."""

    def test_put_stores_object(self, mock_s3):
        """Test put writes the stream under the given key."""
        storage = make_storage()

        storage.put('backups/app_backup_20240301_020000.sql.gz', io.BytesIO(b'compressed'))

        obj = mock_s3.Object('test-bucket', 'backups/app_backup_20240301_020000.sql.gz')
        assert obj.get()['Body'].read() == b'compressed'
        assert obj.content_type == 'application/gzip'

    def test_put_large_body_uses_multipart(self, mock_s3):
        """Test bodies above the threshold are uploaded in parts and round-trip."""
        part_size = 5 * 1024 * 1024
        storage = S3Storage(
            access_key='test_access_key',
            secret_key='test_secret_key',
            bucket_name='test-bucket',
            endpoint_url=None,
            region='us-east-1',
            multipart_threshold=part_size,
            multipart_chunksize=part_size
        )
        data = os.urandom(part_size * 2 + 1234)

        storage.put('backups/big.sql.gz', io.BytesIO(data))

        obj = mock_s3.Object('test-bucket', 'backups/big.sql.gz')
        assert obj.get()['Body'].read() == data
        # Multipart ETags carry the part count
        assert obj.e_tag.strip('"').endswith('-3')
        assert obj.content_type == 'application/gzip'

    def test_put_small_body_single_request(self, mock_s3):
        """Test bodies below the threshold use a single PUT."""
        storage = make_storage()

        storage.put('backups/small.sql.gz', io.BytesIO(b'small'))

        obj = mock_s3.Object('test-bucket', 'backups/small.sql.gz')
        assert '-' not in obj.e_tag

    def test_put_missing_bucket(self, mock_s3):
        """Test put into a missing bucket raises UploadError."""
        storage = make_storage('no-such-bucket')

        with pytest.raises(UploadError, match='NoSuchBucket'):
            storage.put('backups/x.sql.gz', io.BytesIO(b'data'))

    def test_put_transfer_failure(self):
        """Test a failed managed transfer becomes UploadError."""
        storage = make_storage()
        storage.s3_client = MagicMock()
        storage.s3_client.upload_fileobj.side_effect = S3UploadFailedError("part 2 failed")

        with pytest.raises(UploadError, match='part 2 failed'):
            storage.put('backups/big.sql.gz', io.BytesIO(b'data'))

    def test_upload_error_is_storage_error(self, mock_s3):
        """Test the specific errors share the StorageError base."""
        storage = make_storage('no-such-bucket')

        with pytest.raises(StorageError):
            storage.put('backups/x.sql.gz', io.BytesIO(b'data'))

    def test_list_objects_with_prefix(self, mock_s3):
        """Test listing only returns objects under the prefix."""
        bucket = mock_s3.Bucket('test-bucket')
        bucket.put_object(Key='backups/app_backup_1.sql.gz', Body=b'data1')
        bucket.put_object(Key='backups/app_backup_2.sql.gz', Body=b'data22')
        bucket.put_object(Key='other/app_backup_3.sql.gz', Body=b'data3')

        storage = make_storage()
        objects = storage.list_objects('backups/')

        assert sorted(obj.key for obj in objects) == [
            'backups/app_backup_1.sql.gz',
            'backups/app_backup_2.sql.gz',
        ]
        assert all(isinstance(obj, RemoteObject) for obj in objects)
        assert all(obj.last_modified.tzinfo is not None for obj in objects)
        sizes = {obj.key: obj.size for obj in objects}
        assert sizes['backups/app_backup_2.sql.gz'] == 6

    def test_list_objects_empty(self, mock_s3):
        """Test listing an empty prefix returns an empty list."""
        storage = make_storage()

        assert storage.list_objects('backups/') == []

    def test_list_objects_merges_pages(self):
        """Test every page from the paginator is included."""
        storage = make_storage()
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {'Contents': [{'Key': 'backups/a', 'LastModified': 1, 'Size': 1}]},
            {},
            {'Contents': [{'Key': 'backups/b', 'LastModified': 2, 'Size': 2}]},
        ]
        storage.s3_client = MagicMock()
        storage.s3_client.get_paginator.return_value = paginator

        objects = storage.list_objects('backups/')

        assert [obj.key for obj in objects] == ['backups/a', 'backups/b']
        paginator.paginate.assert_called_once_with(Bucket='test-bucket', Prefix='backups/')

    def test_list_objects_missing_bucket(self, mock_s3):
        """Test listing a missing bucket raises ListError."""
        storage = make_storage('no-such-bucket')

        with pytest.raises(ListError):
            storage.list_objects('backups/')

    def test_delete(self, mock_s3):
        """Test deleting an object."""
        bucket = mock_s3.Bucket('test-bucket')
        bucket.put_object(Key='backups/old.sql.gz', Body=b'old')
        storage = make_storage()

        storage.delete('backups/old.sql.gz')

        assert storage.list_objects('backups/') == []

    def test_delete_client_error(self):
        """Test a client error on delete raises DeleteError with the code."""
        storage = make_storage()
        storage.s3_client = MagicMock()
        storage.s3_client.delete_object.side_effect = ClientError(
            {'Error': {'Code': 'AccessDenied', 'Message': 'denied'}},
            'DeleteObject'
        )

        with pytest.raises(DeleteError, match='AccessDenied'):
            storage.delete('backups/old.sql.gz')


class TestS3StorageFromConfig:
    """Test building S3Storage from a BackupConfig."""

    @patch('r2backup.backup.storage.boto3')
    def test_from_config_uses_r2_endpoint(self, mock_boto3, backup_config):
        """Test the client targets the account's R2 endpoint."""
        storage = S3Storage.from_config(backup_config)

        assert storage.bucket_name == 'test-bucket'
        mock_boto3.client.assert_called_once_with(
            's3',
            endpoint_url='https://test-account.r2.cloudflarestorage.com',
            aws_access_key_id='test_access_key',
            aws_secret_access_key='test_secret_key',
            region_name='auto'
        )

    @patch('r2backup.backup.storage.boto3')
    def test_client_creation_failure(self, mock_boto3):
        """Test client construction errors become StorageError."""
        mock_boto3.client.side_effect = ValueError("bad endpoint")

        with pytest.raises(StorageError, match='initialize'):
            make_storage()
