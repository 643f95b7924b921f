"""
Object storage for backup archives.

ObjectStore is the narrow interface the backup run depends on: put, list
under a prefix, delete. S3Storage implements it with boto3 against any
S3-compatible endpoint (Cloudflare R2 by default).
"""

import abc
import logging
from datetime import datetime
from typing import BinaryIO, List, NamedTuple

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

# Files above this size are uploaded in parts (single PUTs are capped at 5GB)
MULTIPART_THRESHOLD = 100 * 1024 * 1024  # 100MB
MULTIPART_CHUNK_SIZE = 10 * 1024 * 1024  # 10MB


class StorageError(Exception):
    """Raised when storage operation fails."""
    pass


class UploadError(StorageError):
    """Raised when an object cannot be written."""
    pass


class ListError(StorageError):
    """Raised when objects under a prefix cannot be listed."""
    pass


class DeleteError(StorageError):
    """Raised when an object cannot be deleted."""
    pass


class RemoteObject(NamedTuple):
    """One entry of a bucket listing."""
    key: str
    last_modified: datetime
    size: int = 0


class ObjectStore(abc.ABC):
    """
    Put/list/delete against a single bucket.

    Each call is one logical attempt; retries, if any, belong to the client
    underneath.
    """

    bucket_name: str

    @abc.abstractmethod
    def put(self, key: str, body: BinaryIO):
        """
        Store the contents of body under key.

        Raises:
            UploadError: If the object cannot be written
        """

    @abc.abstractmethod
    def list_objects(self, prefix: str) -> List[RemoteObject]:
        """
        List every object whose key starts with prefix.

        Raises:
            ListError: If the listing fails
        """

    @abc.abstractmethod
    def delete(self, key: str):
        """
        Delete the object stored under key.

        Raises:
            DeleteError: If deletion fails
        """


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', 'Unknown')


class S3Storage(ObjectStore):
    """
    boto3-backed ObjectStore for S3-compatible services.
    """

    def __init__(self, access_key: str, secret_key: str, bucket_name: str,
                 endpoint_url: str = None, region: str = 'auto',
                 multipart_threshold: int = MULTIPART_THRESHOLD,
                 multipart_chunksize: int = MULTIPART_CHUNK_SIZE):
        """
        Initialize S3 storage handler.

        Args:
            access_key: Access key ID
            secret_key: Secret access key
            bucket_name: Bucket all operations act on
            endpoint_url: Service endpoint (None for AWS itself)
            region: Signing region ('auto' for R2)
            multipart_threshold: Size in bytes above which multipart upload is used
            multipart_chunksize: Part size in bytes for multipart uploads
        """
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url
        self.region = region
        self.transfer_config = TransferConfig(
            multipart_threshold=multipart_threshold,
            multipart_chunksize=multipart_chunksize
        )

        try:
            self.s3_client = boto3.client(
                's3',
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region
            )
        except Exception as e:
            raise StorageError(f"Failed to initialize S3 client: {e}") from e

    @classmethod
    def from_config(cls, config) -> 'S3Storage':
        """Build a store for the bucket and endpoint in a BackupConfig."""
        return cls(
            access_key=config.access_key_id,
            secret_key=config.secret_access_key,
            bucket_name=config.bucket,
            endpoint_url=config.resolved_endpoint_url,
            region=config.region
        )

    def put(self, key: str, body: BinaryIO):
        """
        Upload body under key.

        Bodies larger than the multipart threshold are sent in parts; a
        failed multipart upload is aborted by the transfer manager so no
        orphaned parts are left in the bucket.
        """
        try:
            self.s3_client.upload_fileobj(
                body,
                self.bucket_name,
                key,
                ExtraArgs={'ContentType': 'application/gzip'},
                Config=self.transfer_config
            )
        except S3UploadFailedError as e:
            raise UploadError(f"S3 upload failed: {e}") from e
        except ClientError as e:
            raise UploadError(f"S3 upload failed ({_error_code(e)}): {e}") from e
        except BotoCoreError as e:
            raise UploadError(f"S3 upload failed: {e}") from e

    def list_objects(self, prefix: str) -> List[RemoteObject]:
        try:
            objects = []
            paginator = self.s3_client.get_paginator('list_objects_v2')

            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                for obj in page.get('Contents', []):
                    objects.append(RemoteObject(
                        key=obj['Key'],
                        last_modified=obj['LastModified'],
                        size=obj.get('Size', 0)
                    ))

            return objects

        except ClientError as e:
            raise ListError(f"S3 list failed ({_error_code(e)}): {e}") from e
        except BotoCoreError as e:
            raise ListError(f"S3 list failed: {e}") from e

    def delete(self, key: str):
        try:
            self.s3_client.delete_object(
                Bucket=self.bucket_name,
                Key=key
            )
        except ClientError as e:
            raise DeleteError(f"S3 delete failed ({_error_code(e)}): {e}") from e
        except BotoCoreError as e:
            raise DeleteError(f"S3 delete failed: {e}") from e
