# src/s3_publish/storage.py
"""
Remote storage capability used by the publisher.

The publisher only needs two operations, `put` and `delete_many`, described
by the `Storage` protocol. `S3Storage` implements them for any
S3-compatible endpoint on top of an aiobotocore client.
"""

import logging
from contextlib import AsyncExitStack
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)

from aiobotocore.session import AioSession, get_session
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from s3_publish.config import ConnectConfig
from s3_publish.exceptions import CleanupError, PublishError, UploadError

if TYPE_CHECKING:
    from types_aiobotocore_s3.client import S3Client
    from types_aiobotocore_s3.type_defs import DeleteObjectsOutputTypeDef

logger: logging.Logger = logging.getLogger(__name__)

# delete_objects accepts at most this many keys per request
DELETE_BATCH_SIZE: int = 1000

_HEADER_PARAMS: Dict[str, str] = {
    "cache-control": "CacheControl",
    "content-disposition": "ContentDisposition",
    "content-encoding": "ContentEncoding",
    "content-language": "ContentLanguage",
    "content-length": "ContentLength",
    "content-md5": "ContentMD5",
    "content-type": "ContentType",
    "expires": "Expires",
    "x-amz-acl": "ACL",
    "x-amz-storage-class": "StorageClass",
    "x-amz-website-redirect-location": "WebsiteRedirectLocation",
}
_METADATA_PREFIX: str = "x-amz-meta-"


class Storage(Protocol):
    """The remote operations a publish run depends on."""

    async def put(self, key: str, body: bytes, headers: Mapping[str, str]) -> None:
        ...

    async def delete_many(self, keys: Sequence[str], quiet: bool = True) -> None:
        ...


def headers_to_put_params(headers: Mapping[str, str]) -> Dict[str, Any]:
    """
    Translates HTTP-style headers into ``put_object`` parameters.

    Args:
        headers (Mapping[str, str]): Header names and values.

    Returns:
        Dict[str, Any]: Keyword arguments for ``put_object``. User metadata
            headers are collected under ``Metadata``.

    Raises:
        ValueError: If Content-Length is not a non-negative integer.
    """
    params: Dict[str, Any] = {}
    metadata: Dict[str, str] = {}
    for name, value in headers.items():
        lowered: str = name.lower()
        if lowered.startswith(_METADATA_PREFIX):
            metadata[lowered[len(_METADATA_PREFIX) :]] = value
        elif lowered in _HEADER_PARAMS:
            params[_HEADER_PARAMS[lowered]] = value
        else:
            logger.warning(f"Ignoring unsupported upload header '{name}'.")
    if "ContentLength" in params:
        length: str = str(params["ContentLength"]).strip()
        if not length.isdigit():
            raise ValueError(f"Invalid Content-Length header: {length!r}")
        params["ContentLength"] = int(length)
    if metadata:
        params["Metadata"] = metadata
    return params


class S3Storage:
    """
    Publishes objects to one bucket through an aiobotocore S3 client.

    Use as an async context manager; the client is created on entry and
    closed on exit.
    """

    def __init__(
        self,
        connect: ConnectConfig,
        session: Optional[AioSession] = None,
    ) -> None:
        """
        Initializes the storage for the configured bucket.

        Args:
            connect (ConnectConfig): Endpoint, credentials and bucket.
            session (AioSession, optional): Session to create the client from.
        """
        self._connect: ConnectConfig = connect
        self._session: AioSession = session or get_session()
        self._exit_stack: Optional[AsyncExitStack] = None
        self._client: Optional["S3Client"] = None

    @property
    def bucket(self) -> str:
        return self._connect.bucket

    async def __aenter__(self) -> "S3Storage":
        # SigV4 without payload signing is what non-AWS providers accept
        # most reliably, as long as Content-Length is sent.
        boto_config: BotoConfig = BotoConfig(
            signature_version="s3v4",
            retries={"max_attempts": self._connect.max_attempts},
            s3={"payload_signing_enabled": False},
        )
        self._exit_stack = AsyncExitStack()
        self._client = await self._exit_stack.enter_async_context(
            self._session.create_client(
                "s3", **self._connect.as_boto_dict(), config=boto_config
            )
        )
        logger.debug(f"Opened S3 client for bucket '{self.bucket}'.")
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
        self._exit_stack = None
        self._client = None

    def _require_client(self) -> "S3Client":
        if self._client is None:
            raise PublishError("S3Storage must be used as an async context manager.")
        return self._client

    async def put(self, key: str, body: bytes, headers: Mapping[str, str]) -> None:
        """
        Uploads one object.

        Args:
            key (str): The destination key.
            body (bytes): The object contents.
            headers (Mapping[str, str]): Upload headers.

        Raises:
            UploadError: If the headers are invalid or the backend rejects
                the upload.
        """
        client: "S3Client" = self._require_client()
        try:
            await client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                **headers_to_put_params(headers),
            )
        except (ClientError, BotoCoreError, ValueError) as e:
            raise UploadError(key, str(e)) from e
        logger.debug(f"Uploaded 's3://{self.bucket}/{key}'")

    async def delete_many(self, keys: Sequence[str], quiet: bool = True) -> None:
        """
        Deletes objects in batches of `DELETE_BATCH_SIZE`.

        Args:
            keys (Sequence[str]): The keys to delete.
            quiet (bool): Only report failed keys in the responses.

        Raises:
            CleanupError: If a request fails or any key could not be deleted.
        """
        client: "S3Client" = self._require_client()
        failed: List[str] = []
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch: Sequence[str] = keys[start : start + DELETE_BATCH_SIZE]
            try:
                response: "DeleteObjectsOutputTypeDef" = await client.delete_objects(
                    Bucket=self.bucket,
                    Delete={
                        "Objects": [{"Key": key} for key in batch],
                        "Quiet": quiet,
                    },
                )
            except (ClientError, BotoCoreError) as e:
                raise CleanupError(f"Deleting {len(batch)} objects failed: {e}") from e

            for error in response.get("Errors", []):
                failed.append(f"{error.get('Key')} ({error.get('Code')})")
            if not quiet:
                for deleted in response.get("Deleted", []):
                    logger.debug(f"Deleted 's3://{self.bucket}/{deleted.get('Key')}'")

        if failed:
            raise CleanupError(f"Could not delete: {', '.join(failed)}")
