"""Azure Blob Storage client for build artifact transfer."""

import enum
import logging
import time
from pathlib import Path
from typing import Any, Optional

from azure.core.exceptions import AzureError
from azure.identity import ClientSecretCredential
from azure.storage.blob import BlobServiceClient

from imagecustomizer.errors import BlobStorageError


logger = logging.getLogger(__name__)


class AccessType(enum.Enum):
    """How the client authenticates."""
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


def account_url(storage_account: str) -> str:
    """Blob endpoint for a storage account."""
    return f"https://{storage_account}.blob.core.windows.net/"


class AzureBlobStorage:
    """Uploads and downloads blobs of one storage account."""

    def __init__(self, service_client: Any):
        """Initialize with a BlobServiceClient."""
        self._client = service_client

    @classmethod
    def create(
        cls,
        storage_account: str,
        access_type: AccessType = AccessType.ANONYMOUS,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ) -> "AzureBlobStorage":
        """Create a client with anonymous (read-only) or client-secret access."""
        url = account_url(storage_account)

        try:
            if access_type == AccessType.ANONYMOUS:
                client = BlobServiceClient(account_url=url)
            elif access_type == AccessType.AUTHENTICATED:
                if not (tenant_id and client_id and client_secret):
                    raise BlobStorageError(
                        "Authenticated access requires tenant id, client id and client secret"
                    )
                credential = ClientSecretCredential(
                    tenant_id=tenant_id,
                    client_id=client_id,
                    client_secret=client_secret,
                )
                client = BlobServiceClient(account_url=url, credential=credential)
            else:
                raise BlobStorageError(f"Unknown access type: {access_type}")
        except (AzureError, ValueError) as e:
            logger.warning(f"Unable to init azure blob storage client: {e}")
            raise BlobStorageError(f"Unable to init azure blob storage client: {e}") from e

        return cls(client)

    def upload(self, local_path: str, container_name: str, blob_name: str) -> None:
        """Upload a local file, replacing the blob if it exists."""
        start_time = time.monotonic()

        blob_client = self._client.get_blob_client(container=container_name, blob=blob_name)
        try:
            with open(local_path, "rb") as stream:
                blob_client.upload_blob(stream, overwrite=True)
        except OSError as e:
            logger.info(f"  failed to open local file for upload. Error: {e}")
            raise BlobStorageError(f"Failed to open {local_path} for upload: {e}") from e
        except AzureError as e:
            logger.info(f"  failed to upload local file to blob. Error: {e}")
            raise BlobStorageError(
                f"Failed to upload {local_path} to {container_name}/{blob_name}: {e}"
            ) from e

        logger.info(f"  upload time: {time.monotonic() - start_time:.2f}s")

    def download(self, container_name: str, blob_name: str, local_path: str) -> None:
        """Download a blob into a local file."""
        start_time = time.monotonic()

        blob_client = self._client.get_blob_client(container=container_name, blob=blob_name)
        try:
            Path(local_path).parent.mkdir(parents=True, exist_ok=True)
            with open(local_path, "wb") as stream:
                blob_client.download_blob().readinto(stream)
        except OSError as e:
            logger.info(f"  failed to create local file for download. Error: {e}")
            raise BlobStorageError(f"Failed to create {local_path} for download: {e}") from e
        except AzureError as e:
            logger.info(f"  failed to download blob to local file. Error: {e}")
            raise BlobStorageError(
                f"Failed to download {container_name}/{blob_name} to {local_path}: {e}"
            ) from e

        logger.info(f"  download time: {time.monotonic() - start_time:.2f}s")
