# azure_blob.py
import logging
import mimetypes
from typing import List, Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings

from .exceptions import DocumentNotFound, StoreUnavailable
from .storage.base import StorageClient
from .storage.dto import DocumentRecord


class AzureBlobClient(StorageClient):
    """
    Client for a single Azure Blob Storage container, implementing the StorageClient interface.
    """

    def __init__(
        self,
        account_name: str,
        account_key: str,
        container_name: str,
        account_url: Optional[str] = None,
        timeout: int = 30,
    ):
        self.container_name = container_name
        self.timeout = timeout
        account_url = account_url or f"https://{account_name}.blob.core.windows.net"
        try:
            # retry_total=0: retries are left to the caller
            self.service = BlobServiceClient(
                account_url=account_url,
                credential={"account_name": account_name, "account_key": account_key},
                retry_total=0,
                connection_timeout=timeout,
                read_timeout=timeout,
            )
            self.container = self.service.get_container_client(container_name)
            logging.info(
                f"Azure Blob client initialized for container '{container_name}' at {account_url}."
            )
        except (AzureError, ValueError) as e:
            logging.error(
                f"Failed to initialize Azure Blob client. Check your account settings. Error: {e}"
            )
            raise

    def list_files(self) -> List[DocumentRecord]:
        """
        Returns all blobs in the container. The SDK pages lazily, so the whole
        enumeration happens inside the try block: a failure on any page fails the call.
        """
        try:
            logging.info(f"Listing blobs in container '{self.container_name}'")
            records = []
            for blob in self.container.list_blobs(timeout=self.timeout):
                records.append(
                    DocumentRecord(
                        id=blob.name,
                        name=blob.name,
                        size=blob.size,
                        uploaded_at=blob.creation_time or blob.last_modified,
                        url=self.url_for(blob.name),
                    )
                )
            return records
        except AzureError as e:
            logging.error(f"Failed to list blobs in container '{self.container_name}': {e}")
            raise StoreUnavailable(f"Could not list documents: {e}") from e

    def upload_file(self, name: str, data: bytes) -> str:
        content_type, _ = mimetypes.guess_type(name)
        try:
            logging.info(f"Uploading {len(data)} bytes to blob '{name}'...")
            blob_client = self.container.upload_blob(
                name=name,
                data=data,
                overwrite=True,
                content_settings=ContentSettings(
                    content_type=content_type or "application/octet-stream"
                ),
                timeout=self.timeout,
            )
            return blob_client.url
        except AzureError as e:
            logging.error(f"Failed to upload blob '{name}': {e}")
            raise StoreUnavailable(f"Could not upload '{name}': {e}") from e

    def download_file(self, name: str) -> bytes:
        try:
            logging.info(f"Downloading blob '{name}'...")
            return self.container.download_blob(name, timeout=self.timeout).readall()
        except ResourceNotFoundError as e:
            raise DocumentNotFound(f"Blob '{name}' not found in container '{self.container_name}'.") from e
        except AzureError as e:
            logging.error(f"Failed to download blob '{name}': {e}")
            raise StoreUnavailable(f"Could not download '{name}': {e}") from e

    def delete_file(self, name: str):
        try:
            logging.info(f"Deleting blob '{name}'...")
            # A blob with snapshots is refused (409) unless they go with it.
            self.container.delete_blob(name, delete_snapshots="include", timeout=self.timeout)
        except ResourceNotFoundError:
            logging.warning(f"Blob '{name}' not found. Nothing to delete.")
        except AzureError as e:
            logging.error(f"Failed to delete blob '{name}': {e}")
            raise StoreUnavailable(f"Could not delete '{name}': {e}") from e

    def url_for(self, name: str) -> str:
        return self.container.get_blob_client(name).url

    def verify_container_exists(self):
        try:
            self.container.get_container_properties(timeout=self.timeout)
            logging.info(f"Azure container '{self.container_name}' exists.")
        except ResourceNotFoundError as e:
            logging.critical(f"Configured container '{self.container_name}' does not exist.")
            raise StoreUnavailable(f"Container '{self.container_name}' not found.") from e
        except AzureError as e:
            logging.error(f"Error accessing container '{self.container_name}': {e}")
            raise StoreUnavailable(f"Container '{self.container_name}' is inaccessible: {e}") from e
