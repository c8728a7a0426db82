# operations.py
import logging
import time
from typing import List

from .exceptions import InvalidName, PayloadTooLarge
from .storage.base import StorageClient
from .storage.dto import DeleteResult, DocumentRecord, UploadResult

# Longest blob name accepted by Azure Blob Storage.
MAX_NAME_LENGTH = 1024


def validate_document_name(name: str) -> str:
    """
    Rejects names the object store cannot address. Names are never rewritten:
    a name is either accepted as-is or refused with InvalidName.
    """
    if name is None or not name.strip():
        raise InvalidName("Document name must not be empty.")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidName(f"Document name is longer than {MAX_NAME_LENGTH} characters.")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in name):
        raise InvalidName("Document name must not contain control characters.")
    return name


class DocumentOperations:
    """
    The list/upload/delete surface of the admin portal.

    Stateless: every call goes straight to the storage client, so concurrent
    calls need no coordination. Failures from the client propagate unchanged.
    """

    def __init__(self, storage_client: StorageClient, max_upload_size: int):
        self.storage_client = storage_client
        self.max_upload_size = max_upload_size

    def list_documents(self) -> List[DocumentRecord]:
        start_time = time.monotonic()
        records = self.storage_client.list_files()
        logging.info(
            f"Listed {len(records)} documents in {time.monotonic() - start_time:.2f} seconds."
        )
        return records

    def upload_document(self, file_name: str, file_data: bytes) -> UploadResult:
        validate_document_name(file_name)
        if len(file_data) > self.max_upload_size:
            logging.warning(
                f"Rejected upload of '{file_name}': {len(file_data)} bytes exceeds {self.max_upload_size}."
            )
            raise PayloadTooLarge(len(file_data), self.max_upload_size)

        url = self.storage_client.upload_file(file_name, file_data)
        logging.info(f"Uploaded '{file_name}' ({len(file_data)} bytes).")
        return UploadResult(success=True, file_name=file_name, url=url)

    def delete_document(self, file_name: str) -> DeleteResult:
        validate_document_name(file_name)
        self.storage_client.delete_file(file_name)
        logging.info(f"Deleted '{file_name}'.")
        return DeleteResult(success=True)

    def fetch_document(self, file_name: str) -> bytes:
        validate_document_name(file_name)
        return self.storage_client.download_file(file_name)
