# dbox.py
import io
import logging
from datetime import timezone
from typing import List
from urllib.parse import quote

import dropbox
import requests
from dropbox.exceptions import ApiError, DropboxException
from dropbox.files import CommitInfo, FileMetadata as DropboxFileMetadata, WriteMode

from .exceptions import DocumentNotFound, StoreUnavailable
from .storage.base import StorageClient
from .storage.dto import DocumentRecord

# Anything the SDK can raise for a failed call: API/auth errors and plain transport errors.
DROPBOX_FAILURES = (DropboxException, requests.exceptions.RequestException)


class DropboxClient(StorageClient):
    """
    Client for interacting with the Dropbox API, implementing the StorageClient interface.
    The "container" is a Dropbox folder; an empty folder path means the Dropbox root.
    """

    def __init__(
        self,
        app_key: str,
        app_secret: str,
        refresh_token: str,
        folder: str,
        chunk_size: int = 128 * 1024 * 1024,
        timeout: int = 30,
    ):
        stripped = folder.strip("/")
        self.folder = f"/{stripped}" if stripped else ""
        self.chunk_size = chunk_size
        try:
            self.dbx = dropbox.Dropbox(
                app_key=app_key,
                app_secret=app_secret,
                oauth2_refresh_token=refresh_token,
                timeout=timeout,
                max_retries_on_error=0,
                max_retries_on_rate_limit=0,
            )
            logging.info(f"Dropbox client initialized for folder '{self.folder or '/'}'.")
        except Exception as e:
            logging.error(
                f"Failed to initialize Dropbox client. Check your credentials. Error: {e}"
            )
            raise

    def _path(self, name: str) -> str:
        return f"{self.folder}/{name}"

    def list_files(self) -> List[DocumentRecord]:
        """
        Returns all files under the configured Dropbox folder, including those in
        sub-folders, handling pagination automatically. Names are relative to the
        folder, so "2024/handbook.pdf" lists under the name it was uploaded with.
        """
        try:
            logging.info(f"Listing files in Dropbox path: '{self.folder}'")
            result = self.dbx.files_list_folder(self.folder, recursive=True)
            all_entries = list(result.entries)
            while result.has_more:
                logging.info("Found more files, continuing listing...")
                result = self.dbx.files_list_folder_continue(result.cursor)
                all_entries.extend(result.entries)
        except DROPBOX_FAILURES as e:
            logging.error(f"Failed to list files in Dropbox path '{self.folder}': {e}")
            raise StoreUnavailable(f"Could not list documents: {e}") from e

        # Convert Dropbox metadata to our standardized DTO
        records = []
        for entry in all_entries:
            if not isinstance(entry, DropboxFileMetadata):
                continue
            name = self._relative_name(entry)
            records.append(
                DocumentRecord(
                    id=name,
                    name=name,
                    size=entry.size,
                    uploaded_at=entry.server_modified.replace(tzinfo=timezone.utc),
                    url=self.url_for(name),
                )
            )
        return records

    def _relative_name(self, entry: DropboxFileMetadata) -> str:
        # path_display keeps the stored casing; the folder prefix may differ in case only.
        if not entry.path_display:
            return entry.name
        return entry.path_display[len(self.folder) + 1:]

    def upload_file(self, name: str, data: bytes) -> str:
        """Uploads a payload to Dropbox, using an upload session for large payloads."""
        remote_path = self._path(name)
        file_size = len(data)
        try:
            if file_size < self.chunk_size:
                logging.info(f"Uploading {file_size} bytes to {remote_path} (single upload)...")
                self.dbx.files_upload(data, remote_path, mode=WriteMode("overwrite"))
            else:
                self._upload_chunked(io.BytesIO(data), file_size, remote_path)
        except DROPBOX_FAILURES as e:
            logging.error(f"Failed to upload file to '{remote_path}': {e}")
            raise StoreUnavailable(f"Could not upload '{name}': {e}") from e
        return self.url_for(name)

    def _upload_chunked(self, stream: io.BytesIO, file_size: int, remote_path: str):
        logging.info(f"Starting chunked upload of {file_size} bytes to {remote_path}...")
        upload_session_start_result = self.dbx.files_upload_session_start(
            stream.read(self.chunk_size)
        )
        cursor = dropbox.files.UploadSessionCursor(
            session_id=upload_session_start_result.session_id,
            offset=stream.tell(),
        )
        commit_info = CommitInfo(path=remote_path, mode=WriteMode("overwrite"))

        while True:
            next_chunk = stream.read(self.chunk_size)
            if stream.tell() >= file_size:
                logging.info(f"Uploading final chunk for {remote_path}...")
                self.dbx.files_upload_session_finish(next_chunk, cursor, commit_info)
                break
            logging.info(f"Uploading chunk for {remote_path} (offset: {cursor.offset})...")
            self.dbx.files_upload_session_append_v2(next_chunk, cursor)
            cursor.offset = stream.tell()
        logging.info(f"Chunked upload completed for {remote_path}.")

    def download_file(self, name: str) -> bytes:
        remote_path = self._path(name)
        try:
            logging.info(f"Downloading {remote_path}...")
            _, response = self.dbx.files_download(remote_path)
            return response.content
        except ApiError as e:
            if e.error is not None and e.error.is_path() and e.error.get_path().is_not_found():
                raise DocumentNotFound(f"File '{remote_path}' not found in Dropbox.") from e
            logging.error(f"Failed to download file '{remote_path}': {e}")
            raise StoreUnavailable(f"Could not download '{name}': {e}") from e
        except DROPBOX_FAILURES as e:
            logging.error(f"Failed to download file '{remote_path}': {e}")
            raise StoreUnavailable(f"Could not download '{name}': {e}") from e

    def delete_file(self, name: str):
        """Deletes a file in Dropbox. A missing file is not an error."""
        remote_path = self._path(name)
        try:
            logging.info(f"Deleting {remote_path}...")
            self.dbx.files_delete_v2(remote_path)
        except ApiError as e:
            if (
                e.error is not None
                and e.error.is_path_lookup()
                and e.error.get_path_lookup().is_not_found()
            ):
                logging.warning(f"File '{remote_path}' not found. Nothing to delete.")
                return
            logging.error(f"Failed to delete path '{remote_path}': {e}")
            raise StoreUnavailable(f"Could not delete '{name}': {e}") from e
        except DROPBOX_FAILURES as e:
            logging.error(f"Failed to delete path '{remote_path}': {e}")
            raise StoreUnavailable(f"Could not delete '{name}': {e}") from e

    def url_for(self, name: str) -> str:
        return f"https://www.dropbox.com/home{quote(self._path(name))}"

    def verify_container_exists(self):
        """
        Verifies the configured folder exists.
        Raises StoreUnavailable if the folder does not exist or is inaccessible.
        """
        # For Dropbox, an empty path signifies the root folder, which always exists.
        if self.folder == "":
            logging.info("Dropbox root folder specified, which always exists.")
            return
        try:
            self.dbx.files_get_metadata(self.folder)
            logging.info(f"Dropbox folder '{self.folder}' exists.")
        except ApiError as e:
            if e.error is not None and e.error.is_path() and e.error.get_path().is_not_found():
                logging.critical(f"Configured Dropbox folder '{self.folder}' does not exist.")
            else:
                logging.error(f"Error accessing Dropbox folder '{self.folder}': {e}")
            raise StoreUnavailable(f"Dropbox folder '{self.folder}' is inaccessible: {e}") from e
        except DROPBOX_FAILURES as e:
            logging.error(f"Error accessing Dropbox folder '{self.folder}': {e}")
            raise StoreUnavailable(f"Dropbox folder '{self.folder}' is inaccessible: {e}") from e
