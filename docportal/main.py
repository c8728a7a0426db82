# main.py
import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI
from pydantic import ValidationError

from .api import create_app
from .azure_blob import AzureBlobClient
from .config import Settings, get_settings
from .dbox import DropboxClient
from .exceptions import ConfigurationError, StoreUnavailable
from .storage.base import StorageClient
from .storage.memory import InMemoryStorageClient


def setup_logging(settings: Settings):
    """Configures logging to file and console explicitly."""
    log_level_name = settings.LOG_LEVEL.upper()

    # Get the root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_name)

    # Clear any existing handlers to prevent duplicate logs on re-runs or implicit configs
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Add StreamHandler (for console output)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    # Add FileHandler
    try:
        file_handler = logging.FileHandler(settings.LOG_FILE)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    except OSError as e:
        # Log to console if file logging fails (e.g., read-only filesystem on the host)
        root_logger.error(f"Failed to set up file logging to {settings.LOG_FILE}: {e}")

    # Reducing "noise" from third-party libraries
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("dropbox").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _init_azure_client(settings: Settings) -> Optional[AzureBlobClient]:
    """Initializes and returns an AzureBlobClient."""
    try:
        return AzureBlobClient(
            account_name=settings.STORAGE_ACCOUNT_NAME,
            account_key=settings.STORAGE_ACCOUNT_KEY,
            container_name=settings.STORAGE_CONTAINER_NAME,
            account_url=settings.STORAGE_ACCOUNT_URL,
            timeout=settings.STORAGE_TIMEOUT_SECONDS,
        )
    except Exception as e:
        logging.error(f"Failed to initialize Azure Blob client. Error: {e}", exc_info=True)
        return None


def _init_dropbox_client(settings: Settings) -> Optional[DropboxClient]:
    """
    Initializes the Dropbox client by trying the environment variable and then the token file.
    """
    candidates = [
        ("environment variable", settings.DROPBOX_REFRESH_TOKEN_ENV),
        (f"'{settings.TOKEN_STORAGE_FILE}' file", settings.DROPBOX_REFRESH_TOKEN_FILE),
    ]
    for source, refresh_token in candidates:
        if not refresh_token:
            continue
        try:
            logging.info(f"Attempting to connect to Dropbox using token from {source}...")
            return DropboxClient(
                app_key=settings.DROPBOX_APP_KEY,
                app_secret=settings.DROPBOX_APP_SECRET,
                refresh_token=refresh_token,
                folder=settings.STORAGE_CONTAINER_NAME,
                chunk_size=settings.DROPBOX_UPLOAD_CHUNK_SIZE,
                timeout=settings.STORAGE_TIMEOUT_SECONDS,
            )
        except Exception as e:
            logging.warning(f"Failed to connect using token from {source}. Error: {e}")
    return None


def initialize_storage_client(settings: Settings) -> Optional[StorageClient]:
    """
    Initializes and returns the appropriate storage client based on settings,
    or None if the client could not be constructed.
    """
    if settings.STORAGE_PROVIDER == "azure":
        logging.info("Using Azure Blob Storage provider.")
        return _init_azure_client(settings)

    if settings.STORAGE_PROVIDER == "dropbox":
        logging.info("Using Dropbox storage provider.")
        return _init_dropbox_client(settings)

    if settings.STORAGE_PROVIDER == "memory":
        logging.info("Using in-memory storage provider.")
        return InMemoryStorageClient(settings.STORAGE_CONTAINER_NAME)

    logging.critical(f"Unknown STORAGE_PROVIDER: {settings.STORAGE_PROVIDER}")
    return None


def build_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Wires settings, storage client and HTTP surface together.
    Raises ConfigurationError if no storage client can be built.
    """
    settings = settings or get_settings()
    storage_client = initialize_storage_client(settings)
    if storage_client is None:
        raise ConfigurationError(
            f"Could not establish a connection to {settings.STORAGE_PROVIDER}."
        )

    try:
        storage_client.verify_container_exists()
    except StoreUnavailable as e:
        # Requests will report the failure themselves; the service still starts.
        logging.error(f"Storage is not reachable at startup: {e}")

    return create_app(settings, storage_client)


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Serve the HR document portal API.")
    parser.add_argument("--host", help="Interface to bind (default: APP_HOST).")
    parser.add_argument("--port", type=int, help="Port to bind (default: PORT/APP_PORT).")
    parser.add_argument(
        "--check-storage",
        action="store_true",
        help="Verify the configured container is reachable and exit.",
    )
    args = parser.parse_args()

    try:
        settings = get_settings()
    except ValidationError as e:
        logging.critical(f"Invalid configuration, refusing to start: {e}")
        sys.exit(2)

    setup_logging(settings)

    if args.check_storage:
        storage_client = initialize_storage_client(settings)
        if storage_client is None:
            sys.exit(1)
        try:
            storage_client.verify_container_exists()
        except StoreUnavailable as e:
            logging.critical(f"Storage check failed: {e}")
            sys.exit(1)
        logging.info("Storage check passed.")
        return

    try:
        app = build_app(settings)
    except ConfigurationError as e:
        logging.critical(str(e))
        sys.exit(1)

    host = args.host or settings.APP_HOST
    port = args.port or settings.APP_PORT
    logging.info(f"Starting document portal on {host}:{port} (provider: {settings.STORAGE_PROVIDER}).")
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
