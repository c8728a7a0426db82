# docportal/storage/base.py
from abc import ABC, abstractmethod
from typing import List
from .dto import DocumentRecord


class StorageClient(ABC):
    """
    Abstract base class for an object-storage client bound to a single container.
    Defines the common interface that all specific storage clients
    (e.g., Azure Blob Storage, Dropbox) must implement.

    Implementations normalize their SDK errors: transport, authentication and
    service-side failures are raised as StoreUnavailable.
    """

    @abstractmethod
    def list_files(self) -> List[DocumentRecord]:
        """
        Lists all objects in the container.

        :return: A list of standardized DocumentRecord DTOs, in the order the
            store enumerates them. Never a partial list: a failure at any
            point raises StoreUnavailable.
        """
        pass

    @abstractmethod
    def upload_file(self, name: str, data: bytes) -> str:
        """
        Stores a payload under the given name, overwriting any existing object.

        :param name: The object key.
        :param data: The payload.
        :return: The URL of the stored object.
        """
        pass

    @abstractmethod
    def download_file(self, name: str) -> bytes:
        """
        Reads an object's payload.

        :param name: The object key.
        :raises DocumentNotFound: If no object exists under the name.
        """
        pass

    @abstractmethod
    def delete_file(self, name: str):
        """
        Deletes an object. Deleting an absent object is a no-op.

        :param name: The object key.
        """
        pass

    @abstractmethod
    def url_for(self, name: str) -> str:
        """
        Returns the address of an object. Pure function of container and name;
        performs no I/O.
        """
        pass

    @abstractmethod
    def verify_container_exists(self):
        """
        Verifies that the configured container exists and is accessible.
        Raises StoreUnavailable otherwise.
        """
        pass
