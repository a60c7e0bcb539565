"""
Document Store Interface

Abstract interface for the metadata backends. The metadata store composes
two implementations of it, a primary remote store and a local fallback,
and never reaches a concrete client directly.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class IDocumentStore(ABC):
    """
    Collection/id keyed JSON document storage.

    Contract Guarantees:
    - "Not found" is signalled by return values, never by exceptions
    - delete() is delete-if-exists and therefore idempotent
    - Any failure to reach the backend raises BackendUnavailableError

    Implementation Requirements:
    - Documents are plain JSON-serializable dictionaries
    - query() performs equality matching on top-level fields; an empty
      filter returns every document in the collection
    """

    #: Short name used in log lines and health reports
    name: str = "document-store"

    @abstractmethod
    def put(self, collection: str, doc_id: str, document: Dict[str, Any]) -> None:
        """
        Write a full document, replacing any existing one.

        Args:
            collection: Collection name (e.g. 'files')
            doc_id: Document identifier
            document: JSON-serializable document

        Raises:
            BackendUnavailableError: If the backend cannot be reached
        """
        pass  # pragma: no cover

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Read a document.

        Returns:
            The document, or None if it does not exist

        Raises:
            BackendUnavailableError: If the backend cannot be reached
        """
        pass  # pragma: no cover

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        """
        Merge fields into an existing document.

        Returns:
            True if the document existed and was updated, False otherwise

        Raises:
            BackendUnavailableError: If the backend cannot be reached
        """
        pass  # pragma: no cover

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        """
        Delete a document if it exists.

        Returns:
            True if a document was removed, False if there was none

        Raises:
            BackendUnavailableError: If the backend cannot be reached
        """
        pass  # pragma: no cover

    @abstractmethod
    def query(
        self, collection: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Return documents whose top-level fields equal every filter value.

        Raises:
            BackendUnavailableError: If the backend cannot be reached
        """
        pass  # pragma: no cover

    @abstractmethod
    def ping(self) -> bool:
        """Health check. Must never raise."""
        pass  # pragma: no cover
