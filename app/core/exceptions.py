from typing import List, Optional


class DocumentStoreError(Exception):
    """Document store unreachable or the operation was rejected"""


class DocumentNotFoundError(DocumentStoreError):
    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document {collection}/{doc_id} does not exist")


class MaintenanceSyncError(Exception):
    """
    a write failed after the read phase of a synchronize succeeded

    written lists the locations that were already updated, so the two
    documents may disagree until the next synchronize
    """

    def __init__(self, resolved: bool, written: Optional[List[str]] = None, cause: Optional[Exception] = None):
        self.resolved = resolved
        self.written = written or []
        self.cause = cause
        locations = ", ".join(self.written) if self.written else "nothing"
        super().__init__(f"Synchronize to {resolved} failed after writing {locations}: {cause}")


class MalformedDocumentError(DocumentStoreError):
    """a stored document exists but does not match the expected shape"""

    def __init__(self, collection: str, doc_id: str, cause: Optional[Exception] = None):
        self.collection = collection
        self.doc_id = doc_id
        self.cause = cause
        super().__init__(f"Document {collection}/{doc_id} is malformed: {cause}")
