"""
Image record store for the Image Ingest function.
Writes label information for processed images to Firestore.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from google.cloud import firestore

DEFAULT_COLLECTION = "images"


@dataclass
class ImageRecord:
    """Firestore document describing one processed image.

    Attributes:
        key: Document id, the synthesized converted file name
        image_path: Same synthesized name; no object is stored at this path
        information: Label descriptions in service order
    """

    key: str
    image_path: str
    information: List[str] = field(default_factory=list)

    def to_document(self) -> Dict[str, Any]:
        return {"imagePath": self.image_path, "information": list(self.information)}


class ImageRecordStore:
    """Upserts image records into a Firestore collection."""

    def __init__(self, firestore_client: firestore.Client, collection_name: str = DEFAULT_COLLECTION):
        self.firestore_client = firestore_client
        self.collection_name = collection_name

    def save(self, record: ImageRecord) -> None:
        """Create or fully replace the document at `record.key`.

        Uses `set` without merge, so fields not in the record are dropped.
        """
        doc_ref = self.firestore_client.collection(self.collection_name).document(record.key)
        doc_ref.set(record.to_document())
        print(f"Stored image information at {self.collection_name}/{record.key}")
