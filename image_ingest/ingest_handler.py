"""
Ingest handler for the Image Ingest function.
Labels newly uploaded images with Cloud Vision and stores the labels in Firestore.
"""

import os
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from google.cloud import firestore, storage, vision

try:
    from object_naming import DerivedNaming, derive_naming, is_canonical_jpeg, is_image
    from label_detector import Label, LabelDetector, label_descriptions
    from image_store import DEFAULT_COLLECTION, ImageRecord, ImageRecordStore
except ImportError:
    # Adjust path when imported as a package
    from image_ingest.object_naming import DerivedNaming, derive_naming, is_canonical_jpeg, is_image
    from image_ingest.label_detector import Label, LabelDetector, label_descriptions
    from image_ingest.image_store import DEFAULT_COLLECTION, ImageRecord, ImageRecordStore


SKIPPED = "skipped"
SUCCESS = "success"
FAILED = "failed"


@dataclass(frozen=True)
class ObjectDescriptor:
    """The storage object whose finalize event triggered the invocation."""

    bucket: str
    name: str
    content_type: Optional[str] = None

    @classmethod
    def from_event(cls, data: Dict[str, Any]) -> "ObjectDescriptor":
        """Build a descriptor from a storage event payload.

        Args:
            data: Storage object metadata with `bucket`, `name` and `contentType`

        Returns:
            ObjectDescriptor for the event
        """
        if not data or not data.get("bucket") or not data.get("name"):
            raise ValueError("Storage event must include 'bucket' and 'name'")

        return cls(
            bucket=data["bucket"],
            name=data["name"],
            content_type=data.get("contentType"),
        )


@dataclass
class IngestResult:
    """Outcome of one invocation: skipped, success or failed with a cause."""

    status: str
    target_name: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    cause: Optional[BaseException] = None

    @classmethod
    def skipped(cls, target_name: str) -> "IngestResult":
        return cls(status=SKIPPED, target_name=target_name)

    @classmethod
    def succeeded(cls, target_name: str, labels: List[str]) -> "IngestResult":
        return cls(status=SUCCESS, target_name=target_name, labels=labels)

    @classmethod
    def failed(cls, target_name: str, step: str, cause: BaseException) -> "IngestResult":
        return cls(status=FAILED, target_name=target_name, failed_step=step, cause=cause)

    @property
    def ok(self) -> bool:
        return self.status != FAILED

    def raise_for_failure(self) -> None:
        """Re-raise the failure cause so the platform marks the invocation failed."""
        if self.status == FAILED and self.cause is not None:
            raise self.cause


@dataclass
class _IngestRun:
    descriptor: ObjectDescriptor
    naming: DerivedNaming
    labels: List[Label] = field(default_factory=list)


class ImageIngestHandler:
    """Downloads a new image, labels it and stores the labels."""

    def __init__(
        self,
        storage_client: storage.Client,
        label_detector: LabelDetector,
        record_store: ImageRecordStore,
        temp_root: str = None
    ):
        """Initialize the ingest handler.

        Args:
            storage_client: Cloud Storage client used to download objects
            label_detector: Detector wrapping the Vision client
            record_store: Store that upserts image records
            temp_root: Scratch root for downloads (defaults to the system temp dir)
        """
        self.storage_client = storage_client
        self.label_detector = label_detector
        self.record_store = record_store
        self.temp_root = temp_root

        self._steps = (
            ("download", self._download),
            ("detect_labels", self._detect_labels),
            ("persist", self._persist),
            ("cleanup", self._cleanup),
        )

    def handle(self, descriptor: ObjectDescriptor) -> IngestResult:
        """Process one finalized storage object.

        Args:
            descriptor: The triggering object

        Returns:
            IngestResult describing the outcome
        """
        naming = derive_naming(descriptor.name, self.temp_root)

        # Exit if this is triggered on a file that is not an image.
        if not is_image(descriptor.content_type):
            print("This is not an image.")
            return IngestResult.skipped(naming.jpeg_file_name)

        # Exit if the image is already a JPEG.
        if is_canonical_jpeg(descriptor.content_type):
            print("Already a JPEG.")
            return IngestResult.skipped(naming.jpeg_file_name)

        run = _IngestRun(descriptor=descriptor, naming=naming)

        for step_name, step in self._steps:
            try:
                step(run)
            except Exception as e:
                print(f"Error in {step_name} for gs://{descriptor.bucket}/{descriptor.name}: {e}")
                return IngestResult.failed(naming.jpeg_file_name, step_name, e)

        return IngestResult.succeeded(naming.jpeg_file_name, label_descriptions(run.labels))

    def _download(self, run: _IngestRun) -> None:
        run.naming.check_scratch_path()

        # Create the temp directory where the storage file will be downloaded.
        os.makedirs(run.naming.temp_local_dir, exist_ok=True)

        bucket = self.storage_client.bucket(run.descriptor.bucket)
        blob = bucket.blob(run.descriptor.name)
        blob.download_to_filename(run.naming.temp_local_file)
        print(f"The file has been downloaded to {run.naming.temp_local_file}")

    def _detect_labels(self, run: _IngestRun) -> None:
        run.labels = self.label_detector.detect_labels(run.naming.temp_local_file)
        for label in run.labels:
            print(f"Label detection result: {label.description}")

    def _persist(self, run: _IngestRun) -> None:
        jpeg_file_name = run.naming.jpeg_file_name
        record = ImageRecord(
            key=jpeg_file_name,
            image_path=jpeg_file_name,
            information=label_descriptions(run.labels),
        )
        self.record_store.save(record)

        # No conversion happens; these lines only keep the log output stable.
        print(f"JPEG image created at {run.naming.temp_local_jpeg_file}")
        print(f"JPEG image uploaded to Storage at {jpeg_file_name}")

    def _cleanup(self, run: _IngestRun) -> None:
        os.remove(run.naming.temp_local_file)


def get_settings_from_env() -> Dict[str, Optional[str]]:
    """Get function settings from environment variables.

    Returns:
        Dictionary of settings
    """
    return {
        "project_id": os.environ.get("PROJECT_ID") or None,
        "collection_name": os.environ.get("IMAGES_COLLECTION", DEFAULT_COLLECTION),
        "temp_root": os.environ.get("SCRATCH_DIR") or None,
    }


def create_handler(settings: Dict[str, Optional[str]]) -> ImageIngestHandler:
    """Create a handler with real Google Cloud clients.

    Args:
        settings: Settings as returned by get_settings_from_env

    Returns:
        ImageIngestHandler
    """
    project_id = settings.get("project_id")

    storage_client = storage.Client(project=project_id)
    vision_client = vision.ImageAnnotatorClient()
    firestore_client = firestore.Client(project=project_id)

    return ImageIngestHandler(
        storage_client=storage_client,
        label_detector=LabelDetector(vision_client),
        record_store=ImageRecordStore(
            firestore_client, settings.get("collection_name") or DEFAULT_COLLECTION
        ),
        temp_root=settings.get("temp_root"),
    )


# Clients are created once per process and reused across invocations
_default_handler: Optional[ImageIngestHandler] = None
_default_handler_lock = threading.Lock()


def get_default_handler() -> ImageIngestHandler:
    global _default_handler
    with _default_handler_lock:
        if _default_handler is None:
            _default_handler = create_handler(get_settings_from_env())
    return _default_handler


def process_image_entry(event: Dict[str, Any], context=None, handler: ImageIngestHandler = None) -> None:
    """Cloud Function entry point for image ingest.

    Args:
        event: Storage object metadata from the finalize event
        context: Event context (unused)
        handler: Handler to use instead of the process-wide default

    Returns:
        None; failures are raised so the invocation is marked failed
    """
    descriptor = ObjectDescriptor.from_event(event)
    print(f"Processing gs://{descriptor.bucket}/{descriptor.name} ({descriptor.content_type})")

    handler = handler or get_default_handler()
    result = handler.handle(descriptor)
    if not result.ok:
        print(f"Image ingest failed at step {result.failed_step}: {result.cause}")
        result.raise_for_failure()

    return None


if __name__ == "__main__":
    # For local testing
    import argparse

    parser = argparse.ArgumentParser(description="Label an image stored in Cloud Storage")
    parser.add_argument("--bucket", required=True, help="Source GCS bucket")
    parser.add_argument("--file", required=True, help="Object name in the bucket")
    parser.add_argument("--content-type", default="image/png", help="Declared content type")
    parser.add_argument("--project", help="Google Cloud project ID")
    parser.add_argument("--collection", help="Firestore collection for image records")

    args = parser.parse_args()

    # Create mock event
    mock_event = {
        "id": f"local-test-{uuid.uuid4().hex}",
        "bucket": args.bucket,
        "name": args.file,
        "contentType": args.content_type,
    }

    # Set environment variables
    if args.project:
        os.environ["PROJECT_ID"] = args.project
    if args.collection:
        os.environ["IMAGES_COLLECTION"] = args.collection

    process_image_entry(mock_event)
    print(f"Finished processing gs://{args.bucket}/{args.file}")
