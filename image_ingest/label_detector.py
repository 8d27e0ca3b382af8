"""
Label detector for the Image Ingest function.
Uses Google Cloud Vision label detection to describe image content.
"""

from dataclasses import dataclass
from typing import List

from google.cloud import vision


class LabelDetectionError(Exception):
    """Raised when the Vision API reports an error for a label request."""


@dataclass(frozen=True)
class Label:
    description: str
    score: float


class LabelDetector:
    """Runs Cloud Vision label detection on local image files."""

    def __init__(self, vision_client: vision.ImageAnnotatorClient):
        """Initialize the label detector.

        Args:
            vision_client: Vision image annotator client, shared per process
        """
        self.vision_client = vision_client

    def detect_labels(self, local_path: str) -> List[Label]:
        """Detect labels for an image file.

        Args:
            local_path: Path to the downloaded image

        Returns:
            Labels in the order returned by the service
        """
        with open(local_path, "rb") as image_file:
            content = image_file.read()

        image = vision.Image(content=content)
        response = self.vision_client.label_detection(image=image)

        if response.error.message:
            raise LabelDetectionError(
                f"Label detection failed for {local_path}: {response.error.message}"
            )

        return [
            Label(description=annotation.description, score=annotation.score)
            for annotation in response.label_annotations
        ]


def label_descriptions(labels: List[Label]) -> List[str]:
    """Keep only the description strings, preserving order."""
    return [label.description for label in labels]
