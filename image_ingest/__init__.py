"""Image Ingest Cloud Function: labels new images and stores the labels in Firestore."""
