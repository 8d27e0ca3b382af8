"""
Main Cloud Function entry point for image ingest in the Image Ingest function.
"""

import functions_framework

try:
    from ingest_handler import process_image_entry
except ImportError:
    from image_ingest.ingest_handler import process_image_entry

@functions_framework.cloud_event
def gcs_object_changes(cloud_event):
    """Cloud Function for labeling images triggered by Cloud Storage finalize events.
    
    Args:
        cloud_event: The Cloud Event that triggered the function
        
    Returns:
        None
    """
    # Storage object metadata: bucket, name, contentType
    return process_image_entry(cloud_event.data)
