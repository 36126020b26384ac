"""
Image validation and upload to object storage.
"""

from .file_validator import validate_image_file, validate_image_files
from .media_uploader import MediaUploader, MediaUploadError, build_storage_name

__all__ = [
    "validate_image_file",
    "validate_image_files",
    "MediaUploader",
    "MediaUploadError",
    "build_storage_name",
]
