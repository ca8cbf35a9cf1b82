"""
File handling service for ContractLens.

This module validates uploads and stores them under a per-user directory.

Author: ContractLens Team
Version: 1.0.0
"""

import hashlib
import logging
import os
from datetime import datetime
from typing import Optional

from contractlens.config import settings
from contractlens.exceptions import FileValidationError

# Configure logging
logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIME = "text/plain"

MIME_FILE_TYPES = {
    PDF_MIME: "pdf",
    DOCX_MIME: "docx",
    TEXT_MIME: "txt",
}

ALLOWED_EXTENSIONS = {
    PDF_MIME: [".pdf"],
    DOCX_MIME: [".docx"],
    TEXT_MIME: [".txt"],
}

PDF_SIGNATURE = b"%PDF-"
# Local file header, empty archive and spanned archive markers
ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")


def matches_signature(file_type: str, content: bytes) -> bool:
    """
    Check the leading bytes of ``content`` against the declared format.

    Plain text has no signature, so it only has to be free of NUL bytes.
    """
    if file_type == "pdf":
        return content.startswith(PDF_SIGNATURE)
    if file_type == "docx":
        return content.startswith(ZIP_SIGNATURES)
    if file_type == "txt":
        return b"\x00" not in content[:1024]
    return False


class FileHandler:
    """
    Service class for handling uploaded contract files.
    """

    def __init__(self, upload_dir: Optional[str] = None):
        """Initialize the file handler."""
        self.upload_dir = upload_dir or settings.upload_dir
        self.max_file_size = settings.max_file_size
        self.min_file_size = settings.min_file_size
        self.allowed_types = settings.allowed_file_types

    def validate_upload(self, filename: str, content_type: str, content: bytes) -> str:
        """
        Validate an upload and work out its document type.

        Args:
            filename (str): Name of the uploaded file
            content_type (str): MIME type declared by the client
            content (bytes): File content

        Returns:
            str: ``pdf``, ``docx`` or ``txt``

        Raises:
            FileValidationError: With a message suitable for the user
        """
        file_size = len(content)
        if file_size > self.max_file_size:
            logger.warning(f"File size {file_size} exceeds limit {self.max_file_size}")
            raise FileValidationError(
                f"File size exceeds the {self.max_file_size // (1024 * 1024)}MB limit"
            )
        if file_size < self.min_file_size:
            logger.warning(f"File size {file_size} below minimum {self.min_file_size}")
            raise FileValidationError("File is too small or empty")

        if content_type not in self.allowed_types or content_type not in MIME_FILE_TYPES:
            logger.warning(f"Disallowed MIME type: {content_type}")
            raise FileValidationError("Only PDF, DOCX and plain text files are supported")

        _, ext = os.path.splitext((filename or "").lower())
        if ext not in ALLOWED_EXTENSIONS[content_type]:
            logger.warning(f"Extension {ext} doesn't match MIME type {content_type}")
            raise FileValidationError("File extension does not match file type")

        file_type = MIME_FILE_TYPES[content_type]
        if not matches_signature(file_type, content):
            logger.warning(f"Content of {filename} does not look like a {file_type} file")
            raise FileValidationError(f"File content is not a valid {file_type.upper()} document")

        return file_type

    def generate_secure_filename(self, original_filename: str, owner_id: str) -> str:
        """
        Generate a storage filename that does not depend on user input.

        Args:
            original_filename (str): Original filename
            owner_id (str): ID of the uploading user

        Returns:
            str: Secure filename
        """
        _, ext = os.path.splitext(original_filename)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        filename_hash = hashlib.sha256(f"{owner_id}:{original_filename}".encode()).hexdigest()[:12]
        return f"{timestamp}_{filename_hash}{ext.lower()}"

    def get_user_upload_dir(self, owner_id: str) -> str:
        """Get (and create) the upload directory for one user."""
        safe_owner = hashlib.sha256(str(owner_id).encode()).hexdigest()[:16]
        user_dir = os.path.join(self.upload_dir, safe_owner)
        os.makedirs(user_dir, exist_ok=True)
        return user_dir

    def save_file(self, file_content: bytes, filename: str, owner_id: str) -> str:
        """
        Save file content to disk.

        Args:
            file_content (bytes): File content
            filename (str): Original filename
            owner_id (str): Uploading user

        Returns:
            str: Path to saved file
        """
        file_path = os.path.join(
            self.get_user_upload_dir(owner_id),
            self.generate_secure_filename(filename, owner_id),
        )
        try:
            with open(file_path, "wb") as f:
                f.write(file_content)
        except OSError as e:
            logger.error(f"Failed to save file {filename}: {e}")
            raise

        logger.info(f"File saved: {file_path}")
        return file_path

    def read_file(self, file_path: str) -> bytes:
        with open(file_path, "rb") as f:
            return f.read()

    def delete_file(self, file_path: str) -> bool:
        """
        Delete a file from disk.

        Returns:
            bool: True if file was deleted successfully
        """
        try:
            if os.path.exists(file_path):
                os.remove(file_path)
                logger.info(f"File deleted: {file_path}")
                return True
            logger.warning(f"File not found for deletion: {file_path}")
            return False
        except OSError as e:
            logger.error(f"Failed to delete file {file_path}: {e}")
            return False
