"""Pre-flight checks on a source file before any scan begins.

Checks file extension, existence, emptiness, and size.  Well-formedness,
nesting depth, and entity declarations are enforced while streaming, so
the scanner never reads the document body.
"""

from __future__ import annotations

import logging
import os

from ingestkit_bpmn.config import BPMNProcessorConfig
from ingestkit_bpmn.errors import ErrorCode, IngestError

logger = logging.getLogger("ingestkit_bpmn")

XML_EXTENSIONS = (".xml", ".bpmn")
TWX_EXTENSIONS = (".twx", ".zip")


class BPMNSecurityScanner:
    """Run pre-flight checks on a source file.

    Returns a list of errors/warnings.  Fatal errors (``E_*`` codes) mean
    the file should not be processed further.
    """

    def __init__(self, config: BPMNProcessorConfig) -> None:
        self.config = config

    def scan(
        self,
        file_path: str,
        allowed_extensions: tuple[str, ...] = XML_EXTENSIONS,
    ) -> list[IngestError]:
        errors: list[IngestError] = []

        # --- 1. Extension check ---
        if not file_path.lower().endswith(allowed_extensions):
            errors.append(
                IngestError(
                    code=ErrorCode.E_SOURCE_BAD_EXTENSION.value,
                    message=(
                        f"File does not have one of the extensions "
                        f"{', '.join(allowed_extensions)}: {file_path}"
                    ),
                    stage="security",
                )
            )
            return errors

        # --- 2. File existence ---
        if not os.path.isfile(file_path) or not os.access(file_path, os.R_OK):
            errors.append(
                IngestError(
                    code=ErrorCode.E_SOURCE_UNAVAILABLE.value,
                    message=f"File not found or not readable: {file_path}",
                    stage="security",
                )
            )
            return errors

        # --- 3. Empty file ---
        file_size = os.path.getsize(file_path)
        if file_size == 0:
            errors.append(
                IngestError(
                    code=ErrorCode.E_PARSE_EMPTY.value,
                    message=f"File is empty (0 bytes): {file_path}",
                    stage="security",
                )
            )
            return errors

        # --- 4. File size limit ---
        max_bytes = self.config.max_file_size_mb * 1024 * 1024
        if file_size > max_bytes:
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_TOO_LARGE.value,
                    message=(
                        f"File size {file_size} bytes exceeds limit of "
                        f"{max_bytes} bytes ({self.config.max_file_size_mb} MB)"
                    ),
                    stage="security",
                )
            )
            return errors

        # --- 5. Large file warning ---
        large_threshold = self.config.large_file_warning_mb * 1024 * 1024
        if file_size > large_threshold:
            errors.append(
                IngestError(
                    code=ErrorCode.W_LARGE_FILE.value,
                    message=(
                        f"File is {file_size / (1024 * 1024):.1f} MB "
                        f"(> {self.config.large_file_warning_mb} MB)"
                    ),
                    stage="security",
                    recoverable=True,
                )
            )

        return errors
