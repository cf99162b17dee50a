"""
Identity Ingest Service: uploaded files in, canonical profile and export session out.
"""

import uuid
from typing import Optional, Sequence

from ..models.core import ExportSession, IngestResult, UploadedFile
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import now_seconds
from .history_parsing import NoContentError, parse_files_to_unified_history
from .profile_extraction import ProfileExtractionService
from .profile_rendering import build_profile_text

logger = get_logger(__name__)


class IdentityIngestService:
    """Run detect, parse, chunk, extract and merge for one upload batch."""

    def __init__(self, extraction: Optional[ProfileExtractionService] = None):
        """Initialize the ingest service.

        Args:
            extraction: Extraction service (a default Bedrock-backed one if None)
        """
        self.extraction = extraction or ProfileExtractionService()

        logger.info('Initialized IdentityIngestService')

    def ingest(self, files: Sequence[UploadedFile]) -> IngestResult:
        """Turn one upload batch into a canonical profile.

        A profile that comes back mostly empty is a valid result (the model found little
        signal); an upload with nothing readable in it is an error.

        Args:
            files: The uploaded files

        Returns:
            IngestResult with the profile, its text rendering and extraction counts

        Raises:
            NoContentError: If no files were given or none of them had extractable text
        """
        history = parse_files_to_unified_history(files)
        if not history.has_content:
            raise NoContentError(f'Could not extract any readable text from your files: {history.raw_text}')

        extraction = self.extraction.extract_from_long_text(history.raw_text)
        if extraction.chunk_count == 0:
            raise NoContentError('Could not extract any readable text from your files.')

        if extraction.truncated:
            logger.warning(f'History from {history.source_label} was longer than the chunk budget; the tail was skipped')

        logger.info(f'Ingested {history.source_label} ({history.provider}): '
                    f'{extraction.used_chunks}/{extraction.chunk_count} chunks yielded a profile fragment')

        return IngestResult(provider=history.provider,
                            source_label=history.source_label,
                            profile=extraction.profile,
                            profile_text=build_profile_text(extraction.profile),
                            extraction=extraction)

    def to_export_session(self, result: IngestResult, timestamp: Optional[int] = None) -> ExportSession:
        """Wrap an ingest result as an export session record for the history store.

        Args:
            result: Output of ``ingest``
            timestamp: Capture time in Unix seconds (now if None)

        Returns:
            New ExportSession with a generated id
        """
        return ExportSession(id=str(uuid.uuid4()),
                             timestamp=timestamp if timestamp is not None else now_seconds(),
                             source=result.provider,
                             profile=result.profile,
                             profile_text=result.profile_text,
                             file_name=result.source_label)
