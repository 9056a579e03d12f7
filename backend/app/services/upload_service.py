# app/services/upload_service.py
import enum
import logging
from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional, Sequence

from app.core.exceptions import FileValidationError, NoFileProvidedError
from app.models.media import FileCategory
from app.services.file_validation import FileValidator, infer_category, validate_file_extension, validate_mime_type
from app.services.storage import LocalFileStorage, ReceivedFile

logger = logging.getLogger(__name__)


class IngestionStage(str, enum.Enum):
    RECEIVING = "RECEIVING"
    CLASSIFYING = "CLASSIFYING"
    VALIDATING = "VALIDATING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass
class IncomingFile:
    """Transport-neutral view of one multipart part."""
    filename: Optional[str]
    content_type: Optional[str]
    stream: BinaryIO


@dataclass
class IngestedFile:
    received: ReceivedFile
    category: FileCategory
    stage: IngestionStage = IngestionStage.ACCEPTED
    history: List[IngestionStage] = field(default_factory=list)


class UploadIngestor:
    """Receives uploads into temp storage and screens them before persistence.

    Per file: RECEIVING -> CLASSIFYING -> VALIDATING -> ACCEPTED | REJECTED.
    A rejected file stays in the temp directory for the cleanup job.
    """

    def __init__(self, storage: LocalFileStorage, validator: FileValidator):
        self.storage = storage
        self.validator = validator

    @property
    def max_upload_size(self) -> int:
        return self.validator.transport_limit

    def ingest_one(self, incoming: IncomingFile, *, explicit_category: Optional[str], path: str) -> IngestedFile:
        history = [IngestionStage.RECEIVING]
        received = self.storage.receive(
            incoming.stream,
            incoming.filename or "",
            incoming.content_type or "application/octet-stream",
            self.max_upload_size,
        )

        history.append(IngestionStage.CLASSIFYING)
        category = infer_category(explicit_category, path, received.mime_type)

        history.append(IngestionStage.VALIDATING)
        for result in (
            validate_file_extension(received.original_filename, category),
            validate_mime_type(received.mime_type, category),
        ):
            if not result.valid:
                history.append(IngestionStage.REJECTED)
                logger.info(
                    f"Upload rejected: {received.original_filename} ({received.mime_type}) "
                    f"as {category.value}: {result.error}"
                )
                raise FileValidationError(result.error)

        history.append(IngestionStage.ACCEPTED)
        return IngestedFile(received=received, category=category, history=history)

    def ingest(
        self,
        files: Sequence[Optional[IncomingFile]],
        *,
        explicit_category: Optional[str] = None,
        path: str = "",
        multiple: bool = False,
    ) -> List[IngestedFile]:
        present = [f for f in files if f is not None and f.filename]
        if not present:
            raise NoFileProvidedError("No files provided" if multiple else "No file provided")
        if not multiple:
            present = present[:1]
        return [self.ingest_one(f, explicit_category=explicit_category, path=path) for f in present]
