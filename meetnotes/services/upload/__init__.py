"""Large-file transfer into object storage."""

from meetnotes.services.upload.chunked import ChunkedUploader, UploadReport, UploadSession

__all__ = ["ChunkedUploader", "UploadReport", "UploadSession"]
