from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse
import logging

from ..utils import storage

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{filename}")
async def get_output_file(filename: str):
    """Serve a locally rendered PDF report."""
    logger.info(f"Attempting to serve report file '{filename}'.")

    # Basic security for filename
    if ".." in filename or filename.startswith("/"):
        logger.warning(f"Potentially malicious filename '{filename}' requested from reports.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid filename.")

    reports_dir = storage.REPORTS_DIR
    file_path = reports_dir / filename

    if not file_path.resolve().parent == reports_dir.resolve():
        logger.warning(f"Attempt to access file outside REPORTS_DIR: '{filename}' resolved to '{file_path.resolve()}'.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid filename (path traversal).")

    if not file_path.exists() or not file_path.is_file():
        logger.warning(f"Report file '{filename}' not found at path '{file_path}'.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found.")

    media_type = "application/pdf" if file_path.suffix.lower() == ".pdf" else "application/octet-stream"
    logger.info(f"Serving report file '{file_path}' with media type '{media_type}'.")
    return FileResponse(path=file_path, media_type=media_type, filename=filename)
