"""
Signed payload download route.

Workers fetch job payloads from here using the URL resolved at claim time.
"""

import logging

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import FileResponse

from printbroker.storage import InvalidStorageToken, get_blob_store, get_url_signer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Storage"])


@router.get(
    "/storage/{storage_id}",
    summary="Download a payload",
    description="Download a stored payload using a signed token.",
    response_class=FileResponse,
)
async def download_blob(
    storage_id: str,
    token: str = Query(...),
) -> FileResponse:
    """
    Stream a stored payload.

    Raises:
        HTTPException: 403 for a bad token, 404 if the blob is gone.
    """
    try:
        get_url_signer().verify_token(storage_id, token)
    except InvalidStorageToken as e:
        logger.warning(
            f"Rejected storage token: {e}",
            extra={"storage_id": storage_id}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
        )

    blob_store = get_blob_store()
    if not blob_store.exists(storage_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Blob not found",
        )

    return FileResponse(
        blob_store.path_for(storage_id),
        media_type="application/octet-stream",
    )
