"""
Print submission route.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from printbroker.api.auth import ApiKey
from printbroker.config import get_settings
from printbroker.db import get_async_session
from printbroker.db.repository import JobRepository
from printbroker.observability.metrics import get_metrics
from printbroker.storage import get_blob_store
from printbroker.types.api import CreatePrintJobResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Print"])


async def _iter_upload(upload: UploadFile):
    chunk_size = get_settings().fetch_chunk_size
    while chunk := await upload.read(chunk_size):
        yield chunk


@router.post(
    "/print",
    response_model=CreatePrintJobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a print job",
    description="Upload a file and queue it for printing by a client's worker.",
)
async def create_print_job(
    _api_key: ApiKey,
    file: Annotated[UploadFile | None, File()] = None,
    client_id: Annotated[str | None, Form(alias="clientId")] = None,
    printer_id: Annotated[str | None, Form(alias="printerId")] = None,
    cups_options: Annotated[str, Form(alias="cupsOptions")] = "",
    context: Annotated[str | None, Form()] = None,
    session: AsyncSession = Depends(get_async_session),
) -> CreatePrintJobResponse:
    """
    Store the uploaded file and create a pending job for it.

    Args:
        file: The document to print.
        client_id: Client identity whose worker prints the job.
        printer_id: Destination name or ``protocol://host`` locator.
        cups_options: Spooler options, passed through verbatim.
        context: Optional free-text context, searchable later.
        session: Database session.

    Returns:
        CreatePrintJobResponse with the new job.

    Raises:
        HTTPException: If the file or a required field is missing.
    """
    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded",
        )
    if not client_id or not printer_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="clientId and printerId are required",
        )

    storage_id = await get_blob_store().store(_iter_upload(file))

    repo = JobRepository(session)
    job = await repo.create_job(
        client_id=client_id,
        printer_id=printer_id,
        storage_id=storage_id,
        options=cups_options,
        context=context,
    )

    await session.commit()

    get_metrics().record_job_submitted(client_id)

    return CreatePrintJobResponse(
        id=job.id,
        client_id=job.client_id,
        status=job.status,
        created_at=job.created_at,
    )
