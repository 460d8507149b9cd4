import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from commit_gateway.app.api.deps import get_batch_upload_service, get_upload_ip, get_upload_principal
from commit_gateway.app.core.errors import GatewayError, InternalError
from commit_gateway.app.schemas.auth import UploadPrincipal
from commit_gateway.app.schemas.batch_upload import BatchUploadRequest
from commit_gateway.app.services.batch_upload_service import BatchUploadService

router = APIRouter(tags=["uploads"])
logger = logging.getLogger(__name__)


@router.post("/uploads/batch-commit")
async def batch_upload_commit(
    payload: BatchUploadRequest,
    request: Request,
    principal: Optional[UploadPrincipal] = Depends(get_upload_principal),
    service: BatchUploadService = Depends(get_batch_upload_service),
):
    """
    Upload a batch of base64-encoded files to one channel in a single commit.

    Replays the stored response when ``requestId`` matches an earlier
    successful batch; no second commit is made in that case.
    """
    try:
        return await service.upload(
            payload,
            upload_ip=get_upload_ip(request),
            request_host=request.url.hostname,
        )
    except GatewayError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.exception(
            "batch-upload-commit failed",
            extra={"request_id": payload.request_id, "subject": principal.subject if principal else None},
        )
        raise InternalError(str(exc) or "Unknown error") from exc
