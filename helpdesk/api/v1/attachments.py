"""Attachments API - upload, download and removal of ticket files."""

from urllib.parse import quote

from fastapi import APIRouter, File, UploadFile, status
from fastapi.responses import Response
import logging

from helpdesk.api.deps import Collaboration, CurrentIdentity
from helpdesk.exceptions import NotFoundError
from helpdesk.schemas.attachment import AttachmentResponse, AttachmentWithTicketResponse

logger = logging.getLogger(__name__)
router = APIRouter()

DEFAULT_MIME_TYPE = "application/octet-stream"


@router.post(
    "/tickets/{ticket_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    ticket_id: int,
    identity: CurrentIdentity,
    service: Collaboration,
    file: UploadFile = File(...),
):
    """Attach a file to a ticket."""
    # Read one byte past the ceiling so oversize uploads are detectable
    # without buffering the whole body
    content = await file.read(service.attachments.max_size + 1)
    byte_size = file.size if file.size is not None else len(content)

    attachment = await service.upload_attachment(
        identity,
        ticket_id,
        filename=file.filename or "",
        mime_type=file.content_type or DEFAULT_MIME_TYPE,
        byte_size=byte_size,
        content=content,
    )
    return AttachmentResponse.model_validate(attachment)


@router.get("/tickets/{ticket_id}/attachments", response_model=list[AttachmentResponse])
async def list_attachments(ticket_id: int, identity: CurrentIdentity, service: Collaboration):
    """List a ticket's attachments."""
    attachments = await service.list_attachments(identity, ticket_id)
    return [AttachmentResponse.model_validate(a) for a in attachments]


@router.get("/attachments/{attachment_id}/download")
async def download_attachment(attachment_id: int, identity: CurrentIdentity, service: Collaboration):
    """Stream an attachment back with its original name and type."""
    attachment, data = await service.download_attachment(identity, attachment_id)
    return Response(
        content=data,
        media_type=attachment.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(attachment.original_filename)}",
        },
    )


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(attachment_id: int, identity: CurrentIdentity, service: Collaboration):
    """Delete an attachment (administrators only)."""
    deleted = await service.delete_attachment(identity, attachment_id)
    if not deleted:
        raise NotFoundError("Attachment", attachment_id)


@router.get("/admin/attachments", response_model=list[AttachmentWithTicketResponse])
async def list_all_attachments(identity: CurrentIdentity, service: Collaboration):
    """Every attachment across all tickets (administrators only)."""
    attachments = await service.list_all_attachments(identity)
    return [AttachmentWithTicketResponse.from_model(a) for a in attachments]
