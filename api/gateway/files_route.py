from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from fastapi.responses import PlainTextResponse, Response

from core.settings import get_settings
from core.storage import DeleteOutcome, ObjectStoreManager, UploadNamingMode
from security.auth import authorize_request
from services.file_service import FileGateway, UploadLimits

router = APIRouter(tags=["Files"], dependencies=[Depends(authorize_request)])


def get_file_gateway(request: Request) -> FileGateway:
    settings = getattr(request.app.state, "settings", None) or get_settings()
    return FileGateway(
        ObjectStoreManager.get_instance().provider,
        UploadLimits.from_settings(settings),
    )


def _outcome_response(outcome: DeleteOutcome) -> PlainTextResponse:
    status_code = status.HTTP_200_OK if outcome.success else status.HTTP_503_SERVICE_UNAVAILABLE
    return PlainTextResponse(outcome.message, status_code=status_code)


@router.post(
    "/{directory}/upload/files",
    response_model=list[str],
    responses={401: {"description": "Missing or invalid token"}, 403: {"description": "ADMIN role required"}},
)
async def upload_files(
    directory: str,
    files: list[UploadFile] = File(...),
    generate_file_name: bool = Query(False, alias="generate-file-name"),
    gateway: FileGateway = Depends(get_file_gateway),
) -> list[str]:
    mode = UploadNamingMode.GENERATE if generate_file_name else UploadNamingMode.PRESERVE
    return await gateway.upload_files(directory, files, mode)


@router.get(
    "/{directory}/retrieve/files/{filename}",
    response_class=Response,
    responses={404: {"description": "File not found"}},
)
async def fetch_file(directory: str, filename: str, gateway: FileGateway = Depends(get_file_gateway)):
    blob = await gateway.fetch_file(directory, filename)
    return Response(content=blob.content, media_type=blob.content_type)


@router.delete("/{directory}/remove/files/{filename}", response_class=PlainTextResponse)
async def delete_file(directory: str, filename: str, gateway: FileGateway = Depends(get_file_gateway)):
    return _outcome_response(await gateway.delete_file(directory, filename))


@router.delete("/remove/folders/{directory}", response_class=PlainTextResponse)
async def delete_folder(directory: str, gateway: FileGateway = Depends(get_file_gateway)):
    return _outcome_response(await gateway.delete_folder(directory))
