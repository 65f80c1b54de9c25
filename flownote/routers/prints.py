from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import RedirectResponse

from flownote.schemas.prints import Print, PrintUpdate
from flownote.schemas.user import UserPublic
from flownote.services.print_service import PrintService
from flownote.utils.blob_store import FileUpload
from flownote.utils.dependencies import get_current_user, get_print_service, school_of
from flownote.utils.exceptions import NotFoundError


router = APIRouter(prefix="/prints", tags=["prints"])


@router.get("", response_model=List[Print], name="list_prints")
async def list_prints(category: Optional[str] = None, limit: int = Query(50, ge=1, le=200), current_user: UserPublic = Depends(get_current_user), service: PrintService = Depends(get_print_service)):
    return await service.get_prints(school_of(current_user), category, limit)


@router.post("", response_model=Print, status_code=status.HTTP_201_CREATED)
async def upload_print(
    file: UploadFile = File(...),
    title: str = Form(...),
    category: str = Form(...),
    description: Optional[str] = Form(None),
    current_user: UserPublic = Depends(get_current_user),
    service: PrintService = Depends(get_print_service),
):
    upload = FileUpload(
        name=file.filename or "print.pdf",
        content_type=file.content_type or "application/pdf",
        data=await file.read(),
    )
    return await service.upload_print(upload, title, description, category, current_user)


@router.get("/categories", response_model=List[str])
async def categories(current_user: UserPublic = Depends(get_current_user), service: PrintService = Depends(get_print_service)):
    return await service.get_categories(school_of(current_user))


@router.get("/search", response_model=List[Print])
async def search_prints(q: str = "", category: Optional[str] = None, current_user: UserPublic = Depends(get_current_user), service: PrintService = Depends(get_print_service)):
    return await service.search_prints(school_of(current_user), q, category)


@router.get("/recent", response_model=List[Print])
async def recent_prints(count: int = Query(5, ge=1, le=50), current_user: UserPublic = Depends(get_current_user), service: PrintService = Depends(get_print_service)):
    return await service.get_recent_prints(school_of(current_user), count)


@router.get("/{print_id}", response_model=Print)
async def get_print(print_id: str, request: Request, current_user: UserPublic = Depends(get_current_user), service: PrintService = Depends(get_print_service)):
    try:
        found = await service.get_print(print_id)
    except NotFoundError:
        return RedirectResponse(request.url_for("list_prints"), status_code=status.HTTP_303_SEE_OTHER)
    if found.school_id != current_user.school_id:
        return RedirectResponse(request.url_for("list_prints"), status_code=status.HTTP_303_SEE_OTHER)
    return found


@router.patch("/{print_id}", response_model=Print)
async def update_print(print_id: str, payload: PrintUpdate, current_user: UserPublic = Depends(get_current_user), service: PrintService = Depends(get_print_service)):
    return await service.update_print(print_id, current_user.id, payload)


@router.delete("/{print_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_print(print_id: str, current_user: UserPublic = Depends(get_current_user), service: PrintService = Depends(get_print_service)):
    await service.delete_print(print_id, current_user.id)
