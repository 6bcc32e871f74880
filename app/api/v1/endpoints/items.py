# app/api/v1/endpoints/items.py
from typing import List

from fastapi import APIRouter, Body, Depends, File, Path, Query, Request, UploadFile, status

from app.core.rate_limiter import limiter
from app.core.security import get_current_profile, get_services, require_admin
from app.models.item import Item
from app.models.profile import Profile
from app.services.container import Services

router = APIRouter(tags=["Items"])


@router.get("/", response_model=List[Item.Response], summary="List tools and materials")
@limiter.limit("120/minute")
async def read_items(
    request: Request,
    available_only: bool = Query(False, description="Hanya alat yang bisa dipinjam (katalog peminjam)"),
    sort: str = Query("nama", pattern="^(nama|jumlah|kategori|tanggal_ditambahkan)$"),
    current_profile: Profile = Depends(get_current_profile),
    services: Services = Depends(get_services),
):
    items = await services.inventory.list(sort=sort, available_only=available_only)
    return [services.inventory.to_response(item) for item in items]


@router.get("/{item_id}", response_model=Item.Response, summary="Get one item")
async def read_item(
    item_id: str = Path(..., description="ID alat"),
    current_profile: Profile = Depends(get_current_profile),
    services: Services = Depends(get_services),
):
    item = await services.inventory.get(item_id)
    return services.inventory.to_response(item)


@router.post(
    "/",
    response_model=Item.Response,
    status_code=status.HTTP_201_CREATED,
    summary="Create item (Admin)",
)
@limiter.limit("30/minute")
async def create_item(
    request: Request,
    payload: dict = Body(...),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    # Validasi dilakukan di ledger supaya pesannya seragam dengan jalur non-HTTP
    item = await services.inventory.upsert(None, payload)
    return services.inventory.to_response(item)


@router.put("/{item_id}", response_model=Item.Response, summary="Replace item (Admin)")
@limiter.limit("30/minute")
async def update_item(
    request: Request,
    item_id: str = Path(...),
    payload: dict = Body(...),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    item = await services.inventory.upsert(item_id, payload)
    return services.inventory.to_response(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete item (Admin)")
@limiter.limit("30/minute")
async def delete_item(
    request: Request,
    item_id: str = Path(...),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    await services.inventory.delete(item_id)


@router.post("/{item_id}/image", response_model=Item.Response, summary="Upload item image (Admin)")
@limiter.limit("10/minute")
async def upload_item_image(
    request: Request,
    item_id: str = Path(...),
    file: UploadFile = File(...),
    admin: Profile = Depends(require_admin),
    services: Services = Depends(get_services),
):
    data = await file.read()
    item = await services.inventory.attach_image(
        item_id, file.filename or "gambar", file.content_type or "", data
    )
    return services.inventory.to_response(item)
