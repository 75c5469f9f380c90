from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from entity.user import User
from routers.auth import get_current_user, get_optional_user
from schemas import BatchImportIn, DashboardOut, HoldingIn, MergeOut, SyncIn
from services.holdingService import HoldingService, get_holding_service
from services.mergeService import DuplicateHoldingError, new_holding, parse_batch_text
from services.storageService import StorageContext
from services.validation import validate_entry

router = APIRouter(prefix="/portfolio", tags=["portfolio"])

BATCH_FORMAT_HINT = "Could not parse any valid holdings. Format: Name, Code, Price, Quantity"

def get_context(user: Optional[User] = Depends(get_optional_user)) -> StorageContext:
    return StorageContext(user_id=user.id if user else None)

@router.get("", response_model=DashboardOut)
def get_dashboard(ctx: StorageContext = Depends(get_context),
                  service: HoldingService = Depends(get_holding_service)):
    return service.dashboard(ctx)

@router.post("/holdings", response_model=MergeOut)
def add_holding(payload: HoldingIn, ctx: StorageContext = Depends(get_context),
                service: HoldingService = Depends(get_holding_service)):
    errors = validate_entry(payload)
    if errors:
        raise HTTPException(422, errors)
    holdings, touched = service.add_entries(ctx, [new_holding(payload)])
    return MergeOut(**service.dashboard(ctx, holdings).model_dump(), touched_ids=touched)

@router.post("/holdings/batch", response_model=MergeOut)
def import_batch(payload: BatchImportIn, ctx: StorageContext = Depends(get_context),
                 service: HoldingService = Depends(get_holding_service)):
    entries = parse_batch_text(payload.text)
    if not entries:
        raise HTTPException(422, BATCH_FORMAT_HINT)
    holdings, touched = service.add_entries(ctx, entries)
    return MergeOut(**service.dashboard(ctx, holdings).model_dump(), touched_ids=touched)

@router.put("/holdings/{holding_id}", response_model=DashboardOut)
def edit_holding(holding_id: str, payload: HoldingIn, ctx: StorageContext = Depends(get_context),
                 service: HoldingService = Depends(get_holding_service)):
    errors = validate_entry(payload)
    if errors:
        raise HTTPException(422, errors)
    try:
        holdings = service.update(ctx, holding_id, payload)
    except DuplicateHoldingError as e:
        raise HTTPException(409, str(e))
    if holdings is None:
        raise HTTPException(404, "holding not found")
    return service.dashboard(ctx, holdings)

@router.delete("/holdings/{holding_id}", response_model=DashboardOut)
def remove_holding(holding_id: str, ctx: StorageContext = Depends(get_context),
                   service: HoldingService = Depends(get_holding_service)):
    holdings = service.delete(ctx, holding_id)
    if holdings is None:
        raise HTTPException(404, "holding not found")
    return service.dashboard(ctx, holdings)

@router.post("/refresh", response_model=DashboardOut)
def refresh_prices(ctx: StorageContext = Depends(get_context),
                   service: HoldingService = Depends(get_holding_service)):
    return service.dashboard(ctx, service.refresh(ctx))

@router.post("/sync", response_model=DashboardOut)
def sync_on_sign_in(payload: Optional[SyncIn] = None, user: User = Depends(get_current_user),
                    service: HoldingService = Depends(get_holding_service)):
    ctx = StorageContext(user_id=user.id)
    initial = payload.holdings if payload else None
    return service.dashboard(ctx, service.sync_on_sign_in(ctx, initial))
