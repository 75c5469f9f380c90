from typing import List

from fastapi import APIRouter, Depends, HTTPException

from routers.portfolio import get_context
from schemas import AssetAdvice
from services.advisorService import AdvisorError, SmartAdvisor
from services.holdingService import HoldingService, get_holding_service
from services.storageService import StorageContext

router = APIRouter(prefix="/advice", tags=["advice"])

def get_advisor() -> SmartAdvisor:
    return SmartAdvisor()

@router.post("", response_model=List[AssetAdvice])
def smart_advice(ctx: StorageContext = Depends(get_context),
                 service: HoldingService = Depends(get_holding_service),
                 advisor: SmartAdvisor = Depends(get_advisor)):
    try:
        return advisor.advise(service.holdings(ctx))
    except ValueError as e:
        # 未配置 GEMINI_API_KEY
        raise HTTPException(503, str(e))
    except AdvisorError as e:
        raise HTTPException(502, str(e))
