"""
Price check endpoints.
"""
from datetime import date
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from config.settings import Settings, get_settings
from src.api.auth import get_session_resolver
from src.core.engine_config import EngineConfig, EngineConfigurationError, validate_runtime_configuration
from src.core.price_check_history import PriceCheckHistory
from src.core.price_check_runner import PriceCheckRunner
from src.core.quota_gate import QuotaExceededError
from src.data.market_data import MarketDataFetcher, build_market_data_fetcher
from src.models.base import get_db
from src.utils.constants import DEFAULT_HISTORY_DAYS, MAX_HISTORY_DAYS
from src.utils.logging import get_logger
from src.utils.metrics import record_run

logger = get_logger(__name__)

router = APIRouter()

class PriceCheckRequest(BaseModel):
    userId: Optional[str] = None
    includeApiDetails: bool = False
    requestDate: Optional[date] = None

def get_engine_config(settings: Settings = Depends(get_settings)) -> EngineConfig:
    return EngineConfig.from_settings(settings)

def get_market_data_fetcher(config: EngineConfig = Depends(get_engine_config)) -> MarketDataFetcher:
    return build_market_data_fetcher(config)

def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'success': False, 'message': message, **extra})

@router.post("/posts/check-prices")
def check_prices(
    request: Request,
    body: Optional[PriceCheckRequest] = None,
    settings: Settings = Depends(get_settings),
    resolve_session_user: Callable[[Request], Optional[str]] = Depends(get_session_resolver),
    config: EngineConfig = Depends(get_engine_config),
    fetcher: MarketDataFetcher = Depends(get_market_data_fetcher),
    db: Session = Depends(get_db)
):
    """
    Evaluate every open post of a user against recent market data.
    """
    body = body or PriceCheckRequest()

    try:
        validate_runtime_configuration(settings)
    except EngineConfigurationError as e:
        logger.error("Price check rejected: service not configured", reason=str(e))
        return _error(e.status_code, str(e))

    user_id = body.userId or resolve_session_user(request)
    if not user_id:
        return _error(401, 'Unauthorized', details='No active session and no user id provided')

    try:
        runner = PriceCheckRunner(db, config, fetcher)
        result = runner.run(
            user_id,
            request_date=body.requestDate,
            include_api_details=body.includeApiDetails
        )
    except QuotaExceededError as e:
        return _error(
            429,
            f"Daily price check limit reached ({e.max_daily_checks}). Try again tomorrow.",
            remainingChecks=0,
            usageCount=e.used_count
        )
    except Exception as e:
        record_run('failed')
        logger.error(f"Error checking post prices: {e}", exc_info=True)
        return _error(500, 'Error checking post prices', error=str(e))

    return result.to_response()

@router.get("/price-check-history")
def price_check_history(
    userId: Optional[str] = Query(None, description="User whose activity to list"),
    days: int = Query(DEFAULT_HISTORY_DAYS, ge=1, le=MAX_HISTORY_DAYS, description="Look-back window in days"),
    db: Session = Depends(get_db)
):
    """
    Recent price check activity of a user.
    """
    if not userId:
        return JSONResponse(status_code=400, content={'success': False, 'error': 'User ID is required'})

    try:
        activities = PriceCheckHistory(db).activities(userId, days=days)
    except Exception as e:
        logger.error(f"Failed to fetch price check history: {e}")
        return JSONResponse(
            status_code=500,
            content={'success': False, 'error': 'Failed to fetch price check history', 'details': str(e)}
        )

    return {'success': True, 'activities': activities}
