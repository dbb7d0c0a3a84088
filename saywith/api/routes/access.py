"""
Access gate endpoints.

The manager sits behind one shared PIN. The lock screen posts the PIN
here; on success the front end keeps it for the browser session and sends
it as X-Access-Pin on every other call. Nothing is persisted server-side.
"""

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ..dependencies import SettingsDep, pin_matches

logger = logging.getLogger(__name__)

router = APIRouter()


class UnlockRequest(BaseModel):
    """PIN entered on the lock screen."""
    pin: str = Field(description="Access PIN", min_length=1, max_length=32)


class UnlockResponse(BaseModel):
    unlocked: bool
    message: str


@router.post(
    "/unlock",
    response_model=UnlockResponse,
    status_code=status.HTTP_200_OK,
    summary="Check access PIN",
    description="Returns 200 when the PIN is correct, 403 otherwise",
)
async def unlock(request: UnlockRequest, settings: SettingsDep) -> UnlockResponse:
    if not pin_matches(request.pin, settings):
        logger.warning("Incorrect PIN on lock screen")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Incorrect PIN. Please try again.",
        )

    logger.info("Manager unlocked")
    return UnlockResponse(unlocked=True, message="Access granted.")
