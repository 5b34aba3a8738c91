"""Admin API endpoints for moderating users and inspecting conversations."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from whatsapp_agent.config import settings
from whatsapp_agent.database import get_db
from whatsapp_agent.schemas.admin import AlertTestResponse, MessageOut, UserOut, WindowResponse
from whatsapp_agent.services.alert_service import send_alert
from whatsapp_agent.services.message_service import get_conversation_window
from whatsapp_agent.services.user_service import get_user_by_phone, set_user_banned

router = APIRouter(prefix="/admin", tags=["admin"])


def require_admin_token(x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token")) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="ADMIN_TOKEN not configured")
    if not x_admin_token or x_admin_token != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")


def _user_or_404(db: Session, phone: str):
    user = get_user_by_phone(db, phone)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User '{phone}' not found")
    return user


@router.get("/users/{phone}", response_model=UserOut, dependencies=[Depends(require_admin_token)])
def get_user(phone: str, db: Session = Depends(get_db)):
    return _user_or_404(db, phone)


@router.post("/users/{phone}/ban", response_model=UserOut, dependencies=[Depends(require_admin_token)])
def ban_user(phone: str, db: Session = Depends(get_db)):
    user = set_user_banned(db, phone, True)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User '{phone}' not found")
    return user


@router.post("/users/{phone}/unban", response_model=UserOut, dependencies=[Depends(require_admin_token)])
def unban_user(phone: str, db: Session = Depends(get_db)):
    user = set_user_banned(db, phone, False)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User '{phone}' not found")
    return user


@router.get("/users/{phone}/window", response_model=WindowResponse, dependencies=[Depends(require_admin_token)])
def get_user_window(phone: str, db: Session = Depends(get_db)):
    """Messages the next reply would be generated from."""
    user = _user_or_404(db, phone)
    window = get_conversation_window(db, user.id, settings.reset_keyword)
    return WindowResponse(
        phone=user.phone,
        count=len(window),
        messages=[MessageOut.model_validate(message) for message in window],
    )


@router.post("/alerts/test", response_model=AlertTestResponse, dependencies=[Depends(require_admin_token)])
async def alerts_test():
    sent = await send_alert("INFO", "Alerts test", {"source": "admin.alerts_test"})
    if sent:
        return AlertTestResponse(success=True, message="Alert sent")
    return AlertTestResponse(success=False, message="Alert not sent (check ALERT_BOT_TOKEN/ALERT_CHAT_ID)")
