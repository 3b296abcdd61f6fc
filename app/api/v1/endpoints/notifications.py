from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session
from app.api import deps
from app.config import ReminderConfig
from app.db.models.user import User
from app.schemas import PushSubscriptionCreate, PushSubscriptionDelete, VapidPublicKeyRead
from app.services.push_channel import load_signer
from app.services.push_subscriptions import PushSubscriptionService
from app.utils.exceptions import ConfigurationError

router = APIRouter(prefix="/notifications", tags=["notifications"])

@router.get("/vapid-public-key", response_model=VapidPublicKeyRead)
def get_vapid_public_key(config: ReminderConfig = Depends(deps.get_config)):
    if config.vapid_public_key or not config.vapid_private_key:
        return {"publicKey": config.vapid_public_key}
    try:
        signer = load_signer(config.vapid_private_key, None, config.vapid_subject)
    except ConfigurationError:
        return {"publicKey": None}
    return {"publicKey": signer.public_key}

@router.post("/subscribe")
def subscribe(
    subscription: PushSubscriptionCreate,
    user_agent: str | None = Header(default=None),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    service = PushSubscriptionService(db)
    service.subscribe(
        current_user.id,
        subscription.endpoint,
        subscription.keys.p256dh,
        subscription.keys.auth,
        user_agent[:255] if user_agent else None,
    )
    return {"status": "success"}

@router.post("/unsubscribe")
def unsubscribe(
    subscription: PushSubscriptionDelete,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    service = PushSubscriptionService(db)
    removed = service.unsubscribe(current_user.id, subscription.endpoint)
    return {"status": "success", "removed": removed}
