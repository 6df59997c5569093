from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from guidetrip.db.session import get_db
from guidetrip.api.deps import get_current_user
from guidetrip.models.user import User
from guidetrip.services.payment_provider import PaymentProvider, get_payment_provider
from guidetrip.services.overtime_service import pay_overtime

router = APIRouter(tags=["overtime"])


@router.post("/overtime/{overtime_id}/pay")
def pay_overtime_record(overtime_id: str, db: Session = Depends(get_db), me: User = Depends(get_current_user),
                        provider: PaymentProvider = Depends(get_payment_provider)):
    result = pay_overtime(db, provider, overtime_id, me.id)
    end = result["serviceEndTime"]
    return {**result, "serviceEndTime": end.isoformat() if end else None}
