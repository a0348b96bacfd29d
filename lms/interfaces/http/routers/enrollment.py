from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from ....application.use_cases.enroll import ActivateEnrollment, EnrollInCourse
from ....config import settings
from ....domain.entities import User
from ....infrastructure.db import get_db
from ....infrastructure.payments import PaymentGatewayProtocol
from ..deps import get_payments, protected_user
from ..results import success
from ..schemas import ApiResponse

router = APIRouter(tags=["enrollment"])

@router.post("/api/courses/{course_id}/enroll", response_model=None)
def enroll(
    course_id: int,
    user: User = Depends(protected_user),
    db: Session = Depends(get_db),
    payments: PaymentGatewayProtocol = Depends(get_payments),
) -> ApiResponse | RedirectResponse:
    result = EnrollInCourse(db, payments, settings.APP_URL).execute(user.id, course_id)
    if result.checkout_url:
        return RedirectResponse(result.checkout_url, status_code=status.HTTP_303_SEE_OTHER)
    return success(result.message)

@router.post("/api/payments/webhook", response_model=ApiResponse)
async def payment_webhook(
    request: Request,
    stripe_signature: str = Header(),
    db: Session = Depends(get_db),
    payments: PaymentGatewayProtocol = Depends(get_payments),
):
    payload = await request.body()
    # подпись и запись в БД синхронные, уводим их с event loop
    event = await run_in_threadpool(payments.parse_webhook_event, payload, stripe_signature)
    handled = await run_in_threadpool(ActivateEnrollment(db).execute, event)
    return success("Enrollment activated" if handled else "Event ignored")
