"""Enrollment and checkout orchestration."""
from dataclasses import dataclass

import structlog
from sqlalchemy.orm import Session

from ...domain.entities import EnrollmentStatus
from ...domain.errors import NotFound
from ...infrastructure.db import atomic
from ...infrastructure.metrics import checkout_sessions_total
from ...infrastructure.payments import PaymentGatewayProtocol
from ...infrastructure.repositories import CourseRepository, EnrollmentRepository

logger = structlog.get_logger()

ALREADY_ENROLLED = "You're already enrolled in this course"


@dataclass(frozen=True)
class EnrollmentResult:
    message: str
    checkout_url: str | None = None


class EnrollInCourse:
    def __init__(self, db: Session, payments: PaymentGatewayProtocol, app_url: str):
        self.db = db
        self.payments = payments
        self.app_url = app_url.rstrip("/")
        self.courses = CourseRepository(db)
        self.enrollments = EnrollmentRepository(db)

    def execute(self, user_id: int, course_id: int) -> EnrollmentResult:
        course = self.courses.get(course_id)
        if not course:
            raise NotFound("Course not found")
        user = self.enrollments.get_user(user_id)
        if not user:
            raise NotFound("User not found")

        customer_id = self._customer_for(user)

        with atomic(self.db):
            existing = self.enrollments.find(user_id, course_id)
            if existing and existing.status == EnrollmentStatus.ACTIVE.value:
                logger.info("enrollment_already_active", user_id=user_id, course_id=course_id)
                return EnrollmentResult(message=ALREADY_ENROLLED)

            if existing:
                existing.amount = course.price
                existing.status = EnrollmentStatus.PENDING.value
                self.db.flush()
                enrollment = existing
            else:
                enrollment = self.enrollments.add(
                    user_id=user_id,
                    course_id=course_id,
                    amount=course.price,
                    status=EnrollmentStatus.PENDING.value,
                )

            # ошибка платёжки откатывает и запись о зачислении
            checkout_url = self.payments.create_checkout_session(
                customer_id=customer_id,
                price_id=course.stripe_price_id,
                amount=course.price,
                product_name=course.title,
                success_url=f"{self.app_url}/payment/success",
                cancel_url=f"{self.app_url}/payment/cancel",
                metadata={
                    "userId": str(user_id),
                    "courseId": str(course_id),
                    "enrollmentId": str(enrollment.id),
                },
            )
        checkout_sessions_total.inc()
        logger.info("checkout_session_created", user_id=user_id, course_id=course_id, enrollment_id=enrollment.id)
        return EnrollmentResult(message="Redirecting to checkout", checkout_url=checkout_url)

    def _customer_for(self, user) -> str:
        if user.stripe_customer_id:
            return user.stripe_customer_id
        with atomic(self.db):
            user.stripe_customer_id = self.payments.create_customer(
                email=user.email, name=user.name, user_id=user.id
            )
        logger.info("payment_customer_created", user_id=user.id)
        return user.stripe_customer_id


class ActivateEnrollment:
    """Обработка вебхука: оплаченная сессия переводит зачисление в Active."""

    def __init__(self, db: Session):
        self.db = db
        self.enrollments = EnrollmentRepository(db)

    def execute(self, event: dict) -> bool:
        if event.get("type") != "checkout.session.completed":
            return False
        session = event.get("data", {}).get("object", {})
        metadata = session.get("metadata") or {}
        enrollment_id = metadata.get("enrollmentId")
        if not enrollment_id:
            raise NotFound("Enrollment not found")
        with atomic(self.db):
            enrollment = self.enrollments.get(int(enrollment_id))
            if not enrollment:
                raise NotFound("Enrollment not found")
            enrollment.status = EnrollmentStatus.ACTIVE.value
        logger.info("enrollment_activated", enrollment_id=enrollment.id, user_id=enrollment.user_id)
        return True
