"""Course lookups and idempotent access grants."""

from decimal import Decimal

from sqlalchemy import select

from learnpay.common.errors import CourseNotFoundError
from learnpay.common.logging import logger
from learnpay.services.catalog.models import Course, Enrollment


def _find_enrollment(db, course_id: str, user_id: str) -> Enrollment | None:
    return db.execute(
        select(Enrollment).where(Enrollment.course_id == course_id, Enrollment.user_id == user_id)
    ).scalar_one_or_none()


def grant_access(db, course_id: str, user_id: str, order_id: str | None = None) -> bool:
    """Enroll `user_id` in `course_id` inside the caller's transaction.

    Returns False when the user already had access.
    """

    if _find_enrollment(db, course_id, user_id) is not None:
        return False
    db.add(Enrollment(course_id=course_id, user_id=user_id, order_id=order_id))
    logger.info("access granted course_id=%s user_id=%s", course_id, user_id)
    return True


class CatalogService:
    """Read and seed courses; check enrollment before checkout."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    def get_course(self, course_id: str) -> Course:
        with self.session_factory() as db:
            course = db.get(Course, course_id)
            if course is None:
                raise CourseNotFoundError(f"course {course_id} not found")
            return course

    def is_enrolled(self, course_id: str, user_id: str) -> bool:
        with self.session_factory() as db:
            return _find_enrollment(db, course_id, user_id) is not None

    def upsert_course(self, course_id: str, title: str, price: Decimal) -> Course:
        """Create or replace one course's title and price."""

        with self.session_factory() as db:
            course = db.get(Course, course_id)
            if course is None:
                course = Course(course_id=course_id, title=title, price=price)
                db.add(course)
            else:
                course.title = title
                course.price = price
            db.commit()
            return course
