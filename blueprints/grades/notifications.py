# blueprints/grades/notifications.py
from __future__ import annotations
import logging
from typing import Iterable

from extensions import db
from models import CourseOffering, Notification

log = logging.getLogger(__name__)

GRADES_PUBLISHED = "grades_published"


def notify_published(offering: CourseOffering, student_ids: Iterable[int]) -> int:
    """Уведомление студентам о публикации ведомости. Возвращает число записей."""
    subject = offering.plan_subject.subject
    payload = {
        "offering_id": offering.id,
        "subject_code": subject.code,
        "subject_name": subject.name,
        "academic_year": offering.academic_year,
    }
    n = 0
    for sid in student_ids:
        db.session.add(Notification(student_id=sid, kind=GRADES_PUBLISHED, payload=payload))
        n += 1
    db.session.commit()
    log.info("publish notifications queued", extra={"event": "notify_published", "entity_id": offering.id})
    return n
