# edudash/services/evaluation_service.py
"""
Evaluation batches: creation, file intake, access rules and the hand-off to
the grading step.
"""
import base64
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from edudash.core.config import settings
from edudash.core.errors import Conflict, NotFound, ServiceUnavailable, ValidationFailed
from edudash.core.security import SUPERUSER_ROLE
from edudash.models.evaluation import (
    AnswerSheet,
    BatchStatus,
    EvaluationBatch,
    EvaluationMode,
)
from edudash.models.user import User
from edudash.schemas.evaluation import (
    AnswerSheetPublic,
    AnswerSheetUpdate,
    BatchCreate,
    BatchDetail,
    BatchPublic,
    RecordPublic,
)
from edudash.services import grading_service
from edudash.services.review_service import summarize
from edudash.workers.queue import enqueue_grading_task

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = ("image/png", "image/jpeg", "application/pdf")
EDITABLE_STATUSES = (BatchStatus.DRAFT.value, BatchStatus.FAILED.value)
SEE_ALL_ROLES = ("admin", SUPERUSER_ROLE)


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    size: int
    preview: Optional[str] = None


def intake_file(filename: Optional[str], content_type: Optional[str], data: bytes) -> UploadedFile:
    """Validate one upload and keep its metadata; images also get a data: URL preview."""
    if not filename:
        raise ValidationFailed("File name is required")
    if content_type == "image/jpg":
        content_type = "image/jpeg"
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationFailed(
            f"Unsupported file type for {filename}. Allowed: PNG, JPEG, PDF"
        )
    if not data:
        raise ValidationFailed(f"{filename} is empty")
    max_bytes = settings.MAX_UPLOAD_MB * 1024 * 1024
    if len(data) > max_bytes:
        raise ValidationFailed(
            f"{filename} is larger than {settings.MAX_UPLOAD_MB} MB"
        )

    preview = None
    if content_type.startswith("image/"):
        preview = f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"
    return UploadedFile(
        filename=filename,
        content_type=content_type,
        size=len(data),
        preview=preview,
    )


def _ensure_editable(batch: EvaluationBatch) -> None:
    if batch.status not in EDITABLE_STATUSES:
        raise Conflict(
            f"Evaluation is {batch.status}; uploads can only change before grading",
            status=batch.status,
        )


def create_batch(db: Session, *, teacher: User, obj_in: BatchCreate) -> EvaluationBatch:
    batch = EvaluationBatch(
        teacher_id=teacher.id,
        mode=obj_in.mode.value,
        name=obj_in.name.strip(),
        subject=obj_in.subject.strip(),
        class_section=obj_in.class_section,
        total_marks=obj_in.total_marks,
        due_date=obj_in.due_date,
        student_name=obj_in.student_name,
        roll_no=obj_in.roll_no,
        status=BatchStatus.DRAFT.value,
        progress=0,
    )
    db.add(batch)
    db.commit()
    db.refresh(batch)
    logger.info("Evaluation %s (%s) created by user %s", batch.id, batch.mode, teacher.id)
    return batch


def _visible_batches(db: Session, user: User):
    query = db.query(EvaluationBatch)
    if user.role in SEE_ALL_ROLES:
        return query
    if user.role == "institution":
        if not user.institution_id:
            return query.filter(EvaluationBatch.teacher_id == user.id)
        teacher_ids = select(User.id).where(User.institution_id == user.institution_id)
        return query.filter(EvaluationBatch.teacher_id.in_(teacher_ids))
    return query.filter(EvaluationBatch.teacher_id == user.id)


def get_batch_for_user(db: Session, *, batch_id: int, user: User) -> EvaluationBatch:
    batch = _visible_batches(db, user).filter(EvaluationBatch.id == batch_id).first()
    if batch is None:
        raise NotFound("Evaluation not found")
    return batch


def list_batches_for_user(
    db: Session,
    *,
    user: User,
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[EvaluationBatch]:
    query = _visible_batches(db, user)
    if status is not None:
        if status not in {s.value for s in BatchStatus}:
            raise ValidationFailed("Invalid status")
        query = query.filter(EvaluationBatch.status == status)
    return (
        query.order_by(EvaluationBatch.created_at.desc(), EvaluationBatch.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def set_question_paper(db: Session, *, batch: EvaluationBatch, upload: UploadedFile) -> EvaluationBatch:
    _ensure_editable(batch)
    batch.question_paper_name = upload.filename
    batch.question_paper_type = upload.content_type
    batch.question_paper_size = upload.size
    batch.question_paper_preview = upload.preview
    db.add(batch)
    db.commit()
    db.refresh(batch)
    return batch


def add_answer_sheets(
    db: Session, *, batch: EvaluationBatch, uploads: Sequence[UploadedFile]
) -> List[AnswerSheet]:
    """
    Bulk batches name new sheets ``Student {n}`` / roll ``{n}``; a single
    batch takes exactly one sheet, named after the batch's student.
    """
    _ensure_editable(batch)
    if not uploads:
        raise ValidationFailed("At least one answer sheet is required")

    existing = list(batch.answer_sheets)
    if batch.mode == EvaluationMode.SINGLE.value and len(existing) + len(uploads) > 1:
        raise ValidationFailed("A single evaluation takes exactly one answer sheet")

    next_position = max((s.position for s in existing), default=0) + 1
    created = []
    for offset, upload in enumerate(uploads):
        position = next_position + offset
        if batch.mode == EvaluationMode.SINGLE.value:
            student_name, roll_no = batch.student_name, batch.roll_no
        else:
            student_name, roll_no = f"Student {position}", str(position)
        sheet = AnswerSheet(
            position=position,
            student_name=student_name,
            roll_no=roll_no,
            filename=upload.filename,
            content_type=upload.content_type,
            size=upload.size,
            preview=upload.preview,
        )
        batch.answer_sheets.append(sheet)
        created.append(sheet)

    db.add(batch)
    db.commit()
    for sheet in created:
        db.refresh(sheet)
    logger.info("Added %d answer sheets to evaluation %s", len(created), batch.id)
    return created


def _get_sheet(batch: EvaluationBatch, sheet_id: int) -> AnswerSheet:
    for sheet in batch.answer_sheets:
        if sheet.id == sheet_id:
            return sheet
    raise NotFound("Answer sheet not found")


def update_answer_sheet(
    db: Session, *, batch: EvaluationBatch, sheet_id: int, obj_in: AnswerSheetUpdate
) -> AnswerSheet:
    _ensure_editable(batch)
    sheet = _get_sheet(batch, sheet_id)
    update_data = obj_in.model_dump(exclude_unset=True)
    if "student_id" in update_data:
        student_id = update_data.pop("student_id")
        if student_id is not None:
            student = db.get(User, student_id)
            if student is None or student.role != "student":
                raise ValidationFailed("student_id must refer to a student account")
        sheet.student_id = student_id
    for field, value in update_data.items():
        if value is not None:
            setattr(sheet, field, value.strip())
    db.add(sheet)
    db.commit()
    db.refresh(sheet)
    return sheet


def remove_answer_sheet(db: Session, *, batch: EvaluationBatch, sheet_id: int) -> None:
    _ensure_editable(batch)
    sheet = _get_sheet(batch, sheet_id)
    batch.answer_sheets.remove(sheet)
    db.add(batch)
    db.commit()


def start_grading(db: Session, *, batch: EvaluationBatch) -> EvaluationBatch:
    """
    draft/failed -> grading.

    The grading itself runs on the RQ ``grading`` queue, or in this process
    when GRADING_MODE=inline.
    """
    _ensure_editable(batch)
    if not batch.question_paper_name:
        raise ValidationFailed("Upload the question paper before grading")
    if not batch.answer_sheets:
        raise ValidationFailed("Upload at least one answer sheet before grading")

    batch.records = []
    batch.status = BatchStatus.GRADING.value
    batch.progress = 0
    batch.error_message = None
    db.add(batch)
    db.commit()

    if settings.GRADING_MODE == "inline":
        try:
            grading_service.run_grading(db, batch.id)
        except grading_service.GradingError as e:
            # already recorded on the batch as 'failed'
            logger.warning("Inline grading failed for evaluation %s: %s", batch.id, e)
        db.refresh(batch)
        return batch

    try:
        job_id = enqueue_grading_task(batch.id)
    except Exception as e:
        logger.exception("Could not enqueue grading for evaluation %s", batch.id)
        batch.status = BatchStatus.FAILED.value
        batch.error_message = f"Could not queue grading: {e}"
        db.add(batch)
        db.commit()
        raise ServiceUnavailable("Grading queue unavailable, try again later")

    logger.info("Grading job %s queued for evaluation %s", job_id, batch.id)
    db.refresh(batch)
    return batch


def to_public(batch: EvaluationBatch) -> BatchPublic:
    return BatchPublic(
        id=batch.id,
        teacher_id=batch.teacher_id,
        mode=batch.mode,
        name=batch.name,
        subject=batch.subject,
        class_section=batch.class_section,
        total_marks=batch.total_marks,
        due_date=batch.due_date,
        student_name=batch.student_name,
        roll_no=batch.roll_no,
        status=batch.status,
        progress=batch.progress,
        error_message=batch.error_message,
        created_at=batch.created_at,
        finalized_at=batch.finalized_at,
        summary=summarize(batch),
    )


def to_detail(batch: EvaluationBatch) -> BatchDetail:
    return BatchDetail(
        **to_public(batch).model_dump(),
        question_paper_name=batch.question_paper_name,
        question_paper_type=batch.question_paper_type,
        question_paper_preview=batch.question_paper_preview,
        answer_sheets=[AnswerSheetPublic.model_validate(s) for s in batch.answer_sheets],
        records=[RecordPublic.model_validate(r) for r in batch.records],
    )
