# edudash/api/v1/endpoints/evaluations.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from edudash.core.security import get_current_teacher
from edudash.db.session import get_db
from edudash.models.evaluation import EvaluationBatch
from edudash.models.user import User
from edudash.schemas.evaluation import (
    AnswerSheetPublic,
    AnswerSheetUpdate,
    BatchCreate,
    BatchDetail,
    BatchPublic,
    CommentUpdate,
    FinalizeRequest,
    MarksUpdate,
    ProgressPublic,
    RecordPublic,
)
from edudash.services import evaluation_service, review_service

router = APIRouter(prefix="/evaluations", tags=["evaluations"])


def get_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_teacher),
) -> EvaluationBatch:
    return evaluation_service.get_batch_for_user(db, batch_id=batch_id, user=current_user)


async def _read_upload(upload: UploadFile) -> evaluation_service.UploadedFile:
    data = await upload.read()
    return evaluation_service.intake_file(upload.filename, upload.content_type, data)


@router.post("", response_model=BatchDetail, status_code=status.HTTP_201_CREATED)
def create_evaluation(
    obj_in: BatchCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_teacher),
):
    batch = evaluation_service.create_batch(db, teacher=current_user, obj_in=obj_in)
    return evaluation_service.to_detail(batch)


@router.get("", response_model=List[BatchPublic])
def list_evaluations(
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_teacher),
):
    """Saved evaluations of the caller; ``?status=in_review`` reopens drafts under review."""
    batches = evaluation_service.list_batches_for_user(
        db, user=current_user, status=status, skip=skip, limit=limit
    )
    return [evaluation_service.to_public(b) for b in batches]


@router.get("/{batch_id}", response_model=BatchDetail)
def read_evaluation(batch: EvaluationBatch = Depends(get_batch)):
    return evaluation_service.to_detail(batch)


@router.put("/{batch_id}/question-paper", response_model=BatchDetail)
async def upload_question_paper(
    file: UploadFile = File(...),
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    upload = await _read_upload(file)
    batch = evaluation_service.set_question_paper(db, batch=batch, upload=upload)
    return evaluation_service.to_detail(batch)


@router.post(
    "/{batch_id}/answer-sheets",
    response_model=List[AnswerSheetPublic],
    status_code=status.HTTP_201_CREATED,
)
async def upload_answer_sheets(
    files: List[UploadFile] = File(...),
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    uploads = [await _read_upload(f) for f in files]
    return evaluation_service.add_answer_sheets(db, batch=batch, uploads=uploads)


@router.patch("/{batch_id}/answer-sheets/{sheet_id}", response_model=AnswerSheetPublic)
def update_answer_sheet(
    sheet_id: int,
    obj_in: AnswerSheetUpdate,
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    return evaluation_service.update_answer_sheet(
        db, batch=batch, sheet_id=sheet_id, obj_in=obj_in
    )


@router.delete("/{batch_id}/answer-sheets/{sheet_id}")
def delete_answer_sheet(
    sheet_id: int,
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    evaluation_service.remove_answer_sheet(db, batch=batch, sheet_id=sheet_id)
    return {"success": True}


@router.post("/{batch_id}/grade", response_model=BatchPublic, status_code=status.HTTP_202_ACCEPTED)
def grade_evaluation(
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    batch = evaluation_service.start_grading(db, batch=batch)
    return evaluation_service.to_public(batch)


@router.get("/{batch_id}/progress", response_model=ProgressPublic)
def grading_progress(batch: EvaluationBatch = Depends(get_batch)):
    return ProgressPublic(
        status=batch.status,
        progress=batch.progress,
        error_message=batch.error_message,
    )


# Review


@router.post("/{batch_id}/records/{record_id}/approve", response_model=RecordPublic)
def approve_record(
    record_id: int,
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    return review_service.approve(db, batch=batch, record_id=record_id)


@router.post("/{batch_id}/records/{record_id}/revise", response_model=RecordPublic)
def revise_record(
    record_id: int,
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    return review_service.revise(db, batch=batch, record_id=record_id)


@router.post("/{batch_id}/records/{record_id}/undo", response_model=RecordPublic)
def undo_record(
    record_id: int,
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    return review_service.undo(db, batch=batch, record_id=record_id)


@router.post("/{batch_id}/approve-all", response_model=BatchPublic)
def approve_all_records(
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    review_service.approve_all(db, batch=batch)
    return evaluation_service.to_public(batch)


@router.put(
    "/{batch_id}/records/{record_id}/questions/{question_number}/marks",
    response_model=RecordPublic,
)
def update_question_marks(
    record_id: int,
    question_number: int,
    obj_in: MarksUpdate,
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    return review_service.update_marks(
        db,
        batch=batch,
        record_id=record_id,
        question_number=question_number,
        marks=obj_in.marks,
    )


@router.put(
    "/{batch_id}/records/{record_id}/questions/{question_number}/comment",
    response_model=RecordPublic,
)
def update_question_comment(
    record_id: int,
    question_number: int,
    obj_in: CommentUpdate,
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
):
    return review_service.update_comment(
        db,
        batch=batch,
        record_id=record_id,
        question_number=question_number,
        comment=obj_in.comment,
    )


@router.post("/{batch_id}/finalize", response_model=BatchPublic)
def finalize_evaluation(
    obj_in: Optional[FinalizeRequest] = None,
    batch: EvaluationBatch = Depends(get_batch),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_teacher),
):
    batch = review_service.finalize(
        db,
        batch=batch,
        confirm_unreviewed=obj_in.confirm_unreviewed if obj_in else False,
        finalized_by=current_user,
    )
    return evaluation_service.to_public(batch)
