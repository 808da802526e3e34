from edudash.models.user import AuthAccount, User  # noqa
from edudash.models.notification import Notification  # noqa
from edudash.models.activity import Activity  # noqa
from edudash.models.evaluation import (  # noqa
    EvaluationBatch,
    AnswerSheet,
    EvaluationRecord,
    QuestionResult,
)
