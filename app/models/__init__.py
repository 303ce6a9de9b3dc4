from app.models.user import User, UserRole, StudentProfile
from app.models.organization import Course, Subject, Batch
from app.models.questions import QPCode, Question, QuestionType, Difficulty
from app.models.assessments import (
    Quiz,
    QuizBatch,
    QuizQuestion,
    QuizAttempt,
    UserAnswer,
    TestStatus,
    TestType
)
from app.models.notifications import Notification, NotificationType
from app.models.videos import Video, VideoDownload
from app.models.papers import QuestionPaper, QuestionPaperQuestion, QPCodeUsage
from app.models.materials import StudyMaterial, MaterialBatch, MaterialType
