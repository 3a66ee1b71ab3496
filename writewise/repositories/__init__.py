"""Persistence seams: abstract repositories plus in-memory implementations."""
from writewise.repositories.session_repository import SessionRepository, InMemorySessionRepository
from writewise.repositories.progress_repository import LessonProgressRepository, InMemoryLessonProgressRepository
from writewise.repositories.assessment_repository import AssessmentRepository, InMemoryAssessmentRepository
