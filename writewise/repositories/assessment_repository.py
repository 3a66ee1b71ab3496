"""Assessment record data access layer."""
import threading
from abc import ABC, abstractmethod

from writewise.models.assessment import AssessmentRecord


class AssessmentRepository(ABC):
    """Append-only store of scored submissions."""

    @abstractmethod
    def add(self, record: AssessmentRecord) -> AssessmentRecord:
        """Store one scored submission."""

    @abstractmethod
    def list_for_session(self, session_id: str) -> list[AssessmentRecord]:
        """Scored submissions for a session, oldest first."""


class InMemoryAssessmentRepository(AssessmentRepository):

    def __init__(self):
        self._rows: list[AssessmentRecord] = []
        self._lock = threading.Lock()

    def add(self, record: AssessmentRecord) -> AssessmentRecord:
        with self._lock:
            self._rows.append(record.model_copy(deep=True))
        return record

    def list_for_session(self, session_id: str) -> list[AssessmentRecord]:
        with self._lock:
            rows = [r for r in self._rows if r.session_id == session_id]
        return sorted(rows, key=lambda r: (r.revision_number, r.created_at))
