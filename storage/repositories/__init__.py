from .records import RecordRepository
from .student_cache import StudentCacheRepository
from .subjects import SubjectRepository

__all__ = ["RecordRepository", "StudentCacheRepository", "SubjectRepository"]
