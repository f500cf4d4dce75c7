from workout_batch.db.models import Base, SessionRow, TemplateRow, TimeStampMixin

__all__ = [
    "Base",
    "SessionRow",
    "TemplateRow",
    "TimeStampMixin",
]
