from .record_store import SQLAlchemyRecordStore

__all__ = ["SQLAlchemyRecordStore"]
