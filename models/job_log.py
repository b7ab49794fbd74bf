from sqlalchemy import Column, Integer, Enum, DateTime, Text, ForeignKey, Index
from models.base import Base, LogLevel


class JobLog(Base):
    """
    Append-only narrative of a job: one row per event, never updated.
    """
    __tablename__ = "job_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("ingestion_jobs.id"), nullable=False)

    level = Column(Enum(LogLevel), nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    stack_trace = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_job_log_job_timestamp", "job_id", "timestamp"),
    )
