from sqlalchemy import Column, BigInteger, Integer, DateTime, ForeignKey, Index
from models.base import Base


class JobStatistics(Base):
    """
    Metrics of one execution attempt.

    Exactly one row is written per attempt, successful or not, so the
    number of rows for a job equals the number of times it actually ran.
    """
    __tablename__ = "job_statistics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey("ingestion_jobs.id"), nullable=False)

    records_processed = Column(BigInteger, nullable=False, default=0)
    records_failed = Column(BigInteger, nullable=False, default=0)
    bytes_processed = Column(BigInteger, nullable=False, default=0)
    processing_time_ms = Column(BigInteger, nullable=False, default=0)
    timestamp = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_job_statistics_job_timestamp", "job_id", "timestamp"),
    )
