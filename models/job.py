from sqlalchemy import Column, Integer, String, Enum, DateTime, Text, Index
from models.base import Base, JobStatus


class Job(Base):
    """
    One unit of ingestion work: read a source, optionally transform it,
    write it to a destination.

    Design:
    - status only changes through ingestion.state_machine
    - version is the optimistic-lock counter checked on every UPDATE
    - next_eligible_at holds the retry backoff between scheduler ticks
    - rows are never deleted by the engine
    """
    __tablename__ = "ingestion_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)

    # Source
    source_type = Column(String(50), nullable=False)  # FILE, API, DATABASE
    source_format = Column(String(50), nullable=True)  # CSV, JSON, XML
    source_location = Column(Text, nullable=False)  # Path, URL, query

    # Optional transformation
    transform_type = Column(String(50), nullable=True)  # CSV, JSON, XML
    transform_config = Column(Text, nullable=True)  # JSON document

    # Destination
    destination_type = Column(String(50), nullable=False)  # LOCAL, CLOUD, DATABASE
    destination_location = Column(Text, nullable=False)

    # Lifecycle
    status = Column(Enum(JobStatus), default=JobStatus.CREATED, nullable=False, index=True)
    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=3)
    next_eligible_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_job_status_eligible", "status", "next_eligible_at"),
    )

    def __repr__(self) -> str:
        return f"<Job id={self.id} name={self.name!r} status={self.status}>"
