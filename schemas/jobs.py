"""
Pydantic schemas for job specifications
"""

import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, validator


class JobCreate(BaseModel):
    """
    Specification of a new ingestion job.

    Type keys are normalised to upper case. They are not checked against the
    pipeline registry here: an unknown key is accepted and fails when the job
    runs.
    """

    name: str = Field(..., min_length=1, max_length=200)

    # Source
    source_type: str = Field(..., min_length=1, max_length=50, description="FILE, API, DATABASE")
    source_format: Optional[str] = Field(None, max_length=50, description="CSV, JSON, XML")
    source_location: str = Field(..., min_length=1, description="Path, URL or query")

    # Optional transformation
    transform_type: Optional[str] = Field(None, max_length=50, description="CSV, JSON, XML")
    transform_config: Optional[str] = Field(None, description="JSON object, as text or inline")

    # Destination
    destination_type: str = Field(..., min_length=1, max_length=50, description="LOCAL, CLOUD, DATABASE")
    destination_location: str = Field(..., min_length=1)

    max_retries: Optional[int] = Field(None, ge=0, description="Defaults to DEFAULT_MAX_RETRIES")

    @validator("name", "source_location", "destination_location")
    def strip_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @validator("source_type", "destination_type")
    def normalize_type_key(cls, v):
        v = v.strip().upper()
        if not v:
            raise ValueError("type key must not be blank")
        return v

    @validator("source_format", "transform_type")
    def normalize_optional_key(cls, v):
        if v is None:
            return None
        v = v.strip().upper()
        return v or None

    @validator("transform_config", pre=True)
    def serialize_config(cls, v):
        """Accept the config inline (object) or as JSON text."""
        if v is None:
            return None
        if isinstance(v, (dict, list)):
            return json.dumps(v)
        if isinstance(v, str):
            return v if v.strip() else None
        raise ValueError("transform_config must be a JSON object or a string")

    def to_job_fields(self) -> Dict[str, Any]:
        return self.model_dump()

    class Config:
        json_schema_extra = {
            "example": {
                "name": "daily-products",
                "source_type": "FILE",
                "source_format": "CSV",
                "source_location": "/data/in/products.csv",
                "transform_type": "CSV",
                "transform_config": {"fieldMappings": {"product_name": "name"}, "fieldsToRemove": ["internal_id"]},
                "destination_type": "LOCAL",
                "destination_location": "products/products.csv",
                "max_retries": 3
            }
        }
