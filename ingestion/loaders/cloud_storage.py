"""
CLOUD storage: object-store destinations (S3, Azure Blob, GCS).

Objects are written to a staging directory laid out as
``<staging_dir>/<provider>/<bucket>/<key>``, from which they are shipped to
the provider; the descriptor returned to the job is the provider URI of the
object.

Destination location format:
    provider:bucket:key    e.g. "aws:my-bucket:data/file.csv"
    bucket:key             uses the default provider
"""

import asyncio
import tempfile
from pathlib import Path
from typing import Optional, Tuple
import logging

from core.config import settings
from core.exceptions import WriteFailure
from ingestion.base import Storage, StoreResult

logger = logging.getLogger(__name__)

PROVIDER_ALIASES = {
    "aws": "aws",
    "s3": "aws",
    "azure": "azure",
    "blob": "azure",
    "gcp": "gcp",
    "gcs": "gcp",
}


class CloudStorage(Storage):
    TYPE_KEY = "CLOUD"

    def __init__(
        self,
        default_provider: Optional[str] = None,
        staging_dir: Optional[str] = None,
        azure_account: str = "ingestion"
    ):
        self.default_provider = default_provider or settings.CLOUD_STORAGE_PROVIDER
        self.staging_dir = Path(staging_dir) if staging_dir else Path(tempfile.gettempdir()) / "cloud-storage"
        self.azure_account = azure_account

    def parse_location(self, location: str) -> Tuple[str, str, str]:
        """Split a destination into (provider, bucket, key)."""
        parts = location.split(":", 2)
        if len(parts) < 2:
            raise WriteFailure(
                "Cloud destination location should be in format 'provider:bucket:key' "
                "or 'bucket:key' (using default provider)",
                context={"destination_type": self.TYPE_KEY, "location": location}
            )

        if len(parts) == 3:
            provider, bucket, key = parts
        else:
            provider = self.default_provider
            bucket, key = parts

        normalized = PROVIDER_ALIASES.get(provider.lower())
        if normalized is None:
            raise WriteFailure(
                f"Unsupported cloud provider: {provider}",
                context={"destination_type": self.TYPE_KEY, "location": location}
            )

        if not bucket or not key:
            raise WriteFailure(
                "Bucket and key are required",
                context={"destination_type": self.TYPE_KEY, "location": location}
            )

        if bucket in (".", "..") or "/" in bucket or "\\" in bucket:
            raise WriteFailure(
                f"Invalid bucket name: {bucket}",
                context={"destination_type": self.TYPE_KEY, "location": location}
            )

        return normalized, bucket, key.lstrip("/")

    def object_uri(self, provider: str, bucket: str, key: str) -> str:
        if provider == "aws":
            return f"s3://{bucket}/{key}"
        if provider == "azure":
            return f"https://{self.azure_account}.blob.core.windows.net/{bucket}/{key}"
        return f"gs://{bucket}/{key}"

    async def store(self, payload: bytes, source_format: Optional[str], location: str) -> StoreResult:
        provider, bucket, key = self.parse_location(location)

        # the object must land inside <staging>/<provider>/<bucket>
        provider_root = (self.staging_dir / provider).resolve()
        root = (provider_root / bucket).resolve()
        target = (root / key).resolve()
        if provider_root not in root.parents or root not in target.parents:
            raise WriteFailure(
                f"Object path escapes the bucket: {bucket}/{key}",
                context={"destination_type": self.TYPE_KEY, "location": location}
            )

        try:
            await asyncio.to_thread(self._write, target, payload)
        except OSError as e:
            raise WriteFailure(
                f"Failed to stage object {key} for {provider}",
                context={"destination_type": self.TYPE_KEY, "location": location},
                original_exception=e
            )

        uri = self.object_uri(provider, bucket, key)
        logger.info(f"Stored {len(payload)} bytes as {uri}")
        return StoreResult(descriptor=uri, bytes_written=len(payload))

    @staticmethod
    def _write(path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
