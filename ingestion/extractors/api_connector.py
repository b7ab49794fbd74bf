"""
API source connector: fetches a payload over HTTP.

The job's source location is the URL. One GET request is made per
execution attempt; retries are left to the job retry policy so a failing
endpoint consumes the job's retry budget instead of looping here.
"""

from typing import Dict, Optional
import logging

import httpx

from core.config import settings
from core.exceptions import SourceUnavailable
from ingestion.base import SourceConnector

logger = logging.getLogger(__name__)


class APISourceConnector(SourceConnector):
    """
    Extract data from a REST endpoint.

    Attributes:
        timeout: Request timeout in seconds
        headers: Extra request headers sent with every call
        transport: Optional httpx transport (used to plug in mock transports)
    """

    TYPE_KEY = "API"

    def __init__(
        self,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.timeout = settings.API_SOURCE_TIMEOUT_SECONDS if timeout is None else timeout
        self.headers = headers or {}
        self.transport = transport

    async def extract(self, location: str, source_format: Optional[str]) -> bytes:
        context = {"source_type": self.TYPE_KEY, "location": location}
        logger.info(f"Requesting {location}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                transport=self.transport,
                follow_redirects=True
            ) as client:
                response = await client.get(location)
        except httpx.HTTPError as e:
            raise SourceUnavailable(
                f"Request to {location} failed",
                context=context,
                original_exception=e
            )

        if response.status_code >= 400:
            raise SourceUnavailable(
                f"API returned HTTP {response.status_code} for {location}",
                context={**context, "status_code": response.status_code}
            )

        if not response.content:
            raise SourceUnavailable(
                f"Received empty response from API: {location}",
                context={**context, "status_code": response.status_code}
            )

        return response.content
