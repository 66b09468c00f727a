"""Storage bucket client with exponential backoff retry logic"""

import asyncio
import logging
import httpx
from dataclasses import dataclass
from rentverse_bookings.config import settings
from rentverse_bookings.domain.exceptions import ContractIssuanceError

logger = logging.getLogger(__name__)


@dataclass
class StoredObject:
    key: str
    url: str
    size: int
    bucket: str


class StorageClient:
    """Client for a Supabase-style object storage REST API"""

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        bucket: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.storage_api_base).rstrip("/")
        self.service_key = service_key if service_key is not None else settings.storage_service_key
        self.bucket = bucket or settings.contract_bucket
        self.max_retries = settings.contract_max_retries
        self.backoff_base = settings.contract_backoff_base
        self.transport = transport

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{key}"

    async def upload_pdf(self, content: bytes, file_name: str, folder: str) -> StoredObject:
        """
        Upload a PDF to the bucket with retry logic.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ... (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures, not on 4xx

        Raises:
            ContractIssuanceError: After the final failed attempt
        """
        key = f"{folder}/{file_name}.pdf"
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/pdf",
            "x-upsert": "true",
        }

        attempt = 0
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    response = await client.post(
                        f"{self.base_url}/object/{self.bucket}/{key}",
                        content=content,
                        headers=headers,
                    )
                    response.raise_for_status()
                    return StoredObject(key=key, url=self.public_url(key), size=len(content), bucket=self.bucket)

                except httpx.HTTPStatusError as e:
                    if e.response.status_code < 500:
                        raise ContractIssuanceError(f"Storage rejected upload: {e.response.status_code}") from e
                    attempt += 1
                    last_error: Exception = e
                except httpx.RequestError as e:
                    attempt += 1
                    last_error = e

                logger.warning("Contract upload failed", extra={"key": key, "attempt": attempt})
                if attempt >= self.max_retries:
                    raise ContractIssuanceError(f"Storage upload failed after {attempt} attempts: {last_error}") from last_error

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)

        raise ContractIssuanceError("Storage upload not attempted")
