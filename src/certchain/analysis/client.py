"""HTTP client for the external AI document-analysis service."""

import json
import logging
from typing import Any, Optional

import httpx

from certchain.common.config import CertchainSettings
from certchain.common.exceptions import AnalysisServiceError

logger = logging.getLogger(__name__)


class AnalysisClient:
    """Posts a document to the analysis service's /analyze endpoint."""

    def __init__(
        self,
        base_url: str,
        model_version: str = "v1",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model_version = model_version
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: CertchainSettings) -> "AnalysisClient":
        return cls(
            settings.ai_service_url,
            model_version=settings.ai_model_version,
            timeout=settings.outbound_timeout,
        )

    async def analyze(
        self,
        digest: str,
        data: bytes,
        filename: str,
        content_type: str,
        document_id: Optional[str] = None,
        requested_tasks: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        """Send the file plus metadata and return the service's structured result.

        Any transport error, timeout, non-2xx status or non-JSON body raises
        AnalysisServiceError.
        """
        url = f"{self.base_url}/analyze"
        form = {
            "hash": digest,
            "model_version": self.model_version,
            "requested_tasks": json.dumps(requested_tasks or []),
        }
        if document_id:
            form["document_id"] = document_id

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    url,
                    data=form,
                    files={"file": (filename, data, content_type or "application/octet-stream")},
                )
                resp.raise_for_status()
                result = resp.json()
        except httpx.TimeoutException as exc:
            raise AnalysisServiceError("AI analysis timed out", hash=digest) from exc
        except httpx.HTTPStatusError as exc:
            raise AnalysisServiceError(
                f"AI analysis returned HTTP {exc.response.status_code}",
                hash=digest,
                status=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise AnalysisServiceError(f"AI analysis unreachable: {exc}", hash=digest) from exc
        except ValueError as exc:
            raise AnalysisServiceError("AI analysis returned invalid JSON", hash=digest) from exc

        if not isinstance(result, dict):
            raise AnalysisServiceError("AI analysis returned an unexpected body", hash=digest)
        logger.info("AI analysis completed for %s", digest)
        return result
