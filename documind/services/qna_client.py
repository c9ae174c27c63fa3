"""
Client for the external AI Q&A backend.

The backend owns text extraction, embeddings, retrieval and answer
generation; this module only speaks its HTTP contract.
"""

import logging
import uuid

import httpx

from documind.core.config import settings
from documind.core.exceptions import QnABackendError

logger = logging.getLogger(__name__)

NO_ANSWER = "No answer received from backend."


class QnAClient:
    def __init__(
        self,
        endpoint: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.endpoint = (endpoint or settings.AI_QNA_ENDPOINT).rstrip("/")
        self.timeout = timeout or settings.AI_QNA_TIMEOUT_SECONDS
        self.transport = transport

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            with httpx.Client(
                base_url=self.endpoint, timeout=self.timeout, transport=self.transport
            ) as client:
                response = client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("AI backend %s %s failed: %s", method, path, e)
            raise QnABackendError(f"AI backend unreachable: {e}") from e

        if response.is_error:
            logger.error(
                "AI backend %s %s returned %s: %s",
                method,
                path,
                response.status_code,
                response.text[:500],
            )
            raise QnABackendError(f"Backend returned {response.status_code}")
        return response

    def ingest_document(
        self,
        user_id: uuid.UUID,
        document_id: uuid.UUID,
        file_name: str,
        content: bytes,
        file_url: str | None = None,
    ) -> dict:
        """Send a stored PDF to the backend for indexing."""
        headers = {
            "X-User-Id": str(user_id),
            "X-Document-Id": str(document_id),
        }
        data = {"user_id": str(user_id), "document_id": str(document_id)}
        if file_url:
            headers["X-File-Url"] = file_url
            data["file_url"] = file_url

        response = self._request(
            "POST",
            "/upload",
            headers=headers,
            data=data,
            files={"file": (file_name, content, "application/pdf")},
        )
        logger.info("Document %s sent to AI backend", document_id)
        return response.json() if response.content else {}

    def query(self, question: str, user_id: uuid.UUID, document_id: uuid.UUID) -> str:
        response = self._request(
            "POST",
            "/query",
            json={
                "question": question,
                "user_id": str(user_id),
                "document_id": str(document_id),
            },
        )
        try:
            data = response.json()
        except ValueError:
            data = {}
        return data.get("answer") or NO_ANSWER

    def delete_document(self, document_id: uuid.UUID, user_id: uuid.UUID) -> None:
        self._request(
            "DELETE",
            f"/documents/{document_id}",
            params={"user_id": str(user_id)},
        )
