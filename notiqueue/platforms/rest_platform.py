"""HTTP client for a delivery platform exposing a small REST API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from notiqueue.config import PlatformConfig
from notiqueue.errors import PlatformError
from notiqueue.records import LocalNotification

logger = logging.getLogger(__name__)

NOTIFICATIONS_ENDPOINT = "/notifications"
NOTIFICATION_ENDPOINT = "/notifications/{notification_id}"


class HttpDeliveryPlatform:
    """Thin wrapper around the platform's pending-notification endpoints.

    ``POST /notifications`` registers the platform representation of a
    record, ``DELETE /notifications/{id}`` and ``DELETE /notifications``
    cancel, and ``GET /notifications`` answers ``{"pending": [...]}`` with
    the representations still waiting to fire.  Entries that were not created
    by notiqueue are ignored.
    """

    def __init__(
        self,
        config: PlatformConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self.capacity = config.capacity
        headers = {}
        if config.api_token:
            headers["Authorization"] = f"Bearer {config.api_token}"
        self._client = httpx.Client(
            base_url=config.base_url.rstrip("/"),
            timeout=config.request_timeout,
            headers=headers,
            transport=transport,
            follow_redirects=True,
        )

    # ------------------------------------------------------------------
    # Public API
    def admit(self, record: LocalNotification) -> None:
        if record.platform_payload is None:
            raise PlatformError("notification has not been prepared for scheduling")
        self._request("POST", NOTIFICATIONS_ENDPOINT, json=dict(record.platform_payload))

    def cancel(self, notification_id: str) -> None:
        endpoint = NOTIFICATION_ENDPOINT.format(notification_id=notification_id)
        try:
            self._request("DELETE", endpoint)
        except PlatformError as exc:
            if isinstance(exc.__cause__, httpx.HTTPStatusError) and exc.__cause__.response.status_code == 404:
                logger.debug("notification %s already gone from platform", notification_id)
                return
            raise

    def cancel_all(self) -> None:
        self._request("DELETE", NOTIFICATIONS_ENDPOINT)

    def list_pending(self) -> List[LocalNotification]:
        payload = self._request_json("GET", NOTIFICATIONS_ENDPOINT)
        records: List[LocalNotification] = []
        for entry in payload.get("pending", []) or []:
            if not isinstance(entry, dict):
                continue
            try:
                record = LocalNotification.from_platform_dict(entry)
            except (KeyError, ValueError) as exc:
                logger.warning("skipping malformed platform entry: %s", exc)
                continue
            if record is not None:
                records.append(record)
        return records

    def close(self) -> None:
        """Close the underlying :class:`httpx.Client`."""

        self._client.close()

    def __enter__(self) -> "HttpDeliveryPlatform":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise PlatformError(f"{method} {url} failed: {exc}") from exc
        self._validate_response(response)
        return response

    def _request_json(self, method: str, url: str) -> Dict[str, Any]:
        response = self._request(method, url)
        try:
            payload = response.json()
        except ValueError as exc:
            raise PlatformError("platform returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise PlatformError("unexpected payload type from delivery platform")
        return payload

    @staticmethod
    def _validate_response(response: httpx.Response) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PlatformError(str(exc)) from exc
