from __future__ import annotations

import logging
from typing import Any, Protocol

import requests
from pydantic import ValidationError

from applyday.config import Settings, get_settings
from applyday.errors import InvalidResponse, NetworkFailure, NotFound, ValidationFailure
from applyday.types import ApplicationFields, ApplicationRecord, RecordId, StatsSnapshot

logger = logging.getLogger(__name__)


class ApplicationsService(Protocol):
    def get_stats(self) -> StatsSnapshot: ...

    def list_applications(self) -> list[ApplicationRecord]: ...

    def get_application(self, record_id: RecordId) -> ApplicationRecord: ...

    def create_application(self, fields: ApplicationFields) -> ApplicationRecord: ...

    def update_application(self, record_id: RecordId, fields: ApplicationFields) -> ApplicationRecord: ...

    def delete_application(self, record_id: RecordId) -> None: ...

    def close(self) -> None: ...


class ApplicationsClient:
    """Blocking client for the application records HTTP API.

    Every transport or HTTP failure is raised as an ``ApplyDayError`` subclass
    so callers only need to handle one hierarchy.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        session: requests.Session | None = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = self.settings.api_root
        self.timeout_sec = self.settings.api_timeout_sec
        self.session = session or requests.Session()

    def get_stats(self) -> StatsSnapshot:
        data = self._request("GET", "/stats")
        if not isinstance(data, dict):
            raise InvalidResponse("stats payload must be an object")
        try:
            return StatsSnapshot.model_validate(data)
        except ValidationError as exc:
            raise InvalidResponse(f"invalid stats payload: {exc}") from exc

    def list_applications(self) -> list[ApplicationRecord]:
        data = self._request("GET", "/applications")
        if isinstance(data, dict):
            data = data.get("applications", data.get("data"))
        if not isinstance(data, list):
            raise InvalidResponse("applications payload must be a list")
        return [self._parse_record(item) for item in data]

    def get_application(self, record_id: RecordId) -> ApplicationRecord:
        return self._parse_record(self._request("GET", f"/applications/{record_id}"))

    def create_application(self, fields: ApplicationFields) -> ApplicationRecord:
        data = self._request("POST", "/applications", json=fields.to_payload())
        return self._parse_record(data)

    def update_application(self, record_id: RecordId, fields: ApplicationFields) -> ApplicationRecord:
        data = self._request("PUT", f"/applications/{record_id}", json=fields.to_payload())
        return self._parse_record(data)

    def delete_application(self, record_id: RecordId) -> None:
        self._request("DELETE", f"/applications/{record_id}", expect_body=False)

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, path: str, *, expect_body: bool = True, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout_sec, **kwargs)
        except requests.RequestException as exc:
            logger.warning("Request %s %s failed: %s", method, url, exc)
            raise NetworkFailure(str(exc)) from exc

        status = response.status_code
        if status >= 400:
            body = response.text[:200] if response.text else "(empty)"
            message = f"Server returned {status}: {body}"
            if status == 404:
                raise NotFound(message, status_code=status)
            if status in {400, 422}:
                raise ValidationFailure(message, status_code=status)
            raise NetworkFailure(message, status_code=status)

        if not expect_body or status == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as exc:
            body = response.text[:200] if response.text else "(empty)"
            raise InvalidResponse(f"Invalid response ({status}): {body}", status_code=status) from exc

    @staticmethod
    def _parse_record(data: Any) -> ApplicationRecord:
        try:
            return ApplicationRecord.model_validate(data)
        except ValidationError as exc:
            raise InvalidResponse(f"invalid application payload: {exc}") from exc
