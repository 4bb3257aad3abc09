from __future__ import annotations

import threading

import pytest

from applyday.config import get_settings
from applyday.errors import ApplyDayError, NotFound
from applyday.types import ApplicationFields, ApplicationRecord, StatsSnapshot


class FakeApplicationsService:
    """In-memory stand-in for the records API.

    ``fail`` maps a method name to the error it should raise next time, and
    ``gate`` (when set) blocks every call until the test releases it.
    """

    def __init__(self, records: list[dict] | None = None, stats: dict | None = None):
        self.rows: list[dict] = [dict(row) for row in records or []]
        self.stats = stats or {}
        self.calls: list[str] = []
        self.fail: dict[str, ApplyDayError] = {}
        self.gate: threading.Event | None = None
        self.entered = threading.Event()
        self.closed = False
        self._next_id = max((int(row["id"]) for row in self.rows), default=0) + 1

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        error = self.fail.pop(name, None)
        if error is not None:
            raise error

    def _find(self, record_id) -> dict:
        for row in self.rows:
            if str(row["id"]) == str(record_id):
                return row
        raise NotFound(f"Server returned 404: application {record_id}", status_code=404)

    def get_stats(self) -> StatsSnapshot:
        self._enter("get_stats")
        return StatsSnapshot.model_validate(self.stats)

    def list_applications(self) -> list[ApplicationRecord]:
        self._enter("list_applications")
        return [
            ApplicationRecord.model_validate({key: value for key, value in row.items() if key != "apply_description"})
            for row in self.rows
        ]

    def get_application(self, record_id) -> ApplicationRecord:
        self._enter("get_application")
        return ApplicationRecord.model_validate(self._find(record_id))

    def create_application(self, fields: ApplicationFields) -> ApplicationRecord:
        self._enter("create_application")
        row = self._row_from_fields(self._next_id, fields)
        self._next_id += 1
        self.rows.append(row)
        return ApplicationRecord.model_validate(row)

    def update_application(self, record_id, fields: ApplicationFields) -> ApplicationRecord:
        self._enter("update_application")
        row = self._find(record_id)
        row.update(self._row_from_fields(row["id"], fields))
        return ApplicationRecord.model_validate(row)

    def delete_application(self, record_id) -> None:
        self._enter("delete_application")
        self.rows.remove(self._find(record_id))

    def close(self) -> None:
        self.closed = True

    @staticmethod
    def _row_from_fields(record_id, fields: ApplicationFields) -> dict:
        return {
            "id": record_id,
            "company": fields.company,
            "job_title": fields.job_title,
            "job_description": fields.job_description,
            "apply_description": [{"text": fields.job_description}],
            "status": fields.status,
            "stage_notes": fields.stage_notes,
        }


SEED_RECORDS = [
    {
        "id": 1,
        "company": "Acme",
        "job_title": "Backend Engineer",
        "apply_description": [{"text": "Build APIs"}],
        "status": "applied",
        "stage_notes": "",
    },
    {
        "id": 2,
        "company": "Globex",
        "job_title": "Data Analyst",
        "apply_description": [{"text": "Dashboards and SQL"}],
        "status": "interviewed",
        "stage_notes": "Second round on Friday",
    },
]


@pytest.fixture
def fake_service() -> FakeApplicationsService:
    return FakeApplicationsService(records=SEED_RECORDS)


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "test")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_service():
    return FakeApplicationsService
