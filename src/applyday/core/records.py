from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import ValidationError

from applyday.core.events import ChangeNotifier
from applyday.errors import (
    ApplyDayError,
    ConcurrentMutationRejected,
    NotFound,
    ValidationFailure,
)
from applyday.service.client import ApplicationsService
from applyday.types import ApplicationFields, ApplicationRecord, RecordId

logger = logging.getLogger(__name__)

FormMode = Literal["idle", "creating", "editing"]
OutcomeStatus = Literal["ok", "failed", "rejected", "declined", "discarded"]


@dataclass(slots=True)
class EditFormState:
    mode: FormMode = "idle"
    editing_id: RecordId | None = None
    fields: ApplicationFields = field(default_factory=ApplicationFields)

    @property
    def idle(self) -> bool:
        return self.mode == "idle"


@dataclass(slots=True, frozen=True)
class OperationResult:
    status: OutcomeStatus
    error: ApplyDayError | None = None
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def success(cls, value: Any = None) -> OperationResult:
        return cls(status="ok", value=value)

    @classmethod
    def failure(cls, error: ApplyDayError) -> OperationResult:
        return cls(status="failed", error=error)

    @classmethod
    def rejection(cls, error: ApplyDayError) -> OperationResult:
        return cls(status="rejected", error=error)


DISCARDED = OperationResult(status="discarded")
DECLINED = OperationResult(status="declined")


class RecordListController:
    """Owns the cached application list and the single edit form.

    Mutations are single-flight: while ``busy`` is set every other mutation
    is rejected without touching the network. After a successful mutation
    the whole list is fetched again; nothing is patched locally.
    """

    def __init__(self, service: ApplicationsService):
        self.service = service
        self.records: list[ApplicationRecord] = []
        self.busy = False
        self.form = EditFormState()
        self.error: ApplyDayError | None = None
        self._notifier = ChangeNotifier()
        self._closed = False

    async def initialize(self) -> OperationResult:
        return await self.load()

    async def load(self) -> OperationResult:
        if self._closed:
            return DISCARDED
        if self.busy:
            return self._reject_busy("load")

        self._set_busy(True)
        try:
            return await self._reload()
        finally:
            self._set_busy(False)

    def begin_create(self) -> OperationResult:
        if self.busy:
            return self._reject_busy("begin_create")
        if not self.form.idle:
            return self._reject_mode("begin_create")

        self.form = EditFormState(mode="creating")
        self._changed()
        return OperationResult.success()

    async def begin_edit(self, record_id: RecordId) -> OperationResult:
        if self._closed:
            return DISCARDED
        if self.busy:
            return self._reject_busy("begin_edit")
        if not self.form.idle:
            return self._reject_mode("begin_edit")
        if self.find(record_id) is None:
            return OperationResult.rejection(NotFound(f"application {record_id} is not in the list"))

        try:
            record = await asyncio.to_thread(self.service.get_application, record_id)
        except ApplyDayError as exc:
            if self._closed:
                return DISCARDED
            logger.warning("Failed to fetch application %s for editing: %s", record_id, exc)
            self._surface(exc)
            return OperationResult.failure(exc)

        if self._closed:
            return DISCARDED
        if self.busy or not self.form.idle:
            return self._reject_mode("begin_edit")

        self.form = EditFormState(mode="editing", editing_id=record_id, fields=record.to_fields())
        self._changed()
        return OperationResult.success(record)

    async def submit_create(self, fields: ApplicationFields | Mapping[str, Any]) -> OperationResult:
        if self._closed:
            return DISCARDED
        if self.busy:
            return self._reject_busy("submit_create")
        if self.form.mode != "creating":
            return self._reject_mode("submit_create")

        return await self._submit(fields, lambda parsed: self.service.create_application(parsed))

    async def submit_update(self, fields: ApplicationFields | Mapping[str, Any]) -> OperationResult:
        if self._closed:
            return DISCARDED
        if self.busy:
            return self._reject_busy("submit_update")
        if self.form.mode != "editing":
            return self._reject_mode("submit_update")

        record_id = self.form.editing_id
        return await self._submit(fields, lambda parsed: self.service.update_application(record_id, parsed))

    def cancel(self) -> OperationResult:
        if self.busy:
            return self._reject_busy("cancel")

        self.form = EditFormState()
        self._changed()
        return OperationResult.success()

    async def delete_record(self, record_id: RecordId, *, confirmed: bool) -> OperationResult:
        if self._closed:
            return DISCARDED
        if not confirmed:
            return DECLINED
        if self.busy:
            return self._reject_busy("delete_record")
        if self.find(record_id) is None:
            return OperationResult.rejection(NotFound(f"application {record_id} is not in the list"))

        self._set_busy(True)
        try:
            try:
                await asyncio.to_thread(self.service.delete_application, record_id)
            except ApplyDayError as exc:
                if self._closed:
                    return DISCARDED
                logger.warning("Failed to delete application %s: %s", record_id, exc)
                self._surface(exc)
                return OperationResult.failure(exc)

            if self._closed:
                return DISCARDED
            if self.form.mode == "editing" and _same_id(self.form.editing_id, record_id):
                self.form = EditFormState()
            await self._reload()
            return OperationResult.success()
        finally:
            self._set_busy(False)

    def find(self, record_id: RecordId) -> ApplicationRecord | None:
        for record in self.records:
            if _same_id(record.id, record_id):
                return record
        return None

    def subscribe(self, listener: Callable[[RecordListController], None]) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    def close(self) -> None:
        self._closed = True
        self._notifier.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    async def _submit(
        self,
        fields: ApplicationFields | Mapping[str, Any],
        call: Callable[[ApplicationFields], ApplicationRecord],
    ) -> OperationResult:
        try:
            parsed = fields if isinstance(fields, ApplicationFields) else ApplicationFields.model_validate(fields)
        except ValidationError as exc:
            error = ValidationFailure(f"invalid application fields: {exc}")
            self._surface(error)
            return OperationResult(status="failed", error=error, value=dict(fields))

        self.form.fields = parsed
        self._set_busy(True)
        try:
            try:
                saved = await asyncio.to_thread(call, parsed)
            except ApplyDayError as exc:
                if self._closed:
                    return DISCARDED
                logger.warning("Failed to save application (%s): %s", self.form.mode, exc)
                self._surface(exc)
                return OperationResult.failure(exc)

            if self._closed:
                return DISCARDED
            self.form = EditFormState()
            await self._reload()
            return OperationResult.success(saved)
        finally:
            self._set_busy(False)

    async def _reload(self) -> OperationResult:
        try:
            records = await asyncio.to_thread(self.service.list_applications)
        except ApplyDayError as exc:
            if self._closed:
                return DISCARDED
            logger.warning("Failed to load applications: %s", exc)
            self._surface(exc)
            return OperationResult.failure(exc)

        if self._closed:
            return DISCARDED
        self.records = list(records)
        self.error = None
        self._changed()
        return OperationResult.success(self.records)

    def _reject_busy(self, operation: str) -> OperationResult:
        logger.debug("Rejected %s while another mutation is in flight", operation)
        return OperationResult.rejection(
            ConcurrentMutationRejected(f"{operation} rejected: another operation is in progress")
        )

    def _reject_mode(self, operation: str) -> OperationResult:
        return OperationResult.rejection(
            ConcurrentMutationRejected(f"{operation} rejected: form is {self.form.mode}")
        )

    def _surface(self, error: ApplyDayError) -> None:
        self.error = error
        self._changed()

    def _set_busy(self, value: bool) -> None:
        self.busy = value
        self._changed()

    def _changed(self) -> None:
        if not self._closed:
            self._notifier.publish(self)


def _same_id(left: RecordId | None, right: RecordId | None) -> bool:
    if left is None or right is None:
        return False
    return str(left) == str(right)
