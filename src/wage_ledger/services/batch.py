"""Bulk operations with per-item failure isolation.

Each candidate runs the supplied operation on its own. One failing item
never aborts the batch; it is recorded with the ``kind`` of the error and
the remaining items carry on. Items targeting the same entity are
serialized, everything else runs concurrently up to ``max_workers``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Iterable, Mapping

from wage_ledger.calculators.periods import as_date
from wage_ledger.calculators.types import AttendanceStatus, PaymentMethod
from wage_ledger.config import Settings, get_settings
from wage_ledger.errors import LedgerError, ValidationError
from wage_ledger.services.attendance_service import AttendanceService
from wage_ledger.services.commit_service import PayrollCommitService
from wage_ledger.services.locking_service import EntityLocks

logger = logging.getLogger(__name__)

Operation = Callable[[str], Awaitable[Any]]

TIMEOUT = "timeout"
CANCELLED = "cancelled"
UNEXPECTED = "persistence"


@dataclass(frozen=True)
class BatchFailure:
    """One failed item."""

    id: str
    error_kind: str
    detail: str


@dataclass
class BatchResult:
    """Outcome of a bulk run, in candidate order."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def failed_with(self, error_kind: str) -> list[str]:
        return [f.id for f in self.failed if f.error_kind == error_kind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": list(self.succeeded),
            "failed": [
                {"id": f.id, "error_kind": f.error_kind, "detail": f.detail} for f in self.failed
            ],
            "details": dict(self.details),
        }


class BatchProcessor:
    """Runs an operation over many candidates.

    The processor keeps its own lock registry, separate from the commit
    locks, so serializing two items of one entity here never blocks on a
    commit lock held by the item itself.
    """

    def __init__(
        self,
        attendance: AttendanceService | None = None,
        commits: PayrollCommitService | None = None,
        settings: Settings | None = None,
        max_workers: int | None = None,
        item_timeout: float | None = None,
    ):
        self.attendance = attendance
        self.commits = commits
        self.settings = settings or get_settings()
        self.max_workers = max_workers or self.settings.batch_max_workers
        self.item_timeout = item_timeout

    async def run_bulk(
        self,
        candidate_ids: Iterable[str],
        operation: Operation,
        *,
        entity_key: Callable[[str], str] | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchResult:
        """Run ``operation`` for every candidate and collect the outcomes.

        ``entity_key`` maps a candidate to the entity it touches; candidates
        with the same key run one after another. ``timeout`` bounds each
        item. Once ``cancel_event`` is set, items that have not started fail
        with kind ``cancelled``; items already finished stay as they are.
        """
        candidates = list(dict.fromkeys(str(c) for c in candidate_ids))
        key_of = entity_key or (lambda candidate: candidate)
        item_timeout = timeout if timeout is not None else self.item_timeout
        semaphore = asyncio.Semaphore(self.max_workers)
        locks = EntityLocks()
        outcomes: dict[str, tuple[bool, Any]] = {}

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        async def run_item(candidate: str) -> None:
            async with semaphore, locks.hold(key_of(candidate)):
                if cancelled():
                    outcomes[candidate] = (False, (CANCELLED, "batch cancelled before item ran"))
                    return
                try:
                    value = await asyncio.wait_for(operation(candidate), timeout=item_timeout)
                except asyncio.TimeoutError:
                    logger.warning("Batch item %s timed out after %ss", candidate, item_timeout)
                    outcomes[candidate] = (False, (TIMEOUT, f"timed out after {item_timeout}s"))
                except LedgerError as exc:
                    logger.info("Batch item %s failed (%s): %s", candidate, exc.kind, exc.message)
                    outcomes[candidate] = (False, (exc.kind, exc.message))
                except Exception as exc:
                    logger.exception("Batch item %s failed unexpectedly", candidate)
                    outcomes[candidate] = (False, (UNEXPECTED, repr(exc)))
                else:
                    outcomes[candidate] = (True, value)

        tasks = [asyncio.create_task(run_item(c)) for c in candidates]
        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        result = BatchResult()
        for candidate in candidates:
            ok, value = outcomes[candidate]
            if ok:
                result.succeeded.append(candidate)
                if value is not None:
                    result.details[candidate] = value
            else:
                error_kind, detail = value
                result.failed.append(BatchFailure(candidate, error_kind, detail))
                result.details[candidate] = detail

        logger.info(
            "Batch finished: %d succeeded, %d failed", len(result.succeeded), len(result.failed)
        )
        return result

    # === Drivers ===

    def _require_attendance(self) -> AttendanceService:
        if self.attendance is None:
            raise RuntimeError("BatchProcessor was created without an attendance service")
        return self.attendance

    def _require_commits(self) -> PayrollCommitService:
        if self.commits is None:
            raise RuntimeError("BatchProcessor was created without a commit service")
        return self.commits

    async def mark_all(
        self,
        employee_ids: Iterable[str],
        attendance_date: date | str,
        status: AttendanceStatus | str = AttendanceStatus.PRESENT,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchResult:
        """Mark every employee with one status, using the default shift times."""
        attendance = self._require_attendance()
        day = as_date(attendance_date)

        async def mark(employee_id: str) -> dict[str, Any]:
            record = await attendance.mark_attendance(
                employee_id, day, status, use_default_times=True
            )
            return {"attendance_id": record.id, "work_hours": str(record.work_hours)}

        return await self.run_bulk(employee_ids, mark, timeout=timeout, cancel_event=cancel_event)

    async def save_bulk_attendance(
        self,
        entries: Iterable[Mapping[str, Any]],
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchResult:
        """Save many attendance entries, one item per (employee, date).

        Each entry holds ``employee_id``, ``date`` and optionally ``status``,
        ``check_in``, ``check_out``, ``overtime_hours`` and ``notes``.
        """
        attendance = self._require_attendance()
        by_candidate: dict[str, Mapping[str, Any]] = {}
        for entry in entries:
            employee_id = entry.get("employee_id")
            if not employee_id:
                raise ValidationError("employee_id is required", field="employee_id")
            day = as_date(entry.get("date") or date.today())
            by_candidate[f"{employee_id}@{day.isoformat()}"] = {**entry, "date": day}

        async def save(candidate: str) -> dict[str, Any]:
            entry = by_candidate[candidate]
            record = await attendance.mark_attendance(
                entry["employee_id"],
                entry["date"],
                entry.get("status") or AttendanceStatus.PRESENT,
                check_in=entry.get("check_in"),
                check_out=entry.get("check_out"),
                overtime_hours=entry.get("overtime_hours"),
                notes=entry.get("notes"),
            )
            return {"attendance_id": record.id, "work_hours": str(record.work_hours)}

        return await self.run_bulk(
            by_candidate,
            save,
            entity_key=lambda candidate: candidate.split("@", 1)[0],
            timeout=timeout,
            cancel_event=cancel_event,
        )

    async def pay_employees(
        self,
        employee_ids: Iterable[str],
        period_start: date | str,
        period_end: date | str,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        payment_date: date | str | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchResult:
        """Commit payroll for every employee over one period."""
        commits = self._require_commits()
        start = as_date(period_start)
        end = as_date(period_end)

        async def pay(employee_id: str) -> dict[str, Any]:
            committed = await commits.commit(employee_id, start, end, payment_method, payment_date)
            payment = committed.payment
            detail = {
                "payment_id": payment.id,
                "net_salary": str(payment.net_salary),
                "rate_defaulted": payment.rate_defaulted,
                "is_new": committed.is_new,
            }
            if payment.net_salary < 0:
                detail["warning"] = "negative net salary"
            return detail

        return await self.run_bulk(employee_ids, pay, timeout=timeout, cancel_event=cancel_event)

    async def pay_all_present(
        self,
        attendance_date: date | str,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchResult:
        """Pay every employee marked present on a date, for that date alone."""
        day = as_date(attendance_date)
        employee_ids = await self._require_attendance().present_employee_ids(day)
        logger.info("Paying %d employee(s) present on %s", len(employee_ids), day)
        return await self.pay_employees(
            employee_ids,
            day,
            day,
            payment_method,
            payment_date=day,
            timeout=timeout,
            cancel_event=cancel_event,
        )
