"""Employee records: creation, edits and activation status."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import date
from typing import Any, Mapping

from wage_ledger.calculators.identity import customer_key, is_valid_email
from wage_ledger.calculators.periods import as_date
from wage_ledger.calculators.types import Employee, to_positive_money
from wage_ledger.errors import ConcurrencyConflictError, NotFoundError, ValidationError
from wage_ledger.services.locking_service import EntityLocks
from wage_ledger.store.base import Collections, RecordStore

logger = logging.getLogger(__name__)

EMPLOYEE_TYPES = {"employee": "EMP", "driver": "DR"}
STATUSES = ("active", "inactive")
EDITABLE_FIELDS = ("name", "daily_rate", "phone", "email", "role", "employee_type", "join_date")

# Serializes id allocation within the process
_ID_ALLOCATION = "employee-id-allocation"


class EmployeeService:
    """Creates and edits employees.

    Ids follow the ``EMP0001`` / ``DR0001`` pattern per employee type, one
    past the highest number in use. Phones are stored normalized.
    """

    def __init__(self, store: RecordStore, locks: EntityLocks | None = None):
        self.store = store
        self.locks = locks or EntityLocks()

    async def get_employee(self, employee_id: str) -> Employee:
        record = await self.store.get(Collections.EMPLOYEES, employee_id)
        if record is None:
            raise NotFoundError("Employee", employee_id)
        return Employee.from_record(record)

    async def list_employees(self, status: str | None = None) -> list[Employee]:
        # Filtered after parsing: records without a status read as active
        records = await self.store.query(Collections.EMPLOYEES)
        employees = [Employee.from_record(r) for r in records]
        if status:
            employees = [e for e in employees if e.status == status]
        return sorted(employees, key=lambda e: e.id)

    async def create_employee(
        self,
        name: str,
        daily_rate: Any,
        phone: str | None = None,
        email: str | None = None,
        role: str | None = None,
        employee_type: str = "employee",
        join_date: date | str | None = None,
        employee_id: str | None = None,
    ) -> Employee:
        """Add an active employee.

        Raises:
            ValidationError: Missing name, non-positive rate, bad phone,
                email or employee type.
            ConcurrencyConflictError: ``employee_id`` is already taken.
        """
        employee = Employee(
            id=employee_id or "",
            name=_clean_name(name),
            daily_rate=to_positive_money(daily_rate, "daily_rate"),
            phone=_clean_phone(phone),
            email=_clean_email(email),
            role=(role or "").strip() or None,
            employee_type=_clean_type(employee_type),
            join_date=as_date(join_date) if join_date else date.today(),
        )

        async with self.locks.hold(_ID_ALLOCATION):
            if employee_id:
                if await self.store.get(Collections.EMPLOYEES, employee_id) is not None:
                    raise ConcurrencyConflictError(employee_id, "employee id already exists")
            else:
                employee = replace(employee, id=await self._next_id(employee.employee_type))
            await self.store.create(
                Collections.EMPLOYEES, {**employee.to_record(), "id": employee.id}
            )

        logger.info(
            "Created employee %s (%s) at %s/day", employee.id, employee.name, employee.daily_rate
        )
        return employee

    async def update_employee(self, employee_id: str, changes: Mapping[str, Any]) -> Employee:
        """Apply a partial edit. Only the editable fields may change.

        Raises:
            NotFoundError: Unknown employee.
            ValidationError: Unknown field or invalid value.
        """
        unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Cannot edit {', '.join(unknown)}", field=unknown[0])
        current = await self.get_employee(employee_id)

        updated = current
        if "name" in changes:
            updated = replace(updated, name=_clean_name(changes["name"]))
        if "daily_rate" in changes:
            updated = replace(
                updated, daily_rate=to_positive_money(changes["daily_rate"], "daily_rate")
            )
        if "phone" in changes:
            updated = replace(updated, phone=_clean_phone(changes["phone"]))
        if "email" in changes:
            updated = replace(updated, email=_clean_email(changes["email"]))
        if "role" in changes:
            updated = replace(updated, role=(changes["role"] or "").strip() or None)
        if "employee_type" in changes:
            updated = replace(updated, employee_type=_clean_type(changes["employee_type"]))
        if "join_date" in changes and changes["join_date"]:
            updated = replace(updated, join_date=as_date(changes["join_date"]))

        await self.store.update(Collections.EMPLOYEES, employee_id, updated.to_record())
        logger.info("Updated employee %s: %s", employee_id, ", ".join(sorted(changes)))
        return updated

    async def set_status(self, employee_id: str, status: str) -> Employee:
        if status not in STATUSES:
            raise ValidationError(f"status must be one of {', '.join(STATUSES)}", field="status")
        current = await self.get_employee(employee_id)
        await self.store.update(Collections.EMPLOYEES, employee_id, {"status": status})
        return replace(current, status=status)

    async def _next_id(self, employee_type: str) -> str:
        prefix = EMPLOYEE_TYPES[employee_type]
        pattern = re.compile(rf"^{prefix}(\d+)$")
        numbers = [0]
        for record in await self.store.query(Collections.EMPLOYEES):
            match = pattern.match(str(record.get("id", "")))
            if match:
                numbers.append(int(match.group(1)))
        return f"{prefix}{max(numbers) + 1:04d}"


def _clean_name(name: Any) -> str:
    cleaned = str(name or "").strip()
    if not cleaned:
        raise ValidationError("Employee name is required", field="name")
    return cleaned


def _clean_phone(phone: str | None) -> str | None:
    if not phone:
        return None
    return customer_key(phone)


def _clean_email(email: str | None) -> str | None:
    if not email:
        return None
    if not is_valid_email(email):
        raise ValidationError(f"Invalid email address {email!r}", field="email")
    return email.strip()


def _clean_type(employee_type: str | None) -> str:
    value = employee_type or "employee"
    if value not in EMPLOYEE_TYPES:
        raise ValidationError(
            f"employee_type must be one of {', '.join(EMPLOYEE_TYPES)}", field="employee_type"
        )
    return value
