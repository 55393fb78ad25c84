from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from ..audit.service import AuditLog
from ..bindings.model import BindingDecision
from ..bindings.service import BindingService
from ..classes.model import ClassContext
from ..classes.normalizer import parse_composite_key
from ..common.datetime_utils import DayLike, calendar_day, day_range, now_utc
from ..common.validators import require_max_length
from ..core.constants import DEFAULT_EDIT_WINDOW_DAYS, DEFAULT_HISTORY_LIMIT, DEFAULT_TIMEZONE, MAX_NOTES_LENGTH
from ..core.enums import AuditOperation, LedgerStatus
from ..core.exceptions import DuplicateEntry, EditWindowExpired, NotFound
from ..holidays.service import HolidayCalendar
from ..roster.service import RawContext, RosterService, as_context
from ..students.model import roll_sort_key
from ..users.model import Actor
from .model import AttendanceReport, LedgerEntry, StudentAttendanceSummary, compute_marks
from .repository import LedgerRepository

logger = logging.getLogger(__name__)


def _next_status(current: LedgerStatus, *, keep_draft: bool) -> LedgerStatus:
    if current == LedgerStatus.DRAFT:
        return LedgerStatus.DRAFT if keep_draft else LedgerStatus.FINALIZED
    return LedgerStatus.MODIFIED


def _sorted(rolls: Iterable[str]) -> list[str]:
    return sorted(rolls, key=roll_sort_key)


class AttendanceLedgerService:
    """Daily attendance per class, owned by the marking faculty.

    The present/absent split is always computed from the freshly resolved
    roster; callers only ever say who was absent.
    """

    def __init__(
        self,
        ledger: LedgerRepository,
        roster: RosterService,
        bindings: BindingService,
        holidays: HolidayCalendar,
        audit: AuditLog,
        *,
        edit_window_days: int = DEFAULT_EDIT_WINDOW_DAYS,
        tz_name: str = DEFAULT_TIMEZONE,
        auto_reconcile: bool = True,
    ):
        self._ledger = ledger
        self._roster = roster
        self._bindings = bindings
        self._holidays = holidays
        self._audit = audit
        self._edit_window = timedelta(days=int(edit_window_days))
        self._tz_name = tz_name
        self._auto_reconcile = bool(auto_reconcile)

    @property
    def edit_window(self) -> timedelta:
        return self._edit_window

    def _day(self, value: Optional[DayLike], now: datetime) -> str:
        return calendar_day(value if value is not None else now, tz_name=self._tz_name)

    def _known_roster(
        self, actor: Actor, context: ClassContext, decision: BindingDecision, now: datetime
    ) -> frozenset[str]:
        result = self._roster.resolve_context(
            actor,
            context,
            owner_faculty_id=self._bindings.correction_owner(actor, context, decision),
            authorize_corrections=self._auto_reconcile,
            now=now,
        )
        return result.roll_numbers

    def _check_window(self, entry: LedgerEntry, now: datetime) -> None:
        if now - entry.created_at > self._edit_window:
            raise EditWindowExpired(
                f"Attendance can only be changed within {self._edit_window.days} days of marking",
                details={"entry_id": entry.entry_id, "created_at": entry.created_at.isoformat()},
            )

    def _apply_update(
        self,
        actor: Actor,
        entry: LedgerEntry,
        present: frozenset[str],
        absent: frozenset[str],
        *,
        notes: Optional[str],
        keep_draft: bool,
        operation: AuditOperation,
        now: datetime,
    ) -> LedgerEntry:
        self._check_window(entry, now)
        status = _next_status(entry.status, keep_draft=keep_draft)
        updated = self._ledger.update_marks(
            entry_id=entry.entry_id,
            present=present,
            absent=absent,
            status=status,
            notes=notes,
            actor_id=actor.user_id,
            now=now,
        )
        if updated is None:
            raise NotFound("Attendance entry disappeared during update")

        changes = {}
        if entry.absent != updated.absent:
            changes["absent"] = {"before": _sorted(entry.absent), "after": _sorted(updated.absent)}
        if entry.present != updated.present:
            changes["present"] = {"before": _sorted(entry.present), "after": _sorted(updated.present)}
        if entry.status != updated.status:
            changes["status"] = {"before": entry.status.value, "after": updated.status.value}
        self._audit.record(
            operation,
            actor_id=actor.user_id,
            composite_key=entry.composite_key,
            subject_id=str(entry.entry_id),
            changes=changes,
            details={"date": entry.attendance_date, "total_students": updated.total_students},
            now=now,
        )
        return updated

    def mark(
        self,
        actor: Actor,
        raw_context: RawContext,
        attendance_date: Optional[DayLike],
        absent_roll_numbers: Iterable[str],
        *,
        notes: Optional[str] = None,
        draft: bool = False,
        now: Optional[datetime] = None,
    ) -> LedgerEntry:
        """Record one day's attendance, or update the day if it is already recorded.

        A concurrent insert for the same owner, class and day loses to the
        store's uniqueness constraint and is retried as an update.
        """
        now = now or now_utc()
        context = as_context(raw_context)
        day = self._day(attendance_date, now)
        if notes is not None:
            require_max_length(notes, "Notes", MAX_NOTES_LENGTH)

        decision = self._bindings.require(actor, context, purpose=AuditOperation.LEDGER_MARK.value)
        self._holidays.ensure_open(day, context.department)
        key = context.composite_key

        existing = self._ledger.get(owner_faculty_id=actor.user_id, composite_key=key, attendance_date=day)
        if existing is not None:
            self._check_window(existing, now)

        present, absent = compute_marks(self._known_roster(actor, context, decision, now), absent_roll_numbers)
        if existing is None:
            try:
                created = self._ledger.insert(
                    owner_faculty_id=actor.user_id,
                    composite_key=key,
                    attendance_date=day,
                    department=context.department,
                    present=present,
                    absent=absent,
                    status=LedgerStatus.DRAFT if draft else LedgerStatus.FINALIZED,
                    notes=notes,
                    actor_id=actor.user_id,
                    now=now,
                )
            except DuplicateEntry:
                logger.info("lost insert race for %s on %s, updating instead", key, day)
                existing = self._ledger.get(owner_faculty_id=actor.user_id, composite_key=key, attendance_date=day)
                if existing is None:
                    raise
            else:
                self._audit.record(
                    AuditOperation.LEDGER_MARK,
                    actor_id=actor.user_id,
                    composite_key=key,
                    subject_id=str(created.entry_id),
                    details={
                        "date": day,
                        "status": created.status.value,
                        "present_count": len(created.present),
                        "absent_count": len(created.absent),
                    },
                    now=now,
                )
                return created

        return self._apply_update(
            actor,
            existing,
            present,
            absent,
            notes=notes,
            keep_draft=draft,
            operation=AuditOperation.LEDGER_MARK,
            now=now,
        )

    def edit(
        self,
        actor: Actor,
        raw_context: RawContext,
        attendance_date: DayLike,
        absent_roll_numbers: Iterable[str],
        *,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LedgerEntry:
        now = now or now_utc()
        context = as_context(raw_context)
        day = self._day(attendance_date, now)
        if notes is not None:
            require_max_length(notes, "Notes", MAX_NOTES_LENGTH)

        decision = self._bindings.require(actor, context, purpose=AuditOperation.LEDGER_EDIT.value)
        entry = self._ledger.get(owner_faculty_id=actor.user_id, composite_key=context.composite_key, attendance_date=day)
        if entry is None:
            raise NotFound("No attendance recorded for this class and date")
        # fail before resolving so an expired entry never triggers reconciliation
        self._check_window(entry, now)

        present, absent = compute_marks(self._known_roster(actor, context, decision, now), absent_roll_numbers)
        return self._apply_update(
            actor,
            entry,
            present,
            absent,
            notes=notes,
            keep_draft=entry.status == LedgerStatus.DRAFT,
            operation=AuditOperation.LEDGER_EDIT,
            now=now,
        )

    def finalize(
        self,
        actor: Actor,
        raw_context: RawContext,
        attendance_date: DayLike,
        *,
        now: Optional[datetime] = None,
    ) -> LedgerEntry:
        now = now or now_utc()
        context = as_context(raw_context)
        day = self._day(attendance_date, now)
        self._bindings.require(actor, context, purpose=AuditOperation.LEDGER_FINALIZE.value)

        entry = self.get_entry(actor.user_id, context.composite_key, day)
        if entry.status.is_settled:
            return entry

        if self._ledger.transition(
            entry_id=entry.entry_id,
            from_status=LedgerStatus.DRAFT,
            to_status=LedgerStatus.FINALIZED,
            actor_id=actor.user_id,
            now=now,
        ):
            self._audit.record(
                AuditOperation.LEDGER_FINALIZE,
                actor_id=actor.user_id,
                composite_key=entry.composite_key,
                subject_id=str(entry.entry_id),
                changes={"status": {"before": LedgerStatus.DRAFT.value, "after": LedgerStatus.FINALIZED.value}},
                details={"date": day},
                now=now,
            )
        return self.get_entry(actor.user_id, context.composite_key, day)

    def get_entry(self, owner_faculty_id: str, composite_key: str, attendance_date: DayLike) -> LedgerEntry:
        day = calendar_day(attendance_date, tz_name=self._tz_name)
        entry = self._ledger.get(owner_faculty_id=owner_faculty_id, composite_key=composite_key, attendance_date=day)
        if entry is None:
            raise NotFound("No attendance recorded for this class and date")
        return entry

    def history(
        self,
        owner_faculty_id: str,
        composite_key: str,
        start: DayLike,
        end: DayLike,
        *,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> Sequence[LedgerEntry]:
        parse_composite_key(composite_key)
        start_day, end_day = day_range(start, end, tz_name=self._tz_name)
        return self._ledger.list_range(
            composite_key, start_day, end_day, owner_faculty_id=owner_faculty_id, limit=int(limit)
        )

    def report(
        self,
        composite_key: str,
        start: DayLike,
        end: DayLike,
        *,
        owner_faculty_id: Optional[str] = None,
    ) -> AttendanceReport:
        """Aggregate straight from the stored sets; there is no cached counter."""
        parse_composite_key(composite_key)
        start_day, end_day = day_range(start, end, tz_name=self._tz_name)
        entries = self._ledger.list_range(composite_key, start_day, end_day, owner_faculty_id=owner_faculty_id)

        present: Counter[str] = Counter()
        absent: Counter[str] = Counter()
        for entry in entries:
            present.update(entry.present)
            absent.update(entry.absent)

        rolls = _sorted(set(present) | set(absent))
        return AttendanceReport(
            composite_key=composite_key,
            start_date=start_day,
            end_date=end_day,
            sessions=len(entries),
            students=tuple(StudentAttendanceSummary(r, present[r], absent[r]) for r in rolls),
        )
