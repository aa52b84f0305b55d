import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from deskflow.logging_config import get_logger
from deskflow.models import PaymentReminder
from deskflow.services.interfaces import Transport
from deskflow.services.session_store import SessionStore

logger = get_logger("reminder_service")

LOOKAHEAD = timedelta(hours=1)


def _ensure_timezone(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _add_month(dt: datetime) -> datetime:
    year = dt.year + (dt.month // 12)
    month = dt.month % 12 + 1
    day = dt.day
    while True:
        try:
            return dt.replace(year=year, month=month, day=day)
        except ValueError:
            day -= 1


def days_until(due_date: datetime, now: datetime) -> int:
    return math.ceil((_ensure_timezone(due_date) - now).total_seconds() / 86400)


def next_reminder_date(due_date: datetime, reminder_days: list[int], after: datetime) -> Optional[datetime]:
    """Earliest ``due_date - N days`` strictly later than ``after``, or None."""
    due_date = _ensure_timezone(due_date)
    for day in sorted(reminder_days, reverse=True):
        candidate = due_date - timedelta(days=day)
        if candidate > after:
            return candidate
    return None


def format_reminder(reminder: PaymentReminder, now: datetime) -> str:
    remaining = days_until(reminder.due_date, now)
    text = f"💳 *Recordatorio de Pago*\n\n📋 *{reminder.title}*\n\n"
    if reminder.description:
        text += f"{reminder.description}\n\n"
    if reminder.amount:
        text += f"💰 *Monto:* ${reminder.amount:,.2f}\n"
    text += f"📅 *Vence:* {_ensure_timezone(reminder.due_date).strftime('%d/%m/%Y')}\n"
    text += f"⏰ *Días restantes:* {remaining} día{'s' if remaining != 1 else ''}\n\n"
    if reminder.is_monthly:
        text += "🔄 Este es un recordatorio mensual recurrente.\n\n"
    return text + "Por favor, asegúrate de realizar el pago a tiempo."


def _reschedule(reminder: PaymentReminder, now: datetime) -> None:
    # Anything inside the current window has just been sent.
    after = now + LOOKAHEAD
    upcoming = next_reminder_date(reminder.due_date, reminder.reminder_days or [], after)
    if upcoming is not None:
        reminder.next_reminder = upcoming
        return
    if not reminder.is_monthly:
        reminder.is_active = False
        reminder.next_reminder = None
        return
    reminder.due_date = _add_month(_ensure_timezone(reminder.due_date))
    reminder.next_reminder = next_reminder_date(reminder.due_date, reminder.reminder_days or [], after)


def send_due_payment_reminders(db: Session, transport: Transport, now: Optional[datetime] = None) -> dict:
    """Send active reminders whose next date falls within the coming hour."""
    now = now or datetime.now(timezone.utc)
    window_end = now + LOOKAHEAD
    sent = []
    failed = []

    reminders = db.query(PaymentReminder).filter(PaymentReminder.is_active.is_(True)).all()
    for reminder in reminders:
        if reminder.next_reminder is None:
            continue
        next_at = _ensure_timezone(reminder.next_reminder)
        if not (now <= next_at <= window_end):
            continue

        if not transport.send(reminder.phone, format_reminder(reminder, now)):
            failed.append(str(reminder.id))
            logger.warning("Payment reminder not delivered", extra={"context": {"reminder_id": str(reminder.id)}})
            continue

        reminder.last_sent = now
        _reschedule(reminder, now)
        sent.append(str(reminder.id))

    db.commit()
    if sent or failed:
        logger.info("Payment reminders processed", extra={"context": {"sent": len(sent), "failed": len(failed)}})
    return {"checked": len(reminders), "sent": sent, "failed": failed}


def expire_idle_sessions(sessions: SessionStore, ttl_minutes: int) -> dict:
    """Session TTL sweep; a TTL of 0 keeps sessions forever."""
    if ttl_minutes <= 0:
        return {"enabled": False, "expired": []}
    expired = sessions.expire_stale(timedelta(minutes=ttl_minutes))
    return {"enabled": True, "expired": expired}


def run_sweeps(
    db: Session,
    sessions: SessionStore,
    transport: Transport,
    ttl_minutes: int,
    now: Optional[datetime] = None,
) -> dict:
    """One scheduler tick: session expiry, then payment reminders."""
    expiry = expire_idle_sessions(sessions, ttl_minutes)
    reminders = send_due_payment_reminders(db, transport, now=now)
    return {
        "expired_sessions": expiry["expired"],
        "reminders_sent": reminders["sent"],
        "reminders_failed": reminders["failed"],
    }
