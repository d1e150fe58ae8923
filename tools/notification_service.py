"""
Notification Service Tool
Delivers caregiver notifications over email and push
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from html import escape
from typing import Any, Dict, List, Optional, Sequence, Tuple

from actions.dedup_ledger import DedupLedger, EventClass
from actions.reminder_engine import NotificationEvent, ReminderType
from config import settings
from models import DoseStatus, DoseType
from tools.email_client import EmailClient, get_email_client
from tools.push_client import PushClient, get_push_client


logger = logging.getLogger(__name__)


class NotificationChannel(str, Enum):
    """Available notification channels"""
    EMAIL = "email"
    PUSH = "push"


@dataclass
class NotificationResult:
    """Result of sending a notification"""
    success: bool
    channel: NotificationChannel
    message_id: Optional[str] = None
    delivered_at: Optional[datetime] = None
    error: Optional[str] = None
    skipped: bool = False


@dataclass
class DispatchResult:
    """Per-channel results for one event"""
    event: NotificationEvent
    results: List[NotificationResult] = field(default_factory=list)

    def for_channel(self, channel: NotificationChannel) -> Optional[NotificationResult]:
        return next((r for r in self.results if r.channel == channel), None)

    @property
    def email_failed(self) -> bool:
        result = self.for_channel(NotificationChannel.EMAIL)
        return bool(result and not result.success and not result.skipped)


_PAGE = """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: {header_color}; color: white; padding: 20px; border-radius: 10px 10px 0 0; text-align: center;">
      <h1>{heading}</h1>
    </div>
    <div style="background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px;">
{content}
    </div>
    <div style="text-align: center; margin-top: 20px; color: #6b7280; font-size: 12px;">
      <p>{app_name} Medication Management System</p>
      <p>This is an automated notification. Please do not reply to this email.</p>
    </div>
  </div>
</body>
</html>
"""

_ROW = '      <p><strong>{label}:</strong> {value}</p>'


# Notification templates
NOTIFICATION_TEMPLATES: Dict[ReminderType, Dict[str, str]] = {
    ReminderType.REMINDER: {
        "email_subject": "💊 Medication Reminder: {patient_id} - {dose_label} Dose",
        "heading": "💊 Medication Reminder",
        "header_color": "#3b82f6",
        "email_body": """      <h2 style="color: #ef4444;">Time to Take Medication!</h2>
{rows}
{pill_counts}
{missed_box}
      <p><strong>Action Required:</strong> Please remind patient <strong>{patient_id}</strong> to take their {dose_type} medication now.</p>""",
        "push_title": "💊 Time to take {dose_type} pills",
        "push_body": "Patient {patient_id}: {dose_type} medication is due now ({scheduled_time})",
        "push_tag": "dose-reminder-{dose_type}",
    },
    ReminderType.MISSED_DOSE: {
        "email_subject": "❌ Medication Missed: {patient_id} - {dose_label} Dose",
        "heading": "❌ Medication Missed",
        "header_color": "#ef4444",
        "email_body": """      <h2 style="color: #ef4444;">Medication Missed - Action Required!</h2>
{rows}
{pill_counts}
      <p style="color: #ef4444; font-weight: bold;">⚠️ Patient <strong>{patient_id}</strong> did not take their {dose_type} medication at the scheduled time ({scheduled_time}). Please check on them immediately.</p>""",
        "push_title": "⚠️ Missed {dose_type} dose",
        "push_body": "Patient {patient_id} missed the {dose_type} medication.",
        "push_tag": "missed-dose-{dose_type}",
    },
    ReminderType.LOW_STOCK: {
        "email_subject": "⚠️ Low Stock Alert: {patient_id} - {dose_label} Pills",
        "heading": "⚠️ Low Stock Alert",
        "header_color": "#f59e0b",
        "email_body": """      <h2 style="color: #f59e0b;">Pill Stock Running Low!</h2>
{rows}
      <p><strong>Action Required:</strong> Please refill the {dose_type} medication stock for patient <strong>{patient_id}</strong>.</p>""",
        "push_title": "⚠️ Low {dose_type} pill stock",
        "push_body": "Only {pill_count} {dose_type} pills remaining for {patient_id}. Please refill soon.",
        "push_tag": "low-stock-{dose_type}",
    },
    ReminderType.DOSE_STATUS: {
        "email_subject": "{app_name} - {status_upper}: {patient_id} - {dose_label} Dose",
        "heading": "{status_text}",
        "header_color": "{status_color}",
        "email_body": """      <h2 style="color: {status_color};">{status_heading}</h2>
{rows}
{pill_counts}""",
    },
}

DOSE_LABELS = {
    DoseType.MORNING: ("Morning", "🌅 Morning"),
    DoseType.EVENING: ("Evening", "🌙 Evening"),
}


def format_delay(delay_seconds: int) -> str:
    """Human-readable delay between reminder and dose"""
    if delay_seconds and delay_seconds > 0:
        return f"{delay_seconds // 60} min {delay_seconds % 60} sec after reminder"
    return "No delay / missed"


class NotificationService:
    """
    Multi-channel notification service for caregiver alerts

    Email is authoritative: when it fails the event's ledger key is unmarked
    so the next evaluation can fire it again. Push is best effort and goes
    out once per event; a retried event only resends the email.
    """

    def __init__(
        self,
        email_client: Optional[EmailClient] = None,
        push_client: Optional[PushClient] = None,
        ledger: Optional[DedupLedger] = None,
        channels: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        low_stock_threshold: Optional[int] = None
    ):
        self.templates = NOTIFICATION_TEMPLATES
        self.email_client = email_client or get_email_client()
        self.push_client = push_client or get_push_client()
        self.ledger = ledger
        self.channels = [
            NotificationChannel(c)
            for c in (channels if channels is not None else settings.NOTIFICATION_CHANNELS)
        ]
        self.timeout = timeout if timeout is not None else settings.DISPATCH_TIMEOUT_SECONDS
        self.low_stock_threshold = (
            low_stock_threshold if low_stock_threshold is not None else settings.LOW_STOCK_THRESHOLD
        )

    async def dispatch(self, event: NotificationEvent) -> DispatchResult:
        """
        Send one event through every enabled channel.

        Never raises; failures are reported in the returned results.
        """
        dispatch_result = DispatchResult(event=event)

        for channel in self.channels:
            if channel == NotificationChannel.EMAIL:
                result = await self._send_event_email(event)
            else:
                result = await self._send_event_push(event)
            dispatch_result.results.append(result)

        return dispatch_result

    # ==================== EVENT CHANNELS ====================

    async def _send_event_email(self, event: NotificationEvent) -> NotificationResult:
        if not event.caregiver_email:
            logger.info(
                f"No caregiver email for patient {event.patient_id}; "
                f"skipping {event.reminder_type.value} email"
            )
            return NotificationResult(
                success=False,
                channel=NotificationChannel.EMAIL,
                error="No caregiver email",
                skipped=True
            )

        subject, body = self.render_email(event.reminder_type, self._event_data(event))
        result = await self._deliver_email(event.caregiver_email, subject, body)

        if not result.success:
            logger.warning(
                f"{event.reminder_type.value} email for patient {event.patient_id} failed "
                f"({result.error}); it will be retried on a later tick"
            )
            if self.ledger is not None:
                self.ledger.unmark(event.ledger_class, event.ledger_key)

        return result

    async def _send_event_push(self, event: NotificationEvent) -> NotificationResult:
        push_key = DedupLedger.push_key(event.ledger_class, event.ledger_key)
        if self.ledger is not None and self.ledger.has_fired(EventClass.PUSH, push_key):
            return NotificationResult(success=True, channel=NotificationChannel.PUSH, skipped=True)

        template = self.templates[event.reminder_type]
        data = self._event_data(event)
        title = template["push_title"].format(**data)
        options = {
            "body": template["push_body"].format(**data),
            "icon": settings.PUSH_ICON,
            "tag": template["push_tag"].format(**data),
            "require_interaction": event.reminder_type == ReminderType.REMINDER,
            "data": {
                "patient_id": event.patient_id,
                "dose_type": event.dose_type.value,
                "reminder_type": event.reminder_type.value,
            },
        }

        try:
            await asyncio.wait_for(self.push_client.show_notification(title, options), self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Push for patient {event.patient_id} timed out after {self.timeout}s")
            return NotificationResult(success=False, channel=NotificationChannel.PUSH, error="timeout")
        except Exception as e:
            logger.warning(f"Push send error for patient {event.patient_id}: {e}")
            return NotificationResult(success=False, channel=NotificationChannel.PUSH, error=str(e))

        if self.ledger is not None:
            self.ledger.mark_fired(EventClass.PUSH, push_key)
        return NotificationResult(
            success=True,
            channel=NotificationChannel.PUSH,
            delivered_at=datetime.utcnow()
        )

    async def _deliver_email(self, to: str, subject: str, body: str) -> NotificationResult:
        try:
            sent = await asyncio.wait_for(self.email_client.send_email(to, subject, body), self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Email to {to} timed out after {self.timeout}s")
            return NotificationResult(success=False, channel=NotificationChannel.EMAIL, error="timeout")
        except Exception as e:
            logger.error(f"Email send error: {e}")
            return NotificationResult(success=False, channel=NotificationChannel.EMAIL, error=str(e))

        if not sent.success:
            return NotificationResult(
                success=False,
                channel=NotificationChannel.EMAIL,
                error=sent.error or "Email provider reported failure"
            )
        return NotificationResult(
            success=True,
            channel=NotificationChannel.EMAIL,
            message_id=sent.message_id,
            delivered_at=datetime.utcnow()
        )

    # ==================== RENDERING ====================

    def render_email(self, reminder_type: ReminderType, data: Dict[str, Any]) -> Tuple[str, str]:
        """Return (subject, html) for a notification kind"""
        template = self.templates[reminder_type]
        data = {"app_name": settings.APP_NAME, **data}
        subject = template["email_subject"].format(**data)
        content = template["email_body"].format(**data)
        body = _PAGE.format(
            header_color=template["header_color"].format(**data),
            heading=template["heading"].format(**data),
            content=content,
            app_name=escape(settings.APP_NAME),
        )
        return subject, body

    def _event_data(self, event: NotificationEvent) -> Dict[str, Any]:
        scheduled = event.scheduled_time or "-"
        if event.reminder_type == ReminderType.LOW_STOCK:
            rows = [("Remaining Pills", str(event.pill_count))]
        else:
            rows = [("Scheduled Time", f"<strong>{escape(scheduled)}</strong>")]
            if event.reminder_type == ReminderType.MISSED_DOSE:
                rows.append(("Current Time", event.occurred_at.strftime("%H:%M")))

        return self._base_data(
            patient_id=event.patient_id,
            dose_type=event.dose_type,
            extra_rows=rows,
            morning_pill_count=event.morning_pill_count,
            evening_pill_count=event.evening_pill_count,
            missed_doses_today=event.missed_today,
            scheduled_time=scheduled,
            pill_count=event.pill_count,
        )

    def _base_data(
        self,
        patient_id: str,
        dose_type: DoseType,
        extra_rows: List[Tuple[str, str]],
        morning_pill_count: Optional[int] = None,
        evening_pill_count: Optional[int] = None,
        missed_doses_today: int = 0,
        **extra
    ) -> Dict[str, Any]:
        dose_type = DoseType(dose_type)
        label, icon_label = DOSE_LABELS[dose_type]
        rows = [
            ("Patient ID", f"<strong>{escape(patient_id)}</strong>"),
            ("Dose Type", icon_label),
        ] + extra_rows

        missed_box = ""
        if missed_doses_today and missed_doses_today > 0:
            missed_box = (
                '      <div style="background: #fee2e2; padding: 15px; border-radius: 8px;">'
                f'<h3 style="color: #ef4444;">⚠️ Missed Doses Today: {missed_doses_today}</h3>'
                "<p>Please check on the patient immediately.</p></div>"
            )

        return {
            "patient_id": escape(patient_id),
            "dose_type": dose_type.value,
            "dose_label": label,
            "rows": "\n".join(_ROW.format(label=k, value=v) for k, v in rows),
            "pill_counts": self._pill_counts_html(morning_pill_count, evening_pill_count),
            "missed_box": missed_box,
            **{k: escape(v) if isinstance(v, str) else v for k, v in extra.items()},
        }

    def _pill_counts_html(self, morning: Optional[int], evening: Optional[int]) -> str:
        boxes = []
        for label, count in (("Morning Pills", morning or 0), ("Evening Pills", evening or 0)):
            low = count <= self.low_stock_threshold
            color = "#ef4444" if low else "#10b981"
            note = "⚠️ Low Stock!" if low else "In Stock"
            boxes.append(
                f'<td style="text-align: center; padding: 10px;">{label}<br>'
                f'<span style="font-size: 28px; font-weight: bold; color: {color};">{count}</span><br>'
                f'<span style="color: {color}; font-size: 12px;">{note}</span></td>'
            )
        return f'      <table style="width: 100%;"><tr>{"".join(boxes)}</tr></table>'

    # ==================== DIRECT SENDS ====================

    async def send_reminder_email(
        self,
        caregiver_email: str,
        patient_id: str,
        dose_type: DoseType,
        scheduled_time: Optional[str] = None,
        morning_pill_count: Optional[int] = None,
        evening_pill_count: Optional[int] = None,
        missed_doses_today: int = 0
    ) -> NotificationResult:
        """Send a reminder email on request, outside the ledger"""
        data = self._base_data(
            patient_id=patient_id,
            dose_type=dose_type,
            extra_rows=[("Scheduled Time", f"<strong>{escape(scheduled_time or '-')}</strong>")],
            morning_pill_count=morning_pill_count,
            evening_pill_count=evening_pill_count,
            missed_doses_today=missed_doses_today,
        )
        subject, body = self.render_email(ReminderType.REMINDER, data)
        return await self._deliver_email(caregiver_email, subject, body)

    async def send_dose_status_email(
        self,
        caregiver_email: str,
        patient_id: str,
        dose_type: DoseType,
        status: DoseStatus,
        delay_seconds: int = 0,
        timestamp: Optional[str] = None,
        morning_pill_count: Optional[int] = None,
        evening_pill_count: Optional[int] = None
    ) -> NotificationResult:
        """Tell the caregiver a dose was taken or missed"""
        status = DoseStatus(status)
        taken = status == DoseStatus.TAKEN
        data = self._base_data(
            patient_id=patient_id,
            dose_type=dose_type,
            extra_rows=[
                ("Status", f"<strong>{status.value.upper()}</strong>"),
                ("Delay", format_delay(delay_seconds)),
                ("Time", escape(timestamp or datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S UTC"))),
            ],
            morning_pill_count=morning_pill_count,
            evening_pill_count=evening_pill_count,
        )
        data.update(
            status_upper=status.value.upper(),
            status_text="✅ TAKEN" if taken else "❌ MISSED",
            status_color="#10b981" if taken else "#ef4444",
            status_heading="Medication Taken Successfully" if taken else "Medication Missed",
        )
        subject, body = self.render_email(ReminderType.DOSE_STATUS, data)
        return await self._deliver_email(caregiver_email, subject, body)

    async def send_low_stock_email(
        self,
        caregiver_email: str,
        patient_id: str,
        dose_type: DoseType,
        current_count: int
    ) -> NotificationResult:
        data = self._base_data(
            patient_id=patient_id,
            dose_type=dose_type,
            extra_rows=[("Remaining Pills", str(current_count))],
        )
        subject, body = self.render_email(ReminderType.LOW_STOCK, data)
        return await self._deliver_email(caregiver_email, subject, body)
