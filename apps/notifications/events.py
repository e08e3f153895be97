"""
Eventos de negócio que disparam notificações.

Viajam pela fila como {"event_type": ..., "data": {...}} (JSON).
"""

from dataclasses import MISSING, asdict, dataclass, fields
from typing import ClassVar

from apps.notifications.models import EventTrigger


class UnknownEventError(Exception):
    """Tipo de evento sem regra de desserialização."""


@dataclass(frozen=True)
class NotificationEvent:
    event_type: ClassVar[str] = ""

    user_id: str

    def to_payload(self) -> dict:
        return asdict(self)

    def variables(self) -> dict:
        """Campos do evento disponíveis para os templates."""
        return {
            key: value
            for key, value in asdict(self).items()
            if key != "user_id" and value not in (None, "")
        }


@dataclass(frozen=True)
class UserRegistered(NotificationEvent):
    event_type: ClassVar[str] = EventTrigger.USER_REGISTERED

    name: str = ""
    church_name: str = ""


@dataclass(frozen=True)
class PaymentReceived(NotificationEvent):
    event_type: ClassVar[str] = EventTrigger.PAYMENT_RECEIVED

    transaction_id: str
    amount: str
    paid_at: str = ""


@dataclass(frozen=True)
class PaymentDueReminder(NotificationEvent):
    event_type: ClassVar[str] = EventTrigger.PAYMENT_DUE_REMINDER

    amount: str
    due_date: str
    payment_link: str = ""


@dataclass(frozen=True)
class PaymentOverdue(NotificationEvent):
    event_type: ClassVar[str] = EventTrigger.PAYMENT_OVERDUE

    amount: str
    due_date: str
    payment_link: str = ""


EVENT_TYPES = {
    cls.event_type: cls
    for cls in (UserRegistered, PaymentReceived, PaymentDueReminder, PaymentOverdue)
}


def parse_event(event_type: str, data: dict) -> NotificationEvent:
    """
    Converte o payload da fila no evento tipado.

    Levanta UnknownEventError para tipo desconhecido e ValueError para
    campo obrigatório ausente. Campos extras são ignorados.
    """
    event_cls = EVENT_TYPES.get(event_type)
    if event_cls is None:
        raise UnknownEventError(f"Evento desconhecido: {event_type}")

    data = data or {}
    kwargs = {}
    missing = []
    for field in fields(event_cls):
        value = data.get(field.name)
        if value is None:
            if field.default is MISSING:
                missing.append(field.name)
            continue
        kwargs[field.name] = str(value)

    if missing:
        raise ValueError(f"Payload de {event_type} sem os campos: {', '.join(missing)}")

    return event_cls(**kwargs)
