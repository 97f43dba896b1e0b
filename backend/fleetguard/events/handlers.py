"""
Подписчики шины событий: журнал аудита
"""
import json
from typing import Any, Callable, Dict, Optional
from sqlalchemy.orm import Session
from fleetguard.database import SessionLocal
from fleetguard.events.event_bus import EventBus
from fleetguard.events.event_types import EventType, EventPayload
from fleetguard.models import AuditLog
from fleetguard.logger import logger


# События, которые попадают в журнал аудита.
# subscription.created сюда не входит: запись аудита пишет activate_subscription в своей транзакции
AUDITED_EVENTS = (
    EventType.COMPANY_CREATED,
    EventType.COMPANY_UPDATED,
    EventType.USER_CREATED,
    EventType.USER_UPDATED,
    EventType.VEHICLE_CREATED,
    EventType.VEHICLE_UPDATED,
    EventType.COMPLIANCE_EXPIRING,
    EventType.COMPLIANCE_EXPIRED,
    EventType.CHALLAN_CREATED,
    EventType.SUBSCRIPTION_EXPIRING,
    EventType.SUBSCRIPTION_EXPIRED,
)


def _to_json(value: Optional[Dict[str, Any]]) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def build_audit_entry(payload: EventPayload) -> AuditLog:
    """
    Запись аудита из события

    Тип сущности берется из имени события, ID сущности из поля
    <сущность>_id в данных события. Снимок "до" передается в data["old_data"].
    """
    entity_type = payload.event_type.entity_type
    new_values = dict(payload.data)
    old_values = new_values.pop("old_data", None)

    entity_id = new_values.get(f"{entity_type}_id", new_values.get("id"))

    return AuditLog(
        company_id=new_values.get("company_id"),
        user_id=payload.initiator,
        action=payload.event_type.value,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        old_values=_to_json(old_values),
        new_values=_to_json(new_values),
    )


class AuditLogSubscriber:
    """
    Сохраняет события из списка AUDITED_EVENTS в журнал аудита

    Каждая запись пишется в собственной сессии, чтобы не зависеть от
    транзакции публикующего кода.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, audited_events=AUDITED_EVENTS):
        self.session_factory = session_factory
        self.audited_events = tuple(audited_events)

    def register(self, bus: EventBus) -> None:
        """
        Подписать журнал аудита на шину событий
        """
        for event_type in self.audited_events:
            bus.subscribe(event_type, self.handle)
        logger.info("Журнал аудита подписан на события", extra={
            "events_count": len(self.audited_events),
            "event_type": "events",
            "event_category": "audit"
        })

    def handle(self, payload: EventPayload) -> None:
        db = self.session_factory()
        try:
            db.add(build_audit_entry(payload))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
