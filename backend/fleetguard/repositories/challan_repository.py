"""
Репозиторий для работы со штрафами
"""
import json
from decimal import Decimal, InvalidOperation
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
from fleetguard.enums import ChallanStatus
from fleetguard.models import Challan, ChallanOffence
from fleetguard.services.vehicle_data_gateway import UNKNOWN_OFFENCE, ViolationRecord
from fleetguard.utils.date_utils import parse_api_datetime


def _to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def _normalize_status(value: Optional[str]) -> str:
    status = (value or "").strip().lower()
    if status in (ChallanStatus.PAID.value, "disposed", "closed"):
        return ChallanStatus.PAID.value
    if status == ChallanStatus.DISPUTED.value:
        return ChallanStatus.DISPUTED.value
    return ChallanStatus.PENDING.value


class ChallanRepository:
    """
    Репозиторий для работы со штрафами
    """

    def __init__(self, db: Session):
        self.db = db

    def exists(self, challan_number: str) -> bool:
        """
        Проверка наличия штрафа по номеру во всей системе
        """
        return self.db.query(Challan.id).filter(
            Challan.challan_number == challan_number
        ).first() is not None

    def add_from_record(self, vehicle_id: int, record: ViolationRecord) -> Challan:
        """
        Добавление штрафа и состава нарушений в текущую транзакцию

        Коммит выполняет вызывающий код, штраф и нарушения фиксируются вместе.

        Args:
            vehicle_id: ID ТС
            record: Запись о нарушении из внешнего API

        Returns:
            Challan (после flush, с заполненным id)
        """
        challan = Challan(
            vehicle_id=vehicle_id,
            challan_number=record.challan_number,
            challan_date=parse_api_datetime(record.challan_date),
            amount=_to_decimal(record.amount),
            status=_normalize_status(record.challan_status),
            accused_name=record.accused_name,
            state=record.state,
            payment_url=record.payment_url,
            is_notified=False,
            api_response_data=json.dumps(record.raw, ensure_ascii=False, default=str),
        )

        offences = record.offences or [{"offence_name": record.offence_details, "penalty": record.amount}]
        for offence in offences:
            challan.offences.append(ChallanOffence(
                offence_name=offence.get("offence_name") or offence.get("offenceName") or UNKNOWN_OFFENCE,
                mva=offence.get("mva"),
                penalty=_to_decimal(offence.get("penalty")),
            ))

        self.db.add(challan)
        self.db.flush()
        return challan

    def mark_notified(self, challan: Challan) -> None:
        challan.is_notified = True
        self.db.commit()

    @staticmethod
    def to_event_data(challan: Challan, company_id: int) -> Dict[str, Any]:
        """
        Данные события challan.created
        """
        return {
            "challan_id": challan.id,
            "challan_number": challan.challan_number,
            "vehicle_id": challan.vehicle_id,
            "company_id": company_id,
            "amount": str(challan.amount) if challan.amount is not None else None,
            "status": challan.status,
            "challan_date": challan.challan_date.isoformat() if challan.challan_date else None,
        }
