"""
Репозиторий для работы с тарифами и подписками
"""
from datetime import date
from sqlalchemy.orm import Session, joinedload
from typing import Optional, List
from fleetguard.enums import SubscriptionStatus
from fleetguard.models import CompanySubscription, SubscriptionPlan


class SubscriptionRepository:
    """
    Репозиторий для работы с тарифами и подписками
    """

    def __init__(self, db: Session):
        self.db = db

    def get_active_plans(self) -> List[SubscriptionPlan]:
        return self.db.query(SubscriptionPlan).filter(
            SubscriptionPlan.is_active == True  # noqa: E712
        ).order_by(SubscriptionPlan.id.asc()).all()

    def get_plan(self, plan_id: int) -> Optional[SubscriptionPlan]:
        return self.db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()

    def _active_query(self, today: date):
        return self.db.query(CompanySubscription).options(
            joinedload(CompanySubscription.plan)
        ).filter(
            CompanySubscription.status == SubscriptionStatus.ACTIVE.value,
            CompanySubscription.end_date >= today
        )

    def get_active_for_company(self, company_id: int, today: date) -> Optional[CompanySubscription]:
        """
        Действующая подписка компании (с самой поздней датой окончания)
        """
        return self._active_query(today).filter(
            CompanySubscription.company_id == company_id
        ).order_by(CompanySubscription.end_date.desc()).first()

    def get_all_active(self, today: date) -> List[CompanySubscription]:
        return self._active_query(today).order_by(CompanySubscription.id.asc()).all()

    def get_active_for_plan(self, plan_id: int, today: date) -> List[CompanySubscription]:
        return self._active_query(today).filter(
            CompanySubscription.plan_id == plan_id
        ).order_by(CompanySubscription.company_id.asc()).all()

    def get_ending_between(self, start: date, end: date) -> List[CompanySubscription]:
        """
        Активные подписки, заканчивающиеся в интервале [start, end]
        """
        return self.db.query(CompanySubscription).filter(
            CompanySubscription.status == SubscriptionStatus.ACTIVE.value,
            CompanySubscription.end_date >= start,
            CompanySubscription.end_date <= end
        ).order_by(CompanySubscription.id.asc()).all()

    def get_overdue(self, today: date) -> List[CompanySubscription]:
        """
        Подписки со статусом active, срок которых уже прошел
        """
        return self.db.query(CompanySubscription).filter(
            CompanySubscription.status == SubscriptionStatus.ACTIVE.value,
            CompanySubscription.end_date < today
        ).order_by(CompanySubscription.id.asc()).all()

    def add(self, company_id: int, plan_id: int, start_date: date, end_date: date,
            payment_reference: Optional[str] = None) -> CompanySubscription:
        """
        Добавление подписки в текущую транзакцию (без коммита)
        """
        subscription = CompanySubscription(
            company_id=company_id,
            plan_id=plan_id,
            start_date=start_date,
            end_date=end_date,
            status=SubscriptionStatus.ACTIVE.value,
            payment_reference=payment_reference
        )
        self.db.add(subscription)
        self.db.flush()
        return subscription
