"""
Репозиторий для работы с компаниями и их пользователями
"""
from datetime import date
from sqlalchemy.orm import Session
from typing import Optional, List
from fleetguard.enums import ADMIN_ROLES, SubscriptionStatus
from fleetguard.models import Company, CompanySubscription, User


class CompanyRepository:
    """
    Репозиторий для работы с компаниями
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, company_id: int) -> Optional[Company]:
        return self.db.query(Company).filter(Company.id == company_id).first()

    def get_admins(self, company_id: int) -> List[User]:
        """
        Активные администраторы компании (owner и admin)
        """
        return self.db.query(User).filter(
            User.company_id == company_id,
            User.role.in_(ADMIN_ROLES),
            User.is_active == True  # noqa: E712
        ).order_by(User.id.asc()).all()

    def get_users(self, company_id: int) -> List[User]:
        """
        Все активные пользователи компании
        """
        return self.db.query(User).filter(
            User.company_id == company_id,
            User.is_active == True  # noqa: E712
        ).order_by(User.id.asc()).all()

    def get_ids_with_active_subscription(self, today: date) -> List[int]:
        """
        ID компаний, у которых есть действующая подписка на дату today
        """
        rows = self.db.query(CompanySubscription.company_id).filter(
            CompanySubscription.status == SubscriptionStatus.ACTIVE.value,
            CompanySubscription.end_date >= today
        ).distinct().order_by(CompanySubscription.company_id.asc()).all()
        return [row[0] for row in rows]
