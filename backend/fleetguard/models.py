"""
Модели базы данных: компании, ТС, документы, штрафы, подписки и уведомления
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, Index, ForeignKey, Text, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fleetguard.database import Base
from fleetguard.enums import (
    UserRole, SubscriptionStatus, VehicleStatus, DeliveryStatus,
    NotificationSeverity, ChallanStatus
)


class SubscriptionPlan(Base):
    """
    Тарифный план подписки
    """
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(50), nullable=False, unique=True, comment="Название тарифа: FREE, BASIC, PREMIUM, ENTERPRISE")
    description = Column(Text, comment="Описание тарифа")
    max_vehicles = Column(Integer, nullable=False, default=5, comment="Максимальное количество ТС")
    max_users = Column(Integer, nullable=False, default=1, comment="Максимальное количество пользователей")
    price_monthly = Column(Numeric(10, 2), default=0, comment="Цена за месяц")
    price_yearly = Column(Numeric(10, 2), default=0, comment="Цена за год")
    is_active = Column(Boolean, default=True, nullable=False, index=True, comment="Активен ли тариф")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления")

    subscriptions = relationship("CompanySubscription", back_populates="plan")


class Company(Base):
    """
    Компания (арендатор)
    """
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False, comment="Название компании")
    email = Column(String(200), comment="Контактный email")
    phone = Column(String(50), comment="Контактный телефон")
    is_active = Column(Boolean, default=True, nullable=False, comment="Активна ли компания")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления")

    users = relationship("User", back_populates="company")
    vehicles = relationship("Vehicle", back_populates="company")
    subscriptions = relationship("CompanySubscription", back_populates="company")


class CompanySubscription(Base):
    """
    Подписка компании на тарифный план
    """
    __tablename__ = "company_subscriptions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete='CASCADE'), nullable=False, index=True, comment="ID компании")
    plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=False, index=True, comment="ID тарифа")
    start_date = Column(Date, nullable=False, comment="Дата начала")
    end_date = Column(Date, nullable=False, index=True, comment="Дата окончания (включительно)")
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value, index=True, comment="Статус: active, expired, cancelled")
    payment_reference = Column(String(200), comment="Идентификатор платежа")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления")

    company = relationship("Company", back_populates="subscriptions")
    plan = relationship("SubscriptionPlan", back_populates="subscriptions")

    __table_args__ = (
        Index('idx_company_subscriptions_status_end', 'status', 'end_date'),
    )


class User(Base):
    """
    Пользователь компании
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete='CASCADE'), nullable=False, index=True, comment="ID компании")
    name = Column(String(200), nullable=False, comment="Имя пользователя")
    email = Column(String(200), comment="Email")
    phone = Column(String(50), comment="Телефон")
    role = Column(String(20), nullable=False, default=UserRole.VIEWER.value, comment="Роль: owner, admin, manager, viewer")
    is_active = Column(Boolean, default=True, nullable=False, comment="Активен ли пользователь")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания")

    company = relationship("Company", back_populates="users")


class Vehicle(Base):
    """
    Транспортное средство
    """
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete='CASCADE'), nullable=False, index=True, comment="ID компании")
    registration_number = Column(String(20), nullable=False, unique=True, comment="Государственный регистрационный номер")
    make = Column(String(100), comment="Марка")
    model = Column(String(100), comment="Модель")
    vehicle_class = Column(String(100), comment="Класс ТС")
    fuel_type = Column(String(50), comment="Тип топлива")
    owner_name = Column(String(200), comment="Владелец по RC")
    chassis_number = Column(String(100), comment="Номер шасси")
    engine_number = Column(String(100), comment="Номер двигателя")
    status = Column(String(20), nullable=False, default=VehicleStatus.ACTIVE.value, index=True, comment="Статус ТС")
    last_api_sync = Column(DateTime, nullable=True, index=True, comment="Последняя успешная синхронизация с внешним API")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления")

    company = relationship("Company", back_populates="vehicles")
    compliance = relationship("VehicleCompliance", back_populates="vehicle", uselist=False)
    challans = relationship("Challan", back_populates="vehicle")

    __table_args__ = (
        Index('idx_vehicles_company_sync', 'company_id', 'last_api_sync'),
    )


class VehicleCompliance(Base):
    """
    Сроки действия документов ТС

    Каждая дата может отсутствовать независимо от остальных
    """
    __tablename__ = "vehicle_compliance"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete='CASCADE'), nullable=False, unique=True, index=True, comment="ID ТС")
    registration_valid_until = Column(Date, nullable=True, comment="Регистрация действительна до")
    fitness_valid_until = Column(Date, nullable=True, comment="Сертификат пригодности действителен до")
    insurance_valid_until = Column(Date, nullable=True, comment="Страховка действительна до")
    puc_valid_until = Column(Date, nullable=True, comment="PUC действителен до")
    permit_valid_until = Column(Date, nullable=True, comment="Разрешение действительно до")
    tax_valid_until = Column(Date, nullable=True, comment="Налог оплачен до")

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления")

    vehicle = relationship("Vehicle", back_populates="compliance")


class Challan(Base):
    """
    Штраф за нарушение ПДД
    """
    __tablename__ = "challans"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete='CASCADE'), nullable=False, index=True, comment="ID ТС")
    challan_number = Column(String(100), nullable=False, unique=True, comment="Номер штрафа (уникален во всей системе)")
    challan_date = Column(DateTime, comment="Дата нарушения")
    amount = Column(Numeric(10, 2), default=0, comment="Сумма штрафа")
    status = Column(String(20), nullable=False, default=ChallanStatus.PENDING.value, comment="Статус: pending, paid, disputed")
    accused_name = Column(String(200), comment="Нарушитель")
    state = Column(String(100), comment="Штат")
    payment_url = Column(String(500), comment="Ссылка на оплату")
    is_notified = Column(Boolean, default=False, nullable=False, comment="Отправлены ли уведомления администраторам")
    api_response_data = Column(Text, comment="Исходная запись внешнего API в формате JSON")

    created_at = Column(DateTime, server_default=func.now(), index=True, comment="Дата создания")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления")

    vehicle = relationship("Vehicle", back_populates="challans")
    offences = relationship("ChallanOffence", back_populates="challan", cascade="all, delete-orphan")


class ChallanOffence(Base):
    """
    Состав нарушения по штрафу
    """
    __tablename__ = "challan_offences"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    challan_id = Column(Integer, ForeignKey("challans.id", ondelete='CASCADE'), nullable=False, index=True, comment="ID штрафа")
    offence_name = Column(Text, nullable=False, comment="Описание нарушения")
    mva = Column(String(200), comment="Статья закона")
    penalty = Column(Numeric(10, 2), default=0, comment="Размер штрафа")

    challan = relationship("Challan", back_populates="offences")


class NotificationSettings(Base):
    """
    Настройки уведомлений пользователя

    Создаются лениво при первой доставке, все переключатели включены
    """
    __tablename__ = "notification_settings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete='CASCADE'), nullable=False, unique=True, index=True, comment="ID пользователя")

    # Категории уведомлений
    challan_alerts = Column(Boolean, default=True, nullable=False, comment="Уведомления о штрафах")
    registration_expiry_alerts = Column(Boolean, default=True, nullable=False, comment="Окончание регистрации")
    insurance_expiry_alerts = Column(Boolean, default=True, nullable=False, comment="Окончание страховки")
    puc_expiry_alerts = Column(Boolean, default=True, nullable=False, comment="Окончание PUC")
    fitness_expiry_alerts = Column(Boolean, default=True, nullable=False, comment="Окончание сертификата пригодности")
    tax_expiry_alerts = Column(Boolean, default=True, nullable=False, comment="Окончание налога")
    permit_expiry_alerts = Column(Boolean, default=True, nullable=False, comment="Окончание разрешения")
    system_notifications = Column(Boolean, default=True, nullable=False, comment="Системные уведомления")

    # Каналы доставки
    email_enabled = Column(Boolean, default=True, nullable=False, comment="Включены ли уведомления по email")
    sms_enabled = Column(Boolean, default=True, nullable=False, comment="Включены ли SMS")
    push_enabled = Column(Boolean, default=True, nullable=False, comment="Включены ли push-уведомления")

    created_at = Column(DateTime, server_default=func.now(), comment="Дата создания")
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), comment="Дата обновления")

    user = relationship("User", backref="notification_settings")


class Notification(Base):
    """
    Уведомление в системе

    Статус каждого канала меняется независимо и только из pending
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete='CASCADE'), nullable=False, index=True, comment="ID компании")
    user_id = Column(Integer, ForeignKey("users.id", ondelete='CASCADE'), nullable=True, index=True, comment="ID пользователя (пусто для уведомления на всю компанию)")
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete='SET NULL'), nullable=True, index=True, comment="ID ТС")

    title = Column(String(200), nullable=False, comment="Заголовок уведомления")
    message = Column(Text, nullable=False, comment="Текст уведомления")
    notification_type = Column(String(50), nullable=False, index=True, comment="Тип: challan, insurance_expiry, system и т.д.")
    severity = Column(String(20), nullable=False, default=NotificationSeverity.INFO.value, comment="Важность: info, warning, critical")
    reference_id = Column(String(100), comment="ID связанной сущности")

    email_status = Column(String(20), nullable=False, default=DeliveryStatus.PENDING.value, comment="Статус доставки email")
    sms_status = Column(String(20), nullable=False, default=DeliveryStatus.PENDING.value, comment="Статус доставки SMS")
    push_status = Column(String(20), nullable=False, default=DeliveryStatus.PENDING.value, comment="Статус доставки push")

    is_read = Column(Boolean, default=False, nullable=False, index=True, comment="Прочитано ли уведомление")
    read_at = Column(DateTime, comment="Дата и время прочтения")
    created_at = Column(DateTime, server_default=func.now(), index=True, comment="Дата создания")

    user = relationship("User", backref="notifications")

    __table_args__ = (
        Index('idx_notifications_user_read', 'user_id', 'is_read'),
        Index('idx_notifications_company_created', 'company_id', 'created_at'),
    )


class ApiRequestLog(Base):
    """
    Журнал обращений к внешнему API
    """
    __tablename__ = "api_request_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete='SET NULL'), nullable=True, index=True, comment="ID компании")
    endpoint = Column(String(200), nullable=False, comment="Вызванный endpoint")
    method = Column(String(10), nullable=False, default="POST", comment="HTTP метод")
    request_params = Column(Text, comment="Параметры запроса в формате JSON")
    response_code = Column(Integer, comment="HTTP код ответа")
    response_body = Column(Text, comment="Тело ответа")
    execution_time_ms = Column(Integer, comment="Время выполнения, мс")
    created_at = Column(DateTime, server_default=func.now(), index=True, comment="Дата и время запроса")


class AuditLog(Base):
    """
    Журнал аудита изменений
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    company_id = Column(Integer, nullable=True, index=True, comment="ID компании")
    user_id = Column(Integer, nullable=True, comment="ID инициатора")
    action = Column(String(100), nullable=False, index=True, comment="Действие (тип события)")
    entity_type = Column(String(50), nullable=False, index=True, comment="Тип сущности")
    entity_id = Column(String(100), comment="ID сущности")
    old_values = Column(Text, comment="Значения до изменения (JSON)")
    new_values = Column(Text, comment="Значения после изменения (JSON)")
    created_at = Column(DateTime, server_default=func.now(), index=True, comment="Дата создания")

    __table_args__ = (
        Index('idx_audit_logs_entity', 'entity_type', 'entity_id'),
    )


class SystemLog(Base):
    """
    Логи системных событий
    """
    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    level = Column(String(20), nullable=False, index=True, comment="Уровень: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    message = Column(Text, nullable=False, comment="Сообщение лога")
    module = Column(String(200), comment="Модуль, где произошло событие")
    function = Column(String(200), comment="Функция, где произошло событие")
    line_number = Column(Integer, comment="Номер строки кода")

    event_type = Column(String(100), index=True, comment="Тип события: scheduler, external_api, notification и т.д.")
    event_category = Column(String(100), index=True, comment="Категория: challan_sync, compliance_check и т.д.")

    extra_data = Column(Text, comment="Дополнительные данные в формате JSON")

    exception_type = Column(String(200), comment="Тип исключения")
    exception_message = Column(Text, comment="Сообщение исключения")
    stack_trace = Column(Text, comment="Трассировка стека")

    created_at = Column(DateTime, server_default=func.now(), index=True, comment="Дата и время создания")

    __table_args__ = (
        Index('idx_system_logs_level_created', 'level', 'created_at'),
    )
