# app/models.py
from datetime import datetime, timezone
import enum
import uuid

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship
from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def canonical_id(value) -> str:
    """
    Приводить ідентифікатор до канонічного вигляду (32 hex-символи без дефісів).

    Усі ідентифікатори зберігаються і порівнюються лише в цьому вигляді,
    тому "ABC-..." та "abc..." вказують на один і той самий запис.

    Args:
        value (str | uuid.UUID): Ідентифікатор у будь-якому записі UUID.

    Returns:
        str: Канонічний ідентифікатор.

    Raises:
        ValueError: Якщо значення не є UUID.
    """
    if isinstance(value, uuid.UUID):
        return value.hex
    return uuid.UUID(str(value).strip()).hex


class ContactStatus(str, enum.Enum):
    NEW = "new"
    CALLED = "called"
    FOLLOW_UP = "follow-up"
    NOT_INTERESTED = "not-interested"
    CONVERTED = "converted"


class CallStatus(str, enum.Enum):
    COMPLETED = "completed"
    MISSED = "missed"
    SCHEDULED = "scheduled"


class User(Base):
    """
    Модель користувача.

    Attributes:
        id (str): Унікальний ідентифікатор користувача.
        name (str): Ім'я для відображення.
        email (str): Електронна пошта користувача (унікальна).
        hashed_password (str): Захешований пароль (bcrypt).
        created_at (datetime): Час створення.
        updated_at (datetime): Час останнього оновлення.
        contacts (List[Contact]): Контакти, що належать користувачу.
    """
    __tablename__ = "users"
    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    contacts = relationship("Contact", back_populates="owner")


class Contact(Base):
    """
    Модель контакту.

    Компанія зберігається в колонках company_* і віддається назовні як
    вкладений об'єкт `company`. Нотатки вбудовані в контакт як JSON-список
    і не мають окремого життєвого циклу.

    Attributes:
        id (str): Унікальний ідентифікатор контакту.
        user_id (str): Ідентифікатор власника; не змінюється після створення.
        first_name (str): Ім'я контакту.
        last_name (str): Прізвище контакту.
        email (str): Електронна пошта контакту.
        phone (str): Номер телефону контакту.
        status (str): Етап роботи з контактом (див. ContactStatus).
        notes (list): Впорядкований список нотаток.
    """
    __tablename__ = "contacts"
    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
    first_name = Column(String, nullable=False, default="")
    last_name = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, default="", index=True)
    phone = Column(String, nullable=False, default="")

    company_name = Column(String, nullable=False, default="")
    company_address = Column(String, nullable=False, default="")
    company_phone = Column(String, nullable=False, default="")
    company_website = Column(String, nullable=False, default="")

    status = Column(String, nullable=False, default=ContactStatus.NEW.value)
    notes = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    owner = relationship("User", back_populates="contacts")

    @property
    def company(self) -> dict:
        return {
            "name": self.company_name,
            "address": self.company_address,
            "phone": self.company_phone,
            "website": self.company_website,
        }


class CallLog(Base):
    """
    Запис про дзвінок контакту.

    Attributes:
        id (str): Унікальний ідентифікатор запису.
        contact_id (str): Контакт, якому телефонували.
        user_id (str): Користувач, який зафіксував дзвінок.
        timestamp (datetime): Час дзвінка.
        duration (int, optional): Тривалість у секундах.
        notes (str, optional): Коментар до дзвінка.
        status (str): completed, missed або scheduled.
    """
    __tablename__ = "call_logs"
    id = Column(String(32), primary_key=True, default=new_id)
    contact_id = Column(String(32), index=True, nullable=False)
    user_id = Column(String(32), index=True, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    duration = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=CallStatus.COMPLETED.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class SystemSettings(Base):
    """
    Єдиний документ системних налаштувань (type == "system").
    """
    __tablename__ = "settings"
    id = Column(Integer, primary_key=True)
    type = Column(String, unique=True, nullable=False, default="system")
    maintenance_mode = Column(Boolean, nullable=False, default=False)
    registration_disabled = Column(Boolean, nullable=False, default=False)
    system_notice = Column(String, nullable=False, default="")
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)
    updated_by = Column(String(32), nullable=True)
