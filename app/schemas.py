# app/schemas.py
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime

from .models import CallStatus, ContactStatus

# --- Схеми для контактів ---

class Company(BaseModel):
    """
    Вкладені дані компанії контакту.
    """
    name: str = ""
    address: str = ""
    phone: str = ""
    website: str = ""


class NoteAuthor(BaseModel):
    id: str
    name: str


class NoteCreate(BaseModel):
    content: str


class NoteOut(BaseModel):
    """
    Нотатка, вбудована в контакт.

    Attributes:
        id (str): Ідентифікатор нотатки.
        content (str): Текст нотатки.
        created_at (datetime): Час створення.
        created_by (NoteAuthor): Знімок id та імені автора на момент створення.
    """
    id: str
    content: str
    created_at: datetime
    created_by: NoteAuthor


class ContactBase(BaseModel):
    """
    Базова схема для контакту.

    Attributes:
        first_name (str): Ім'я контакту.
        last_name (str): Прізвище контакту.
        email (str): Електронна пошта контакту (може бути порожньою після імпорту).
        phone (str): Номер телефону контакту.
        company (Company): Дані компанії.
    """
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    company: Company = Field(default_factory=Company)


class ContactCreate(ContactBase):
    """
    Схема для створення нового контакту.
    """
    status: ContactStatus = ContactStatus.NEW


class ContactUpdate(BaseModel):
    """
    Схема для оновлення існуючого контакту. Власник контакту не змінюється.
    """
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[Company] = None


class StatusUpdate(BaseModel):
    status: ContactStatus


class ContactOut(ContactBase):
    """
    Схема для виводу даних контакту.

    Attributes:
        id (str): Унікальний ідентифікатор контакту.
        user_id (str): Ідентифікатор власника.
        status (ContactStatus): Етап роботи з контактом.
        notes (List[NoteOut]): Нотатки в порядку додавання.
    """
    id: str
    user_id: str
    status: ContactStatus
    notes: List[NoteOut] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BulkDelete(BaseModel):
    contact_ids: List[str]


class BulkDeleteResult(BaseModel):
    success: bool
    deleted_count: int


class ImportResponse(BaseModel):
    success: bool
    message: str

# --- Схеми для дзвінків ---

class CallLogCreate(BaseModel):
    duration: Optional[int] = None
    notes: Optional[str] = None
    status: CallStatus = CallStatus.COMPLETED


class CallLogOut(BaseModel):
    id: str
    contact_id: str
    user_id: str
    timestamp: datetime
    duration: Optional[int] = None
    notes: Optional[str] = None
    status: CallStatus

    class Config:
        from_attributes = True

# --- Схеми для користувачів ---

class UserBase(BaseModel):
    """
    Базова схема для користувача.

    Attributes:
        name (str): Ім'я користувача.
        email (EmailStr): Електронна пошта користувача.
    """
    name: str
    email: EmailStr


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class UserCreate(BaseModel):
    """
    Схема для реєстрації користувача.

    Порожні значення перетворюються на None, щоб ендпоінт повернув 400,
    а не помилку валідації.

    Attributes:
        name (str): Ім'я користувача.
        email (EmailStr): Електронна пошта користувача.
        password (str): Пароль користувача.
    """
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None

    @field_validator("name", "email", "password", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)


class UserOut(UserBase):
    """
    Схема для виводу даних користувача.

    Attributes:
        id (str): Унікальний ідентифікатор користувача.
    """
    id: str

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """
    Зміна профілю. Порожні значення ігноруються, тож ім'я не можна стерти.
    """
    name: Optional[str] = None
    email: Optional[EmailStr] = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _blank_to_none(value)

# --- Схеми для аутентифікації ---

class Login(BaseModel):
    """
    Схема для логіну користувача.

    Attributes:
        email (EmailStr): Електронна пошта користувача.
        password (str): Пароль користувача.
    """
    email: EmailStr
    password: str

# --- Схеми для системних налаштувань ---

class SystemSettingsBase(BaseModel):
    maintenance_mode: bool = False
    registration_disabled: bool = False
    system_notice: str = ""


class SystemSettingsUpdate(BaseModel):
    maintenance_mode: Optional[bool] = None
    registration_disabled: Optional[bool] = None
    system_notice: Optional[str] = None


class SystemSettingsOut(SystemSettingsBase):
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    class Config:
        from_attributes = True


class SettingsOut(BaseModel):
    settings: SystemSettingsOut
    is_admin: bool


class SettingsUpdate(BaseModel):
    """
    Оновлення налаштувань: системні (лише адміністратор) та/або профіль користувача.
    """
    system_settings: Optional[SystemSettingsUpdate] = None
    profile: Optional[ProfileUpdate] = None
