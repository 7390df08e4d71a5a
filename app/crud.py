# app/crud.py
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import models, schemas
from .models import canonical_id, utcnow
from .security import hash_password, verify_password

# --- Робота з користувачами ---

def get_user(db: Session, user_id: str) -> Optional[models.User]:
    """
    Отримує користувача за ідентифікатором.

    Args:
        db (Session): Сесія бази даних.
        user_id (str): Ідентифікатор користувача в будь-якому записі UUID.

    Returns:
        models.User або None: Об'єкт користувача або None, якщо не знайдено.
    """
    try:
        user_id = canonical_id(user_id)
    except ValueError:
        return None
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    """
    Отримує користувача з бази даних за email.

    Args:
        db (Session): Сесія бази даних.
        email (str): Електронна пошта користувача.

    Returns:
        models.User або None: Об'єкт користувача або None, якщо не знайдено.
    """
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, name: str, email: str, password: str) -> models.User:
    """
    Створює нового користувача та зберігає його в базі даних.

    Args:
        db (Session): Сесія бази даних.
        name (str): Ім'я користувача.
        email (str): Електронна пошта.
        password (str): Пароль у відкритому вигляді.

    Returns:
        models.User: Створений об'єкт користувача.
    """
    db_user = models.User(
        name=name,
        email=email,
        hashed_password=hash_password(password),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    """
    Перевіряє дані користувача для аутентифікації.

    Returns:
        models.User або None: Об'єкт користувача, якщо аутентифікація пройшла успішно, або None.

    Raises:
        CorruptCredential: Якщо збережений хеш пароля пошкоджений.
    """
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def update_profile(db: Session, user: models.User, profile: schemas.ProfileUpdate) -> models.User:
    """
    Змінює ім'я та/або email користувача.

    Лише виконує flush; commit робить викликач.

    Raises:
        IntegrityError: Якщо email вже належить іншому користувачу.
    """
    for key, value in profile.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user, key, value)
    db.flush()
    return user

# --- Робота з контактами (зв’язок з користувачем) ---

def _owned_contacts(db: Session, user_id: str):
    return db.query(models.Contact).filter(models.Contact.user_id == canonical_id(user_id))


def get_contacts(
    db: Session,
    user_id: str,
    skip: int = 0,
    limit: int = 100,
    query: Optional[str] = None,
    status: Optional[str] = None,
) -> List[models.Contact]:
    """
    Повертає список контактів користувача, новіші першими.

    Args:
        db (Session): Сесія бази даних.
        user_id (str): Ідентифікатор власника.
        skip (int, optional): Кількість контактів для пропуску.
        limit (int, optional): Максимальна кількість контактів.
        query (str, optional): Частковий збіг за ім'ям, прізвищем, email або назвою компанії.
        status (str, optional): Фільтр за статусом.

    Returns:
        List[models.Contact]: Список контактів.
    """
    q = _owned_contacts(db, user_id)
    if query:
        q = q.filter(
            or_(
                models.Contact.first_name.ilike(f"%{query}%"),
                models.Contact.last_name.ilike(f"%{query}%"),
                models.Contact.email.ilike(f"%{query}%"),
                models.Contact.company_name.ilike(f"%{query}%"),
            )
        )
    if status:
        q = q.filter(models.Contact.status == status)
    return q.order_by(models.Contact.created_at.desc()).offset(skip).limit(limit).all()


def get_contact(db: Session, user_id: str, contact_id: str) -> Optional[models.Contact]:
    """
    Повертає контакт за його ID для заданого користувача.

    Ідентифікатори приводяться до канонічного вигляду, тому результат не
    залежить від того, як саме клієнт записав UUID.

    Args:
        db (Session): Сесія бази даних.
        user_id (str): Ідентифікатор користувача.
        contact_id (str): Ідентифікатор контакту.

    Returns:
        models.Contact або None: Об'єкт контакту або None, якщо не знайдено.

    Raises:
        ValueError: Якщо contact_id не є UUID.
    """
    return _owned_contacts(db, user_id).filter(models.Contact.id == canonical_id(contact_id)).first()


def _apply_company(db_contact: models.Contact, company: schemas.Company) -> None:
    db_contact.company_name = company.name
    db_contact.company_address = company.address
    db_contact.company_phone = company.phone
    db_contact.company_website = company.website


def create_contact(db: Session, contact: schemas.ContactCreate, user_id: str) -> models.Contact:
    """
    Створює новий контакт для заданого користувача.
    """
    now = utcnow()
    db_contact = models.Contact(
        user_id=canonical_id(user_id),
        first_name=contact.first_name,
        last_name=contact.last_name,
        email=contact.email,
        phone=contact.phone,
        status=contact.status.value,
        notes=[],
        created_at=now,
        updated_at=now,
    )
    _apply_company(db_contact, contact.company)
    db.add(db_contact)
    db.commit()
    db.refresh(db_contact)
    return db_contact


def update_contact(db: Session, user_id: str, contact_id: str, contact: schemas.ContactUpdate) -> Optional[models.Contact]:
    """
    Оновлює дані контакту. Власник контакту ніколи не змінюється.

    Returns:
        models.Contact або None: Оновлений контакт або None, якщо контакт не знайдено.
    """
    db_contact = get_contact(db, user_id, contact_id)
    if not db_contact:
        return None
    data = contact.model_dump(exclude_unset=True, exclude={"company"})
    for key, value in data.items():
        if value is not None:
            setattr(db_contact, key, value)
    if contact.company is not None:
        _apply_company(db_contact, contact.company)
    db_contact.updated_at = utcnow()
    db.commit()
    db.refresh(db_contact)
    return db_contact


def update_contact_status(db: Session, user_id: str, contact_id: str, status: models.ContactStatus) -> Optional[models.Contact]:
    db_contact = get_contact(db, user_id, contact_id)
    if not db_contact:
        return None
    db_contact.status = status.value
    db_contact.updated_at = utcnow()
    db.commit()
    db.refresh(db_contact)
    return db_contact


def add_note(db: Session, user: models.User, contact_id: str, content: str) -> Optional[dict]:
    """
    Додає нотатку в кінець списку нотаток контакту.

    Автор зберігається як знімок id та імені, тож подальша зміна імені
    користувача не впливає на вже створені нотатки.

    Args:
        db (Session): Сесія бази даних.
        user (models.User): Автор нотатки (і власник контакту).
        contact_id (str): Ідентифікатор контакту.
        content (str): Текст нотатки.

    Returns:
        dict або None: Створена нотатка або None, якщо контакт не знайдено.
    """
    db_contact = get_contact(db, user.id, contact_id)
    if not db_contact:
        return None
    now = utcnow()
    note = {
        "id": models.new_id(),
        "content": content,
        "created_at": now.isoformat(),
        "created_by": {"id": user.id, "name": user.name},
    }
    # JSON-колонку переприсвоюємо, щоб SQLAlchemy побачив зміну
    db_contact.notes = list(db_contact.notes or []) + [note]
    db_contact.updated_at = now
    db.commit()
    return note


def delete_contact(db: Session, user_id: str, contact_id: str) -> Optional[models.Contact]:
    """
    Видаляє контакт разом з його журналом дзвінків.

    Returns:
        models.Contact або None: Видалений контакт або None, якщо контакт не знайдено.
    """
    db_contact = get_contact(db, user_id, contact_id)
    if not db_contact:
        return None
    db.query(models.CallLog).filter(models.CallLog.contact_id == db_contact.id).delete(synchronize_session=False)
    db.delete(db_contact)
    db.commit()
    return db_contact


def delete_contacts(db: Session, user_id: str, contact_ids: List[str]) -> int:
    """
    Видаляє кілька контактів користувача за один запит.

    Args:
        db (Session): Сесія бази даних.
        user_id (str): Ідентифікатор власника.
        contact_ids (List[str]): Ідентифікатори контактів.

    Returns:
        int: Кількість видалених контактів.

    Raises:
        ValueError: Якщо хоча б один ідентифікатор не є UUID.
    """
    ids = [canonical_id(contact_id) for contact_id in contact_ids]
    owned_ids = [
        row.id
        for row in _owned_contacts(db, user_id).filter(models.Contact.id.in_(ids)).with_entities(models.Contact.id)
    ]
    if not owned_ids:
        return 0
    db.query(models.CallLog).filter(models.CallLog.contact_id.in_(owned_ids)).delete(synchronize_session=False)
    deleted = db.query(models.Contact).filter(models.Contact.id.in_(owned_ids)).delete(synchronize_session=False)
    db.commit()
    return deleted

# --- Журнал дзвінків ---

def create_call_log(db: Session, user_id: str, contact: models.Contact, call: schemas.CallLogCreate) -> models.CallLog:
    now = utcnow()
    db_call = models.CallLog(
        contact_id=contact.id,
        user_id=canonical_id(user_id),
        timestamp=now,
        duration=call.duration,
        notes=call.notes,
        status=call.status.value,
        created_at=now,
        updated_at=now,
    )
    db.add(db_call)
    db.commit()
    db.refresh(db_call)
    return db_call


def get_contact_calls(db: Session, contact: models.Contact) -> List[models.CallLog]:
    return (
        db.query(models.CallLog)
        .filter(models.CallLog.contact_id == contact.id)
        .order_by(models.CallLog.timestamp.desc())
        .all()
    )


def get_user_calls(db: Session, user_id: str, limit: int = 100) -> List[models.CallLog]:
    return (
        db.query(models.CallLog)
        .filter(models.CallLog.user_id == canonical_id(user_id))
        .order_by(models.CallLog.timestamp.desc())
        .limit(limit)
        .all()
    )

# --- Системні налаштування ---

def get_system_settings(db: Session) -> Optional[models.SystemSettings]:
    return db.query(models.SystemSettings).filter(models.SystemSettings.type == "system").first()


def upsert_system_settings(db: Session, data: schemas.SystemSettingsUpdate, user_id: str) -> models.SystemSettings:
    """
    Оновлює єдиний документ системних налаштувань, створюючи його за потреби.

    Зміни лише передаються в сесію (flush); commit робить викликач.

    Args:
        db (Session): Сесія бази даних.
        data (schemas.SystemSettingsUpdate): Поля для оновлення.
        user_id (str): Хто вносить зміни.

    Returns:
        models.SystemSettings: Актуальні налаштування.
    """
    db_settings = get_system_settings(db)
    if db_settings is None:
        db_settings = models.SystemSettings(type="system")
        db.add(db_settings)
    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(db_settings, key, value)
    db_settings.updated_at = utcnow()
    db_settings.updated_by = canonical_id(user_id)
    db.flush()
    return db_settings


def registration_disabled(db: Session) -> bool:
    db_settings = get_system_settings(db)
    return bool(db_settings and db_settings.registration_disabled)
