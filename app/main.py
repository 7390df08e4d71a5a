# app/main.py
from fastapi import FastAPI, HTTPException, Depends, UploadFile, File, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from app import models, schemas, crud, auth, csv_import, tokens
from app.config import settings
from app.database import engine, get_db
from app.security import CorruptCredential

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Створення таблиць у базі даних
models.Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Contact CRM API",
    description="REST API для управління контактами, дзвінками, нотатками та імпортом з CSV",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def _owned_contact_or_404(db: Session, user: models.User, contact_id: str) -> models.Contact:
    try:
        db_contact = crud.get_contact(db, user.id, contact_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid contact ID")
    if not db_contact:
        raise HTTPException(status_code=404, detail="Contact not found")
    return db_contact

# --- Ендпоінти аутентифікації ---

@app.post("/auth/register", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, response: Response, db: Session = Depends(get_db)):
    """
    Реєструє нового користувача та відкриває для нього сесію.

    Args:
        user (schemas.UserCreate): Дані користувача для реєстрації.
        response (Response): Відповідь, у яку встановлюється cookie сесії.
        db (Session): Сесія бази даних.

    Returns:
        schemas.UserOut: Дані зареєстрованого користувача.

    Raises:
        HTTPException: 400 якщо поля відсутні, 403 якщо реєстрацію вимкнено,
            409 якщо користувач із заданим email вже існує.
    """
    if not user.name or not user.email or not user.password:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if crud.registration_disabled(db):
        raise HTTPException(status_code=403, detail="Registration is disabled")
    if crud.get_user_by_email(db, email=user.email):
        raise HTTPException(status_code=409, detail="User already exists")
    try:
        new_user = crud.create_user(db, name=user.name, email=user.email, password=user.password)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="User already exists")
    auth.set_auth_cookie(response, tokens.create_session_token(new_user.id))
    return new_user


@app.post("/auth/login", response_model=schemas.UserOut)
def login(login_data: schemas.Login, response: Response, db: Session = Depends(get_db)):
    """
    Авторизує користувача та встановлює cookie сесії.

    Args:
        login_data (schemas.Login): Дані для логіну (email, пароль).
        response (Response): Відповідь, у яку встановлюється cookie.
        db (Session): Сесія бази даних.

    Returns:
        schemas.UserOut: Дані користувача.

    Raises:
        HTTPException: Якщо email або пароль невірні.
    """
    try:
        user = crud.authenticate_user(db, email=login_data.email, password=login_data.password)
    except CorruptCredential:
        logger.error("Stored password hash for %s is corrupt", login_data.email)
        raise HTTPException(status_code=500, detail="Internal server error")
    if not user:
        raise HTTPException(status_code=401, detail="Incorrect email or password")
    auth.set_auth_cookie(response, tokens.create_session_token(user.id))
    return user


@app.get("/auth/me", response_model=schemas.UserOut)
def read_me(current_user: models.User = Depends(auth.get_current_user)):
    """
    Повертає дані поточного авторизованого користувача.
    """
    return current_user


@app.post("/auth/logout")
def logout(request: Request, response: Response):
    """
    Завершує сесію: видаляє cookie, а за увімкненого Redis ще й відкликає токен.
    """
    denylist = tokens.get_denylist()
    token = request.cookies.get(auth.COOKIE_NAME)
    if denylist is not None and token:
        try:
            denylist.revoke(tokens.decode_session_token(token))
        except tokens.TokenError as exc:
            logger.info("Nothing to revoke on logout (%s)", exc.kind)
    auth.clear_auth_cookie(response)
    return {"success": True}


@app.get("/status")
def system_status(
    db: Session = Depends(get_db),
    current_user: Optional[models.User] = Depends(auth.get_current_user_optional),
):
    """
    Публічний стан системи для шапки сторінок: режим обслуговування,
    оголошення та чи є активна сесія.
    """
    db_settings = crud.get_system_settings(db)
    return {
        "maintenance_mode": bool(db_settings and db_settings.maintenance_mode),
        "system_notice": db_settings.system_notice if db_settings else "",
        "authenticated": current_user is not None,
    }

# --- Ендпоінти для роботи з контактами (тільки для автентифікованих користувачів) ---

@app.post("/contacts/", response_model=schemas.ContactOut, status_code=status.HTTP_201_CREATED)
def create_contact(contact: schemas.ContactCreate, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    """
    Створює новий контакт для поточного користувача.
    """
    return crud.create_contact(db, contact, current_user.id)


@app.get("/contacts/", response_model=List[schemas.ContactOut])
def read_contacts(
    skip: int = 0,
    limit: int = 100,
    query: str = None,
    status: Optional[models.ContactStatus] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user)
):
    """
    Повертає список контактів поточного користувача з пагінацією, пошуком і фільтром за статусом.

    Args:
        skip (int, optional): Кількість контактів для пропуску. За замовчуванням 0.
        limit (int, optional): Максимальна кількість контактів. За замовчуванням 100.
        query (str, optional): Пошуковий запит для фільтрації контактів.
        status (ContactStatus, optional): Фільтр за статусом.
        db (Session): Сесія бази даних.
        current_user (models.User): Поточний авторизований користувач.

    Returns:
        List[schemas.ContactOut]: Список контактів.
    """
    return crud.get_contacts(
        db,
        current_user.id,
        skip=skip,
        limit=limit,
        query=query,
        status=status.value if status else None,
    )


@app.post("/contacts/import", response_model=schemas.ImportResponse)
def import_contacts(file: UploadFile = File(None), db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    """
    Імпортує контакти з завантаженого CSV-файлу.

    Args:
        file (UploadFile): CSV-файл (поле форми "file").
        db (Session): Сесія бази даних.
        current_user (models.User): Поточний авторизований користувач.

    Returns:
        schemas.ImportResponse: Ознака успіху та кількість імпортованих контактів.

    Raises:
        HTTPException: 400 для структурних помилок файлу, 500 якщо сховище відхилило запис.
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not (file.filename or "").endswith(".csv"):
        raise HTTPException(status_code=400, detail="File must be a CSV")
    try:
        text = file.file.read().decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded")

    try:
        result = csv_import.import_contacts(db, current_user.id, text)
    except csv_import.CsvStructureError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except csv_import.ImportFailed as exc:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to import contacts ({exc.imported} imported before the failure)",
        )
    return {"success": True, "message": f"Imported {result.imported} contacts"}


@app.post("/contacts/bulk-delete", response_model=schemas.BulkDeleteResult)
def bulk_delete_contacts(data: schemas.BulkDelete, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    """
    Видаляє кілька контактів поточного користувача разом з їхніми дзвінками.
    """
    if not data.contact_ids:
        raise HTTPException(status_code=400, detail="Contact IDs are required")
    try:
        deleted = crud.delete_contacts(db, current_user.id, data.contact_ids)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid contact ID")
    return {"success": True, "deleted_count": deleted}


@app.get("/contacts/{contact_id}", response_model=schemas.ContactOut)
def read_contact(contact_id: str, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    """
    Повертає дані контакту за його ID.

    Raises:
        HTTPException: 400 для некоректного ID, 404 якщо контакт не знайдено.
    """
    return _owned_contact_or_404(db, current_user, contact_id)


@app.put("/contacts/{contact_id}", response_model=schemas.ContactOut)
def update_contact(contact_id: str, contact: schemas.ContactUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    """
    Оновлює дані контакту за заданим ID.

    Args:
        contact_id (str): Ідентифікатор контакту.
        contact (schemas.ContactUpdate): Нові дані для контакту.
        db (Session): Сесія бази даних.
        current_user (models.User): Поточний авторизований користувач.

    Returns:
        schemas.ContactOut: Оновлені дані контакту.
    """
    _owned_contact_or_404(db, current_user, contact_id)
    return crud.update_contact(db, current_user.id, contact_id, contact)


@app.patch("/contacts/{contact_id}/status")
def update_contact_status(contact_id: str, data: schemas.StatusUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    _owned_contact_or_404(db, current_user, contact_id)
    crud.update_contact_status(db, current_user.id, contact_id, data.status)
    return {"success": True, "status": data.status.value}


@app.post("/contacts/{contact_id}/notes", response_model=schemas.NoteOut)
def add_note(contact_id: str, data: schemas.NoteCreate, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    """
    Додає нотатку до контакту від імені поточного користувача.
    """
    if not data.content.strip():
        raise HTTPException(status_code=400, detail="Content is required")
    _owned_contact_or_404(db, current_user, contact_id)
    return crud.add_note(db, current_user, contact_id, data.content)


@app.delete("/contacts/{contact_id}")
def delete_contact(contact_id: str, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    """
    Видаляє контакт за його ID.

    Returns:
        dict: Повідомлення про успішне видалення контакту.
    """
    _owned_contact_or_404(db, current_user, contact_id)
    crud.delete_contact(db, current_user.id, contact_id)
    return {"detail": "Contact deleted"}

# --- Журнал дзвінків ---

@app.post("/contacts/{contact_id}/calls", response_model=schemas.CallLogOut, status_code=status.HTTP_201_CREATED)
def log_call(contact_id: str, call: schemas.CallLogCreate, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    """
    Фіксує дзвінок контакту.

    Args:
        contact_id (str): Ідентифікатор контакту.
        call (schemas.CallLogCreate): Тривалість, коментар і статус дзвінка.
        db (Session): Сесія бази даних.
        current_user (models.User): Поточний авторизований користувач.

    Returns:
        schemas.CallLogOut: Створений запис.
    """
    db_contact = _owned_contact_or_404(db, current_user, contact_id)
    return crud.create_call_log(db, current_user.id, db_contact, call)


@app.get("/contacts/{contact_id}/calls", response_model=List[schemas.CallLogOut])
def read_contact_calls(contact_id: str, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    db_contact = _owned_contact_or_404(db, current_user, contact_id)
    return crud.get_contact_calls(db, db_contact)


@app.get("/call-logs", response_model=List[schemas.CallLogOut])
def read_call_logs(limit: int = 100, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    return crud.get_user_calls(db, current_user.id, limit=limit)

# --- Налаштування ---

def _is_admin(user: models.User) -> bool:
    return bool(settings.ADMIN_EMAIL) and user.email == settings.ADMIN_EMAIL


@app.get("/settings", response_model=schemas.SettingsOut)
def read_settings(db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    """
    Повертає системні налаштування (або значення за замовчуванням) та ознаку адміністратора.
    """
    db_settings = crud.get_system_settings(db)
    return {
        "settings": schemas.SystemSettingsOut.model_validate(db_settings) if db_settings else schemas.SystemSettingsOut(),
        "is_admin": _is_admin(current_user),
    }


@app.patch("/settings")
def update_settings(data: schemas.SettingsUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(auth.get_current_user)):
    """
    Оновлює системні налаштування (лише адміністратор) та/або профіль поточного користувача.

    Args:
        data (schemas.SettingsUpdate): Системні налаштування та/або дані профілю.
        db (Session): Сесія бази даних.
        current_user (models.User): Поточний авторизований користувач.

    Returns:
        dict: Ознака успіху та актуальні налаштування.

    Raises:
        HTTPException: 403 для не-адміністратора, 409 якщо email профілю вже зайнятий.
    """
    if data.system_settings is not None and not _is_admin(current_user):
        raise HTTPException(status_code=403, detail="Only the administrator can change system settings")
    if data.profile is not None and data.profile.email and data.profile.email != current_user.email:
        if crud.get_user_by_email(db, data.profile.email):
            raise HTTPException(status_code=409, detail="Email is already in use")

    # Обидві частини фіксуються одним commit: або все, або нічого
    try:
        db_settings = None
        if data.system_settings is not None:
            db_settings = crud.upsert_system_settings(db, data.system_settings, current_user.id)
        if data.profile is not None:
            crud.update_profile(db, current_user, data.profile)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email is already in use")

    result = {"success": True}
    if db_settings is not None:
        db.refresh(db_settings)
        result["settings"] = schemas.SystemSettingsOut.model_validate(db_settings).model_dump()
    if data.profile is not None:
        db.refresh(current_user)
        result["user"] = schemas.UserOut.model_validate(current_user).model_dump()
    return result
