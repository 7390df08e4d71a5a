# app/csv_import.py
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional
import logging
import re

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .models import canonical_id, utcnow

logger = logging.getLogger(__name__)

REQUIRED_COLUMN = "company_name"

# Колонка CSV -> атрибут моделі Contact
COLUMN_MAP = {
    "company_name": "company_name",
    "company_address": "company_address",
    "company_phone": "company_phone",
    "company_website": "company_website",
}

ROW_SEPARATOR = re.compile(r"\r?\n")


class CsvStructureError(ValueError):
    """Помилка рівня файлу: імпорт не виконується взагалі."""


class EmptyCsv(CsvStructureError):
    pass


class MissingRequiredColumn(CsvStructureError):
    def __init__(self, column: str):
        super().__init__(f'CSV must contain a "{column}" column')
        self.column = column


class ImportFailed(Exception):
    """
    Сховище відхилило частину пакета. `imported` містить кількість
    контактів, збережених до збою.
    """

    def __init__(self, imported: int, message: str = "Failed to import contacts"):
        super().__init__(message)
        self.imported = imported


class ParsedCsv(NamedTuple):
    headers: List[str]
    column_index: Dict[str, int]
    rows: List[List[str]]


class ImportResult(NamedTuple):
    imported: int
    skipped: int


def split_rows(text: str) -> List[str]:
    """
    Розбиває текст на рядки за CRLF/LF і відкидає порожні.
    """
    return [line for line in ROW_SEPARATOR.split(text) if line.strip()]


def parse_line(line: str) -> List[str]:
    """
    Розбиває рядок CSV на поля з урахуванням лапок.

    Лапка перемикає режим "всередині поля в лапках", у якому кома є
    звичайним символом. Самі лапки до значення не потрапляють, а "" не
    розекрановується: це лише два перемикання режиму поспіль.

    Args:
        line (str): Один рядок файлу.

    Returns:
        List[str]: Поля рядка з обрізаними пробілами по краях.
    """
    fields = []
    current = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


def parse_csv(text: str) -> ParsedCsv:
    """
    Розбирає вміст CSV-файлу: заголовок і рядки даних.

    Args:
        text (str): Вміст файлу.

    Returns:
        ParsedCsv: Заголовки, індекси відомих колонок і рядки даних.

    Raises:
        EmptyCsv: Якщо після заголовка немає жодного рядка даних.
        MissingRequiredColumn: Якщо серед заголовків немає company_name.
    """
    lines = split_rows(text)
    if len(lines) < 2:
        raise EmptyCsv("CSV file must contain a header row and at least one data row")

    headers = parse_line(lines[0])
    column_index = {}
    for index, header in enumerate(headers):
        if header in COLUMN_MAP and header not in column_index:
            column_index[header] = index

    if REQUIRED_COLUMN not in column_index:
        raise MissingRequiredColumn(REQUIRED_COLUMN)

    return ParsedCsv(headers=headers, column_index=column_index, rows=[parse_line(line) for line in lines[1:]])


def normalize_row(values: List[str], column_index: Dict[str, int], owner_id: str, now: Optional[datetime] = None) -> models.Contact:
    """
    Перетворює рядок CSV на новий (ще не збережений) контакт.

    Ім'я, прізвище та email лишаються порожніми, статус завжди "new",
    обидві мітки часу дорівнюють моменту нормалізації.

    Args:
        values (List[str]): Поля рядка.
        column_index (Dict[str, int]): Позиції відомих колонок.
        owner_id (str): Власник контакту.
        now (datetime, optional): Момент нормалізації.

    Returns:
        models.Contact: Чернетка контакту.
    """
    if now is None:
        now = utcnow()
    company = {attr: "" for attr in COLUMN_MAP.values()}
    for column, index in column_index.items():
        company[COLUMN_MAP[column]] = values[index] if index < len(values) else ""

    return models.Contact(
        id=models.new_id(),
        user_id=canonical_id(owner_id),
        first_name="",
        last_name="",
        email="",
        phone=company["company_phone"],
        status=models.ContactStatus.NEW.value,
        notes=[],
        created_at=now,
        updated_at=now,
        **company,
    )


def persist_all(db: Session, contacts: List[models.Contact], batch_size: Optional[int] = None) -> int:
    """
    Зберігає контакти пакетами, кожен пакет окремою транзакцією.

    Args:
        db (Session): Сесія бази даних.
        contacts (List[models.Contact]): Нові контакти.
        batch_size (int, optional): Розмір пакета, за замовчуванням IMPORT_BATCH_SIZE.

    Returns:
        int: Кількість збережених контактів.

    Raises:
        ImportFailed: Якщо сховище відхилило пакет; містить кількість уже збережених.
    """
    batch_size = batch_size or settings.IMPORT_BATCH_SIZE
    imported = 0
    for start in range(0, len(contacts), batch_size):
        batch = contacts[start:start + batch_size]
        try:
            db.add_all(batch)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Bulk insert failed after %d contacts", imported)
            raise ImportFailed(imported) from exc
        imported += len(batch)
    return imported


def import_contacts(db: Session, owner_id: str, text: str) -> ImportResult:
    """
    Імпортує контакти з CSV для заданого користувача.

    Рядки, у яких полів менше, ніж у заголовку, пропускаються без помилки.
    Дублікати не відстежуються: повторний імпорт того самого файлу створює
    новий набір контактів.

    Args:
        db (Session): Сесія бази даних.
        owner_id (str): Власник нових контактів.
        text (str): Вміст файлу.

    Returns:
        ImportResult: Кількість імпортованих і пропущених рядків.
    """
    parsed = parse_csv(text)
    now = utcnow()
    contacts = []
    skipped = 0
    for values in parsed.rows:
        if len(values) < len(parsed.headers):
            skipped += 1
            continue
        contacts.append(normalize_row(values, parsed.column_index, owner_id, now=now))

    imported = persist_all(db, contacts)
    logger.info("Imported %d contacts for user %s, skipped %d rows", imported, owner_id, skipped)
    return ImportResult(imported=imported, skipped=skipped)
