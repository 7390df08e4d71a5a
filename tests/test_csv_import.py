# tests/test_csv_import.py
from datetime import datetime, timezone

import pytest

from app import models
from app.csv_import import (
    EmptyCsv,
    ImportFailed,
    MissingRequiredColumn,
    import_contacts,
    normalize_row,
    parse_csv,
    parse_line,
    persist_all,
    split_rows,
)


@pytest.fixture
def owner(db_session):
    user = models.User(name="Importer", email="importer@example.com", hashed_password="x")
    db_session.add(user)
    db_session.commit()
    return user


def test_parse_line_splits_and_trims():
    assert parse_line(" Acme , 555-1111 ,x") == ["Acme", "555-1111", "x"]


def test_parse_line_keeps_comma_inside_quotes():
    assert parse_line('"Acme, Inc",555-1111') == ["Acme, Inc", "555-1111"]


def test_parse_line_does_not_unescape_doubled_quotes():
    # "" лише двічі перемикає режим лапок, тож лапки зникають зі значення
    assert parse_line('"Acme ""Best"" Inc",x') == ["Acme Best Inc", "x"]


def test_parse_line_trailing_comma_gives_empty_field():
    assert parse_line("Acme,") == ["Acme", ""]


def test_split_rows_handles_crlf_and_blank_lines():
    text = "company_name\r\nAcme\r\n\r\n   \nXYZ\n"
    assert split_rows(text) == ["company_name", "Acme", "XYZ"]


def test_parse_csv_indexes_known_columns():
    parsed = parse_csv("notes,company_phone,company_name\nhi,555,Acme")
    assert parsed.headers == ["notes", "company_phone", "company_name"]
    assert parsed.column_index == {"company_phone": 1, "company_name": 2}
    assert parsed.rows == [["hi", "555", "Acme"]]


def test_missing_company_name_column():
    with pytest.raises(MissingRequiredColumn):
        parse_csv("company_phone,company_website\n555,acme.com")


def test_header_match_is_case_sensitive():
    with pytest.raises(MissingRequiredColumn):
        parse_csv("Company_Name\nAcme")


@pytest.mark.parametrize("text", ["", "company_name", "company_name\n\n  \r\n"])
def test_header_without_data_rows(text):
    with pytest.raises(EmptyCsv):
        parse_csv(text)


def test_normalize_row_builds_new_contact():
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    contact = normalize_row(
        ["Acme", "555-1111", "Main St 1"],
        {"company_name": 0, "company_phone": 1, "company_address": 2},
        "a" * 32,
        now=now,
    )
    assert contact.user_id == "a" * 32
    assert contact.first_name == ""
    assert contact.last_name == ""
    assert contact.email == ""
    assert contact.phone == "555-1111"
    assert contact.company == {"name": "Acme", "address": "Main St 1", "phone": "555-1111", "website": ""}
    assert contact.status == "new"
    assert contact.notes == []
    assert contact.created_at == now
    assert contact.updated_at == now


def test_import_two_rows(db_session, owner):
    result = import_contacts(db_session, owner.id, "company_name,company_phone\nAcme,555-1111\nXYZ,555-2222")
    assert result.imported == 2
    assert result.skipped == 0

    contacts = db_session.query(models.Contact).order_by(models.Contact.company_name).all()
    assert [c.company_name for c in contacts] == ["Acme", "XYZ"]
    assert [c.company_phone for c in contacts] == ["555-1111", "555-2222"]
    assert all(c.status == "new" and c.first_name == "" and c.user_id == owner.id for c in contacts)


def test_missing_column_imports_nothing(db_session, owner):
    with pytest.raises(MissingRequiredColumn):
        import_contacts(db_session, owner.id, "company_phone\n555-1111")
    assert db_session.query(models.Contact).count() == 0


def test_short_rows_are_skipped(db_session, owner):
    text = (
        "company_name,company_address,company_phone,company_website\n"
        "Acme,Main St,555-1111,acme.com\n"
        "Broken,Row\n"
        "XYZ,Side St,555-2222,xyz.com\n"
    )
    result = import_contacts(db_session, owner.id, text)
    assert result.imported == 2
    assert result.skipped == 1
    names = {c.company_name for c in db_session.query(models.Contact)}
    assert names == {"Acme", "XYZ"}


def test_rows_with_extra_fields_are_kept(db_session, owner):
    result = import_contacts(db_session, owner.id, "company_name\nAcme,extra")
    assert result.imported == 1


def test_reimport_creates_independent_contacts(db_session, owner):
    text = "company_name\nAcme\nXYZ"
    import_contacts(db_session, owner.id, text)
    import_contacts(db_session, owner.id, text)
    contacts = db_session.query(models.Contact).all()
    assert len(contacts) == 4
    assert len({c.id for c in contacts}) == 4


def test_persist_all_with_no_rows(db_session):
    assert persist_all(db_session, []) == 0
    assert db_session.query(models.Contact).count() == 0


def test_persist_all_reports_partial_success(db_session, owner):
    index = {"company_name": 0}
    contacts = [normalize_row([name], index, owner.id) for name in ("A", "B", "C")]
    contacts[2].user_id = None

    with pytest.raises(ImportFailed) as exc_info:
        persist_all(db_session, contacts, batch_size=2)

    assert exc_info.value.imported == 2
    assert db_session.query(models.Contact).count() == 2
