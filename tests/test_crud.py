# tests/test_crud.py
import uuid

import pytest

from app import crud, models, schemas


@pytest.fixture
def user(db_session):
    return crud.create_user(db_session, name="Test User", email="test@example.com", password="secret")


@pytest.fixture
def other_user(db_session):
    return crud.create_user(db_session, name="Other User", email="other@example.com", password="secret")


def make_contact(db_session, owner, **fields):
    data = {"first_name": "Ann", "last_name": "Lee", "company": {"name": "Acme"}}
    data.update(fields)
    return crud.create_contact(db_session, schemas.ContactCreate(**data), owner.id)


def test_create_user(db_session, user):
    """
    Тест створення користувача.
    """
    assert user.email == "test@example.com"
    assert user.name == "Test User"
    assert user.hashed_password != "secret"
    assert len(user.id) == 32


def test_authenticate_user(db_session, user):
    assert crud.authenticate_user(db_session, "test@example.com", "secret").id == user.id
    assert crud.authenticate_user(db_session, "test@example.com", "wrong") is None
    assert crud.authenticate_user(db_session, "missing@example.com", "secret") is None


def test_get_user_accepts_any_uuid_spelling(db_session, user):
    hyphenated = str(uuid.UUID(user.id))
    assert crud.get_user(db_session, hyphenated).id == user.id
    assert crud.get_user(db_session, user.id.upper()).id == user.id
    assert crud.get_user(db_session, "not-a-uuid") is None


def test_create_contact_defaults(db_session, user):
    contact = make_contact(db_session, user)
    assert contact.user_id == user.id
    assert contact.status == "new"
    assert contact.notes == []
    assert contact.company["name"] == "Acme"


def test_owner_scoped_lookup_ignores_id_representation(db_session, user, other_user):
    contact = make_contact(db_session, user)
    spellings = [contact.id, contact.id.upper(), str(uuid.UUID(contact.id)), uuid.UUID(contact.id)]
    owners = [user.id, user.id.upper(), str(uuid.UUID(user.id))]

    for contact_id in spellings:
        for owner_id in owners:
            assert crud.get_contact(db_session, owner_id, contact_id).id == contact.id
        assert crud.get_contact(db_session, other_user.id, contact_id) is None


def test_get_contact_rejects_invalid_id(db_session, user):
    with pytest.raises(ValueError):
        crud.get_contact(db_session, user.id, "123")


def test_get_contacts_search_and_status(db_session, user, other_user):
    make_contact(db_session, user, first_name="Ann", company={"name": "Acme"})
    called = make_contact(db_session, user, first_name="Bob", company={"name": "Globex"})
    make_contact(db_session, other_user, first_name="Ann", company={"name": "Acme"})
    crud.update_contact_status(db_session, user.id, called.id, models.ContactStatus.CALLED)

    assert len(crud.get_contacts(db_session, user.id)) == 2
    assert [c.first_name for c in crud.get_contacts(db_session, user.id, query="glob")] == ["Bob"]
    assert [c.id for c in crud.get_contacts(db_session, user.id, status="called")] == [called.id]
    assert db_session.query(models.Contact).filter(models.Contact.user_id == other_user.id).count() == 1


def test_update_contact_keeps_owner(db_session, user):
    contact = make_contact(db_session, user)
    updated = crud.update_contact(
        db_session, user.id, contact.id,
        schemas.ContactUpdate(email="ann@example.com", company=schemas.Company(name="Initech", website="initech.com")),
    )
    assert updated.email == "ann@example.com"
    assert updated.first_name == "Ann"
    assert updated.company == {"name": "Initech", "address": "", "phone": "", "website": "initech.com"}
    assert updated.user_id == user.id


def test_add_note_keeps_author_snapshot(db_session, user):
    contact = make_contact(db_session, user)
    first = crud.add_note(db_session, user, contact.id, "First call went well")
    crud.update_profile(db_session, user, schemas.ProfileUpdate(name="Renamed"))
    crud.add_note(db_session, user, contact.id, "Second")

    db_session.refresh(contact)
    assert [note["content"] for note in contact.notes] == ["First call went well", "Second"]
    assert contact.notes[0]["id"] == first["id"]
    assert contact.notes[0]["created_by"] == {"id": user.id, "name": "Test User"}
    assert contact.notes[1]["created_by"]["name"] == "Renamed"


def test_add_note_to_foreign_contact(db_session, user, other_user):
    contact = make_contact(db_session, user)
    assert crud.add_note(db_session, other_user, contact.id, "hi") is None


def test_delete_contacts_removes_call_logs(db_session, user, other_user):
    mine = make_contact(db_session, user)
    theirs = make_contact(db_session, other_user)
    crud.create_call_log(db_session, user.id, mine, schemas.CallLogCreate(duration=30))

    deleted = crud.delete_contacts(db_session, user.id, [mine.id, str(uuid.UUID(theirs.id))])

    assert deleted == 1
    assert db_session.query(models.CallLog).count() == 0
    assert crud.get_contact(db_session, other_user.id, theirs.id) is not None


def test_call_logs_newest_first(db_session, user):
    contact = make_contact(db_session, user)
    first = crud.create_call_log(db_session, user.id, contact, schemas.CallLogCreate(status="missed"))
    second = crud.create_call_log(db_session, user.id, contact, schemas.CallLogCreate(notes="Follow up"))

    calls = crud.get_contact_calls(db_session, contact)
    assert [c.id for c in calls] == [second.id, first.id]
    assert calls[1].status == "missed"
    assert [c.id for c in crud.get_user_calls(db_session, user.id, limit=1)] == [second.id]


def test_system_settings_upsert(db_session, user):
    assert crud.get_system_settings(db_session) is None
    assert not crud.registration_disabled(db_session)

    crud.upsert_system_settings(db_session, schemas.SystemSettingsUpdate(registration_disabled=True), user.id)
    db_settings = crud.upsert_system_settings(db_session, schemas.SystemSettingsUpdate(system_notice="Hi"), user.id)
    db_session.commit()

    assert db_settings.registration_disabled is True
    assert db_settings.system_notice == "Hi"
    assert db_settings.updated_by == user.id
    assert db_session.query(models.SystemSettings).count() == 1
    assert crud.registration_disabled(db_session)


def test_settings_and_profile_changes_wait_for_commit(db_session, user):
    crud.upsert_system_settings(db_session, schemas.SystemSettingsUpdate(maintenance_mode=True), user.id)
    crud.update_profile(db_session, user, schemas.ProfileUpdate(name="Renamed"))
    db_session.rollback()

    assert crud.get_system_settings(db_session) is None
    assert crud.get_user(db_session, user.id).name == "Test User"
