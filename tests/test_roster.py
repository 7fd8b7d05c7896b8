import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from school_roster.core.errors import (
    ConflictError, NotDeletedError, NotFoundError, TransientStorageError, ValidationError,
)
from school_roster.crud.student import EXPORT_COLUMNS, student_crud
from school_roster.models.student import Student


def _count(db) -> int:
    return db.execute(select(func.count()).select_from(Student)).scalar_one()


# ---------- create / allocator ----------

def test_auto_roll_numbers_follow_class_section_max(db, student_payload):
    a = student_crud.create(db, student_payload())
    b = student_crud.create(db, student_payload())
    assert (a.roll_no, b.roll_no) == (101, 102)
    assert a.status == "active" and a.deleted_at is None
    assert a.created_at is not None and a.updated_at is not None


def test_soft_deleted_record_does_not_lower_next_roll_number(db, student_payload):
    a = student_crud.create(db, student_payload())
    student_crud.create(db, student_payload())
    student_crud.soft_delete(db, a.id)
    assert student_crud.next_roll_no(db, "Class 5", "B") == 103


def test_next_roll_number_starts_at_base_per_class_section(db, student_payload):
    student_crud.create(db, student_payload(roll_no=7))
    assert student_crud.next_roll_no(db, "Class 5", "B") == 8
    assert student_crud.next_roll_no(db, "Class 5", "C") == 101


def test_next_roll_number_requires_class_and_section(db):
    with pytest.raises(ValidationError):
        student_crud.next_roll_no(db, "Class 5", None)
    with pytest.raises(ValidationError):
        student_crud.next_roll_no(db, None, "B")
    with pytest.raises(ValidationError):
        student_crud.next_roll_no(db, "Class 13", "B")


def test_explicit_duplicate_roll_number_conflicts(db, student_payload):
    student_crud.create(db, student_payload(roll_no=50))
    with pytest.raises(ConflictError) as exc:
        student_crud.create(db, student_payload(roll_no=50))
    assert exc.value.message == "Roll number already exists"
    assert _count(db) == 1


def test_roll_number_of_deleted_record_can_be_reused_explicitly(db, student_payload):
    a = student_crud.create(db, student_payload(roll_no=50))
    student_crud.soft_delete(db, a.id)
    b = student_crud.create(db, student_payload(roll_no=50))
    assert b.roll_no == 50


def test_duplicate_email_conflicts_only_among_live_records(db, student_payload):
    a = student_crud.create(db, student_payload(email="Kid@School.edu"))
    assert a.email == "kid@school.edu"
    with pytest.raises(ConflictError):
        student_crud.create(db, student_payload(email="kid@school.edu"))
    student_crud.soft_delete(db, a.id)
    assert student_crud.create(db, student_payload(email="kid@school.edu")).email == "kid@school.edu"


def test_students_without_email_never_collide(db, student_payload):
    student_crud.create(db, student_payload(email=""))
    student_crud.create(db, student_payload())
    assert _count(db) == 2


@pytest.mark.parametrize("field,value", [
    ("parent_name", ""),
    ("full_name", "Al"),
    ("parent_phone", "12345"),
    ("section", "F"),
    ("class_name", "Class 13"),
    ("email", "not-an-email"),
    ("roll_no", 0),
    ("roll_no", 10**20),
])
def test_invalid_input_is_rejected_before_any_write(db, student_payload, field, value):
    with pytest.raises(ValidationError):
        student_crud.create(db, student_payload(**{field: value}))
    assert _count(db) == 0


def test_allocation_retries_after_losing_a_race(db, student_payload, monkeypatch):
    student_crud.create(db, student_payload())  # holds 101
    real = student_crud.next_roll_no
    calls = []

    def stale_then_real(session, class_name, section):
        calls.append(1)
        return 101 if len(calls) == 1 else real(session, class_name, section)

    monkeypatch.setattr(student_crud, "next_roll_no", stale_then_real)
    s = student_crud.create(db, student_payload())
    assert s.roll_no == 102
    assert len(calls) == 2


def test_allocation_gives_up_after_bounded_attempts(db, student_payload):
    # roll numbers are unique across the whole roster, not per class
    for roll in (101, 102, 103):
        student_crud.create(db, student_payload(class_name="Class 6", section="A", roll_no=roll))
    with pytest.raises(ConflictError) as exc:
        student_crud.create(db, student_payload())
    assert exc.value.details["attempts"] == 3
    assert _count(db) == 3


# ---------- update ----------

def test_update_never_touches_identity_or_created_at(db, student_payload):
    s = student_crud.create(db, student_payload())
    created_at = s.created_at
    before = s.updated_at
    out = student_crud.update(db, s.id, {
        "id": 999,
        "created_at": "2000-01-01T00:00:00",
        "deleted_at": "2000-01-01T00:00:00",
        "full_name": "Renamed Student",
    })
    assert out.id == s.id
    assert out.created_at == created_at
    assert out.deleted_at is None
    assert out.full_name == "Renamed Student"
    assert out.updated_at >= before


def test_update_with_only_protected_fields_is_rejected(db, student_payload):
    s = student_crud.create(db, student_payload())
    with pytest.raises(ValidationError):
        student_crud.update(db, s.id, {"id": 5, "created_at": "2020-01-01"})


def test_update_roll_number_collision_conflicts(db, student_payload):
    a = student_crud.create(db, student_payload())
    b = student_crud.create(db, student_payload())
    with pytest.raises(ConflictError) as exc:
        student_crud.update(db, b.id, {"roll_no": a.roll_no})
    assert exc.value.message == "Roll number already exists"
    db.expire_all()
    assert student_crud.get_by_id(db, b.id).roll_no == 102
    # keeping its own number is not a collision
    assert student_crud.update(db, b.id, {"roll_no": 102, "address": "New Road"}).address == "New Road"


def test_update_email_collision_conflicts(db, student_payload):
    student_crud.create(db, student_payload(email="one@school.edu"))
    b = student_crud.create(db, student_payload(email="two@school.edu"))
    with pytest.raises(ConflictError) as exc:
        student_crud.update(db, b.id, {"email": "ONE@school.edu"})
    assert exc.value.message == "Email already in use"


def test_update_rejects_malformed_values_and_unknown_ids(db, student_payload):
    s = student_crud.create(db, student_payload())
    with pytest.raises(ValidationError):
        student_crud.update(db, s.id, {"parent_phone": "abc"})
    with pytest.raises(ValidationError):
        student_crud.update(db, s.id, {"full_name": None})
    with pytest.raises(NotFoundError):
        student_crud.update(db, 4242, {"full_name": "Nobody Here"})


def test_update_reaches_soft_deleted_records(db, student_payload):
    s = student_crud.create(db, student_payload())
    student_crud.soft_delete(db, s.id)
    out = student_crud.update(db, s.id, {"address": "Moved Away"})
    assert out.address == "Moved Away" and out.deleted_at is not None


# ---------- soft delete / restore / hard delete ----------

def test_soft_delete_hides_record_from_default_listing(db, student_payload):
    s = student_crud.create(db, student_payload())
    student_crud.soft_delete(db, s.id)

    assert student_crud.list_students(db)["total_count"] == 0
    assert student_crud.list_students(db, {"status": "all"})["total_count"] == 0
    everything = student_crud.list_students(db, {"status": "all", "include_deleted": True})
    assert [r.id for r in everything["records"]] == [s.id]
    with pytest.raises(NotFoundError):
        student_crud.get_by_id(db, s.id)
    assert student_crud.get_by_id(db, s.id, include_deleted=True).status == "inactive"


def test_soft_delete_twice_is_a_noop(db, student_payload):
    s = student_crud.create(db, student_payload())
    assert not s.is_deleted
    first = student_crud.soft_delete(db, s.id).deleted_at
    again = student_crud.soft_delete(db, s.id)
    assert again.is_deleted
    assert again.deleted_at == first
    assert again.status == "inactive"
    assert not student_crud.restore(db, s.id).is_deleted


def test_soft_delete_unknown_id_is_not_found(db):
    with pytest.raises(NotFoundError):
        student_crud.soft_delete(db, 77)


def test_restore_requires_a_deleted_record(db, student_payload):
    s = student_crud.create(db, student_payload())
    with pytest.raises(NotDeletedError) as exc:
        student_crud.restore(db, s.id)
    assert isinstance(exc.value, NotFoundError)
    with pytest.raises(NotFoundError):
        student_crud.restore(db, 999)


def test_restore_undoes_soft_delete(db, student_payload):
    s = student_crud.create(db, student_payload(email="kid@school.edu"))
    student_crud.update(db, s.id, {"status": "graduated"})
    snapshot = {
        k: getattr(s, k) for k in
        ("id", "full_name", "email", "class_name", "section", "roll_no", "gender",
         "date_of_birth", "parent_name", "parent_phone", "address", "created_at")
    }
    student_crud.soft_delete(db, s.id)
    restored = student_crud.restore(db, s.id)

    assert restored.deleted_at is None
    assert restored.status == "active"
    assert {k: getattr(restored, k) for k in snapshot} == snapshot


def test_restore_conflicts_when_roll_number_was_taken_meanwhile(db, student_payload):
    a = student_crud.create(db, student_payload(roll_no=60))
    student_crud.soft_delete(db, a.id)
    student_crud.create(db, student_payload(roll_no=60))
    with pytest.raises(ConflictError):
        student_crud.restore(db, a.id)
    db.expire_all()
    assert student_crud.get_by_id(db, a.id, include_deleted=True).deleted_at is not None


def test_hard_delete_removes_even_soft_deleted_rows(db, student_payload):
    s = student_crud.create(db, student_payload())
    student_crud.soft_delete(db, s.id)
    assert student_crud.hard_delete(db, s.id) == s.id
    with pytest.raises(NotFoundError):
        student_crud.get_by_id(db, s.id, include_deleted=True)
    with pytest.raises(NotFoundError):
        student_crud.hard_delete(db, s.id)


# ---------- list / search / export ----------

def test_pagination_counts_only_matching_status(db, student_payload):
    for i in range(30):
        s = student_crud.create(db, student_payload())
        if i % 6 == 0:
            student_crud.update(db, s.id, {"status": "inactive"})

    page = student_crud.list_students(db, {"status": "active"}, page=1, limit=10)
    assert len(page["records"]) == 10
    assert page["total_count"] == 25
    assert page["total_pages"] == 3
    assert len(student_crud.list_students(db, {"status": "active"}, page=3, limit=10)["records"]) == 5


def test_page_size_is_capped(db, student_payload):
    student_crud.create(db, student_payload())
    assert student_crud.list_students(db, limit=500)["limit"] == 50


def test_pages_are_stable_when_sort_key_repeats(db, student_payload):
    ids = {student_crud.create(db, student_payload()).id for _ in range(7)}
    seen = []
    for page in (1, 2, 3):
        first = student_crud.list_students(db, page=page, limit=3, sort_by="class_name", sort_order="asc")
        second = student_crud.list_students(db, page=page, limit=3, sort_by="class_name", sort_order="asc")
        assert [r.id for r in first["records"]] == [r.id for r in second["records"]]
        seen.extend(r.id for r in first["records"])
    assert sorted(seen) == sorted(ids)


def test_default_order_is_newest_first(db, student_payload):
    a = student_crud.create(db, student_payload())
    b = student_crud.create(db, student_payload())
    assert [r.id for r in student_crud.list_students(db)["records"]] == [b.id, a.id]


def test_list_rejects_bad_paging_and_sorting(db):
    with pytest.raises(ValidationError):
        student_crud.list_students(db, page=0)
    with pytest.raises(ValidationError):
        student_crud.list_students(db, limit=0)
    with pytest.raises(ValidationError):
        student_crud.list_students(db, sort_by="parent_phone")
    with pytest.raises(ValidationError):
        student_crud.list_students(db, sort_order="sideways")


def test_list_filters(db, student_payload):
    student_crud.create(db, student_payload(full_name="Asha Verma", gender="Female", section="A"))
    student_crud.create(db, student_payload(full_name="Ravi Kumar", parent_phone="9123456789", roll_no=202))
    student_crud.create(db, student_payload(full_name="Meera Iyer", class_name="Class 7", gender="Female", roll_no=303))

    def names(**filters):
        return sorted(r.full_name for r in student_crud.list_students(db, filters)["records"])

    assert names(gender="Female") == ["Asha Verma", "Meera Iyer"]
    assert names(class_name="Class 7") == ["Meera Iyer"]
    assert names(section="A") == ["Asha Verma"]
    assert names(search="ravi") == ["Ravi Kumar"]
    assert names(search="91234") == ["Ravi Kumar"]
    assert names(search="101") == ["Asha Verma"]
    assert names(search="100%") == []


def test_search_ranks_roll_number_then_name_prefix(db, student_payload):
    student_crud.create(db, student_payload(full_name="Zara Ali", parent_name="Anil Ali"))
    student_crud.create(db, student_payload(full_name="Anil Sharma"))
    rolled = student_crud.create(db, student_payload(full_name="Kiran Rao", roll_no=555))

    assert student_crud.search(db, "a") == []
    assert student_crud.search(db, "   ") == []
    assert [s.full_name for s in student_crud.search(db, "anil")] == ["Anil Sharma", "Zara Ali"]
    assert student_crud.search(db, "555")[0].id == rolled.id
    assert student_crud.search(db, "nobody") == []


def test_search_skips_deleted_records(db, student_payload):
    s = student_crud.create(db, student_payload(full_name="Hidden Person"))
    student_crud.soft_delete(db, s.id)
    assert student_crud.search(db, "hidden") == []


def test_numeric_looking_terms_outside_roll_range_match_nothing(db, student_payload):
    student_crud.create(db, student_payload(full_name="Priya Nair"))
    for term in ("\u00b2\u00b2", "\u0661\u0662", "99999999999999999999", "2147483648"):
        assert student_crud.search(db, term) == []
        assert student_crud.list_students(db, {"search": term})["total_count"] == 0


def test_largest_roll_number_is_searchable(db, student_payload):
    s = student_crud.create(db, student_payload(roll_no=2_147_483_647))
    assert [r.id for r in student_crud.search(db, "2147483647")] == [s.id]


def test_out_of_range_ids_and_pages_fail_cleanly(db, student_payload):
    student_crud.create(db, student_payload())
    with pytest.raises(NotFoundError):
        student_crud.get_by_id(db, 10**20)
    with pytest.raises(NotFoundError):
        student_crud.update(db, 10**20, {"address": "Elsewhere"})
    with pytest.raises(ValidationError):
        student_crud.list_students(db, page=10**20)
    with pytest.raises(ValidationError):
        student_crud.update(db, 1, {"roll_no": 10**20})


def test_export_rows_are_flat_and_ordered(db, student_payload):
    student_crud.create(db, student_payload(full_name="Second One", roll_no=20))
    student_crud.create(db, student_payload(full_name="First One", roll_no=10, email="f@school.edu"))
    gone = student_crud.create(db, student_payload(full_name="Gone One", roll_no=5))
    student_crud.soft_delete(db, gone.id)

    rows = student_crud.export_rows(db, {"class_name": "Class 5"})
    assert list(rows[0]) == EXPORT_COLUMNS
    assert [r["Full Name"] for r in rows] == ["First One", "Second One"]
    assert rows[0]["Email"] == "f@school.edu"
    assert rows[1]["Email"] == ""


# ---------- statistics ----------

def test_class_statistics_omits_empty_sections(db, student_payload):
    student_crud.create(db, student_payload(section="A", gender="Male"))
    student_crud.create(db, student_payload(section="A", gender="Female"))
    student_crud.create(db, student_payload(section="A", gender="Female"))
    gone = student_crud.create(db, student_payload(section="B", gender="Male", roll_no=201))
    student_crud.soft_delete(db, gone.id)
    student_crud.create(db, student_payload(class_name="Class 6", section="B", roll_no=301))

    stats = student_crud.class_statistics(db, "Class 5")
    assert stats["total_students"] == 3
    assert stats["sections"] == [
        {"section": "A", "count": 3, "male_count": 1, "female_count": 2, "other_count": 0},
    ]


def test_class_statistics_requires_class(db):
    with pytest.raises(ValidationError):
        student_crud.class_statistics(db, "")


# ---------- storage failures ----------

def _locked():
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


def test_reads_retry_transient_failures(db):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise _locked()
        return "ok"

    assert student_crud.read(db, flaky) == "ok"
    assert len(calls) == 2


def test_reads_surface_persistent_failures(db):
    def broken():
        raise _locked()

    with pytest.raises(TransientStorageError):
        student_crud.read(db, broken)


def test_writes_surface_storage_failures(db, student_payload, monkeypatch):
    s = student_crud.create(db, student_payload())

    def fail_commit():
        raise _locked()

    monkeypatch.setattr(db, "commit", fail_commit)
    with pytest.raises(TransientStorageError):
        student_crud.soft_delete(db, s.id)
