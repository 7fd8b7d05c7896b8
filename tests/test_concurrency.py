import threading

from school_roster.crud.student import student_crud


def test_concurrent_auto_assigned_creates_get_distinct_roll_numbers(session_factory, student_payload, monkeypatch):
    workers = 3
    barrier = threading.Barrier(workers)
    local = threading.local()
    real = student_crud.next_roll_no

    def allocate_in_lockstep(session, class_name, section):
        value = real(session, class_name, section)
        if not getattr(local, "synced", False):
            # every worker reads the same max before anyone inserts
            local.synced = True
            barrier.wait(timeout=10)
        return value

    monkeypatch.setattr(student_crud, "next_roll_no", allocate_in_lockstep)

    payloads = [student_payload() for _ in range(workers)]
    results, errors = [], []

    def work(payload):
        session = session_factory()
        try:
            results.append(student_crud.create(session, payload).roll_no)
        except Exception as exc:  # collected and asserted below
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=work, args=(p,)) for p in payloads]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    assert sorted(results) == [101, 102, 103]
