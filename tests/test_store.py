from datetime import datetime, timedelta, timezone

from caltrack.models import Conversation, Message, Meal, TriggerRun, utc_now
from caltrack.store import append_message, as_utc, previous_message

USER = "user-7"


def test_datetime_columns_are_timezone_aware():
    columns = [
        Conversation.__table__.c.created_at,
        Conversation.__table__.c.updated_at,
        Message.__table__.c.timestamp,
        Meal.__table__.c.created_at,
        TriggerRun.__table__.c.created_at,
    ]
    assert all(column.type.timezone for column in columns)


def test_new_records_carry_utc_timestamps():
    assert utc_now().tzinfo is timezone.utc
    assert Conversation(id=USER).created_at.tzinfo is timezone.utc
    assert Meal(user_id=USER, conversation_id=USER).created_at.tzinfo is timezone.utc


def test_appended_timestamps_strictly_increase(session):
    messages = [append_message(session, USER, "user", "text", str(i)) for i in range(5)]
    stamps = [as_utc(m.timestamp) for m in messages]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == 5


def test_append_after_future_timestamp_moves_past_it(session):
    future = utc_now() + timedelta(hours=1)
    first = append_message(session, USER, "user", "text", "first")
    first.timestamp = future
    session.add(first)
    session.commit()

    second = append_message(session, USER, "user", "text", "second")
    assert as_utc(second.timestamp) == future + timedelta(microseconds=1)


def test_previous_message_accepts_naive_and_aware_bounds(session):
    first = append_message(session, USER, "user", "text", "first")
    second = append_message(session, USER, "user", "text", "second")
    aware = as_utc(second.timestamp)
    naive = aware.replace(tzinfo=None)

    assert previous_message(session, USER, aware).id == first.id
    assert previous_message(session, USER, naive).id == first.id
    assert previous_message(session, USER, as_utc(first.timestamp)) is None


def test_as_utc():
    naive = datetime(2026, 1, 2, 3, 4, 5)
    assert as_utc(naive) == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    aware = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert as_utc(aware) is aware
