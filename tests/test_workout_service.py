import pytest

from fitrack.errors import NotFoundError, ValidationError
from fitrack.services import catalog_service, workout_service
from fitrack.services.stats_service import daily_activity, dashboard


def _workout(**overrides):
    return {"name": "Push", "workout_date": "2026-03-01", "duration_minutes": "30", "total_calories": "200", **overrides}


def _exercise_id(db, name):
    return catalog_service.list_exercises(db, search=name)[0]["id"]


def test_pagination(db, make_user):
    alice = make_user("alice")
    for day in range(1, 13):
        workout_service.create_workout(db, alice, _workout(name=f"w{day}", workout_date=f"2026-03-{day:02d}"))

    first = workout_service.list_workouts(db, alice, page=1)
    assert first["total_workouts"] == 12
    assert first["total_pages"] == 2
    assert len(first["workouts"]) == 10
    assert first["workouts"][0]["name"] == "w12"

    second = workout_service.list_workouts(db, alice, page=2)
    assert [w["name"] for w in second["workouts"]] == ["w2", "w1"]
    assert workout_service.list_workouts(db, alice, page=0)["current_page"] == 1


def test_empty_list_has_one_page(db, make_user):
    alice = make_user("alice")
    listing = workout_service.list_workouts(db, alice)
    assert listing["workouts"] == []
    assert listing["total_pages"] == 1


def test_create_requires_name_and_date(db, make_user):
    alice = make_user("alice")
    with pytest.raises(ValidationError) as exc:
        workout_service.create_workout(db, alice, {"name": "", "workout_date": "someday"})
    assert exc.value.messages == ["Workout name is required", "Workout date is required"]


def test_exercise_count_and_entries(db, make_user):
    alice = make_user("alice")
    bench = _exercise_id(db, "Bench Press")
    wid = workout_service.create_workout(
        db,
        alice,
        _workout(),
        [{"exercise_id": bench, "sets": "3", "reps": "8", "weight_kg": "80"}, {"exercise_id": ""}],
    )
    listing = workout_service.list_workouts(db, alice)
    assert listing["workouts"][0]["exercise_count"] == 1

    entry_id = workout_service.add_exercise(db, alice, wid, {"exercise_id": str(_exercise_id(db, "Push Up"))})
    detail = workout_service.get_workout(db, alice, wid)
    assert [e["exercise_name"] for e in detail["workout_exercises"]] == ["Bench Press", "Push Up"]
    assert detail["workout_exercises"][0]["weight_kg"] == 80

    workout_service.remove_exercise(db, alice, wid, entry_id)
    assert len(workout_service.get_workout(db, alice, wid)["workout_exercises"]) == 1


def test_add_unknown_exercise_is_rejected(db, make_user):
    alice = make_user("alice")
    wid = workout_service.create_workout(db, alice, _workout())
    with pytest.raises(ValidationError):
        workout_service.add_exercise(db, alice, wid, {"exercise_id": "999999"})


def test_update_keeps_date_when_blank(db, make_user):
    alice = make_user("alice")
    wid = workout_service.create_workout(db, alice, _workout())
    workout_service.update_workout(db, alice, wid, {"name": "Pull", "workout_date": "", "rating": "4"})
    w = workout_service.get_workout(db, alice, wid)["workout"]
    assert w["name"] == "Pull"
    assert str(w["workout_date"]) == "2026-03-01"
    assert w["rating"] == 4


def test_delete_removes_entries(db, make_user):
    alice = make_user("alice")
    wid = workout_service.create_workout(db, alice, _workout(), [{"exercise_id": _exercise_id(db, "Squat")}])
    workout_service.delete_workout(db, alice, wid)
    with pytest.raises(NotFoundError):
        workout_service.get_workout(db, alice, wid)
    with pytest.raises(NotFoundError):
        workout_service.delete_workout(db, alice, wid)


def test_entries_are_scoped_through_the_workout(db, make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    squat = _exercise_id(db, "Squat")
    wa = workout_service.create_workout(db, alice, _workout(), [{"exercise_id": squat}])
    wb = workout_service.create_workout(db, bob, _workout())
    entry_id = workout_service.get_workout(db, alice, wa)["workout_exercises"][0]["id"]

    with pytest.raises(NotFoundError):
        workout_service.remove_exercise(db, bob, wa, entry_id)
    # bob's own workout id does not unlock alice's entry either
    with pytest.raises(NotFoundError):
        workout_service.remove_exercise(db, bob, wb, entry_id)
    assert len(workout_service.get_workout(db, alice, wa)["workout_exercises"]) == 1
    assert workout_service.list_workouts(db, bob)["total_workouts"] == 1


def test_export_frame(db, make_user):
    alice = make_user("alice")
    workout_service.create_workout(db, alice, _workout(name="A", workout_date="2026-03-01"))
    workout_service.create_workout(db, alice, _workout(name="B", workout_date="2026-03-02"))
    df = workout_service.workouts_frame(db, alice)
    assert list(df["name"]) == ["B", "A"]
    assert "exercise_count" in df.columns


def test_daily_activity_groups_by_date():
    rows = [
        {"workout_date": "2026-03-02", "duration_minutes": 30, "total_calories": 200},
        {"workout_date": "2026-03-01", "duration_minutes": None, "total_calories": 100},
        {"workout_date": "2026-03-02", "duration_minutes": 15, "total_calories": None},
    ]
    assert daily_activity(rows) == [
        {"date": "2026-03-01", "minutes": 0, "calories": 100},
        {"date": "2026-03-02", "minutes": 45, "calories": 200},
    ]
    assert daily_activity([]) == []


def test_dashboard_only_counts_last_30_days(db, make_user):
    from datetime import date

    alice = make_user("alice")
    workout_service.create_workout(db, alice, _workout(workout_date="2026-03-01"))
    workout_service.create_workout(db, alice, _workout(workout_date="2026-01-01"))
    data = dashboard(db, alice, today=date(2026, 3, 10))
    assert data["stats"]["total_workouts"] == 2
    assert data["workout_data"] == [{"date": "2026-03-01", "minutes": 30, "calories": 200}]
    assert data["goals"] == []
