from types import SimpleNamespace

import pytest

from conftest import add_group, add_judge, seed_competition
from errors import ConflictError, DuplicateError, NotFoundError, ValidationError
from extensions import bcrypt
from judges import (
    bulk_create_judges,
    create_judge,
    delete_judge,
    store_error_code,
    toggle_judge_status,
    update_judge,
)
from models import Judge, JudgeScore


def test_create_judge_hashes_password(admin_session, competition):
    judge = create_judge(admin_session, {"competition_id": competition.id, "name": "Judge Li",
                                         "password": "s3cret", "email": "li@example.com"})

    assert judge.password_hash != "s3cret"
    assert bcrypt.check_password_hash(judge.password_hash, "s3cret")
    assert judge.is_active is True


def test_create_judge_validation(admin_session, competition):
    base = {"competition_id": competition.id, "name": "Judge Li", "password": "pw"}

    with pytest.raises(ValidationError) as exc:
        create_judge(admin_session, dict(base, password=""))
    assert exc.value.key == "judge.password_required"

    with pytest.raises(ValidationError) as exc:
        create_judge(admin_session, dict(base, email="not-an-email"))
    assert exc.value.key == "judge.invalid_email"

    with pytest.raises(NotFoundError):
        create_judge(admin_session, dict(base, competition_id=999))


def test_judge_name_unique_per_competition(admin_session, competition):
    add_judge(competition, email="li@example.com")

    with pytest.raises(DuplicateError) as exc:
        create_judge(admin_session, {"competition_id": competition.id, "name": "Judge Li", "password": "pw"})
    assert exc.value.key == "judge.name_exists"

    with pytest.raises(DuplicateError) as exc:
        create_judge(admin_session, {"competition_id": competition.id, "name": "Judge Wu",
                                     "password": "pw", "email": "li@example.com"})
    assert exc.value.key == "judge.email_exists"

    other = seed_competition("Autumn Showcase")
    create_judge(admin_session, {"competition_id": other.id, "name": "Judge Li", "password": "pw"})


def test_update_keeps_password_unless_given(admin_session, competition):
    judge = add_judge(competition)
    original = judge.password_hash

    update_judge(admin_session, judge.id, {"name": "Judge Li", "specialization": "Pop"})
    assert judge.password_hash == original
    assert judge.specialization == "Pop"

    update_judge(admin_session, judge.id, {"name": "Judge Li", "password": "new-pass"})
    assert bcrypt.check_password_hash(judge.password_hash, "new-pass")


def test_delete_judge_with_scores_fails(admin_session, competition):
    judge = add_judge(competition)
    group = add_group(competition, "Harmony")
    admin_session.add(JudgeScore(judge_id=judge.id, group_id=group.id, round_id=competition.rounds[0].id,
                                 factor_id=competition.scoring_factors[0].id, score=8))
    admin_session.commit()

    with pytest.raises(ConflictError) as exc:
        delete_judge(admin_session, judge.id)
    assert exc.value.key == "judge.has_scores"
    assert admin_session.get(Judge, judge.id) is not None


def test_delete_judge_without_scores(admin_session, competition):
    judge = add_judge(competition)
    delete_judge(admin_session, judge.id)
    assert admin_session.query(Judge).count() == 0


def test_toggle_judge_status(admin_session, competition):
    judge = add_judge(competition)
    toggle_judge_status(admin_session, judge.id)
    assert judge.is_active is False
    toggle_judge_status(admin_session, judge.id)
    assert judge.is_active is True


def test_bulk_create_judges(admin_session, competition):
    with pytest.raises(ValidationError) as exc:
        bulk_create_judges(admin_session, [{"name": "A", "password": "pw"}, {"name": "A", "password": "pw"}],
                           competition.id)
    assert exc.value.key == "judge.bulk_duplicate_name"

    with pytest.raises(ValidationError) as exc:
        bulk_create_judges(admin_session, [{"name": "A"}], competition.id)
    assert exc.value.key == "judge.all_need_passwords"

    created = bulk_create_judges(admin_session, [{"name": "A", "password": "pw"},
                                                 {"name": "B", "password": "pw", "email": "b@example.com"}],
                                 competition.id)
    assert sorted(j.name for j in created) == ["A", "B"]


@pytest.mark.parametrize("orig, expected", [
    (SimpleNamespace(sqlstate="23505"), "23505"),
    (SimpleNamespace(pgcode="23503"), "23503"),
    ("UNIQUE constraint failed: judges.competition_id, judges.name", "23505"),
    ("FOREIGN KEY constraint failed", "23503"),
    ("CHECK constraint failed: ck_judge_experience_years", "23514"),
    ("disk I/O error", None),
])
def test_store_error_code(orig, expected):
    assert store_error_code(SimpleNamespace(orig=orig)) == expected


def test_judge_routes(admin_client):
    competition = admin_client.post("/admin/competitions", json={"name": "Spring"}).get_json()

    response = admin_client.post("/admin/judges", json={"competition_id": competition["id"],
                                                        "name": "Judge Li", "password": "pw"})
    assert response.status_code == 201
    assert "password_hash" not in response.get_json()

    judge_id = response.get_json()["id"]
    response = admin_client.post(f"/admin/judges/{judge_id}/toggle")
    assert response.get_json()["is_active"] is False
