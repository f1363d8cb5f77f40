"""
Tests for the GPA calculator, semester credits and term completion.
"""
from __future__ import annotations

import json
import pytest
from datetime import datetime, timezone

from classmetrics.core.auth import Identity
from classmetrics.core.errors import TermAlreadyCompletedError, TermNotFoundError
from classmetrics.models.assignment import AssignmentStatus
from classmetrics.models.term import TermStatus
from classmetrics.models.user_class_metric import UserClassMetric, MetricType
from classmetrics.services.gpa_service import (
    calculate_user_gpa,
    calculate_weighted_gpa,
    complete_term,
    get_current_semester_credits,
    get_gpa_history,
    percentage_to_gpa,
)
from classmetrics.services.periods import to_ms

DUE = to_ms(datetime(2024, 3, 1, 9, tzinfo=timezone.utc))


def _me(user) -> Identity:
    return Identity(subject=user.auth_subject)


def _change_log(db, user_id, change_type=None):
    db.expire_all()
    q = db.query(UserClassMetric).filter(
        UserClassMetric.user_id == user_id,
        UserClassMetric.metric_type == MetricType.user_change_log.value,
    )
    if change_type:
        q = q.filter(UserClassMetric.change_type == change_type)
    return q.all()


def _done(make, user, course, **grade):
    return make.assignment(user, course, DUE, status=AssignmentStatus.done, **grade)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

class TestPercentageToGpa:
    @pytest.mark.parametrize(
        "pct, points",
        [(100, 4.0), (97, 4.0), (95, 3.7), (93, 3.7), (90, 3.3), (88, 3.0),
         (85, 2.7), (80, 2.3), (78, 2.0), (75, 1.7), (70, 1.3), (68, 1.0),
         (65, 0.7), (64.9, 0.0), (0, 0.0)],
    )
    def test_breakpoints(self, pct, points):
        assert percentage_to_gpa(pct) == points


class TestWeightedGpa:
    def test_no_credits_is_zero(self):
        assert calculate_weighted_gpa(0, 0, 0, 0) == 0.0

    def test_blend(self):
        assert calculate_weighted_gpa(3.0, 30, 4.0, 10) == pytest.approx(3.25)

    def test_institution_only(self):
        assert calculate_weighted_gpa(0, 0, 3.7, 3) == pytest.approx(3.7)


# ---------------------------------------------------------------------------
# calculate_user_gpa
# ---------------------------------------------------------------------------

class TestCalculateUserGpa:
    def test_single_course(self, db, make, student):
        term = make.term(student)
        course = make.course(student, term, credit_hours=3)
        _done(make, student, course, grade_percentage=95)

        result = calculate_user_gpa(db, _me(student))
        assert result.predicted_term_gpa == pytest.approx(3.7)
        assert result.institution_gpa == pytest.approx(3.7)
        assert result.current_gpa == pytest.approx(3.7)
        assert result.term_credits_earned == 3
        assert result.term_points_earned == pytest.approx(11.1)
        assert result.calculation_method == "assignment_based"

        db.expire_all()
        assert student.current_gpa == pytest.approx(3.7)
        logged = {m.change_type for m in _change_log(db, student.id)}
        assert logged == {"predicted_term_gpa", "institution_gpa", "current_gpa"}

    def test_pending_and_ungraded_assignments_ignored(self, db, make, student):
        term = make.term(student)
        course = make.course(student, term)
        _done(make, student, course, grade=85)
        make.assignment(student, course, DUE, grade=20)      # not done
        _done(make, student, course)                          # no grade
        result = calculate_user_gpa(db, _me(student))
        assert result.predicted_term_gpa == pytest.approx(2.7)

    def test_per_course_mean_weighted_by_credits(self, db, make, student):
        term = make.term(student)
        four = make.course(student, term, credit_hours=4)
        one = make.course(student, term, credit_hours=1)
        _done(make, student, four, grade=97)   # 4.0
        _done(make, student, four, grade=90)   # 3.3
        _done(make, student, one, grade=50)    # 0.0
        result = calculate_user_gpa(db, _me(student))
        assert result.predicted_term_gpa == pytest.approx((3.65 * 4 + 0.0 * 1) / 5)
        assert result.term_credits_earned == 5

    def test_transfer_credits_blended(self, db, make):
        user = make.user(transfer_gpa=3.0, transfer_credits=30)
        term = make.term(user)
        course = make.course(user, term, credit_hours=3)
        _done(make, user, course, grade=98)
        result = calculate_user_gpa(db, _me(user))
        assert result.current_gpa == pytest.approx((3.0 * 30 + 4.0 * 3) / 33)
        assert result.total_credits_earned == 33

    def test_term_scope(self, db, make, student):
        spring = make.term(student, "Spring 2024")
        fall = make.term(student, "Fall 2024")
        _done(make, student, make.course(student, spring), grade=98)
        _done(make, student, make.course(student, fall), grade=71)
        result = calculate_user_gpa(db, _me(student), term_id=fall.id)
        assert result.predicted_term_gpa == pytest.approx(1.3)

    def test_other_users_term_rejected_without_writes(self, db, make):
        user = make.user(current_gpa=3.5, institution_gpa=3.5)
        own = make.term(user)
        _done(make, user, make.course(user, own), grade=50)
        stranger = make.user()
        foreign = make.term(stranger)
        with pytest.raises(TermNotFoundError):
            calculate_user_gpa(db, _me(user), term_id=foreign.id)
        db.expire_all()
        assert user.current_gpa == pytest.approx(3.5)
        assert get_gpa_history(db, _me(user)) == []
        assert _change_log(db, user.id) == []

    def test_unknown_term_rejected_without_writes(self, db, make):
        user = make.user(current_gpa=3.5)
        with pytest.raises(TermNotFoundError):
            calculate_user_gpa(db, _me(user), term_id=999999)
        db.expire_all()
        assert user.current_gpa == pytest.approx(3.5)
        assert get_gpa_history(db, _me(user)) == []
        assert _change_log(db, user.id) == []

    def test_zero_data_user_writes_no_changes(self, db, student):
        result = calculate_user_gpa(db, _me(student))
        assert result.current_gpa == 0.0
        assert result.predicted_term_gpa == 0.0
        assert _change_log(db, student.id) == []

    def test_sub_epsilon_move_is_not_written(self, db, make):
        user = make.user(current_gpa=3.695, institution_gpa=3.695, predicted_term_gpa=3.695)
        term = make.term(user)
        _done(make, user, make.course(user, term), grade=95)   # 3.7
        calculate_user_gpa(db, _me(user))
        db.expire_all()
        assert user.current_gpa == pytest.approx(3.695)
        assert _change_log(db, user.id) == []

    def test_snapshot_appended_every_call(self, db, make, student):
        term = make.term(student)
        _done(make, student, make.course(student, term), grade=95)
        first = calculate_user_gpa(db, _me(student))
        second = calculate_user_gpa(db, _me(student))
        assert first.snapshot_id != second.snapshot_id

        history = get_gpa_history(db, _me(student))
        assert [h.id for h in history] == [second.snapshot_id, first.snapshot_id]
        data = json.loads(history[0].gpa_data)
        assert data["current_gpa"] == pytest.approx(3.7)
        # Unchanged GPA, so the second call logged nothing new
        assert len(_change_log(db, student.id)) == 3


# ---------------------------------------------------------------------------
# Semester credits
# ---------------------------------------------------------------------------

class TestCurrentSemesterCredits:
    def test_current_term(self, db, make):
        user = make.user(total_credits_earned=10, transfer_credits=6)
        make.term(user, "Fall 2023", status=TermStatus.past)
        term = make.term(user, "Spring 2024", status=TermStatus.current)
        make.course(user, term, credit_hours=3)
        make.course(user, term, credit_hours=4)

        credits = get_current_semester_credits(db, _me(user))
        assert credits["term_id"] == term.id
        assert credits["current_semester_credits"] == 7
        assert credits["total_credits_earned"] == 17
        assert credits["previous_credits_earned"] == 10
        assert credits["transfer_credits"] == 6

    def test_without_current_term(self, db, make):
        user = make.user(total_credits_earned=12)
        credits = get_current_semester_credits(db, _me(user))
        assert credits == {"current_semester_credits": 0, "total_credits_earned": 12}

    def test_unknown_user(self, db):
        credits = get_current_semester_credits(db, Identity(subject="ghost"))
        assert credits == {"current_semester_credits": 0, "total_credits_earned": 0}


# ---------------------------------------------------------------------------
# Term completion
# ---------------------------------------------------------------------------

class TestCompleteTerm:
    def _setup(self, make):
        user = make.user(total_credits_earned=10, total_credits_attempted=10)
        term = make.term(user, "Spring 2024", status=TermStatus.current)
        make.course(user, term, credit_hours=3)
        make.course(user, term, credit_hours=4)
        return user, term

    def test_rolls_up_credits(self, db, make):
        user, term = self._setup(make)
        result = complete_term(db, _me(user), term.id)
        assert result.term_credits == 7
        assert result.new_total_credits_earned == 17
        assert result.new_total_credits_attempted == 17

        db.expire_all()
        assert user.total_credits_earned == 17
        assert term.status == TermStatus.past

        entries = _change_log(db, user.id, "term_completed")
        assert len(entries) == 1
        assert entries[0].change_reason == "Completed term Spring 2024 with 7 credits"
        assert json.loads(entries[0].previous_value) == "current"
        assert json.loads(entries[0].new_value) == "completed"

    def test_gpa_written_to_user(self, db, make):
        user, term = self._setup(make)
        course = make.course(user, term, credit_hours=2)
        _done(make, user, course, grade=91)
        result = complete_term(db, _me(user), term.id)
        assert result.term_gpa == pytest.approx(3.3)
        db.expire_all()
        assert user.institution_gpa == pytest.approx(3.3)
        assert user.current_gpa == pytest.approx(3.3)

    def test_second_completion_rejected(self, db, make):
        user, term = self._setup(make)
        complete_term(db, _me(user), term.id)
        with pytest.raises(TermAlreadyCompletedError):
            complete_term(db, _me(user), term.id)
        db.expire_all()
        assert user.total_credits_earned == 17
        assert len(_change_log(db, user.id, "term_completed")) == 1

    def test_other_users_term(self, db, make, student):
        _, term = self._setup(make)
        with pytest.raises(TermNotFoundError):
            complete_term(db, _me(student), term.id)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestGpaEndpoints:
    def test_calculate(self, client, make, student, auth):
        term = make.term(student)
        _done(make, student, make.course(student, term), grade=95)
        r = client.post("/gpa/calculate", headers=auth)
        assert r.status_code == 200
        body = r.json()
        assert body["current_gpa"] == pytest.approx(3.7)
        assert body["snapshot_id"] > 0

    def test_calculate_requires_authentication(self, client):
        r = client.post("/gpa/calculate", json={})
        assert r.status_code == 401

    def test_calculate_unknown_term(self, client, auth):
        r = client.post("/gpa/calculate", json={"term_id": 999999}, headers=auth)
        assert r.status_code == 404
        assert r.json()["code"] == "TERM_NOT_FOUND"
        assert client.get("/gpa/history", headers=auth).json() == []

    def test_history(self, client, auth):
        client.post("/gpa/calculate", headers=auth)
        r = client.get("/gpa/history", headers=auth)
        assert r.status_code == 200
        rows = r.json()
        assert len(rows) == 1
        assert rows[0]["metric_type"] == "gpa_calculation"
        assert rows[0]["gpa_data"]["calculation_method"] == "assignment_based"

    def test_current_credits(self, client, make, student, auth):
        term = make.term(student)
        make.course(student, term, credit_hours=4)
        r = client.get("/gpa/credits/current", headers=auth)
        assert r.status_code == 200
        assert r.json()["current_semester_credits"] == 4

    def test_complete_term(self, client, make, student, auth):
        term = make.term(student)
        make.course(student, term, credit_hours=3)
        r = client.post(f"/terms/{term.id}/complete", headers=auth)
        assert r.status_code == 200
        assert r.json()["new_total_credits_earned"] == 3

        again = client.post(f"/terms/{term.id}/complete", headers=auth)
        assert again.status_code == 409
        assert again.json()["code"] == "TERM_ALREADY_COMPLETED"

    def test_complete_unknown_term(self, client, auth):
        r = client.post("/terms/999999/complete", headers=auth)
        assert r.status_code == 404
        assert r.json()["code"] == "TERM_NOT_FOUND"

    def test_complete_term_requires_authentication(self, client, make, student):
        term = make.term(student)
        r = client.post(f"/terms/{term.id}/complete")
        assert r.status_code == 401
