"""
Unit tests for session scoring and the session draft.
"""

from uuid import uuid4

import pytest

from src.core.progression.models import Score
from src.core.progression.scoring import (
    SessionDraft,
    clamp_score,
    class_xp,
    global_grading_xp,
    grading_xp,
    session_total,
)


# ---------------------------------------------------------------------------
# Point and XP Calculation Tests
# ---------------------------------------------------------------------------

class TestSessionTotal:
    def test_sums_scores_bonus_and_homework(self):
        assert session_total([2, 1, 0, 2], bonus=3, homework=1) == 9

    def test_ungraded_skills_count_nothing(self):
        assert session_total([None, 2, None, 1]) == 3

    def test_negative_extras_are_clamped(self):
        assert session_total([2], bonus=-5, homework=-1) == 2


class TestClampScore:
    def test_scores_above_green_are_capped(self):
        assert clamp_score(5) == Score.GREEN

    def test_negative_scores_become_red(self):
        assert clamp_score(-3) == Score.RED

    def test_none_means_not_graded(self):
        assert clamp_score(None) is None


class TestXp:
    """Normalized XP: a perfect class is always 100."""

    def test_perfect_class_is_100_for_any_skill_count(self):
        assert class_xp([2, 2]) == 100
        assert class_xp([2, 2, 2, 2, 2]) == 100

    def test_ungraded_skills_are_left_out_of_the_denominator(self):
        assert class_xp([2, 2, 1, None]) == 83

    def test_halves_round_up(self):
        assert class_xp([2, 1, 1, 1]) == 63
        assert class_xp([2, 2, 2, 1]) == 88

    def test_no_scores_means_no_xp(self):
        assert class_xp([None, None]) == 0
        assert grading_xp([None], bonus=5, bonus_enabled=True) == 0
        assert global_grading_xp([None], homework=2, homework_enabled=True) == 0

    def test_local_xp_counts_bonus_uncapped_when_enabled(self):
        assert grading_xp([1, 1, 1, 1], bonus=4, bonus_enabled=True) == 67

    def test_local_xp_ignores_disabled_bonus(self):
        assert grading_xp([1, 1, 1, 1], bonus=4, bonus_enabled=False) == 50

    def test_global_xp_caps_bonus_at_two(self):
        assert global_grading_xp([1, 1, 1, 1], bonus=4, bonus_enabled=True) == 60

    def test_global_xp_caps_homework_at_two(self):
        assert global_grading_xp([2, 2], homework=9, homework_enabled=True) == 100


# ---------------------------------------------------------------------------
# SessionDraft Tests
# ---------------------------------------------------------------------------

class TestSessionDraft:
    """Tests for the draft a coach fills in during class."""

    def test_new_draft_has_every_skill_ungraded(self, draft):
        student = uuid4()
        assert draft.scores_for(student) == {
            "skill-1": None, "skill-2": None, "skill-3": None, "skill-4": None,
        }
        assert draft.is_empty_for(student)

    def test_edits_return_new_drafts(self, draft):
        student = uuid4()
        edited = draft.mark_attendance(student).set_score(student, "skill-1", 2)

        assert edited.scores_for(student)["skill-1"] == 2
        assert draft.scores_for(student)["skill-1"] is None
        assert not draft.is_attending(student)

    def test_set_score_clamps(self, draft):
        student = uuid4()
        edited = draft.set_score(student, "skill-1", 7).set_score(student, "skill-2", -2)
        assert edited.scores_for(student)["skill-1"] == 2
        assert edited.scores_for(student)["skill-2"] == 0

    def test_set_score_rejects_unknown_skill(self, draft):
        with pytest.raises(ValueError, match="not graded"):
            draft.set_score(uuid4(), "skill-99", 1)

    def test_total_includes_bonus_and_homework(self, draft):
        student = uuid4()
        edited = (
            draft.set_score(student, "skill-1", 2)
            .set_score(student, "skill-2", 1)
            .set_bonus(student, 3)
            .set_homework(student, 2)
        )
        assert edited.total_for(student) == 8

    def test_bonus_alone_is_not_empty(self, draft):
        student = uuid4()
        assert not draft.set_bonus(student, 1).is_empty_for(student)

    def test_all_greens_only_touches_attending_students(self, draft):
        """Bulk 'All Greens' for 3 attending students, a 4th is absent."""
        present = [uuid4(), uuid4(), uuid4()]
        absent = uuid4()
        for student_id in present:
            draft = draft.mark_attendance(student_id)
        draft = draft.mark_attendance(absent, False).set_score(absent, "skill-1", 1)

        result = draft.bulk_apply(Score.GREEN, [*present, absent])

        for student_id in present:
            assert list(result.scores_for(student_id).values()) == [2, 2, 2, 2]
        assert result.scores_for(absent) == {
            "skill-1": 1, "skill-2": None, "skill-3": None, "skill-4": None,
        }

    def test_bulk_apply_none_clears_scores(self, draft):
        student = uuid4()
        draft = draft.mark_attendance(student).bulk_apply(2, [student])

        cleared = draft.bulk_apply(None, [student])

        assert cleared.is_empty_for(student)

    def test_reset_keeps_attendance_and_skills(self, draft):
        student = uuid4()
        draft = draft.mark_attendance(student).set_score(student, "skill-1", 2).set_note(student, "hi")

        reset = draft.reset()

        assert reset.is_attending(student)
        assert reset.is_empty_for(student)
        assert reset.notes == {}
        assert reset.skill_ids == draft.skill_ids
        assert reset.coach_name == "Sensei Kim"
