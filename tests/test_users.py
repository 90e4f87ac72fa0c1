"""
Role setup, profiles, credits, teacher administration and the leaderboard.
"""

import asyncio

import pytest

from conftest import InMemoryStore, run
from smartbanana.audit import get_audit_trail
from smartbanana.courses.chapter_service import create_chapter
from smartbanana.courses.course_service import create_course, update_course
from smartbanana.courses.enrollment_service import complete_chapter, enroll_in_course
from smartbanana.database import CHAPTER_COMPLETIONS, COURSES, ENROLLMENTS, USERS
from smartbanana.errors import Forbidden, NotFound, PreconditionFailed, Unauthorized
from smartbanana.users import admin_service, user_service
from smartbanana.users.leaderboard_router import get_leaderboard


class TestSetup:

    def test_student_role_zeroes_counters(self, store, make_user):
        user = make_user()
        assert run(user_service.setup_role(store, user, "student", "Asha")) == "User setup complete"

        profile = run(store.get(USERS, user.user_id))
        assert profile["role"] == "student"
        assert profile["name"] == "Asha"
        assert profile["credits"] == 0
        assert profile["rank"] == "Banana Sprout"
        assert profile["total_tests_completed"] == 0

    def test_teacher_role_zeroes_totals(self, store, make_user):
        user = make_user()
        run(user_service.setup_role(store, user, "teacher", "Ms Rao"))
        profile = run(store.get(USERS, user.user_id))
        assert profile["total_courses_created"] == 0
        assert profile["total_students_enrolled"] == 0

    def test_role_cannot_change(self, store, make_user):
        student = make_user("student", "Class 8")
        with pytest.raises(PreconditionFailed):
            run(user_service.setup_role(store, student, "teacher", "Sneaky"))

    def test_same_role_renames_only(self, store, make_user):
        student = make_user("student", "Class 8", credits=42)
        run(user_service.setup_role(store, student, "student", "New Name"))
        profile = run(store.get(USERS, student.user_id))
        assert profile["name"] == "New Name"
        assert profile["credits"] == 42

    def test_extended_profile(self, store, make_user):
        student = make_user("student")
        run(user_service.setup_extended_profile(store, student, {
            "registration_id": "R-1", "date_of_birth": 1104537600000,
            "gender": "Female", "user_class": "Class 8",
        }))
        profile = run(store.get(USERS, student.user_id))
        assert profile["user_class"] == "Class 8"
        assert profile["registration_id"] == "R-1"

    def test_extended_profile_cannot_move_class(self, store, make_user):
        student = make_user("student", "Class 8")
        with pytest.raises(PreconditionFailed):
            run(user_service.setup_extended_profile(store, student, {
                "registration_id": "R-1", "date_of_birth": 0, "gender": "Male", "user_class": "Class 9",
            }))

    def test_get_me_hides_password_hash(self, store, make_user):
        student = make_user("student", "Class 8", password_hash="x")
        me = run(user_service.get_me(store, student))
        assert "password_hash" not in me
        assert me["id"] == student.user_id

    def test_anonymous(self, store):
        with pytest.raises(Unauthorized):
            run(user_service.get_me(store, None))


class TestCredits:

    def test_add_credits_floors_and_ranks(self, store, make_user):
        student = make_user("student", "Class 8", credits=15)
        balance = run(user_service.add_credits(store, student, 5.9))
        assert balance == {"credits": 20, "total_tests_completed": 1, "rank": "Bronze"}
        assert run(store.get(USERS, student.user_id))["rank"] == "Bronze"

    def test_negative_amount_adds_nothing(self, store, make_user):
        student = make_user("student", "Class 8", credits=15)
        assert run(user_service.add_credits(store, student, -10))["credits"] == 15

    def test_teachers_cannot_earn(self, store, make_user):
        with pytest.raises(Unauthorized):
            run(user_service.add_credits(store, make_user("teacher", "Class 8"), 5))

    def test_award_to_missing_user(self, store):
        with pytest.raises(NotFound):
            run(user_service.award_credits(store, "USR_GONE", 1))


class TestAdmin:

    def test_list_students_filters(self, store, make_user):
        teacher = make_user("teacher", "Class 8")
        asha = make_user("student", "Class 8", name="Asha Verma")
        make_user("student", "Class 9", name="Ravi")
        make_user("student", "Class 8", name="Kiran")

        by_class = run(admin_service.list_students(store, teacher, target_class="Class 9"))
        by_name = run(admin_service.list_students(store, teacher, search_name="verma"))

        assert [s["name"] for s in by_class] == ["Ravi"]
        assert [s["id"] for s in by_name] == [asha.user_id]

    def test_list_students_defaults(self, store, make_user):
        teacher = make_user("teacher", "Class 8")
        run(store.insert(USERS, {"role": "student"}))
        [summary] = run(admin_service.list_students(store, teacher))
        assert summary["name"] == "Unknown"
        assert summary["user_class"] == "Unknown"
        assert summary["rank"] == "Banana Sprout"
        assert summary["credits"] == 0

    def test_students_cannot_list(self, store, make_user):
        with pytest.raises(Unauthorized):
            run(admin_service.list_students(store, make_user("student", "Class 8")))

    def test_update_student_subset_is_audited(self, store, make_user):
        teacher = make_user("teacher", "Class 8")
        student = make_user("student", "Class 8")

        run(admin_service.update_student_profile_subset(store, teacher, student.user_id, {"user_class": "Class 9"}))

        assert run(store.get(USERS, student.user_id))["user_class"] == "Class 9"
        trail = run(get_audit_trail(store, "user", student.user_id))
        assert [t["action"] for t in trail] == ["update_student"]

    def test_update_non_student(self, store, make_user):
        teacher = make_user("teacher", "Class 8")
        with pytest.raises(NotFound):
            run(admin_service.update_student_profile_subset(
                store, teacher, make_user("teacher", "Class 8").user_id, {"name": "x"}
            ))

    def test_delete_student_cascades(self, store, make_user):
        teacher = make_user("teacher", "Class 8")
        course_id = run(create_course(store, teacher, {"title": "C", "description": "d"}))
        run(update_course(store, teacher, course_id, {"is_published": True}))
        chapter_id = run(create_chapter(store, teacher, {"course_id": course_id, "title": "1", "content": "x"}))
        student = make_user("student", "Class 8")
        run(enroll_in_course(store, student, course_id))
        run(complete_chapter(store, student, chapter_id))

        assert run(admin_service.delete_student_account(store, teacher, student.user_id)) == "Student account deleted"

        assert run(store.get(USERS, student.user_id)) is None
        assert store.all(ENROLLMENTS) == []
        assert store.all(CHAPTER_COMPLETIONS) == []
        assert run(store.get(COURSES, course_id))["enrolled_students"] == []
        assert run(store.get(USERS, teacher.user_id))["total_students_enrolled"] == 0

    def test_only_students_deletable(self, store, make_user):
        teacher = make_user("teacher", "Class 8")
        with pytest.raises(Forbidden):
            run(admin_service.delete_student_account(store, teacher, make_user("teacher", "Class 8").user_id))

    def test_delete_missing(self, store, make_user):
        with pytest.raises(NotFound):
            run(admin_service.delete_student_account(store, make_user("teacher", "Class 8"), "USR_GONE"))

    def test_counter_never_negative(self, store, make_user):
        teacher = make_user("teacher", "Class 8")
        run(admin_service.decrement_counter(store, teacher.user_id, "total_students_enrolled", 3))
        assert run(store.get(USERS, teacher.user_id))["total_students_enrolled"] == 0


class TestLeaderboard:

    def test_top_ten_by_credits(self, store, make_user):
        for credits in range(12):
            make_user("student", "Class 8", name=f"S{credits}", credits=credits)
        make_user("teacher", "Class 8", credits=1000)

        board = run(get_leaderboard(store))

        assert len(board) == 10
        assert [e["credits"] for e in board] == list(range(11, 1, -1))
        assert [e["position"] for e in board] == list(range(1, 11))

    def test_fewer_than_ten(self, store, make_user):
        make_user("student", "Class 8", credits=5)
        make_user("student", "Class 9", credits=50)
        assert [e["credits"] for e in run(get_leaderboard(store))] == [50, 5]

    def test_fallbacks(self, store):
        run(store.insert(USERS, {"role": "student"}))
        [entry] = run(get_leaderboard(store))
        assert entry == {
            "position": 1, "name": "Anonymous", "credits": 0, "tests_completed": 0, "badge": "Banana Sprout",
        }

    def test_ties_ordered_by_id(self, store):
        run(store.insert(USERS, {"_id": "USR_B", "role": "student", "name": "Second", "credits": 10}))
        run(store.insert(USERS, {"_id": "USR_A", "role": "student", "name": "First", "credits": 10}))
        board = run(get_leaderboard(store))
        assert [e["name"] for e in board] == ["First", "Second"]

    def test_missing_credits_rank_last(self, store, make_user):
        run(store.insert(USERS, {"role": "student", "name": "Blank"}))
        make_user("student", "Class 8", name="Zero", credits=0)
        make_user("student", "Class 8", name="Some", credits=3)
        board = run(get_leaderboard(store))
        assert [e["name"] for e in board] == ["Some", "Zero", "Blank"]
        assert board[2]["credits"] == 0


class DelayedRankStore(InMemoryStore):
    """Rank writes reach the store after the given delays, in call order"""

    def __init__(self, delays):
        super().__init__()
        self.delays = list(delays)

    async def patch_where(self, collection, doc_id, expected, fields):
        await asyncio.sleep(self.delays.pop(0))
        return await super().patch_where(collection, doc_id, expected, fields)


class TestConcurrentAwards:

    def test_late_rank_write_does_not_overwrite_newer_rank(self):
        store = DelayedRankStore([0.05, 0])
        student_id = run(store.insert(USERS, {"role": "student", "credits": 19, "rank": "Banana Sprout"}))

        async def both():
            await asyncio.gather(
                user_service.award_credits(store, student_id, 1),
                user_service.award_credits(store, student_id, 30),
            )

        run(both())

        profile = run(store.get(USERS, student_id))
        assert (profile["credits"], profile["rank"]) == (50, "Silver")
