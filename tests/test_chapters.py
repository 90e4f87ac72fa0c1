import pytest

from conftest import run
from smartbanana.courses import chapter_service
from smartbanana.courses.course_service import create_course, update_course
from smartbanana.database import AUDIT_LOGS, CHAPTERS, COURSES
from smartbanana.errors import Forbidden, NotFound, Unauthorized


@pytest.fixture
def course(store, make_user):
    teacher = make_user("teacher", "Class 8")
    course_id = run(create_course(store, teacher, {"title": "Algebra", "description": "d"}))
    return teacher, course_id


def add_chapter(store, teacher, course_id, title, **extra):
    data = {"course_id": course_id, "title": title, "content": f"{title} body", **extra}
    return run(chapter_service.create_chapter(store, teacher, data))


class TestCreateChapter:

    def test_default_order_appends(self, store, course):
        teacher, course_id = course
        first = add_chapter(store, teacher, course_id, "One")
        second = add_chapter(store, teacher, course_id, "Two")

        assert run(store.get(CHAPTERS, first))["order"] == 0
        assert run(store.get(CHAPTERS, second))["order"] == 1

    def test_updates_total_lessons(self, store, course):
        teacher, course_id = course
        add_chapter(store, teacher, course_id, "One")
        add_chapter(store, teacher, course_id, "Two")
        assert run(store.get(COURSES, course_id))["total_lessons"] == 2

    def test_only_owner(self, store, course, make_user):
        _, course_id = course
        with pytest.raises(Forbidden):
            add_chapter(store, make_user("teacher", "Class 8"), course_id, "Nope")
        with pytest.raises(Unauthorized):
            add_chapter(store, make_user("student", "Class 8"), course_id, "Nope")
        assert store.all(CHAPTERS) == []

    def test_missing_course(self, store, course):
        teacher, _ = course
        with pytest.raises(NotFound):
            add_chapter(store, teacher, "CRS_MISSING", "Lost")


class TestEditChapter:

    def test_partial_update(self, store, course):
        teacher, course_id = course
        chapter_id = add_chapter(store, teacher, course_id, "One", image_url="http://img/1.png")

        run(chapter_service.update_chapter(store, teacher, chapter_id, {"title": "Renamed"}))

        chapter = run(store.get(CHAPTERS, chapter_id))
        assert chapter["title"] == "Renamed"
        assert chapter["content"] == "One body"
        assert chapter["image_url"] == "http://img/1.png"

    def test_image_can_be_cleared(self, store, course):
        teacher, course_id = course
        chapter_id = add_chapter(store, teacher, course_id, "One", image_url="http://img/1.png")
        run(chapter_service.update_chapter(store, teacher, chapter_id, {"image_url": None}))
        assert run(store.get(CHAPTERS, chapter_id))["image_url"] is None

    def test_course_id_not_movable(self, store, course):
        teacher, course_id = course
        chapter_id = add_chapter(store, teacher, course_id, "One")
        run(chapter_service.update_chapter(store, teacher, chapter_id, {"course_id": "CRS_OTHER"}))
        assert run(store.get(CHAPTERS, chapter_id))["course_id"] == course_id

    def test_non_owner_forbidden(self, store, course, make_user):
        teacher, course_id = course
        chapter_id = add_chapter(store, teacher, course_id, "One")
        with pytest.raises(Forbidden) as exc:
            run(chapter_service.update_chapter(store, make_user("teacher", "Class 8"), chapter_id, {"title": "x"}))
        assert exc.value.detail == "Not authorized to modify this chapter"

    def test_orphaned_chapter(self, store, course):
        teacher, _ = course
        chapter_id = run(store.insert(CHAPTERS, {"course_id": "CRS_GONE", "title": "x", "content": "", "order": 0}))
        with pytest.raises(NotFound) as exc:
            run(chapter_service.update_chapter(store, teacher, chapter_id, {"title": "y"}))
        assert exc.value.detail == "Parent course not found"

    def test_reorder_changes_listing(self, store, course):
        teacher, course_id = course
        first = add_chapter(store, teacher, course_id, "One")
        second = add_chapter(store, teacher, course_id, "Two")

        run(chapter_service.set_chapter_order(store, teacher, first, 5))

        listed = run(chapter_service.list_chapters(store, teacher, course_id))
        assert [c["id"] for c in listed] == [second, first]


class TestDeleteChapter:

    def test_removes_chapter_and_updates_count(self, store, course):
        teacher, course_id = course
        first = add_chapter(store, teacher, course_id, "One")
        add_chapter(store, teacher, course_id, "Two")

        assert run(chapter_service.delete_chapter(store, teacher, first)) == "Chapter deleted"
        assert run(store.get(CHAPTERS, first)) is None
        assert run(store.get(COURSES, course_id))["total_lessons"] == 1
        assert [log["action"] for log in store.all(AUDIT_LOGS, target_id=first)] == ["delete_chapter"]


class TestListChapters:

    def test_equal_order_keeps_creation_order(self, store, course):
        teacher, course_id = course
        a = add_chapter(store, teacher, course_id, "A", order=1)
        b = add_chapter(store, teacher, course_id, "B", order=1)
        c = add_chapter(store, teacher, course_id, "C", order=0)

        listed = run(chapter_service.list_chapters(store, teacher, course_id))
        assert [ch["id"] for ch in listed] == [c, a, b]

    def test_draft_hidden_from_students(self, store, course, make_user):
        teacher, course_id = course
        add_chapter(store, teacher, course_id, "One")
        student = make_user("student", "Class 8")

        assert run(chapter_service.list_chapters(store, student, course_id)) == []

        run(update_course(store, teacher, course_id, {"is_published": True}))
        assert len(run(chapter_service.list_chapters(store, student, course_id))) == 1

    def test_other_class_sees_nothing(self, store, course, make_user):
        teacher, course_id = course
        add_chapter(store, teacher, course_id, "One")
        run(update_course(store, teacher, course_id, {"is_published": True}))
        assert run(chapter_service.list_chapters(store, make_user("student", "Class 9"), course_id)) == []

    def test_missing_course_is_empty(self, store, course):
        teacher, _ = course
        assert run(chapter_service.list_chapters(store, teacher, "CRS_MISSING")) == []
