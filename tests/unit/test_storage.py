"""
Unit tests for roster persistence and the pending-import registry.
"""

from uuid import uuid4

import pytest

from src.core.progression.models import (
    FeedbackRecord,
    FeedbackSource,
    Gender,
    PerformanceRecord,
)
from src.core.roster import ImportBatch
from src.infrastructure.storage import (
    ImportBatchNotFoundError,
    ImportBatchRegistry,
    InMemoryStudentStore,
    SqlStudentStore,
    StorageError,
    StudentNotFoundError,
    create_db_engine,
    create_student_store,
    find_student,
)

from tests.factories import FIXED_NOW, make_student


@pytest.fixture
def student_with_history():
    return make_student(
        "Mia",
        points=250,
        gender=Gender.FEMALE,
        parent_email="mom@example.com",
        lifetime_xp=320,
        performance_history=[
            PerformanceRecord(
                date=FIXED_NOW,
                scores={"skill-1": 2, "skill-2": None},
                bonus_points=3,
                note="Strong kicks",
                coach_name="Kim",
            )
        ],
        feedback_history=[
            FeedbackRecord(
                date=FIXED_NOW,
                text="Congratulations!",
                coach_name="System",
                source=FeedbackSource.SYSTEM,
                is_ai_generated=True,
            )
        ],
    )


@pytest.fixture
def sql_store(tmp_path):
    return SqlStudentStore(create_db_engine(f"sqlite:///{tmp_path / 'dojo.db'}"))


# ---------------------------------------------------------------------------
# Student Store Tests
# ---------------------------------------------------------------------------

class TestSqlStudentStore:
    def test_new_database_is_an_empty_roster(self, sql_store):
        assert sql_store.load_students() == []

    def test_saved_students_load_back_equal(self, sql_store, student_with_history):
        sql_store.save_students([student_with_history])
        loaded = sql_store.load_students()

        assert loaded == [student_with_history]
        assert loaded[0].performance_history[0].scores["skill-2"] is None
        assert loaded[0].feedback_history[0].source is FeedbackSource.SYSTEM
        assert loaded[0].last_promotion_date.tzinfo is not None

    def test_save_only_touches_given_students(self, sql_store):
        """Saving one student never rewrites the rest of the roster."""
        ana, ben, cy = make_student("Ana"), make_student("Ben"), make_student("Cy")
        sql_store.save_students([ana, ben, cy])

        sql_store.save_students([make_student("Ben", points=300, id=ben.id)])
        loaded = sql_store.load_students()

        assert [s.name for s in loaded] == ["Ana", "Ben", "Cy"]
        assert loaded[1].total_points == 300
        assert loaded[0] == ana
        assert loaded[2] == cy

    def test_failed_save_rolls_back_the_whole_call(self, sql_store):
        """A student that can't be written leaves everyone in the call unchanged."""
        ana = make_student("Ana", points=100)
        sql_store.save_students([ana])

        with pytest.raises(StorageError, match="Could not write roster"):
            sql_store.save_students([
                make_student("Ana", points=900, id=ana.id),
                make_student(None),
            ])

        assert sql_store.load_students() == [ana]

    def test_parent_directory_is_created(self, tmp_path):
        path = tmp_path / "data" / "club" / "dojo.db"
        store = SqlStudentStore(create_db_engine(f"sqlite:///{path}"))
        store.save_students([make_student()])

        assert path.exists()
        assert len(store.load_students()) == 1

    def test_in_memory_database_is_shared_between_sessions(self):
        store = SqlStudentStore(create_db_engine("sqlite://"))
        store.save_students([make_student("Ana")])
        assert [s.name for s in store.load_students()] == ["Ana"]


class TestInMemoryStudentStore:
    def test_loaded_students_are_copies(self):
        store = InMemoryStudentStore([make_student(points=100)])

        loaded = store.load_students()
        loaded[0].total_points = 999

        assert store.load_students()[0].total_points == 100

    def test_save_is_an_upsert(self):
        ana = make_student("Ana")
        store = InMemoryStudentStore([ana])

        store.save_students([make_student("Ben"), make_student("Ana", points=50, id=ana.id)])

        assert [(s.name, s.total_points) for s in store.load_students()] == [("Ana", 50), ("Ben", 0)]

    def test_factory_picks_mock_store(self):
        assert isinstance(create_student_store(mock_mode=True), InMemoryStudentStore)

    def test_factory_picks_sql_store(self, tmp_path):
        store = create_student_store(mock_mode=False, database_url=f"sqlite:///{tmp_path / 'dojo.db'}")
        assert isinstance(store, SqlStudentStore)

    def test_factory_requires_database_url_without_mock(self):
        with pytest.raises(ValueError, match="database_url"):
            create_student_store(mock_mode=False, database_url="")


class TestRosterHelpers:
    def test_find_student(self):
        ana, ben = make_student("Ana"), make_student("Ben")
        assert find_student([ana, ben], ben.id) is ben

    def test_find_missing_student_raises(self):
        with pytest.raises(StudentNotFoundError):
            find_student([make_student()], uuid4())


# ---------------------------------------------------------------------------
# Import Registry Tests
# ---------------------------------------------------------------------------

class TestImportBatchRegistry:
    def test_add_and_get(self):
        registry = ImportBatchRegistry()
        batch = registry.add(ImportBatch(rows=()))
        assert registry.get(batch.id) is batch

    def test_unknown_batch_raises(self):
        with pytest.raises(ImportBatchNotFoundError):
            ImportBatchRegistry().get(uuid4())

    def test_replace_requires_existing_batch(self):
        with pytest.raises(ImportBatchNotFoundError):
            ImportBatchRegistry().replace(ImportBatch(rows=()))

    def test_pop_removes_batch(self):
        registry = ImportBatchRegistry()
        batch = registry.add(ImportBatch(rows=()))

        assert registry.pop(batch.id) is batch
        with pytest.raises(ImportBatchNotFoundError):
            registry.get(batch.id)

    def test_oldest_batch_is_evicted(self):
        registry = ImportBatchRegistry(max_batches=2)
        first = registry.add(ImportBatch(rows=()))
        registry.add(ImportBatch(rows=()))
        registry.add(ImportBatch(rows=()))

        assert len(registry) == 2
        with pytest.raises(ImportBatchNotFoundError):
            registry.get(first.id)
