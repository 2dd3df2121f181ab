import itertools
import unittest
from datetime import datetime, timedelta, timezone

from portfolio.db import (
    InMemoryProjectStore,
    PostgresProjectStore,
    ProjectFields,
    RecordNotFoundError,
)

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def ticking_clock():
    counter = itertools.count()
    return lambda: START + timedelta(minutes=next(counter))


class ProjectStoreContract:
    """Behaviour shared by every record store implementation."""

    def make_store(self, clock):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store(ticking_clock())

    def test_insert_assigns_id_and_timestamps(self):
        record = self.store.insert_project(
            ProjectFields(title="Site", technologies=["React", "Next.js"])
        )
        self.assertTrue(record.id)
        self.assertEqual(record.created_at, record.updated_at)
        self.assertEqual(record.technologies, ["React", "Next.js"])
        self.assertEqual(record.image_url, "")

    def test_list_is_newest_first(self):
        first = self.store.insert_project(ProjectFields(title="first"))
        second = self.store.insert_project(ProjectFields(title="second"))
        third = self.store.insert_project(ProjectFields(title="third"))
        ids = [p.id for p in self.store.list_projects()]
        self.assertEqual(ids, [third.id, second.id, first.id])

    def test_update_preserves_id_and_created_at(self):
        record = self.store.insert_project(ProjectFields(title="old", featured=False))
        later = record.updated_at + timedelta(hours=1)
        updated = self.store.update_project(
            record.id,
            ProjectFields(title="new", featured=True, technologies=["Go"]),
            updated_at=later,
        )
        self.assertEqual(updated.id, record.id)
        self.assertEqual(updated.created_at, record.created_at)
        self.assertEqual(updated.updated_at, later)
        self.assertEqual(updated.title, "new")
        self.assertTrue(updated.featured)
        self.assertEqual(self.store.get_project(record.id).title, "new")

    def test_update_missing_raises(self):
        with self.assertRaises(RecordNotFoundError):
            self.store.update_project("missing", ProjectFields(title="x"), updated_at=START)

    def test_delete(self):
        record = self.store.insert_project(ProjectFields(title="gone"))
        self.store.delete_project(record.id)
        self.assertIsNone(self.store.get_project(record.id))
        self.assertEqual(self.store.list_projects(), [])


class InMemoryProjectStoreTests(ProjectStoreContract, unittest.TestCase):
    def make_store(self, clock):
        return InMemoryProjectStore(clock=clock)


class PostgresProjectStoreTests(ProjectStoreContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL store logic.
    """

    def make_store(self, clock):
        return PostgresProjectStore("sqlite+pysqlite:///:memory:", clock=clock)

    def test_timestamps_come_back_timezone_aware(self):
        record = self.store.insert_project(ProjectFields(title="tz"))
        loaded = self.store.get_project(record.id)
        self.assertIsNotNone(loaded.created_at.tzinfo)


class PostgresProjectStoreConfigTests(unittest.TestCase):
    def test_requires_url(self):
        with self.assertRaises(ValueError):
            PostgresProjectStore("")


if __name__ == "__main__":
    unittest.main()
