import unittest
from unittest.mock import MagicMock

from portfolio.db import InMemoryProjectStore, ProjectFields, RecordStoreError
from portfolio.listing import filter_projects, load_projects


class LoadProjectsTests(unittest.TestCase):
    def test_returns_store_order(self):
        store = InMemoryProjectStore()
        store.insert_project(ProjectFields(title="a"))
        store.insert_project(ProjectFields(title="b"))
        self.assertEqual([p.title for p in load_projects(store)], ["b", "a"])

    def test_store_failure_degrades_to_empty(self):
        store = MagicMock()
        store.list_projects.side_effect = RecordStoreError("connection refused")
        with self.assertLogs("portfolio.listing", level="ERROR"):
            self.assertEqual(load_projects(store), [])


class FilterProjectsTests(unittest.TestCase):
    def setUp(self):
        store = InMemoryProjectStore()
        store.insert_project(ProjectFields(title="plain"))
        store.insert_project(ProjectFields(title="star", featured=True))
        self.projects = store.list_projects()

    def test_all(self):
        self.assertEqual(len(filter_projects(self.projects, "all")), 2)

    def test_featured_subset(self):
        featured = filter_projects(self.projects, "featured")
        self.assertEqual([p.title for p in featured], ["star"])
        self.assertTrue(all(p in self.projects for p in featured))

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            filter_projects(self.projects, "recent")


if __name__ == "__main__":
    unittest.main()
