"""
Tests for news creation and listing.
"""
import unittest

from portal.modules.exceptions import ValidationError
from portal.modules.models import NEWS
from portal.modules.news_manager import NewsManager
from tests.helpers import make_admin, make_local_store, make_session


class NewsManagerTest(unittest.TestCase):

    def setUp(self):
        self.store = make_local_store()
        self.session = make_session()
        self.session.set_user(make_admin())
        self.manager = NewsManager(self.store, self.session, list_limit=3)

    def _seed(self, *timestamps):
        for i, timestamp in enumerate(timestamps):
            self.store.append(NEWS, {
                'id': f"n{i}", 'title': f"News {i}", 'description': 'Body',
                'author_email': 'admin@shc.com', 'timestamp': timestamp
            })

    def test_create_with_optional_file_url(self):
        news = self.manager.create({'title': 'Sports day', 'description': 'Friday',
                                    'file_url': 'https://example.org/flyer.pdf'})
        self.assertEqual(news.file_url, 'https://example.org/flyer.pdf')
        self.assertEqual(news.author_email, 'admin@shc.com')
        self.assertIsNotNone(news.timestamp)

    def test_blank_file_url_stored_as_none(self):
        news = self.manager.create({'title': 'Sports day', 'description': 'Friday',
                                    'file_url': '  '})
        self.assertIsNone(news.file_url)

    def test_missing_description_rejected(self):
        with self.assertRaises(ValidationError):
            self.manager.create({'title': 'Sports day'})

    def test_newest_first(self):
        self._seed('2026-01-01T08:00:00+00:00', '2026-03-01T08:00:00+00:00',
                   '2026-02-01T08:00:00+00:00')
        view = self.manager.list()
        self.assertEqual([n.id for n in view.items], ['n1', 'n2', 'n0'])

    def test_list_is_capped(self):
        self._seed(*[f"2026-01-0{day}T08:00:00+00:00" for day in range(1, 6)])
        view = self.manager.list()
        self.assertEqual([n.id for n in view.items], ['n4', 'n3', 'n2'])

    def test_unreadable_timestamp_sorts_last(self):
        self._seed('garbage', '2026-01-01T08:00:00+00:00')
        self.assertEqual([n.id for n in self.manager.list().items], ['n1', 'n0'])

    def test_delete(self):
        news = self.manager.create({'title': 'Sports day', 'description': 'Friday'})
        self.assertTrue(self.manager.delete(news.id, confirm=True))
        self.assertEqual(self.store.list(NEWS), [])


if __name__ == '__main__':
    unittest.main()
