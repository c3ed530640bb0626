"""
Settings and engine construction.
Run: python -m pytest tests/test_config.py -v
"""
import unittest

from sqlalchemy.pool import StaticPool

from config import Settings
from database import _get_engine_kwargs


class TestEngineOptions(unittest.TestCase):
    def test_sqlite_url_shares_one_connection(self):
        config = Settings(database_url="sqlite+aiosqlite:///:memory:")
        self.assertTrue(config.is_sqlite)
        kwargs = _get_engine_kwargs(config)
        self.assertIs(kwargs["poolclass"], StaticPool)
        self.assertEqual(kwargs["connect_args"], {"check_same_thread": False})

    def test_postgresql_url_keeps_default_pool(self):
        config = Settings(database_url="postgresql+asyncpg://lms:secret@db:5432/lms")
        self.assertFalse(config.is_sqlite)
        kwargs = _get_engine_kwargs(config)
        self.assertNotIn("poolclass", kwargs)
        self.assertNotIn("connect_args", kwargs)

    def test_echo_follows_debug(self):
        config = Settings(database_url="sqlite+aiosqlite:///:memory:", debug=True)
        self.assertTrue(_get_engine_kwargs(config)["echo"])


if __name__ == "__main__":
    unittest.main()
