import os
import sys
from functools import partial
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Sequence
from unittest import TestCase

import mongomock
from pymongo.collection import Collection

from topicsdb.config_repo import config

log = config.logger("tests")


class TestService(TestCase):
    """
    Base for the automated tests. Every test gets a fresh in-memory mongo client
    and a private working directory so that no local .env file leaks in
    """

    db_name = "opo_test"

    def defer(self, func, *args, can_fail=False, **kwargs):
        self._deferred.append((can_fail, partial(func, *args, **kwargs)))

    def setUp(self):
        self._deferred = []
        header(self.id())
        self.mongo = mongomock.MongoClient()
        self.workdir = self._create_temp_dir()
        self.defer(os.chdir, os.getcwd())
        os.chdir(self.workdir)

    def tearDown(self):
        log.info("Cleanup...")
        for can_fail, func in reversed(self._deferred):
            try:
                func()
            except Exception as ex:
                if not can_fail:
                    log.exception(ex)
        self._deferred = []

    def _create_temp_dir(self) -> Path:
        temp_dir = TemporaryDirectory()
        self.defer(temp_dir.cleanup, can_fail=True)
        return Path(temp_dir.name)

    def create_topics(self, *topics: dict, collection: str = None) -> Collection:
        collection: Collection = self.mongo[self.db_name][
            collection or config.get("backfill.collection")
        ]
        if topics:
            collection.insert_many([dict(t) for t in topics])
        return collection

    def write_env_file(self, lines: Sequence[str], name: str = ".env") -> Path:
        path = self.workdir / name
        path.write_text("\n".join(lines) + "\n")
        return path

    def assertTopicTypes(self, collection: Collection, expected: dict):
        actual = {
            doc["id"]: doc.get("type")
            for doc in collection.find({}, projection=["id", "type"])
        }
        self.assertEqual(actual, expected)


def header(info, title="=" * 20):
    print(title, info, title, file=sys.stderr)
