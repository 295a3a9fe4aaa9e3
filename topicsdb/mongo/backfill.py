from typing import Callable, Optional, Sequence

import attr
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.results import UpdateResult

from topicsdb.config_repo import config
from topicsdb.database.model.topic import TopicType, TopicStats

log = config.logger(__file__)

Report = Callable[[str], None]


def _no_report(_: str):
    pass


@attr.s(auto_attribs=True)
class BackfillResult:
    pending: int
    matched: int = 0
    modified: int = 0
    stats: Optional[TopicStats] = None
    samples: Sequence[dict] = attr.Factory(list)

    @property
    def already_migrated(self) -> bool:
        return self.pending == 0


class TopicTypeBackfill:
    """
    Sets the classification field on legacy topics that were stored before it existed.
    Records that already carry a classification are never touched
    """

    def __init__(
        self,
        collection: Collection,
        field: str = None,
        default_type: str = None,
        sample_size: int = None,
    ):
        self.collection = collection
        self.field = field or config.get("backfill.field", "type")
        self.default_type = str(
            default_type or config.get("backfill.default_type", TopicType.topic)
        )
        self.sample_size = (
            sample_size
            if sample_size is not None
            else int(config.get("backfill.sample_size", 5))
        )

    @classmethod
    def for_database(cls, db: Database, **kwargs) -> "TopicTypeBackfill":
        collection: Collection = db[config.get("backfill.collection")]
        return cls(collection, **kwargs)

    @property
    def missing_query(self) -> dict:
        return {self.field: {"$exists": False}}

    def count_missing(self) -> int:
        return self.collection.count_documents(self.missing_query)

    def apply(self) -> UpdateResult:
        # single set-based update, records inserted meanwhile with the field set are not matched
        return self.collection.update_many(
            self.missing_query, {"$set": {self.field: self.default_type}}
        )

    def get_stats(self) -> TopicStats:
        return TopicStats(
            total=self.collection.count_documents({}),
            by_type={
                topic_type: self.collection.count_documents({self.field: topic_type})
                for topic_type in TopicType.values()
            },
        )

    def get_samples(self) -> Sequence[dict]:
        if self.sample_size <= 0:
            return []
        return list(
            self.collection.find({self.field: self.default_type}).limit(
                self.sample_size
            )
        )

    def run(self, report: Report = _no_report) -> BackfillResult:
        pending = self.count_missing()
        report(f"\n📊 Topics sin campo '{self.field}': {pending}")
        if not pending:
            report(f"✅ Todos los topics ya tienen el campo {self.field} definido")
            return BackfillResult(pending=0)

        log.info(
            f"Setting {self.field}={self.default_type} on {pending} documents in {self.collection.name}"
        )
        update = self.apply()
        result = BackfillResult(
            pending=pending, matched=update.matched_count, modified=update.modified_count
        )
        report("\n✅ Operación completada:")
        report(f"   - Documentos encontrados: {result.matched}")
        report(f"   - Documentos actualizados: {result.modified}")

        result.stats = self.get_stats()
        report("\n📊 Estadísticas finales:")
        report(f"   - Total de topics: {result.stats.total}")
        for topic_type in TopicType.values():
            report(f"   - Topics tipo '{topic_type}': {result.stats.count(topic_type)}")

        report("\n🔍 Ejemplos de topics actualizados:")
        result.samples = self.get_samples()
        for index, topic in enumerate(result.samples, start=1):
            report(
                f"   {index}. ID: {topic.get('id')}, Title: {topic.get('title')}, Type: {topic.get(self.field)}"
            )

        return result
