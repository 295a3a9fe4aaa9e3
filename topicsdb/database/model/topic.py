from typing import Mapping

import attr

from topicsdb.utilities.stringenum import StringEnum


class TopicType(StringEnum):
    topic = "topic"
    exam = "exam"
    misc = "misc"


@attr.s(auto_attribs=True)
class TopicStats:
    total: int = 0
    by_type: Mapping[str, int] = attr.Factory(dict)

    def count(self, topic_type) -> int:
        return self.by_type.get(str(topic_type), 0)
