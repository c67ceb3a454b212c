from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class PublishedRecord:
    """Broker acknowledgement for one appended message."""

    topic: str
    partition: int
    offset: int


@dataclass(frozen=True)
class ConsumedRecord:
    topic: str
    partition: int
    offset: int
    key: Optional[str]
    value: bytes


class EventPublisher(Protocol):
    """
    Durable, ordered append to a named topic.

    A successful return means the broker accepted the message. A raised
    PublishError means it may or may not have been written.
    """

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def publish(self, topic: str, value: bytes, key: Optional[str] = None) -> PublishedRecord:
        ...


class EventSource(Protocol):
    """
    Consumer-group reader over one topic.

    ``read`` blocks until a record is available. Progress is only recorded
    when ``commit`` is called, so anything read but not committed is
    delivered again to the next session of the same group.
    """

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def read(self) -> ConsumedRecord:
        ...

    async def commit(self, record: ConsumedRecord) -> None:
        ...
