"""
Watch event models
리소스 watcher가 전달하는 Added / Updated / Deleted 이벤트
"""
from typing import Generic, TypeVar, Union

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class Added(BaseModel, Generic[T]):
    """The object appeared.

    ``initial`` is True for the objects which already existed when the watch
    started (delivered from the initial list).
    """
    model_config = ConfigDict(frozen=True)

    obj: T
    initial: bool = False


class Updated(BaseModel, Generic[T]):
    """The object changed from old to new"""
    model_config = ConfigDict(frozen=True)

    old: T
    new: T


class Deleted(BaseModel, Generic[T]):
    """The object was removed (last known state)"""
    model_config = ConfigDict(frozen=True)

    obj: T


WatchEvent = Union[Added, Updated, Deleted]


__all__ = ["Added", "Updated", "Deleted", "WatchEvent"]
