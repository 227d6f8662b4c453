"""Repository support for aggregates that may be persisted exactly once."""

from protean.core.repository import BaseRepository
from protean.exceptions import ObjectNotFoundError, ValidationError


class WriteOnceRepository(BaseRepository):
    """Rejects ``add`` for any aggregate whose identity is already stored."""

    def add(self, item):
        try:
            self._dao.get(item.id)
        except ObjectNotFoundError:
            return super().add(item)

        name = type(item).__name__
        raise ValidationError({"_entity": [f"{name} {item.id} is write-once and cannot be modified"]})
