"""
Registry of the models a database knows about, ordered by foreign keys.
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

from ..errors import ConfigurationError
from ..query.tables import TableLike, TableRef
from ..utils import camel_to_snake

if TYPE_CHECKING:
    from ..connection.base import Connection
    from ..database import Database
    from ..persistence.transaction import Transaction


@runtime_checkable
class RegisteredModel(Protocol):
    """What bulk operations need from a model."""

    @property
    def name(self) -> str: ...

    @property
    def table_ref(self) -> TableRef: ...

    @property
    def references(self) -> Sequence[str]: ...

    async def destroy(self, **options: Any) -> Any: ...

    async def truncate(self, **options: Any) -> Any: ...


class ModelRegistry:
    def __init__(self) -> None:
        self._models: Dict[str, RegisteredModel] = {}

    def register(self, model: RegisteredModel) -> RegisteredModel:
        if model.name in self._models:
            raise ConfigurationError(f"Model '{model.name}' is already registered.")
        self._models[model.name] = model
        return model

    def get(self, name: str) -> RegisteredModel:
        try:
            return self._models[name]
        except KeyError as exc:
            raise KeyError(f"Unknown model '{name}'") from exc

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def __len__(self) -> int:
        return len(self._models)

    @property
    def models(self) -> List[RegisteredModel]:
        """Registered models in registration order."""

        return list(self._models.values())

    def get_models_topo_sorted_by_foreign_key(self) -> Optional[List[RegisteredModel]]:
        """
        Order models so each one comes before every model it references,
        which is the order rows can be deleted in. Ties keep registration
        order; self-references are ignored. Returns ``None`` on a cycle.
        """

        names = list(self._models)
        referenced_by = {name: 0 for name in names}
        edges: Dict[str, List[str]] = {}
        for name in names:
            targets = [
                target
                for target in dict.fromkeys(self._models[name].references)
                if target != name and target in self._models
            ]
            edges[name] = targets
            for target in targets:
                referenced_by[target] += 1

        ordered: List[RegisteredModel] = []
        ready = [name for name in names if referenced_by[name] == 0]
        while ready:
            name = ready.pop(0)
            ordered.append(self._models[name])
            for target in edges[name]:
                referenced_by[target] -= 1
                if referenced_by[target] == 0:
                    ready.append(target)
            ready.sort(key=names.index)

        if len(ordered) != len(names):
            return None
        return ordered


class ModelTable:
    """
    A model backed by one SQL table. ``destroy`` deletes rows and
    ``truncate`` empties the table, both through the owning database.
    """

    def __init__(
        self,
        database: "Database",
        name: str,
        *,
        table: Optional[TableLike] = None,
        references: Iterable[str] = (),
    ) -> None:
        self.database = database
        self._name = name
        generator = database.query_generator
        self._table_ref = generator.extract_table_details(table or camel_to_snake(name))
        self._references = tuple(references)

    def __repr__(self) -> str:
        return f"<ModelTable {self._name} table={self._table_ref}>"

    @property
    def name(self) -> str:
        return self._name

    @property
    def table_ref(self) -> TableRef:
        return self._table_ref

    @property
    def references(self) -> Sequence[str]:
        return self._references

    async def destroy(
        self,
        *,
        where: Optional[Mapping[str, Any]] = None,
        connection: Optional["Connection"] = None,
        transaction: Optional["Transaction"] = None,
    ) -> None:
        sql = self.database.query_generator.delete_query(self._table_ref, where)
        await self.database.query(sql, connection=connection, transaction=transaction)

    async def truncate(
        self,
        *,
        cascade: Optional[bool] = None,
        restart_identity: Optional[bool] = None,
        connection: Optional["Connection"] = None,
        transaction: Optional["Transaction"] = None,
    ) -> None:
        sql = self.database.query_generator.truncate_table_query(
            self._table_ref,
            cascade=cascade or None,
            restart_identity=restart_identity or None,
        )
        await self.database.query(sql, connection=connection, transaction=transaction)
