"""Base repository with common table operations"""
from typing import Generic, TypeVar, Type, Optional, List, Dict, Any, Union
from pydantic import BaseModel
from supabase import Client

T = TypeVar('T', bound=BaseModel)
CreateT = TypeVar('CreateT', bound=BaseModel)
UpdateT = TypeVar('UpdateT', bound=BaseModel)

RecordId = Union[str, int]


class BaseRepository(Generic[T, CreateT, UpdateT]):
    """
    Base repository providing common database operations.
    Hides Supabase implementation details from the rest of the application.

    Billing tables are keyed by provider IDs (evt_..., auth UUIDs), so the
    primary key column and type are configurable.
    """

    def __init__(self, client: Client, table_name: str, model_class: Type[T], id_column: str = "id"):
        self._client = client
        self._table_name = table_name
        self._model_class = model_class
        self._id_column = id_column

    def _to_model(self, data: Dict[str, Any]) -> T:
        """Convert database dict to domain model"""
        return self._model_class(**data)

    def _to_models(self, data: List[Dict[str, Any]]) -> List[T]:
        """Convert list of database dicts to domain models"""
        return [self._to_model(item) for item in data]

    async def find_by_id(self, id: RecordId) -> Optional[T]:
        """Find a single record by primary key"""
        response = self._client.table(self._table_name).select("*").eq(self._id_column, id).execute()

        if not response.data:
            return None

        return self._to_model(response.data[0])

    async def find_by_filters(self, filters: Dict[str, Any], limit: Optional[int] = None) -> List[T]:
        """Find records matching equality filters"""
        query = self._client.table(self._table_name).select("*")

        for key, value in filters.items():
            query = query.eq(key, value)

        if limit:
            query = query.limit(limit)

        response = query.execute()
        return self._to_models(response.data)

    async def create(self, data: CreateT) -> T:
        """Create a new record"""
        data_dict = data.model_dump(exclude_unset=True, mode='json')
        response = self._client.table(self._table_name).insert(data_dict).execute()

        if not response.data:
            raise ValueError(f"Failed to create record in {self._table_name}")

        return self._to_model(response.data[0])

    async def upsert(self, data: CreateT, ignore_duplicates: bool = False) -> Optional[T]:
        """
        Insert or update by primary key in one statement.

        With ignore_duplicates=True an existing row is left untouched and
        None is returned for it.
        """
        data_dict = data.model_dump(exclude_unset=True, mode='json')
        response = (
            self._client.table(self._table_name)
            .upsert(data_dict, on_conflict=self._id_column, ignore_duplicates=ignore_duplicates)
            .execute()
        )

        if not response.data:
            return None

        return self._to_model(response.data[0])

    async def update(self, id: RecordId, data: UpdateT) -> Optional[T]:
        """Update a record by primary key"""
        data_dict = data.model_dump(exclude_unset=True, mode='json')

        if not data_dict:
            # No fields to update
            return await self.find_by_id(id)

        response = self._client.table(self._table_name).update(data_dict).eq(self._id_column, id).execute()

        if not response.data:
            return None

        return self._to_model(response.data[0])
