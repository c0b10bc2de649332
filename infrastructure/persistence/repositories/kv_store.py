from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from domain.exceptions.currency import CacheIOError
from infrastructure.persistence.database import Database
from infrastructure.persistence.models.kv_entry import KeyValueEntryDB


class SqlKeyValueStore:
	"""KeyValueStore on a single SQL table; each call runs in its own session."""

	def __init__(self, database: Database):
		self.database = database

	async def get(self, key: str) -> str | None:
		try:
			async with self.database.session() as session:
				entry = await session.get(KeyValueEntryDB, key)
				return entry.value if entry else None
		except SQLAlchemyError as e:
			raise CacheIOError(f'Failed to read {key}: {e}') from e

	async def set(self, key: str, value: str) -> None:
		try:
			async with self.database.session() as session:
				entry = await session.get(KeyValueEntryDB, key)
				if entry is None:
					session.add(KeyValueEntryDB(key=key, value=value))
				else:
					entry.value = value
		except SQLAlchemyError as e:
			raise CacheIOError(f'Failed to write {key}: {e}') from e

	async def remove(self, key: str) -> None:
		try:
			async with self.database.session() as session:
				await session.execute(delete(KeyValueEntryDB).where(KeyValueEntryDB.key == key))
		except SQLAlchemyError as e:
			raise CacheIOError(f'Failed to remove {key}: {e}') from e

	async def keys(self, prefix: str = '') -> list[str]:
		stmt = select(KeyValueEntryDB.key).order_by(KeyValueEntryDB.key)
		if prefix:
			stmt = stmt.where(KeyValueEntryDB.key.startswith(prefix, autoescape=True))
		try:
			async with self.database.session() as session:
				result = await session.execute(stmt)
				return list(result.scalars().all())
		except SQLAlchemyError as e:
			raise CacheIOError(f'Failed to list keys with prefix {prefix!r}: {e}') from e

	async def close(self) -> None:
		await self.database.close()
