import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from infrastructure.persistence.models.kv_entry import Base

logger = logging.getLogger(__name__)


class Database:
	def __init__(self, db_url: str, echo: bool = False):
		engine_kwargs: dict = {'echo': echo}
		if db_url.startswith('sqlite') and ':memory:' in db_url:
			# one shared connection, otherwise every session sees its own empty database
			engine_kwargs.update(
				poolclass=StaticPool, connect_args={'check_same_thread': False}
			)

		self.url = db_url
		self.engine = create_async_engine(db_url, **engine_kwargs)
		self.session_factory = async_sessionmaker(
			self.engine,
			class_=AsyncSession,
			autoflush=True,
			expire_on_commit=False
		)

	async def create_tables(self) -> None:
		async with self.engine.begin() as conn:
			await conn.run_sync(Base.metadata.create_all)
		logger.info(f'Cache tables ready on {self.engine.url.render_as_string(hide_password=True)}')

	async def drop_tables(self) -> None:
		async with self.engine.begin() as conn:
			await conn.run_sync(Base.metadata.drop_all)

	async def health_check(self) -> bool:
		try:
			async with self.engine.connect() as conn:
				await conn.execute(text('SELECT 1'))
			return True
		except Exception as e:
			logger.warning(f'Database health check failed: {e}')
			return False

	async def close(self) -> None:
		await self.engine.dispose()

	@asynccontextmanager
	async def session(self) -> AsyncIterator[AsyncSession]:
		async with self.session_factory() as session:
			try:
				yield session
				await session.commit()
			except Exception:
				await session.rollback()
				raise
