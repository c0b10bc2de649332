import logging

from application.services import RateConverter
from application.services.service_factory import ServiceFactory
from config.settings import get_settings

logger = logging.getLogger(__name__)


class AppDependencies:
	"""Container for application-wide singleton dependencies."""

	rate_converter: RateConverter | None = None


deps = AppDependencies()


async def init_dependencies() -> None:
	"""Build the resolution stack and load the default base. Called at app startup."""
	logger.info('Initializing dependencies...')
	settings = get_settings()

	deps.rate_converter = await ServiceFactory(settings).create_rate_converter()
	await deps.rate_converter.start()
	logger.info('Dependencies initialized')


async def cleanup_dependencies() -> None:
	logger.info('Cleaning up dependencies...')

	if deps.rate_converter:
		await deps.rate_converter.close()
		deps.rate_converter = None

	logger.info('Cleanup complete')


def get_rate_converter() -> RateConverter:
	if deps.rate_converter is None:
		raise RuntimeError('Rate converter not initialized')
	return deps.rate_converter
