from .connectivity import ConnectivityMonitor
from .conversion_service import convert, format_amount, popular_rates
from .debouncer import Debouncer
from .fetch_pipeline import FetchPipeline
from .metrics import MetricsCollector
from .rate_converter import RateConverter
from .resolution_engine import ResolutionEngine
from .state_broadcaster import StateBroadcaster, Subscription

__all__ = [
    'ConnectivityMonitor',
    'Debouncer',
    'FetchPipeline',
    'MetricsCollector',
    'RateConverter',
    'ResolutionEngine',
    'StateBroadcaster',
    'Subscription',
    'convert',
    'format_amount',
    'popular_rates',
]
