import os
from prometheus_client import start_http_server
from .ws_manager import ChangeNotifier
from .models import engine
import logging

logger = logging.getLogger(__name__)

METRICS_PORT = int(os.getenv('METRICS_PORT', '8001'))

NOTIFIER = None

def init_metrics(port: int = METRICS_PORT):
    """Initialize Prometheus metrics server"""
    if not port:
        logger.info('Prometheus metrics server disabled')
        return
    try:
        start_http_server(port)
        logger.info(f'Prometheus metrics server started on port {port}')
    except Exception as e:
        logger.warning(f'Prometheus start failed: {e}')

def notifier_startup() -> ChangeNotifier:
    """Open the process-wide change channel; later calls return the same one"""
    global NOTIFIER
    if NOTIFIER is None:
        NOTIFIER = ChangeNotifier()
    NOTIFIER.start()
    logger.info('Change notifier started')
    return NOTIFIER

def get_notifier() -> ChangeNotifier:
    if NOTIFIER is None or not NOTIFIER.started:
        raise RuntimeError('change notifier not initialized')
    return NOTIFIER

async def shutdown_connections():
    """Gracefully shutdown all connections"""
    logger.info("Shutting down connections...")

    if NOTIFIER:
        try:
            await NOTIFIER.stop()
            logger.info("Change notifier stopped")
        except Exception as e:
            logger.error(f"Error stopping change notifier: {e}")

    try:
        await engine.dispose()
        logger.info("Database engine disposed")
    except Exception as e:
        logger.error(f"Error disposing database engine: {e}")
