import logging
import sys

# Configure a single application logger
log_format = '%(asctime)s - %(levelname)s - [%(module)s] %(message)s'
logging.basicConfig(
    level=logging.INFO,
    format=log_format,
    handlers=[logging.StreamHandler(sys.stdout)]
)

# socketio/engineio are chatty at INFO; connection churn is logged by the gateway
logging.getLogger("socketio").setLevel(logging.WARNING)
logging.getLogger("engineio").setLevel(logging.WARNING)

# Get a single logger for the entire application
logger = logging.getLogger("app")

# Export only the logger instance
__all__ = ["logger"]
