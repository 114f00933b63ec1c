# stocksense/config.py
import os

from dotenv import load_dotenv

load_dotenv()

# Orchestrator timeouts (seconds). The inner one bounds the neural path and
# degrades silently to the statistical forecast; the outer one bounds the
# whole request and is surfaced to the caller.
INNER_TIMEOUT_SECONDS = float(os.getenv('INNER_TIMEOUT_SECONDS', 8))
OUTER_TIMEOUT_SECONDS = float(os.getenv('OUTER_TIMEOUT_SECONDS', 12))

MIN_HISTORY = int(os.getenv('MIN_HISTORY', 10))
MIN_ENHANCED_HISTORY = int(os.getenv('MIN_ENHANCED_HISTORY', 20))

# Two-phase training plan
EPOCHS = int(os.getenv('EPOCHS', 100))
BATCH_SIZE = int(os.getenv('BATCH_SIZE', 32))
LEARNING_RATE = float(os.getenv('LEARNING_RATE', 5e-4))
FINETUNE_EPOCHS = int(os.getenv('FINETUNE_EPOCHS', 100))
FINETUNE_LEARNING_RATE = float(os.getenv('FINETUNE_LEARNING_RATE', 1e-4))
VALIDATION_SPLIT = float(os.getenv('VALIDATION_SPLIT', 0.2))

# Data provider
HISTORY_PERIOD = os.getenv('HISTORY_PERIOD', '3mo')
MIN_PROVIDER_POINTS = int(os.getenv('MIN_PROVIDER_POINTS', 20))
PROVIDER_TIMEOUT = float(os.getenv('PROVIDER_TIMEOUT', 8))
ALPHA_VANTAGE_API_KEY = os.getenv('API_KEY')

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_JSON = os.getenv('LOG_JSON', 'false').lower() in ('1', 'true', 'yes')
