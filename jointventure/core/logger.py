# core/logger.py
import logging
from jointventure.core.config import settings

logger = logging.getLogger("jointventure")
logger.setLevel(settings.LOG_LEVEL.upper())

if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] [%(module)s] %(message)s"))
    logger.addHandler(handler)
