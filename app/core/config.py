# app/core/config.py
import os
import sys
from dotenv import load_dotenv
from loguru import logger
import logging
from pathlib import Path

# --- Load .env from the project root if present ---
project_root = Path(__file__).resolve().parent.parent.parent
dotenv_path = project_root / '.env'
if dotenv_path.is_file():
    logger.info(f"Loading environment variables from: {dotenv_path}")
    load_dotenv(dotenv_path=dotenv_path, override=False)
else:
    logger.debug(f".env file not found at {dotenv_path}. Relying on system environment variables.")

# --- Intercept Handler (lets Loguru capture standard logging) ---
class InterceptHandler(logging.Handler):
    """Handler that forwards standard Python log records to Loguru."""
    def emit(self, record: logging.LogRecord) -> None:
        try: level = logger.level(record.levelname).name
        except ValueError: level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())

def setup_logging():
    """Configure Loguru sinks and route stdlib/uvicorn logging through it."""
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    log_file_path = Path(os.getenv("LOG_FILE_PATH", "logs/app_{time:YYYY-MM-DD}.log"))
    log_rotation = os.getenv("LOG_ROTATION", "1 day")
    log_retention = os.getenv("LOG_RETENTION", "7 days")
    log_serialize = os.getenv("LOG_SERIALIZE", "False").lower() == 'true'
    log_to_file = os.getenv("LOG_TO_FILE", "True").lower() == 'true'

    logger.remove()
    logger.add(sys.stderr, level=log_level_name, format=log_format, colorize=True)

    if log_to_file:
        try:
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            logger.add(
                log_file_path,
                level=log_level_name,
                format=log_format,
                rotation=log_rotation,
                retention=log_retention,
                serialize=log_serialize,
                enqueue=True,
                backtrace=True,
                diagnose=False,
                encoding="utf-8"
            )
            logger.info(f"File logging enabled at: {log_file_path}")
        except OSError as e:
            logger.error(f"Failed to setup file logging at {log_file_path}: {e}")

    # --- Intercept standard logging ---
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in list(logging.root.manager.loggerDict):
        if name.startswith(("uvicorn", "fastapi", "starlette", "apscheduler")):
            existing_logger = logging.getLogger(name)
            existing_logger.handlers = [InterceptHandler()]
            existing_logger.propagate = False

    logger.info(f"Loguru logging setup complete. Level: {log_level_name}")


# --- JWT Configuration ---
SECRET_KEY: str = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    logger.critical("FATAL: SECRET_KEY environment variable is not set.")
    raise ValueError("SECRET_KEY environment variable is not set.")

ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
try:
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
except ValueError:
    logger.warning("Invalid ACCESS_TOKEN_EXPIRE_MINUTES. Using default: 30.")
    ACCESS_TOKEN_EXPIRE_MINUTES = 30

# --- Database Configuration ---
MONGODB_URL: str = os.getenv("MONGODB_URL")
if not MONGODB_URL:
    logger.critical("FATAL: MONGODB_URL environment variable is not set.")
    raise ValueError("MONGODB_URL environment variable is not set.")

def database_name_from_url(url: str, default: str = "borrow_return_db") -> str:
    """Database name from the path part of a MongoDB URL, e.g. mongodb://host/dbname?replicaSet=rs0."""
    without_scheme = url.split("://", 1)[-1]
    if "/" not in without_scheme:
        return default
    path_part = without_scheme.split("/", 1)[1].split("?")[0]
    return path_part or default

DATABASE_NAME: str = os.getenv("DATABASE_NAME") or database_name_from_url(MONGODB_URL)

# --- Scheduler Configuration ---
SCHEDULER_TIMEZONE: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")
try:
    OVERDUE_CHECK_MINUTES: int = int(os.getenv("OVERDUE_CHECK_MINUTES", "15"))
except ValueError:
    logger.warning("Invalid OVERDUE_CHECK_MINUTES. Using default: 15.")
    OVERDUE_CHECK_MINUTES = 15
SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "True").lower() == 'true'

logger.info(f"JWT Algorithm: {ALGORITHM}")
logger.info(f"Access Token Expire Minutes: {ACCESS_TOKEN_EXPIRE_MINUTES}")
logger.info(f"Database Name: {DATABASE_NAME}")
