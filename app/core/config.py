# app/core/config.py
import os
import sys
from dotenv import load_dotenv
from loguru import logger
import logging
from pathlib import Path
from typing import List

try:
    project_root = Path(__file__).resolve().parent.parent.parent
    dotenv_path = project_root / '.env'
    logger.debug(f"Calculated .env path using pathlib: {dotenv_path}")
except Exception as e:
    logger.error(f"Error calculating project root/dotenv path: {e}")
    # Fallback: asumsi .env ada di direktori kerja
    dotenv_path = Path(".env")
    logger.warning(f"Using fallback .env path: {dotenv_path.resolve()}")

# --- Muat file .env JIKA ADA ---
if dotenv_path.is_file():
    logger.info(f"Loading environment variables from: {dotenv_path}")
    load_dotenv(dotenv_path=dotenv_path, override=False)
else:
    logger.warning(f".env file not found at {dotenv_path}. Relying on system environment variables.")


# --- Intercept Handler (agar log standar masuk ke Loguru) ---
class InterceptHandler(logging.Handler):
    """Handler untuk mencegat log standar Python dan mengarahkannya ke Loguru."""
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging():
    """Konfigurasi Loguru untuk aplikasi."""
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    log_file_path_str = os.getenv("LOG_FILE_PATH", "logs/portal_{time:YYYY-MM-DD}.log")
    log_file_path = Path(log_file_path_str)
    log_rotation = os.getenv("LOG_ROTATION", "1 day")
    log_retention = os.getenv("LOG_RETENTION", "7 days")
    log_serialize = os.getenv("LOG_SERIALIZE", "False").lower() == 'true'
    log_to_file = os.getenv("LOG_TO_FILE", "True").lower() == 'true'

    logger.remove()  # Hapus handler default

    # Handler Console
    logger.add(sys.stderr, level=log_level_name, format=log_format, colorize=True)

    # Handler File
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
        except Exception as e:
            logger.error(f"Failed to setup file logging at {log_file_path}: {e}")

    # --- Intercept Log Standar ---
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in list(logging.root.manager.loggerDict):
        if name.startswith(("uvicorn", "fastapi", "starlette", "httpx", "pymongo")):
            existing_logger = logging.getLogger(name)
            existing_logger.handlers = [InterceptHandler()]
            existing_logger.propagate = False

    logger.info(f"Loguru logging setup complete. Level: {log_level_name}")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


# --- JWT Configuration (token diterbitkan oleh auth provider) ---
SECRET_KEY: str = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    logger.critical("FATAL: SECRET_KEY environment variable is not set.")
    raise ValueError("SECRET_KEY environment variable is not set.")

ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
JWT_AUDIENCE: str = os.getenv("JWT_AUDIENCE", "")

# --- Database Configuration ---
MONGODB_URL: str = os.getenv("MONGODB_URL")
if not MONGODB_URL:
    logger.critical("FATAL: MONGODB_URL environment variable is not set.")
    raise ValueError("MONGODB_URL environment variable is not set.")

_default_db_name = "portal_peminjaman"
try:
    path_part = MONGODB_URL.split('/')[-1].split('?')[0]
    if path_part and MONGODB_URL.count('/') > 2:
        _default_db_name = path_part
except IndexError:
    pass
DATABASE_NAME: str = os.getenv("DATABASE_NAME", _default_db_name)

# --- Auth Provider & Object Storage ---
AUTH_URL: str = os.getenv("AUTH_URL", "")
AUTH_SERVICE_KEY: str = os.getenv("AUTH_SERVICE_KEY", "")
STORAGE_URL: str = os.getenv("STORAGE_URL", AUTH_URL)
STORAGE_BUCKET: str = os.getenv("STORAGE_BUCKET", "alat-images")
try:
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
except ValueError:
    logger.warning("Invalid HTTP_TIMEOUT_SECONDS. Using default: 10.")
    HTTP_TIMEOUT_SECONDS = 10.0

# --- Upload Gambar Alat ---
try:
    MAX_IMAGE_SIZE_BYTES: int = int(os.getenv("MAX_IMAGE_SIZE_BYTES", str(5 * 1024 * 1024)))
except ValueError:
    logger.warning("Invalid MAX_IMAGE_SIZE_BYTES. Using default: 5MB.")
    MAX_IMAGE_SIZE_BYTES = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES: List[str] = _env_list(
    "ALLOWED_IMAGE_TYPES", "image/jpeg,image/png,image/gif,image/webp"
)

# --- Varian Deployment: role yang diverifikasi & role peminjam ---
VERIFICATION_ROLES: List[str] = _env_list("VERIFICATION_ROLES", "siswa,guru,umum")
BORROWER_ROLES: List[str] = _env_list("BORROWER_ROLES", "siswa,guru,umum")

# --- Rate Limiting ---
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "True").lower() == 'true'

logger.info(f"JWT Algorithm: {ALGORITHM}")
logger.info(f"Database Name: {DATABASE_NAME}")
logger.info(f"Verification roles: {VERIFICATION_ROLES}; borrower roles: {BORROWER_ROLES}")
