"""
loguru sinks for the news fetch layer.

Three sinks: coloured stderr, a rotating news_fetch.log, and audit.log which
only receives records bound with audit=True (one line per provider fetch).
"""
import sys
from pathlib import Path
from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} - {message}"


def setup_logger(
    log_dir: Path | None = None,
    level: str = "INFO",
    rotation: str = "10 MB",
    retention: str = "7 days"
) -> None:
    """Replace loguru's default handler with the console, file and audit sinks.

    log_dir defaults to <project>/logs and is created if missing.
    """
    log_dir = Path(log_dir) if log_dir else Path(__file__).resolve().parents[2] / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)
    logger.add(log_dir / "news_fetch.log", level=level, format=FILE_FORMAT,
               rotation=rotation, retention=retention, compression="zip")
    logger.add(log_dir / "audit.log", level="INFO",
               format="{time:YYYY-MM-DD HH:mm:ss} | {message}",
               filter=lambda record: record["extra"].get("audit", False),
               rotation=rotation, retention="30 days")


def audit_log(event: str, **fields) -> None:
    """Write `EVENT | k=v | k=v` to the audit sink, e.g. audit_log("GNEWS_FETCH", valid=9)."""
    line = " | ".join([event, *(f"{k}={v}" for k, v in fields.items())])
    logger.bind(audit=True).info(line)
