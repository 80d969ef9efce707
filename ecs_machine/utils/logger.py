from loguru import logger
import sys
from pathlib import Path

# extras rendered as a "[value] " prefix, in this order
PREFIX_KEYS = ("machine",)


def enrich_record(record):
    file_path = Path(record["file"].path)
    try:
        relative_path = file_path.relative_to(Path.cwd())
    except ValueError:
        relative_path = file_path
    record["extra"]["rel_path"] = str(relative_path)

    prefix_parts = [f"[{record['extra'][k]}]" for k in PREFIX_KEYS if k in record["extra"]]
    record["extra"]["formatted_prefix"] = " ".join(prefix_parts) + " " if prefix_parts else ""
    return True


def configure_logger(level: str = "INFO"):
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSSSSS}</green> | <level>{level: <8}</level> | <cyan>{extra[rel_path]}</cyan>:<cyan>{line}</cyan> - <level>{extra[formatted_prefix]}{message}</level>",
        colorize=True,
        filter=enrich_record
    )
