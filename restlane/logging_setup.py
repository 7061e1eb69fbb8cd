import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


# Only INFO and WARNING records go to log.txt
class InfoFilter(logging.Filter):
    def filter(self, record):
        return record.levelno in (logging.INFO, logging.WARNING)


def _rotating_handler(path, level, formatter, max_bytes, backup_count):
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level="INFO", log_dir=".", max_bytes=5*1024*1024, backup_count=5):
    """Configures the root logger: log.txt, error.txt and stdout.

    The request pipeline logs its retry/requeue decisions at DEBUG, so they
    only reach the console when ``level`` is DEBUG.
    """
    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    info_handler = _rotating_handler(log_path / 'log.txt', logging.INFO, formatter, max_bytes, backup_count)
    info_handler.addFilter(InfoFilter())
    root.addHandler(info_handler)

    root.addHandler(_rotating_handler(log_path / 'error.txt', logging.ERROR, formatter, max_bytes, backup_count))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)
    return root
