import logging
import sys
from tqdm import tqdm


class LogWithTqdm(logging.Handler):
    """
    Logging handler that routes records through `tqdm.write()` so that
    scan progress bars are not torn apart by log output.
    """
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def _to_level(level, fallback):
    if isinstance(level, str):
        return getattr(logging, level.upper(), fallback)
    return level if level is not None else fallback


def configure_logger(general_level='INFO', module_specific_levels=None, silenced_loggers=None):
    """
    Configures the root logger with a tqdm-friendly handler.

    Args:
        general_level: Root level, as a name ('DEBUG') or a logging constant.
        module_specific_levels: Mapping of logger name to level for finer control,
            e.g. {'reconciler.dom.builder': 'DEBUG'}.
        silenced_loggers: Mapping of logger name to a (high) level for noisy libraries.
    """
    handler = LogWithTqdm()
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(_to_level(general_level, logging.INFO))

    # Replace handlers so repeated calls (tests, re-runs) do not duplicate output.
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name, level in (module_specific_levels or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.INFO))

    for name, level in (silenced_loggers or {}).items():
        logging.getLogger(name).setLevel(_to_level(level, logging.CRITICAL))
