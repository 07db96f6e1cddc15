from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyrecipe-astro")
except PackageNotFoundError:
    __version__ = "unknown"


# add logger to console
import logging

import colorlog
import tqdm


# We need to use this to have logging messages handle properly with the progressbar
class TqdmLoggingHandler(logging.Handler):
    def __init__(self, level=logging.NOTSET):
        super().__init__(level)

    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.tqdm.write(msg)
            self.flush()
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception:
            self.handleError(record)


logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)
logging.captureWarnings(True)

console = TqdmLoggingHandler()
console.setLevel(logging.INFO)
console.setFormatter(
    colorlog.ColoredFormatter("%(log_color)s%(levelname)s - %(message)s")
)
logger.addHandler(console)

del logging
del colorlog
# do not del tqdm, it is needed in the Log Handler


# Lazy loading for faster imports
def __getattr__(name):
    """Lazy load submodules on first access."""
    if name in ("configuration", "calibration", "instruments", "pipeline", "util"):
        import importlib

        module = importlib.import_module(f".{name}", __name__)
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
