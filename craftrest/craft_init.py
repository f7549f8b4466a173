import logging
import os
import sys


class Craft:
    """Package wide settings
    Configuration settings are stored as class variables, they can be overridden
    by environment variables with the same name (cfr. config.get_config)
    or by passing keyword arguments to `Craft.configure`

    :param DEFAULT_PAGE_LIMIT: page size used when the client does not send a (valid) `limit`
    :param MAX_PAGE_LIMIT: upper bound for the `limit` query argument
    :param MAX_PAGE_OFFSET: upper bound for the offset derived from `page` and `limit`
    :param DEFAULT_PAGE: page number used when the client does not send a (valid) `page`
    :param CONCURRENT_COUNT: run the collection count and the page fetch concurrently
    :param BASE_PATH: url prefix used by `CraftAPI` when none is given
    """

    DEFAULT_PAGE_LIMIT = 10
    MAX_PAGE_LIMIT = 100000
    MAX_PAGE_OFFSET = 2**31
    DEFAULT_PAGE = 1
    CONCURRENT_COUNT = False
    BASE_PATH = "/api"
    LOGLEVEL = logging.WARNING

    @classmethod
    def configure(cls, **kwargs) -> None:
        for conf_name, conf_val in kwargs.items():
            if not hasattr(cls, conf_name):
                raise AttributeError(f"Unknown craftrest setting '{conf_name}'")
            setattr(cls, conf_name, conf_val)

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used in the webserver logs
        The webserver will catch stdout so we redirect eveything to sys.stderr
        """
        log = logging.getLogger("craftrest")
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


#
# logging initialization
#
try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = Craft.init_logging(LOGLEVEL)
