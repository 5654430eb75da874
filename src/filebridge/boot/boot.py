import logging
import os
import pathlib
import zirconium as zr
import zrlog
from filebridge import __VERSION__


def _config_paths():
    yield pathlib.Path(".").absolute()
    yield pathlib.Path("~").expanduser().absolute()
    custom_config_path = os.environ.get("FILEBRIDGE_CONFIG_SEARCH_PATHS", "")
    if custom_config_path:
        paths = custom_config_path.split(";")
        for path in paths:
            if path:
                p = pathlib.Path(path).absolute()
                if p.exists():
                    yield p


def init_filebridge(app_type: str = "cli", verbose: bool = False):

    @zr.configure
    def set_config(app_config: zr.ApplicationConfig):
        config_paths = [x for x in _config_paths()]
        logging.getLogger("filebridge.boot").debug(f"Config Search Paths: {';'.join(str(x) for x in config_paths)}")
        for path in config_paths:
            app_config.register_default_file(path / ".filebridge.defaults.toml")
            app_config.register_file(path / ".filebridge.toml")
            app_config.register_file(path / f".filebridge.{app_type}.toml")

    zrlog.set_default_extra("version", __VERSION__)
    zrlog.init_logging()
    # The google client libraries are chatty at DEBUG
    logging.getLogger("google").setLevel(logging.INFO)
    logging.getLogger("urllib3").setLevel(logging.INFO)
    if verbose:
        logging.getLogger("filebridge").setLevel(logging.DEBUG)
