from .exceptions import FileBridgeError, ConfigError
