class TypePulseError(Exception):
    """Base class for errors raised by typepulse"""


class ConfigError(TypePulseError):
    """Raised when a configuration file cannot be used"""
