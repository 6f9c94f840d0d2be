"""Logging for avrokit.

All avrokit modules log through loggers under the ``avrokit`` namespace.
Nothing is printed unless the application configures logging, either
through the standard :mod:`logging` module or :func:`configure_logging`.

Example:
    >>> import logging
    >>> from avrokit.logging import configure_logging, set_level
    >>> configure_logging(level=logging.INFO)
    >>> set_level(logging.DEBUG, "datafile")
"""

import logging
from typing import Optional


AVROKIT_ROOT_LOGGER = "avrokit"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AvroLoggerFactory:
    """Creates and tunes the loggers of avrokit components.

    Component loggers are children of the ``avrokit`` logger, so the level
    of a single component (``avrokit.datafile``, ``avrokit.binary``, ...)
    can be raised or lowered independently of the rest.
    """

    _configured: bool = False
    _handler: Optional[logging.Handler] = None

    @classmethod
    def get_logger(cls, component: str = "") -> logging.Logger:
        """Get the logger of an avrokit component.

        Args:
            component: Component name such as ``"datafile"`` or
                ``"schema"``. An empty name selects the root avrokit logger.

        Returns:
            The component logger.
        """
        if not component:
            return logging.getLogger(AVROKIT_ROOT_LOGGER)
        return logging.getLogger(f"{AVROKIT_ROOT_LOGGER}.{component}")

    @classmethod
    def configure(
        cls,
        level: int = logging.INFO,
        format_string: str = DEFAULT_FORMAT,
        handler: Optional[logging.Handler] = None,
    ) -> logging.Logger:
        """Attach a handler to the avrokit root logger and set its level.

        Calling this again only changes the level; the handler installed by
        the first call is kept.

        Args:
            level: Logging level for the avrokit root logger.
            format_string: Format of the emitted records.
            handler: Handler to install. Defaults to a ``StreamHandler``.

        Returns:
            The avrokit root logger.
        """
        root = logging.getLogger(AVROKIT_ROOT_LOGGER)
        root.setLevel(level)

        if cls._handler is None:
            if handler is None:
                handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(format_string))
            root.addHandler(handler)
            cls._handler = handler
        cls._handler.setLevel(level)

        cls._configured = True
        return root

    @classmethod
    def set_level(cls, level: int, component: str = "") -> None:
        """Set the level of one component, or of the avrokit root logger."""
        cls.get_logger(component).setLevel(level)

    @classmethod
    def disable(cls) -> None:
        """Silence every avrokit logger."""
        logging.getLogger(AVROKIT_ROOT_LOGGER).disabled = True

    @classmethod
    def enable(cls) -> None:
        """Undo :meth:`disable`."""
        logging.getLogger(AVROKIT_ROOT_LOGGER).disabled = False

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured

    @classmethod
    def reset(cls) -> None:
        """Remove the handler installed by :meth:`configure`."""
        root = logging.getLogger(AVROKIT_ROOT_LOGGER)
        if cls._handler is not None:
            root.removeHandler(cls._handler)
            cls._handler = None
        root.setLevel(logging.NOTSET)
        root.disabled = False
        cls._configured = False


def get_logger(component: str = "") -> logging.Logger:
    """Shortcut for :meth:`AvroLoggerFactory.get_logger`."""
    return AvroLoggerFactory.get_logger(component)


def configure_logging(
    level: int = logging.INFO,
    format_string: str = DEFAULT_FORMAT,
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """Configure avrokit logging.

    Args:
        level: Logging level (e.g. ``logging.DEBUG``).
        format_string: Format of the emitted records.
        handler: Optional handler. A ``StreamHandler`` is used if omitted.

    Returns:
        The avrokit root logger.
    """
    return AvroLoggerFactory.configure(level, format_string, handler)


def set_level(level: int, component: str = "") -> None:
    """Set the logging level of a component (or of all of avrokit)."""
    AvroLoggerFactory.set_level(level, component)
