"""Logging helpers for the Lutoria package."""

from __future__ import annotations

import logging

_PACKAGE_LOGGER = "lutoria"
_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child logger when *name* is given."""

    if not name:
        return logging.getLogger(_PACKAGE_LOGGER)
    if name.startswith(_PACKAGE_LOGGER):
        return logging.getLogger(name)
    return logging.getLogger(f"{_PACKAGE_LOGGER}.{name}")


def configure_logging(verbose: bool = False) -> None:
    """Attach a stream handler to the package logger.

    Library modules never configure logging themselves; only entry points such
    as the command line call this helper.
    """

    logger = logging.getLogger(_PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not any(isinstance(handler, logging.StreamHandler) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
