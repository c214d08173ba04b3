"""Exceptions raised by the trip log pipeline."""


class LoadError(Exception):
    """A load could not produce a record set.

    The message is meant to be shown to the user as-is.
    """
