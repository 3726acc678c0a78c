"""Find Table subclasses by class name (for string and ForwardRef relation targets)."""

from typing import Iterable, Optional


def iter_subclasses(base: type) -> Iterable[type]:
    """Recursively yield all subclasses of base, parents before children, in definition order."""
    for subclass in base.__subclasses__():
        yield subclass
        yield from iter_subclasses(subclass)


def find_subclass(base: type, name: str) -> Optional[type]:
    """Return the subclass of base whose ``__name__`` is name, or None.

    When several classes share the name (e.g. redefined in a test or a
    reloaded module) the most recently defined one wins.
    """
    found = None
    for subclass in iter_subclasses(base):
        if subclass.__name__ == name:
            found = subclass
    return found
