"""
Injection of artifact locations into a live import system.

An injection target keeps two location collections: *pending* entries that
the import machinery will search but has not resolved yet, and *active*
entries that already map to an importer. Where those collections live
depends on the target's layout, so each :class:`InjectionPort` variant only
knows how to locate them; adding, removing and membership checks are
shared.

The collections are read with privileged field access. A process-wide raw
accessor, built on :func:`inspect.getattr_static`, reads instance storage
directly without going through ``__getattr__``/``__getattribute__`` hooks.
It is initialized lazily and, if that fails, every lookup falls back to
plain ``getattr``. Both paths also try name-mangled private names.

None of this is synchronized: concurrent splicing into one target needs
external coordination.
"""

import importlib
import inspect
import sys
import threading
import types
from abc import ABC, abstractmethod
from collections.abc import MutableMapping, MutableSequence
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from .error_handling import (
    DuplicateLocationError,
    ErrorCategory,
    UnsupportedInjectionTargetError,
    get_error_handler,
)
from .structured_logging import get_injection_logger

FieldAccessor = Callable[[Any, str], Any]

_accessor_lock = threading.Lock()
_accessor_initialized = False
_raw_accessor: Optional[FieldAccessor] = None


def _build_raw_accessor() -> FieldAccessor:
    getattr_static = inspect.getattr_static

    def fetch(obj: Any, name: str) -> Any:
        value = getattr_static(obj, name)
        if isinstance(value, types.MemberDescriptorType):
            # __slots__ storage
            return value.__get__(obj, type(obj))
        if isinstance(value, (property, types.GetSetDescriptorType)):
            raise AttributeError(f"{name} is computed, not stored")
        return value

    marker = object()

    class _Probe:
        def __getattribute__(self, name):
            raise AttributeError(name)

    probe = _Probe()
    object.__setattr__(probe, "field", marker)
    if fetch(probe, "field") is not marker:
        raise RuntimeError("raw field access is not supported by this interpreter")
    return fetch


def get_raw_accessor() -> Optional[FieldAccessor]:
    """Return the raw field accessor, or ``None`` when it is unavailable."""
    global _accessor_initialized, _raw_accessor
    if not _accessor_initialized:
        with _accessor_lock:
            if not _accessor_initialized:
                try:
                    _raw_accessor = _build_raw_accessor()
                except Exception as e:
                    _raw_accessor = None
                    get_injection_logger().debug(
                        "raw_accessor_unavailable", reason=f"{type(e).__name__}: {e}"
                    )
                _accessor_initialized = True
    return _raw_accessor


def _field_names(obj: Any, name: str) -> List[str]:
    names = [name]
    if not name.startswith("_"):
        names.append("_" + name)
    cls = obj if isinstance(obj, type) else type(obj)
    for klass in cls.__mro__:
        if klass is not object:
            names.append(f"_{klass.__name__.lstrip('_')}__{name}")
    return names


def fetch_field(obj: Any, name: str) -> Any:
    """
    Read field ``name`` of ``obj`` regardless of its visibility.

    Raises:
        AttributeError: If no public, protected or private field matches
    """
    accessor = get_raw_accessor() or getattr
    for candidate in _field_names(obj, name):
        try:
            return accessor(obj, candidate)
        except AttributeError:
            continue
    raise AttributeError(f"{type(obj).__name__} has no field {name!r}")


class LocationSet(ABC):
    """One of the target's location collections."""

    @abstractmethod
    def __contains__(self, location: str) -> bool:
        ...

    @abstractmethod
    def add(self, location: str) -> None:
        ...

    @abstractmethod
    def discard(self, location: str) -> None:
        ...

    @abstractmethod
    def snapshot(self) -> Tuple[str, ...]:
        ...


class ListLocationSet(LocationSet):
    def __init__(self, entries: MutableSequence):
        self.entries = entries

    def __contains__(self, location: str) -> bool:
        return location in self.entries

    def add(self, location: str) -> None:
        self.entries.append(location)

    def discard(self, location: str) -> None:
        while location in self.entries:
            self.entries.remove(location)

    def snapshot(self) -> Tuple[str, ...]:
        return tuple(self.entries)


class ImporterCacheLocationSet(LocationSet):
    """A location → importer mapping, filled through the path hooks."""

    def __init__(self, cache: MutableMapping, hooks: Sequence[Callable[[str], Any]]):
        self.cache = cache
        self.hooks = hooks

    def __contains__(self, location: str) -> bool:
        return location in self.cache

    def add(self, location: str) -> None:
        self.cache[location] = self._find_importer(location)

    def _find_importer(self, location: str) -> Any:
        for hook in self.hooks:
            try:
                return hook(location)
            except ImportError:
                continue
        return None

    def discard(self, location: str) -> None:
        self.cache.pop(location, None)

    def snapshot(self) -> Tuple[str, ...]:
        return tuple(self.cache)


class InjectionPort(ABC):
    """Adds, removes and looks up artifact locations in an injection target."""

    def __init__(self, target: Any):
        self.target = target
        self.pending, self.active = self._locate(target)
        self._logger = get_injection_logger()

    @staticmethod
    @abstractmethod
    def _locate(target: Any) -> Tuple[LocationSet, LocationSet]:
        """
        Find the pending and active location sets of ``target``.

        Raises:
            AttributeError: If an expected field is missing
            TypeError: If a field does not have the expected shape
        """

    def add(self, location: str) -> None:
        """
        Insert ``location`` into both location sets.

        Raises:
            DuplicateLocationError: If the location is already present
        """
        if self.contains(location):
            raise DuplicateLocationError(f"Location {location} already exists in the path")
        self.pending.add(location)
        self.active.add(location)
        self._logger.debug("location_added", location=location)

    def remove(self, location: str) -> None:
        """Remove ``location`` from both sets; absent locations are ignored."""
        self.pending.discard(location)
        self.active.discard(location)
        importlib.invalidate_caches()
        self._logger.debug("location_removed", location=location)

    def contains(self, location: str) -> bool:
        return location in self.pending or location in self.active

    def locations(self) -> Tuple[str, ...]:
        """Pending locations in search order."""
        return self.pending.snapshot()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}("
            f"pending={list(self.pending.snapshot())}, "
            f"active={list(self.active.snapshot())}, "
            f"target={getattr(self.target, '__name__', type(self.target).__name__)})"
        )


def _require_sequence(value: Any, name: str) -> MutableSequence:
    if not isinstance(value, MutableSequence):
        raise TypeError(f"{name} is {type(value).__name__}, expected a mutable sequence")
    return value


class ImporterCachePort(InjectionPort):
    """
    Port for targets laid out like the :mod:`sys` module.

    ``path`` holds pending locations and ``path_importer_cache`` maps active
    locations to their importer, resolved through ``path_hooks``.
    """

    @staticmethod
    def _locate(target: Any) -> Tuple[LocationSet, LocationSet]:
        path = _require_sequence(fetch_field(target, "path"), "path")
        cache = fetch_field(target, "path_importer_cache")
        if not isinstance(cache, MutableMapping):
            raise TypeError(
                f"path_importer_cache is {type(cache).__name__}, expected a mutable mapping"
            )
        try:
            hooks = fetch_field(target, "path_hooks")
        except AttributeError:
            hooks = sys.path_hooks
        return ListLocationSet(path), ImporterCacheLocationSet(cache, hooks)


class LocationListPort(InjectionPort):
    """
    Port for host loaders keeping two location lists.

    ``urls`` holds locations not opened yet and ``path`` the ones already
    searched; either may be private.
    """

    @staticmethod
    def _locate(target: Any) -> Tuple[LocationSet, LocationSet]:
        pending = _require_sequence(fetch_field(target, "urls"), "urls")
        active = _require_sequence(fetch_field(target, "path"), "path")
        if pending is active:
            raise TypeError("urls and path must be distinct collections")
        return ListLocationSet(pending), ListLocationSet(active)


PORT_VARIANTS: Tuple[type, ...] = (ImporterCachePort, LocationListPort)


def create_injection_port(
    target: Any = None, variants: Optional[Iterable[type]] = None
) -> InjectionPort:
    """
    Build a port for ``target`` (the :mod:`sys` module by default).

    Variants are probed in order and the first that locates both location
    sets wins.

    Raises:
        UnsupportedInjectionTargetError: If no variant matches the target
    """
    if target is None:
        target = sys

    failures = []
    for variant in variants or PORT_VARIANTS:
        try:
            port = variant(target)
        except (AttributeError, TypeError) as e:
            failures.append(f"{variant.__name__}: {e}")
            continue
        get_injection_logger().debug("injection_port_selected", variant=variant.__name__)
        return port

    get_error_handler().critical(
        ErrorCategory.INJECTION,
        "No injection port variant supports the target",
        "injection_port",
        "create_injection_port",
        details={"target_type": type(target).__name__, "failures": failures},
    )
    raise UnsupportedInjectionTargetError(
        f"Cannot inject into {type(target).__name__}: " + "; ".join(failures)
    )
