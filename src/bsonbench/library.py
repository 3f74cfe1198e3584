"""Loading BSON libraries inside a worker.

Two libraries are in play in every worker:

* the **reference** implementation, the ``bson`` package that ships with
  the harness's own pymongo dependency.  It parses the Extended JSON
  fixture and prepares the binary input for deserialize benchmarks.
* the **library under test**, imported from its isolated install
  directory.

Both provide a top-level ``bson`` module, so the reference must be done
with (and purged from ``sys.modules``) before the library under test is
imported.  This module must only be used from a worker process.
"""

from __future__ import annotations

import functools
import importlib
import sys
from pathlib import Path
from typing import Any, Callable

from bsonbench.errors import LibraryLoadError
from bsonbench.installer import target_dir
from bsonbench.logging import get_logger
from bsonbench.specifier import VersionSpecifier

log = get_logger("library")

REFERENCE_MODULE = "bson"

Serializer = Callable[[Any], bytes]
Deserializer = Callable[[bytes], Any]


class BSONLib:
    """Uniform view of a BSON library.

    ``serializer(options)`` and ``deserializer(options)`` bind the
    benchmark options once and return a one-argument callable, so that
    option handling stays out of the timed loop.
    """

    def __init__(self, module: Any, label: str) -> None:
        self.module = module
        self.label = label

    def serializer(self, options: dict[str, Any]) -> Serializer:
        raise NotImplementedError

    def deserializer(self, options: dict[str, Any]) -> Deserializer:
        raise NotImplementedError

    @property
    def parse(self) -> Callable[[str], Any] | None:
        """Extended JSON parser shipped with the library, if any."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.label}>"


class PyMongoLib(BSONLib):
    """pymongo's ``bson`` (3.9+): ``bson.encode`` / ``bson.decode``."""

    def serializer(self, options: dict[str, Any]) -> Serializer:
        check_keys, codec = self._split_options(options, encoding=True)
        encode = self.module.encode
        if codec is None:
            return functools.partial(encode, check_keys=check_keys)
        return functools.partial(encode, check_keys=check_keys, codec_options=codec)

    def deserializer(self, options: dict[str, Any]) -> Deserializer:
        _, codec = self._split_options(options, encoding=False)
        decode = self.module.decode
        if codec is None:
            return decode  # type: ignore[no-any-return]
        return functools.partial(decode, codec_options=codec)

    @property
    def parse(self) -> Callable[[str], Any] | None:
        try:
            json_util = importlib.import_module(f"{self.module.__name__}.json_util")
        except ImportError:
            return None
        return json_util.loads  # type: ignore[no-any-return]

    def _split_options(self, options: dict[str, Any], *, encoding: bool) -> tuple[bool, Any]:
        """Split benchmark options into ``check_keys`` and a CodecOptions.

        ``validation: {utf8: bool}`` maps onto the codec's
        ``unicode_decode_error_handler`` and only affects decoding.

        Raises:
            TypeError: For options this library does not understand.
        """
        opts = dict(options)
        check_keys = bool(opts.pop("check_keys", False))
        validation = opts.pop("validation", None)
        if validation is not None and not encoding:
            if isinstance(validation, dict):
                utf8 = bool(validation.get("utf8", True))
            else:
                utf8 = bool(validation)
            opts.setdefault("unicode_decode_error_handler", "strict" if utf8 else "replace")
        if not opts:
            return check_keys, None

        try:
            codec_options = importlib.import_module(f"{self.module.__name__}.codec_options")
        except ImportError:
            raise TypeError(
                f"{self.label} does not support options: {', '.join(sorted(opts))}"
            ) from None
        codec_cls = codec_options.CodecOptions
        fields = set(getattr(codec_cls, "_fields", ()))
        unknown = sorted(set(opts) - fields)
        if unknown:
            raise TypeError(f"{self.label} does not support options: {', '.join(unknown)}")
        return check_keys, codec_cls(**opts)


class LegacyPyMongoLib(PyMongoLib):
    """pymongo's ``bson`` before 3.9: ``BSON.encode`` / ``BSON(data).decode``."""

    def serializer(self, options: dict[str, Any]) -> Serializer:
        check_keys, codec = self._split_options(options, encoding=True)
        bson_cls = self.module.BSON
        if codec is None:
            return lambda doc: bson_cls.encode(doc, check_keys)
        return lambda doc: bson_cls.encode(doc, check_keys, codec)

    def deserializer(self, options: dict[str, Any]) -> Deserializer:
        _, codec = self._split_options(options, encoding=False)
        bson_cls = self.module.BSON
        if codec is None:
            return lambda data: bson_cls(data).decode()
        return lambda data: bson_cls(data).decode(codec)


class PyBsonLib(BSONLib):
    """The standalone ``bson`` distribution: ``bson.dumps`` / ``bson.loads``."""

    def serializer(self, options: dict[str, Any]) -> Serializer:
        return functools.partial(self.module.dumps, **options)

    def deserializer(self, options: dict[str, Any]) -> Deserializer:
        return functools.partial(self.module.loads, **options)


def adapt(module: Any, label: str) -> BSONLib:
    """Pick the adapter matching the API *module* exposes.

    Raises:
        LibraryLoadError: If the module exposes no known BSON API.
    """
    if hasattr(module, "encode") and hasattr(module, "decode"):
        return PyMongoLib(module, label)
    if hasattr(module, "BSON"):
        return LegacyPyMongoLib(module, label)
    if hasattr(module, "dumps") and hasattr(module, "loads"):
        return PyBsonLib(module, label)
    raise LibraryLoadError(f"{label} does not expose a serialize/deserialize API")


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def purge_modules(name: str) -> None:
    """Drop *name* and its submodules from ``sys.modules``."""
    for key in list(sys.modules):
        if key == name or key.startswith(name + "."):
            del sys.modules[key]


def load_reference() -> BSONLib:
    """Import the harness's own ``bson`` (from pymongo)."""
    module = importlib.import_module(REFERENCE_MODULE)
    lib = adapt(module, "reference bson")
    if not isinstance(lib, PyMongoLib):
        raise LibraryLoadError(
            f"reference bson at {getattr(module, '__file__', '?')} is not pymongo's"
        )
    return lib


def load_library(specifier: VersionSpecifier, install_dir: Path) -> BSONLib:
    """Import the library under test from its isolated install directory.

    Raises:
        LibraryLoadError: If it is not installed, fails to import, or the
            import resolves to a copy outside its install directory.
    """
    directory = target_dir(specifier, install_dir).resolve()
    if not directory.is_dir():
        raise LibraryLoadError(f"{specifier} is not installed in {install_dir}")

    import_name = specifier.library.import_name
    purge_modules(import_name)
    sys.path.insert(0, str(directory))
    importlib.invalidate_caches()
    try:
        module = importlib.import_module(import_name)
    except Exception as exc:  # noqa: BLE001
        raise LibraryLoadError(f"failed to import {specifier}") from exc

    module_file = Path(getattr(module, "__file__", "") or "").resolve()
    if directory not in module_file.parents:
        raise LibraryLoadError(
            f"{import_name} resolved to {module_file}, not the installed copy in {directory}"
        )
    log.debug("Loaded %s from %s", specifier, module_file)
    return adapt(module, str(specifier))
