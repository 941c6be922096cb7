"""
Namespace relocation for zip artifacts.

The loader treats relocation as a black box ``relocate(data, rules) -> bytes``
behind the :class:`Relocator` protocol. :class:`ZipRelocator` is the default
engine: it moves archive entries that live under a relocated package and
rewrites dotted module references inside Python sources.
"""

import io
import re
import zipfile
from pathlib import Path
from typing import Optional, Protocol, Sequence

from .dependency import Relocation
from .error_handling import RelocationError

SOURCE_SUFFIXES = (".py", ".pyi")


class Relocator(Protocol):
    def relocate(self, data: bytes, rules: Sequence[Relocation]) -> bytes:
        ...


def _dotted(entry_name: str) -> str:
    stem = entry_name
    for suffix in SOURCE_SUFFIXES:
        if stem.endswith(suffix):
            stem = stem[: -len(suffix)]
            break
    return stem.rstrip("/").replace("/", ".")


def _matches(dotted_name: str, pattern: str) -> bool:
    return dotted_name == pattern or dotted_name.startswith(pattern + ".")


class ZipRelocator:
    """Relocates module namespaces inside a zip archive."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def relocate_entry_name(self, entry_name: str, rules: Sequence[Relocation]) -> str:
        dotted_name = _dotted(entry_name)
        for rule in rules:
            if _matches(dotted_name, rule.pattern) and not rule.is_excluded(dotted_name):
                old_prefix = rule.pattern.replace(".", "/")
                new_prefix = rule.relocated_pattern.replace(".", "/")
                return new_prefix + entry_name[len(old_prefix) :]
        return entry_name

    def relocate_source(self, source: str, rules: Sequence[Relocation]) -> str:
        for rule in rules:
            source = self._rewrite_references(source, rule)
        return source

    def _rewrite_references(self, source: str, rule: Relocation) -> str:
        # Dotted name starting at a word boundary that is not an attribute access
        reference = re.compile(
            r"(?<![\w.])" + re.escape(rule.pattern) + r"(?P<rest>(?:\.\w+)*)(?![\w])"
        )

        def replace(match: "re.Match[str]") -> str:
            if rule.is_excluded(match.group(0)):
                return match.group(0)
            return rule.relocated_pattern + match.group("rest")

        return reference.sub(replace, source)

    def relocate(self, data: bytes, rules: Sequence[Relocation]) -> bytes:
        """
        Return a copy of the archive ``data`` with ``rules`` applied.

        Raises:
            RelocationError: If ``data`` is not a readable zip archive, uses an
                unsupported compression or encryption, or two entries collide
                after relocation
        """
        if not rules:
            return data

        output = io.BytesIO()
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as source, zipfile.ZipFile(
                output, "w", compression=zipfile.ZIP_DEFLATED
            ) as target:
                written = set()
                for info in source.infolist():
                    new_name = self.relocate_entry_name(info.filename, rules)
                    if new_name in written:
                        raise RelocationError(f"Duplicate entry after relocation: {new_name}")
                    written.add(new_name)

                    payload = source.read(info.filename)
                    if new_name.endswith(SOURCE_SUFFIXES):
                        payload = self._rewrite_payload(payload, rules)

                    new_info = zipfile.ZipInfo(new_name, date_time=info.date_time)
                    new_info.external_attr = info.external_attr
                    new_info.compress_type = zipfile.ZIP_DEFLATED
                    target.writestr(new_info, payload)
        except (
            zipfile.BadZipFile,
            zipfile.LargeZipFile,
            EOFError,
            NotImplementedError,
            RuntimeError,
        ) as e:
            raise RelocationError(f"Unable to relocate archive: {e}") from e

        return output.getvalue()

    def _rewrite_payload(self, payload: bytes, rules: Sequence[Relocation]) -> bytes:
        try:
            text = payload.decode(self.encoding)
        except UnicodeDecodeError:
            return payload
        return self.relocate_source(text, rules).encode(self.encoding)


def relocate_file(
    source_path: Path,
    destination_path: Path,
    rules: Sequence[Relocation],
    relocator: Optional[Relocator] = None,
) -> None:
    """
    Read ``source_path``, relocate it and write ``destination_path``.

    Whatever the relocator raises surfaces as :class:`RelocationError`.
    Errors reading or writing the files propagate unchanged.
    """
    engine = relocator or ZipRelocator()
    data = source_path.read_bytes()
    try:
        relocated = engine.relocate(data, rules)
    except RelocationError:
        raise
    except Exception as e:
        raise RelocationError(f"Relocator {type(engine).__name__} failed: {e}") from e
    destination_path.write_bytes(relocated)
