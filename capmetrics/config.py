"""
Comparison configuration.

Where to find each program's listings and binaries, which programs to
analyse, and how much work to run in parallel. Defaults mirror the
research platform's directory layout; a JSON file can override any key
and command-line flags override the file.

Path templates take a ``{program}`` placeholder and are resolved against
``base_dir``.
"""

from __future__ import annotations
import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from .categories import Variant


class ConfigError(Exception):
    """Raised on an unreadable or invalid configuration."""
    def __init__(self, message: str, source: Optional[Path] = None):
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


DEFAULT_PROGRAMS = ["buffer_overflow", "use_after_free", "pointer_arithmetic"]


@dataclass(frozen=True)
class ComparisonConfig:
    base_dir: Path = Path(".")
    programs: List[str] = field(default_factory=lambda: list(DEFAULT_PROGRAMS))
    unprotected_listing: str = "raw-outputs/standard-riscv/{program}.s"
    protected_listing: str = "raw-outputs/authentic-cheri/{program}_cheri.s"
    unprotected_binary: str = "implementations/standard-riscv/{program}"
    protected_binary: str = "implementations/authentic-cheri/{program}_cheri"
    # {program: {"unprotected": bytes, "protected": bytes}}
    sizes: Dict[str, Dict[str, int]] = field(default_factory=dict)
    excerpt_lines: int = 50
    max_workers: int = 4

    def listing_path(self, program: str, variant: Variant) -> Path:
        template = (self.protected_listing if variant is Variant.PROTECTED
                    else self.unprotected_listing)
        return self.base_dir / template.format(program=program)

    def binary_path(self, program: str, variant: Variant) -> Path:
        template = (self.protected_binary if variant is Variant.PROTECTED
                    else self.unprotected_binary)
        return self.base_dir / template.format(program=program)

    def size_override(self, program: str, variant: Variant) -> Optional[int]:
        return self.sizes.get(program, {}).get(variant.value)

    def with_overrides(self, **overrides: Any) -> ComparisonConfig:
        """Copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return _validated(replace(self, **changes))


_TEMPLATE_KEYS = ("unprotected_listing", "protected_listing",
                  "unprotected_binary", "protected_binary")


def _validated(cfg: ComparisonConfig, source: Optional[Path] = None) -> ComparisonConfig:
    if not isinstance(cfg.programs, list) or not all(isinstance(p, str) and p for p in cfg.programs):
        raise ConfigError("'programs' must be a list of non-empty names", source)
    if len(set(cfg.programs)) != len(cfg.programs):
        raise ConfigError("'programs' contains duplicates", source)
    for key in _TEMPLATE_KEYS:
        value = getattr(cfg, key)
        if not isinstance(value, str) or "{program}" not in value:
            raise ConfigError(f"'{key}' must be a path template containing {{program}}", source)
        try:
            value.format(program="x")
        except (KeyError, IndexError, ValueError, AttributeError) as e:
            raise ConfigError(f"'{key}' has an unusable placeholder: {e!r}", source) from None
    for key, minimum in (("excerpt_lines", 0), ("max_workers", 1)):
        value = getattr(cfg, key)
        if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
            raise ConfigError(f"'{key}' must be an integer >= {minimum}", source)
    if not isinstance(cfg.sizes, dict):
        raise ConfigError("'sizes' must be an object", source)
    for program, entry in cfg.sizes.items():
        if not isinstance(entry, dict):
            raise ConfigError(f"sizes.{program} must be an object", source)
        for variant, value in entry.items():
            if variant not in (v.value for v in Variant):
                raise ConfigError(f"sizes.{program}: unknown variant '{variant}'", source)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(f"sizes.{program}.{variant} must be a byte count", source)
    return cfg


def load_config(path: Optional[Path] = None, base_dir: Optional[Path] = None) -> ComparisonConfig:
    """Load configuration from a JSON file (or defaults when path is None).

    ``base_dir`` defaults to the directory holding the config file, or the
    current directory without one.
    """
    if path is None:
        return _validated(ComparisonConfig(base_dir=Path(base_dir) if base_dir else Path(".")))

    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError("config file not found", path) from None
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON: {e}", path) from None
    if not isinstance(raw, dict):
        raise ConfigError("top level must be an object", path)

    known = {f.name for f in fields(ComparisonConfig)} - {"base_dir"}
    unknown = sorted(set(raw) - known - {"base_dir"})
    if unknown:
        raise ConfigError(f"unknown keys: {', '.join(unknown)}", path)

    values = {k: v for k, v in raw.items() if k in known}
    if base_dir is not None:
        root = Path(base_dir)
    elif "base_dir" in raw:
        if not isinstance(raw["base_dir"], str):
            raise ConfigError("'base_dir' must be a path string", path)
        root = path.parent / raw["base_dir"]
    else:
        root = path.parent
    try:
        cfg = ComparisonConfig(base_dir=root, **values)
    except TypeError as e:
        raise ConfigError(str(e), path) from None
    return _validated(cfg, path)
