from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

from workout_batch.collaborators.directory import StaticDirectory
from workout_batch.collaborators.skills import StaticSkillProvider
from workout_batch.exceptions import UnsupportedFormatError
from workout_batch.store.base import Store

T = TypeVar("T")

if TYPE_CHECKING:
    from workout_batch.formats.base import FormatAdapter


class _Registry(Generic[T]):
    """Lazily-populated factory registry.

    Each backend module registers itself via :meth:`register`.
    :meth:`build` resolves a provider name to a factory, calling
    ``factory.from_config(config)`` if available, otherwise
    ``factory(**config)``.
    """

    unknown_error: type[Exception] = ValueError

    def __init__(self, label: str) -> None:
        self._label = label
        self._factories: dict[str, type[T]] = {}
        self._defaults_loaded = False

    def register(self, name: str, cls: type[T]) -> None:
        self._factories[name] = cls

    def names(self) -> list[str]:
        self._ensure_defaults()
        return list(self._factories)

    def build(self, provider: str, config: dict[str, Any] | None = None) -> T:
        self._ensure_defaults()
        factory = self._factories.get(provider)
        if factory is None:
            raise self.unknown_error(
                f"Unknown {self._label} provider '{provider}'. "
                f"Available: {list(self._factories)}"
            )
        config = config or {}
        if hasattr(factory, "from_config"):
            return factory.from_config(config)  # type: ignore[return-value]
        return factory(**config)  # type: ignore[return-value]

    def _ensure_defaults(self) -> None:
        if not self._defaults_loaded:
            self._load_defaults()
            self._defaults_loaded = True

    def _load_defaults(self) -> None:
        """Override point: subclasses populate built-in factories here."""


class _StoreRegistry(_Registry[Store]):
    def _load_defaults(self) -> None:
        from workout_batch.store.memory import InMemoryStore
        from workout_batch.store.postgres import PostgresStore

        self.register("memory", InMemoryStore)
        self.register("postgres", PostgresStore)


class _FormatRegistry(_Registry["FormatAdapter"]):
    """``pdf`` is a known file format but has no adapter registered."""

    unknown_error = UnsupportedFormatError

    def _load_defaults(self) -> None:
        from workout_batch.formats.json_format import JsonFormat
        from workout_batch.formats.tabular import CsvFormat, ExcelFormat

        self.register("json", JsonFormat)
        self.register("csv", CsvFormat)
        self.register("excel", ExcelFormat)


# Singleton instances
store_registry = _StoreRegistry("store")
format_registry = _FormatRegistry("format")


def parse_config(
    config: dict[str, Any],
) -> tuple[Store, StaticDirectory, StaticSkillProvider]:
    """Parse a user config dict and return (store, directory, skills).

    Expected shape::

        {
            "store": {"provider": "memory", "config": {}},
            "directory": {"teams": {"t1": ["p1", "p2"]}, "groups": {}},
            "skills": {"p1": 7.5, "p2": 6.0},
            "snapshots": {"retention_hours": 24},
        }

    Every section is optional; the store defaults to in-memory.
    ``snapshots`` is read by :meth:`BatchOrchestrator.from_config`.
    """
    store_cfg = config.get("store") or {}
    directory_cfg = config.get("directory") or {}

    store = store_registry.build(
        store_cfg.get("provider", "memory"),
        store_cfg.get("config", {}),
    )
    directory = StaticDirectory(
        teams=directory_cfg.get("teams"),
        groups=directory_cfg.get("groups"),
    )
    skills = StaticSkillProvider(config.get("skills"))
    return store, directory, skills
