"""Configuration loading for tsgen (tsgen.yaml)."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Final

import yaml

from .codegen.layout import OutputLayout
from .shared.errors import ConfigError

DEFAULT_CONFIG_NAME: Final[str] = "tsgen.yaml"

API_STYLES: Final[tuple[str, ...]] = ("fetch",)
HOOK_LIBRARIES: Final[tuple[str, ...]] = ("react-query", "swr")
FORMATTER_CHOICES: Final[tuple[str, ...]] = ("auto", "prettier", "biome", "none")


@dataclass
class SchemasConfig:
    output: str = "src/schemas"


@dataclass
class ApisConfig:
    output: str = "src/apis"
    style: str = "fetch"
    base_url: str = ""


@dataclass
class ModulesConfig:
    ignore: list[str] = field(default_factory=list)
    selected: list[str] = field(default_factory=list)


@dataclass
class HooksConfig:
    library: str | None = None
    output: str = "src/hooks"


@dataclass
class QueryKeysConfig:
    output: str = "src/query-keys"


@dataclass
class SpecEntry:
    """One input spec; per-spec blocks override the global ones when set."""

    name: str
    path: str
    schemas: SchemasConfig | None = None
    apis: ApisConfig | None = None
    modules: ModulesConfig | None = None


@dataclass
class Config:
    """Settings from tsgen.yaml.

    Output paths are relative to ``base_dir``, the directory holding the
    config file.
    """

    base_dir: Path = field(default_factory=Path.cwd)
    spec_path: str | None = None
    specs: list[SpecEntry] = field(default_factory=list)
    schemas: SchemasConfig = field(default_factory=SchemasConfig)
    apis: ApisConfig = field(default_factory=ApisConfig)
    modules: ModulesConfig = field(default_factory=ModulesConfig)
    hooks: HooksConfig = field(default_factory=HooksConfig)
    query_keys: QueryKeysConfig = field(default_factory=QueryKeysConfig)
    templates_dir: Path | None = None
    formatter: str = "auto"

    def effective_specs(self) -> list[SpecEntry]:
        """The specs to generate, with global blocks filled in."""
        if self.specs:
            return [
                replace(
                    entry,
                    schemas=entry.schemas or self.schemas,
                    apis=entry.apis or self.apis,
                    modules=entry.modules or self.modules,
                )
                for entry in self.specs
            ]
        if self.spec_path:
            return [SpecEntry(
                name="default",
                path=self.spec_path,
                schemas=self.schemas,
                apis=self.apis,
                modules=self.modules,
            )]
        return []

    @property
    def is_multi_spec(self) -> bool:
        return len(self.specs) >= 2

    def layout_for(self, entry: SpecEntry) -> OutputLayout:
        schemas = entry.schemas or self.schemas
        apis = entry.apis or self.apis
        return OutputLayout(
            schemas_dir=schemas.output,
            apis_dir=apis.output,
            hooks_dir=self.hooks.output,
            query_keys_dir=self.query_keys.output,
            spec_name=entry.name if self.is_multi_spec else None,
        )


def default_config_text() -> str:
    """Starter tsgen.yaml with every key at its default."""
    data = {
        "spec_path": None,
        "schemas": {"output": SchemasConfig.output},
        "apis": {"output": ApisConfig.output, "style": ApisConfig.style, "base_url": ApisConfig.base_url},
        "modules": {"ignore": [], "selected": []},
        "hooks": {"library": None, "output": HooksConfig.output},
        "query_keys": {"output": QueryKeysConfig.output},
        "formatter": "auto",
    }
    return yaml.safe_dump(data, sort_keys=False)


def load_config(path: Path) -> Config:
    """Load configuration from a YAML file.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to parse {path.name}: {e}") from e
    if data is None:
        data = {}
    return config_from_dict(data, path.parent.resolve())


def config_from_dict(data: Any, base_dir: Path) -> Config:
    """Build and validate a Config from parsed YAML.

    Raises:
        ConfigError: On unknown choices, conflicting keys or duplicate spec names.
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    spec_path = _as_str(data.get("spec_path"))
    raw_specs = data.get("specs")
    if spec_path and raw_specs:
        raise ConfigError("Use either 'spec_path' or 'specs', not both", "specs")

    templates_dir = _as_str(data.get("templates_dir"))
    formatter = _as_str(data.get("formatter")) or "auto"
    if formatter not in FORMATTER_CHOICES:
        raise ConfigError(f"Must be one of {', '.join(FORMATTER_CHOICES)}", "formatter")

    hooks_data = _as_dict(data.get("hooks"), "hooks")
    hooks = HooksConfig(
        library=_as_str(hooks_data.get("library")),
        output=_as_str(hooks_data.get("output")) or HooksConfig.output,
    )
    if hooks.library is not None and hooks.library not in HOOK_LIBRARIES:
        raise ConfigError(f"Must be one of {', '.join(HOOK_LIBRARIES)}", "hooks.library")

    query_keys_data = _as_dict(data.get("query_keys"), "query_keys")

    config = Config(
        base_dir=base_dir,
        spec_path=spec_path,
        specs=_parse_specs(raw_specs),
        schemas=_parse_schemas(data.get("schemas"), "schemas") or SchemasConfig(),
        apis=_parse_apis(data.get("apis"), "apis") or ApisConfig(),
        modules=_parse_modules(data.get("modules"), "modules") or ModulesConfig(),
        hooks=hooks,
        query_keys=QueryKeysConfig(
            output=_as_str(query_keys_data.get("output")) or QueryKeysConfig.output,
        ),
        templates_dir=base_dir / templates_dir if templates_dir else None,
        formatter=formatter,
    )
    return config


def _parse_specs(raw: Any) -> list[SpecEntry]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("Must be a list of {name, path} entries", "specs")
    entries: list[SpecEntry] = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        where = f"specs[{index}]"
        item = _as_dict(item, where)
        name = _as_str(item.get("name"))
        path = _as_str(item.get("path"))
        if not name:
            raise ConfigError("Spec name must not be empty", f"{where}.name")
        if not path:
            raise ConfigError("Spec path must not be empty", f"{where}.path")
        if name in seen:
            raise ConfigError(f"Duplicate spec name '{name}'", f"{where}.name")
        seen.add(name)
        entries.append(SpecEntry(
            name=name,
            path=path,
            schemas=_parse_schemas(item.get("schemas"), f"{where}.schemas"),
            apis=_parse_apis(item.get("apis"), f"{where}.apis"),
            modules=_parse_modules(item.get("modules"), f"{where}.modules"),
        ))
    return entries


def _parse_schemas(raw: Any, where: str) -> SchemasConfig | None:
    if raw is None:
        return None
    data = _as_dict(raw, where)
    return SchemasConfig(output=_as_str(data.get("output")) or SchemasConfig.output)


def _parse_apis(raw: Any, where: str) -> ApisConfig | None:
    if raw is None:
        return None
    data = _as_dict(raw, where)
    apis = ApisConfig(
        output=_as_str(data.get("output")) or ApisConfig.output,
        style=_as_str(data.get("style")) or ApisConfig.style,
        base_url=_as_str(data.get("base_url")) or "",
    )
    if apis.style not in API_STYLES:
        raise ConfigError(f"Unsupported API style '{apis.style}'", f"{where}.style")
    return apis


def _parse_modules(raw: Any, where: str) -> ModulesConfig | None:
    if raw is None:
        return None
    data = _as_dict(raw, where)
    return ModulesConfig(
        ignore=_as_str_list(data.get("ignore")),
        selected=_as_str_list(data.get("selected")),
    )


def _as_dict(value: Any, where: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("Must be a mapping", where)
    return value


def _as_str(value: Any) -> str | None:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []
