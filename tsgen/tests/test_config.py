import textwrap

import pytest

from tsgen.config import (
    ApisConfig,
    Config,
    ModulesConfig,
    SchemasConfig,
    SpecEntry,
    config_from_dict,
    load_config,
)
from tsgen.shared.errors import ConfigError


class TestConfigFromDict:
    def test_defaults(self, tmp_path):
        config = config_from_dict({}, tmp_path)
        assert config.base_dir == tmp_path
        assert config.spec_path is None
        assert config.effective_specs() == []
        assert config.schemas.output == "src/schemas"
        assert config.apis.output == "src/apis"
        assert config.apis.style == "fetch"
        assert config.hooks.library is None
        assert config.query_keys.output == "src/query-keys"
        assert config.formatter == "auto"
        assert config.templates_dir is None

    def test_full(self, tmp_path):
        config = config_from_dict({
            "spec_path": "openapi.yaml",
            "schemas": {"output": "web/schemas"},
            "apis": {"output": "web/apis", "base_url": "/api"},
            "modules": {"ignore": "admin", "selected": ["users", "orders"]},
            "hooks": {"library": "swr", "output": "web/hooks"},
            "query_keys": {"output": "web/keys"},
            "templates_dir": "templates",
            "formatter": "biome",
        }, tmp_path)
        assert config.spec_path == "openapi.yaml"
        assert config.schemas == SchemasConfig(output="web/schemas")
        assert config.apis == ApisConfig(output="web/apis", base_url="/api")
        assert config.modules == ModulesConfig(ignore=["admin"], selected=["users", "orders"])
        assert config.hooks.library == "swr"
        assert config.hooks.output == "web/hooks"
        assert config.query_keys.output == "web/keys"
        assert config.templates_dir == tmp_path / "templates"
        assert config.formatter == "biome"

    @pytest.mark.parametrize(
        "data,field",
        [
            ({"spec_path": "a.json", "specs": [{"name": "a", "path": "a.json"}]}, "specs"),
            ({"formatter": "black"}, "formatter"),
            ({"hooks": {"library": "apollo"}}, "hooks.library"),
            ({"apis": {"style": "axios"}}, "apis.style"),
            ({"specs": {"name": "a"}}, "specs"),
            ({"specs": [{"name": "", "path": "a.json"}]}, "specs[0].name"),
            ({"specs": [{"name": "a"}]}, "specs[0].path"),
            ({"specs": ["a.json"]}, "specs[0]"),
            ({"schemas": "src"}, "schemas"),
            ({"specs": [{"name": "a", "path": "a.json", "apis": {"style": "x"}}]}, "specs[0].apis.style"),
        ],
    )
    def test_invalid(self, tmp_path, data, field):
        with pytest.raises(ConfigError) as exc_info:
            config_from_dict(data, tmp_path)
        assert exc_info.value.field == field

    def test_duplicate_spec_names(self, tmp_path):
        with pytest.raises(ConfigError, match="Duplicate spec name 'api'"):
            config_from_dict({"specs": [
                {"name": "api", "path": "a.json"},
                {"name": "api", "path": "b.json"},
            ]}, tmp_path)

    def test_root_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigError):
            config_from_dict(["spec_path"], tmp_path)


class TestEffectiveSpecs:
    def test_single_spec(self, tmp_path):
        config = config_from_dict({"spec_path": "openapi.json"}, tmp_path)
        (entry,) = config.effective_specs()
        assert entry.name == "default"
        assert entry.path == "openapi.json"
        assert entry.schemas is config.schemas
        assert not config.is_multi_spec
        assert config.layout_for(entry).spec_name is None

    def test_multi_spec_overrides(self, tmp_path):
        config = config_from_dict({
            "apis": {"base_url": "/global"},
            "specs": [
                {"name": "billing", "path": "billing.json", "apis": {"base_url": "/billing"}},
                {"name": "auth", "path": "auth.json", "modules": {"ignore": ["internal"]}},
            ],
        }, tmp_path)
        billing, auth = config.effective_specs()
        assert billing.apis.base_url == "/billing"
        assert auth.apis.base_url == "/global"
        assert auth.modules.ignore == ["internal"]
        assert billing.modules is config.modules
        assert config.is_multi_spec
        assert config.layout_for(billing).spec_name == "billing"
        assert config.layout_for(auth).common_dir() == "src/schemas/auth/common"

    def test_single_entry_list_is_not_nested(self, tmp_path):
        config = config_from_dict({"specs": [{"name": "only", "path": "only.json"}]}, tmp_path)
        (entry,) = config.effective_specs()
        assert config.layout_for(entry).spec_name is None

    def test_entry_schemas_override_layout(self):
        config = Config()
        entry = SpecEntry(name="x", path="x.json", schemas=SchemasConfig(output="gen/types"))
        assert config.layout_for(entry).schemas_dir == "gen/types"


class TestLoadConfig:
    def test_load(self, tmp_path):
        path = tmp_path / "tsgen.yaml"
        path.write_text(textwrap.dedent("""\
            spec_path: https://example.com/openapi.json
            hooks:
              library: react-query
            formatter: none
        """))
        config = load_config(path)
        assert config.base_dir == tmp_path.resolve()
        assert config.spec_path == "https://example.com/openapi.json"
        assert config.hooks.library == "react-query"
        assert config.formatter == "none"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "tsgen.yaml"
        path.write_text("")
        assert load_config(path).effective_specs() == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "tsgen.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "tsgen.yaml"
        path.write_text("spec_path: [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to parse tsgen.yaml"):
            load_config(path)
