"""Template rendering for generated TypeScript."""

from __future__ import annotations

import json
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Final, Mapping

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, StrictUndefined, Template

from ..shared.log import get_logger

logger = get_logger(__name__)

BUILTIN_TEMPLATES_DIR: Final[Path] = Path(__file__).parent / "templates"
TEMPLATE_SUFFIX: Final[str] = ".ts.j2"


class TemplateId(str, Enum):
    TYPE_INTERFACE = "type-interface"
    TYPE_ENUM = "type-enum"
    TYPE_ALIAS = "type-alias"
    ZOD_SCHEMA = "zod-schema"
    ZOD_ENUM = "zod-enum"
    API_CLIENT_FETCH = "api-client-fetch"
    HOOK_REACT_QUERY_QUERY = "hooks/react-query-query"
    HOOK_REACT_QUERY_MUTATION = "hooks/react-query-mutation"
    HOOK_SWR_QUERY = "hooks/swr-query"
    HOOK_SWR_MUTATION = "hooks/swr-mutation"
    QUERY_KEYS = "hooks/query-keys"
    RUNTIME_HTTP_CLIENT = "runtime/http-client"
    FILE_TYPES = "files/types"
    FILE_SCHEMAS = "files/schemas"
    FILE_INDEX = "files/index"
    FILE_API = "files/api"
    FILE_HOOKS_INDEX = "files/hooks-index"

    @property
    def filename(self) -> str:
        return f"{self.value}{TEMPLATE_SUFFIX}"


def json_literal(value: Any) -> str:
    """Render a value as a JSON/TypeScript literal."""
    return json.dumps(value, ensure_ascii=False)


def doc_comment(value: str) -> str:
    """Make text safe to place inside a /** */ block."""
    return " ".join(value.replace("*/", "*\\/").split())


class TemplateRenderer:
    """Jinja2 environment with user overrides layered over the built-in templates.

    Templates are compiled once at construction.
    """

    def __init__(self, override_dir: Path | None = None) -> None:
        loaders = []
        if override_dir is not None:
            if override_dir.is_dir():
                loaders.append(FileSystemLoader(override_dir))
            else:
                logger.warning("Template directory %s does not exist, using built-ins", override_dir)
        loaders.append(FileSystemLoader(BUILTIN_TEMPLATES_DIR))

        self.override_dir = override_dir
        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
            auto_reload=False,
        )
        self.env.filters["json"] = json_literal
        self.env.filters["comment"] = doc_comment
        self._templates: dict[TemplateId, Template] = {
            template_id: self.env.get_template(template_id.filename)
            for template_id in TemplateId
        }

    def render(self, template_id: TemplateId | str, context: Mapping[str, Any]) -> str:
        """Render one template with a flat context record."""
        return self._templates[TemplateId(template_id)].render(**context)


def list_templates() -> list[str]:
    return [template_id.value for template_id in TemplateId]


def eject_templates(destination: Path, *, overwrite: bool = False) -> list[Path]:
    """Copy the built-in templates into a directory so they can be overridden.

    Returns:
        The files that were written.
    """
    written: list[Path] = []
    for template_id in TemplateId:
        source = BUILTIN_TEMPLATES_DIR / template_id.filename
        target = destination / template_id.filename
        if target.exists() and not overwrite:
            logger.info("Keeping existing template %s", target)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        written.append(target)
    return written


class ArtifactKind(str, Enum):
    TYPE = "type"
    ENUM = "enum"
    VALIDATOR = "validator"
    FUNCTION = "function"
    HOOK = "hook"


@dataclass(frozen=True, slots=True)
class GeneratedArtifact:
    """One rendered declaration, opaque to everything but the file assembler."""

    name: str
    content: str
    kind: ArtifactKind = ArtifactKind.TYPE
