"""Generation runs: plan the files for one spec, write them, and batch specs."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..config import Config, SpecEntry
from ..shared.errors import ModuleSelectionError, SchemaError
from ..shared.log import get_logger
from ..shared.spec_loader import DEFAULT_CACHE_DIR, UrlCache, load_spec
from .enums import EnumRegistry
from .formatter import detect_formatter, format_files
from .layout import BANNER, COMMON_NAMESPACE, OutputLayout, schema_import_path
from .model import SpecModel
from .operations import OperationEmitter
from .partition import build_module_schema_map, partition, select_modules
from .rendering import ArtifactKind, TemplateId, TemplateRenderer
from .resolver import DependencyGraph
from .ts_types import TypeEmitter
from .writer import ArtifactWriter, WriteStatus
from .zod import ValidatorEmitter

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class GeneratedFile:
    path: str
    content: str


@dataclass(frozen=True)
class GenerationSettings:
    layout: OutputLayout = field(default_factory=OutputLayout)
    selected_modules: tuple[str, ...] = ()
    ignored_modules: tuple[str, ...] = ()
    hook_library: str | None = None
    base_url: str = ""


@dataclass
class GenerationPlan:
    """Files for one spec, in write order, plus what went into them."""

    files: list[GeneratedFile]
    modules: list[str]
    common_schemas: list[str]
    failures: list[str] = field(default_factory=list)

    def file(self, path: str) -> GeneratedFile | None:
        for generated in self.files:
            if generated.path == path:
                return generated
        return None


def _emit_schema(types: TypeEmitter, validators: ValidatorEmitter, name: str, failures: list[str]) -> None:
    """Emit one schema into both files.

    Each emitter runs on its own so a broken schema is marked failed in both,
    and its dependents see ``any`` on both sides.
    """
    errors: list[SchemaError] = []
    for emit in (types.emit_type, validators.emit_validator):
        try:
            emit(name)
        except SchemaError as e:
            errors.append(e)
    if errors:
        logger.warning("Skipping schema %s: %s", name, errors[0])
        failures.append(f"{name}: {errors[0]}")


def _schema_files(
    directory: str,
    types: TypeEmitter,
    validators: ValidatorEmitter,
    renderer: TemplateRenderer,
    layout: OutputLayout,
) -> list[GeneratedFile]:
    common_import = [{"namespace": COMMON_NAMESPACE, "path": schema_import_path(directory, None, layout)}]
    return [
        GeneratedFile(f"{directory}/types.ts", renderer.render(TemplateId.FILE_TYPES, {
            "banner": BANNER,
            "imports": common_import if types.uses_common else [],
            "declarations": [a.content for a in types.artifacts],
        })),
        GeneratedFile(f"{directory}/schemas.ts", renderer.render(TemplateId.FILE_SCHEMAS, {
            "banner": BANNER,
            "imports": common_import if validators.uses_common else [],
            "declarations": [a.content for a in validators.artifacts],
        })),
        GeneratedFile(f"{directory}/index.ts", renderer.render(TemplateId.FILE_INDEX, {"banner": BANNER})),
    ]


def plan_spec(model: SpecModel, settings: GenerationSettings, renderer: TemplateRenderer) -> GenerationPlan:
    """Compute every file a spec generates, without touching disk.

    Each call builds its own dependency graph and enum registry, so specs
    never share naming state.

    Raises:
        ModuleSelectionError: If no module is left to generate.
    """
    layout = settings.layout
    graph = DependencyGraph(model)
    module_map = build_module_schema_map(model, graph)
    modules = select_modules(list(module_map), settings.selected_modules, settings.ignored_modules)
    filtered, common = partition(module_map, modules)
    registry = EnumRegistry()

    files: list[GeneratedFile] = []
    failures: list[str] = []
    common_declarations: set[str] = set()

    if common:
        logger.info("Shared schemas: %s", ", ".join(common))
        types = TypeEmitter(model, registry, renderer)
        validators = ValidatorEmitter(model, registry, renderer)
        for name in graph.topological_order(common):
            _emit_schema(types, validators, name, failures)
        common_declarations = {a.name for a in types.artifacts if a.kind is ArtifactKind.ENUM}
        files.extend(_schema_files(layout.common_dir(), types, validators, renderer, layout))

    for module in modules:
        types = TypeEmitter(
            model, registry, renderer,
            common_schemas=common, common_declarations=common_declarations,
        )
        validators = ValidatorEmitter(
            model, registry, renderer,
            common_schemas=common, common_declarations=common_declarations,
        )
        for name in graph.topological_order(filtered[module]):
            _emit_schema(types, validators, name, failures)

        operations = OperationEmitter(
            model, registry, renderer,
            module=module,
            layout=layout,
            type_emitter=types,
            validator_emitter=validators,
            common_schemas=common,
            hook_library=settings.hook_library,
            base_url=settings.base_url,
        )
        emitted = []
        for descriptor in model.operations_for(module):
            try:
                emitted.append(operations.emit_operation(descriptor))
            except SchemaError as e:
                logger.warning("Skipping %s %s: %s", descriptor.method, descriptor.path, e)
                failures.append(f"{descriptor.method} {descriptor.path}: {e}")

        files.extend(_schema_files(layout.schemas_module_dir(module), types, validators, renderer, layout))
        files.append(GeneratedFile(
            f"{layout.apis_module_dir(module)}/index.ts", operations.api_file(emitted),
        ))
        files.append(GeneratedFile(layout.query_keys_file(module), operations.query_keys_file(emitted)))
        if settings.hook_library is not None:
            hooks_dir = layout.hooks_module_dir(module)
            for op in emitted:
                if op.hook is not None:
                    files.append(GeneratedFile(f"{hooks_dir}/{op.hook_name}.ts", op.hook.content))
            files.append(GeneratedFile(f"{hooks_dir}/index.ts", operations.hooks_index_file(emitted)))
        logger.debug("Module %s: %d schema(s), %d operation(s)", module, len(filtered[module]), len(emitted))

    files.append(GeneratedFile(
        layout.http_client_file(),
        renderer.render(TemplateId.RUNTIME_HTTP_CLIENT, {"banner": BANNER}),
    ))
    return GenerationPlan(files=files, modules=modules, common_schemas=common, failures=failures)


@dataclass
class RunOptions:
    force: bool = False
    backup: bool = False
    dry_run: bool = False
    use_cache: bool = True
    format: bool = True
    fail_fast: bool = False


@dataclass
class SpecRunResult:
    name: str
    written: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.conflicts


def settings_for(config: Config, entry: SpecEntry) -> GenerationSettings:
    modules = entry.modules or config.modules
    apis = entry.apis or config.apis
    return GenerationSettings(
        layout=config.layout_for(entry),
        selected_modules=tuple(modules.selected),
        ignored_modules=tuple(modules.ignore),
        hook_library=config.hooks.library,
        base_url=apis.base_url,
    )


def _resolve_formatter(config: Config) -> str | None:
    if config.formatter == "none":
        return None
    if config.formatter == "auto":
        return detect_formatter(config.base_dir)
    return config.formatter


def run_spec(
    entry: SpecEntry,
    config: Config,
    renderer: TemplateRenderer,
    options: RunOptions | None = None,
) -> SpecRunResult:
    """Load, plan and write one spec.

    Raises:
        SchemaError: If the spec cannot be loaded.
        ModuleSelectionError: If the module selection leaves nothing to generate.
    """
    options = options or RunOptions()
    url_cache = UrlCache(config.base_dir / DEFAULT_CACHE_DIR) if options.use_cache else None
    document = load_spec(entry.path, url_cache=url_cache, base_dir=config.base_dir)
    model = SpecModel.from_dict(document, source=entry.path)
    plan = plan_spec(model, settings_for(config, entry), renderer)

    result = SpecRunResult(name=entry.name, failures=list(plan.failures))
    writer = ArtifactWriter(
        config.base_dir,
        force=options.force,
        backup=options.backup,
        dry_run=options.dry_run,
    )
    for generated in plan.files:
        status = writer.write(generated.path, generated.content)
        if status is WriteStatus.WRITTEN:
            result.written.append(generated.path)
        elif status is WriteStatus.UNCHANGED:
            result.unchanged.append(generated.path)
        else:
            result.conflicts.append(generated.path)
    writer.save_manifest()

    if options.format and not options.dry_run and result.written:
        formatter = _resolve_formatter(config)
        if formatter is not None:
            format_files([config.base_dir / p for p in result.written], formatter, cwd=config.base_dir)
    return result


def run_all(
    config: Config,
    renderer: TemplateRenderer | None = None,
    options: RunOptions | None = None,
) -> list[SpecRunResult]:
    """Run every configured spec in order, each with independent state.

    A failing spec is recorded and the batch continues unless
    ``options.fail_fast`` is set, in which case the error propagates.
    """
    options = options or RunOptions()
    renderer = renderer or TemplateRenderer(config.templates_dir)
    results: list[SpecRunResult] = []
    for entry in config.effective_specs():
        logger.info("Generating %s from %s", entry.name, entry.path)
        try:
            results.append(run_spec(entry, config, renderer, options))
        except (SchemaError, ModuleSelectionError) as e:
            if options.fail_fast:
                raise
            logger.error("Spec %s failed: %s", entry.name, e)
            results.append(SpecRunResult(name=entry.name, error=str(e)))
    return results
