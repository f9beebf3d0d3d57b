#!/usr/bin/env python3
"""
tsgen: TypeScript types, zod schemas and API clients from OpenAPI specs.

Usage:
    python -m tsgen <command> [options]

Commands:
    init        Write a starter tsgen.yaml and the runtime HTTP client
    generate    Generate code for the configured specs
    inspect     Show the modules, schemas and cycles of a spec
    templates   List or eject the built-in templates

Examples:
    python -m tsgen init
    python -m tsgen generate
    python -m tsgen generate --spec openapi.yaml --module users --hooks react-query
    python -m tsgen inspect openapi.json --module users --module products
    python -m tsgen inspect openapi.json --schemas --graph --json
    python -m tsgen templates eject ./tsgen-templates
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from .codegen.layout import BANNER
from .codegen.model import SpecModel
from .codegen.partition import build_module_schema_map, partition, select_modules
from .codegen.rendering import TemplateId, TemplateRenderer, eject_templates, list_templates
from .codegen.resolver import DependencyGraph
from .codegen.runner import RunOptions, run_all
from .codegen.writer import ArtifactWriter
from .config import (
    DEFAULT_CONFIG_NAME,
    HOOK_LIBRARIES,
    Config,
    SpecEntry,
    config_from_dict,
    default_config_text,
    load_config,
)
from .shared.errors import ConfigError, ModuleSelectionError, SchemaError
from .shared.log import configure_logging
from .shared.spec_loader import load_spec


def _load_or_default_config(path: Path, explicit: bool) -> Config:
    if path.exists():
        return load_config(path)
    if explicit:
        raise ConfigError(f"Config file not found: {path}")
    return config_from_dict({}, Path.cwd())


def cmd_generate(args: list[str]) -> int:
    """Generate code for the configured specs."""
    parser = argparse.ArgumentParser(prog="tsgen generate", description="Generate TypeScript from OpenAPI")
    parser.add_argument("--config", type=Path, help=f"Config file (default: {DEFAULT_CONFIG_NAME})")
    parser.add_argument("--spec", help="Spec file or URL, overrides the config")
    parser.add_argument("--module", action="append", default=[], help="Generate only this module (repeatable)")
    parser.add_argument("--hooks", choices=HOOK_LIBRARIES, help="Also generate data-fetching hooks")
    parser.add_argument("--force", action="store_true", help="Overwrite files edited by hand")
    parser.add_argument("--backup", action="store_true", help="Keep a .bak copy of overwritten files")
    parser.add_argument("--dry-run", action="store_true", help="Report what would be written")
    parser.add_argument("--no-format", action="store_true", help="Skip prettier/biome")
    parser.add_argument("--no-cache", action="store_true", help="Always fetch remote specs")
    parser.add_argument("--fail-fast", action="store_true", help="Stop at the first failing spec")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parsed = parser.parse_args(args)

    configure_logging(verbose=parsed.verbose)
    try:
        config = _load_or_default_config(parsed.config or Path(DEFAULT_CONFIG_NAME), parsed.config is not None)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    if parsed.spec:
        config.spec_path = parsed.spec
        config.specs = []
    if parsed.module:
        config.modules.selected = list(parsed.module)
        for entry in config.specs:
            if entry.modules is not None:
                entry.modules.selected = list(parsed.module)
    if parsed.hooks:
        config.hooks.library = parsed.hooks

    if not config.effective_specs():
        print(f"Error: no spec configured (set spec_path in {DEFAULT_CONFIG_NAME} or pass --spec)")
        return 1

    options = RunOptions(
        force=parsed.force,
        backup=parsed.backup,
        dry_run=parsed.dry_run,
        use_cache=not parsed.no_cache,
        format=not parsed.no_format,
        fail_fast=parsed.fail_fast,
    )
    try:
        results = run_all(config, TemplateRenderer(config.templates_dir), options)
    except (SchemaError, ModuleSelectionError) as e:
        print(f"Error: {e}")
        return 1

    exit_code = 0
    for result in results:
        if result.error is not None:
            print(f"  {result.name}: failed: {result.error}")
            exit_code = 1
            continue
        print(
            f"  {result.name}: {len(result.written)} written, "
            f"{len(result.unchanged)} unchanged, {len(result.conflicts)} conflict(s)"
        )
        for path in result.conflicts:
            print(f"    conflict: {path}")
        for failure in result.failures:
            print(f"    skipped: {failure}")
        if result.conflicts:
            exit_code = 1
    if parsed.dry_run:
        print("Dry run, nothing was written.")
    return exit_code


def _inspect_report(
    model: SpecModel,
    requested: list[str],
    include_schemas: bool,
    include_graph: bool,
) -> dict[str, Any]:
    graph = DependencyGraph(model)
    graph.build()
    module_map = build_module_schema_map(model, graph)
    selected: list[str] = []
    common: list[str] = []
    if module_map:
        selected = select_modules(list(module_map), requested)
        _, common = partition(module_map, selected)
    report: dict[str, Any] = {
        "title": model.title,
        "version": model.version,
        "schemas": len(model.schemas),
        "modules": [
            {
                "module": module,
                "operations": len(model.operations_for(module)),
                "schemas": len(module_map.get(module, [])),
            }
            for module in model.modules
        ],
        "cycles": graph.detect_cycles(),
        "selected": selected,
        "common": common,
    }
    if include_schemas:
        report["module_schemas"] = {module: module_map.get(module, []) for module in model.modules}
    if include_graph:
        report["graph"] = {name: graph.direct_dependencies(name, strict=False) for name in model.schemas}
    return report


def _print_report(report: dict[str, Any]) -> None:
    print(f"{report['title'] or 'Untitled'} {report['version']}".rstrip())
    print(f"Schemas: {report['schemas']}")
    print("Modules:")
    for entry in report["modules"]:
        print(f"  {entry['module']:20} {entry['operations']} operation(s), {entry['schemas']} schema(s)")
    if report["cycles"]:
        print("Circular schemas:")
        for cycle in report["cycles"]:
            print(f"  {' -> '.join(cycle + cycle[:1])}")
    if "module_schemas" in report:
        print("Schemas by module:")
        for module, names in report["module_schemas"].items():
            print(f"  {module}:")
            for name in names:
                print(f"    - {name}")
    if "graph" in report:
        print("Dependencies:")
        for name, deps in report["graph"].items():
            print(f"  {name} -> {', '.join(deps) or '(none)'}")
    if report["selected"]:
        print(f"Common for {', '.join(report['selected'])}: {', '.join(report['common']) or '(none)'}")


def cmd_inspect(args: list[str]) -> int:
    """Show what a spec contains."""
    parser = argparse.ArgumentParser(prog="tsgen inspect", description="Inspect an OpenAPI spec")
    parser.add_argument("spec", help="Spec file or URL")
    parser.add_argument("--module", action="append", default=[], help="Preview partitioning for these modules")
    parser.add_argument("--schemas", action="store_true", help="List the schemas each module needs")
    parser.add_argument("--graph", action="store_true", help="Show each schema's direct dependencies")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parsed = parser.parse_args(args)

    try:
        model = SpecModel.from_dict(load_spec(parsed.spec), source=parsed.spec)
        report = _inspect_report(model, parsed.module, parsed.schemas, parsed.graph)
    except (SchemaError, ModuleSelectionError) as e:
        print(f"Error: {e}")
        return 1

    if parsed.json:
        print(json.dumps(report, indent=2))
    else:
        _print_report(report)
    return 0


def cmd_init(args: list[str]) -> int:
    """Write a starter tsgen.yaml and the runtime HTTP client."""
    parser = argparse.ArgumentParser(prog="tsgen init", description="Set up a project for tsgen")
    parser.add_argument("--config", type=Path, default=Path(DEFAULT_CONFIG_NAME), help="Config file to create")
    parsed = parser.parse_args(args)

    config_path: Path = parsed.config
    if config_path.exists():
        print(f"{config_path} already exists, skipping.")
    else:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(default_config_text(), encoding="utf-8")
        print(f"Created {config_path}")

    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    layout = config.layout_for(SpecEntry(name="default", path=""))
    for directory in (layout.schemas_dir, layout.apis_dir):
        (config.base_dir / directory).mkdir(parents=True, exist_ok=True)

    http_client = layout.http_client_file()
    if (config.base_dir / http_client).exists():
        print(f"{http_client} already exists, skipping.")
    else:
        # Recorded in the manifest so the first generate run keeps it
        writer = ArtifactWriter(config.base_dir)
        content = TemplateRenderer(config.templates_dir).render(TemplateId.RUNTIME_HTTP_CLIENT, {"banner": BANNER})
        writer.write(http_client, content)
        writer.save_manifest()
        print(f"Created {http_client}")

    print(f"\nNext: set spec_path in {config_path.name} (or pass --spec) and run 'tsgen generate'.")
    return 0


def cmd_templates(args: list[str]) -> int:
    """List or eject the built-in templates."""
    parser = argparse.ArgumentParser(prog="tsgen templates", description="Manage templates")
    sub = parser.add_subparsers(dest="action", required=True)
    sub.add_parser("list", help="List template ids")
    eject = sub.add_parser("eject", help="Copy the built-in templates for overriding")
    eject.add_argument("destination", type=Path)
    eject.add_argument("--overwrite", action="store_true", help="Replace existing files")
    parsed = parser.parse_args(args)

    if parsed.action == "list":
        for template_id in list_templates():
            print(template_id)
        return 0

    written = eject_templates(parsed.destination, overwrite=parsed.overwrite)
    print(f"Ejected {len(written)} template(s) to {parsed.destination}")
    print(f"Set templates_dir: {parsed.destination} in {DEFAULT_CONFIG_NAME} to use them.")
    return 0


COMMANDS = {
    "init": (cmd_init, "Write a starter tsgen.yaml and the runtime HTTP client"),
    "generate": (cmd_generate, "Generate code for the configured specs"),
    "inspect": (cmd_inspect, "Show the modules, schemas and cycles of a spec"),
    "templates": (cmd_templates, "List or eject the built-in templates"),
}


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0] in ("-h", "--help"):
        print(__doc__)
        print("Available commands:")
        for name, (_, desc) in COMMANDS.items():
            print(f"  {name:12} {desc}")
        print("\nUse '<command> --help' for command-specific options.")
        return 0

    command = argv[0]
    if command not in COMMANDS:
        print(f"Unknown command: {command}")
        print(f"Available commands: {', '.join(COMMANDS.keys())}")
        return 1

    handler, _ = COMMANDS[command]
    return handler(argv[1:])


if __name__ == "__main__":
    sys.exit(main())
