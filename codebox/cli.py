"""codebox command line: start the MCP server and manage registered projects."""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from codebox import __version__
from codebox.logging_config import setup_logging
from codebox.registry import ProjectRegistry
from codebox.settings import get_config_dir, get_setting, load_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="codebox", description="Run commands in Docker containers for registered projects.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("start", help="Start the MCP server on stdio")

    init = sub.add_parser("init", help="Write the project config at the current git root")
    init.add_argument("--image", required=True, help="Docker image used for this project")
    init.add_argument("--force", action="store_true", help="Overwrite an existing configuration")

    project = sub.add_parser("project", help="Manage registered projects")
    project_sub = project.add_subparsers(dest="project_command", required=True)
    add = project_sub.add_parser("add", help="Register a project directory")
    add.add_argument("dirname")
    remove = project_sub.add_parser("remove", help="Unregister a project directory")
    remove.add_argument("dirname")
    project_sub.add_parser("list", help="List registered projects")
    return parser


def _registry(settings: dict, config_dir: Path) -> ProjectRegistry:
    return ProjectRegistry(
        config_dir / get_setting(settings, "registry.file", "projects.json"),
        project_config_dir=get_setting(settings, "project_config.dir", ".codespin"),
        project_config_file=get_setting(settings, "project_config.file", "codebox.json"),
    )


def _run_project_command(args: argparse.Namespace, registry: ProjectRegistry, cwd: Path) -> None:
    if args.project_command == "list":
        projects = registry.list_projects()
        if not projects:
            print("No projects are registered.")
            return
        for project in projects:
            image = registry.docker_image_for(project.path) or "(no image)"
            print(f"{project.path}\t{image}")
        return

    project_path = (cwd / args.dirname).resolve()
    if args.project_command == "add":
        if registry.add_project(project_path):
            print(f"Added project: {project_path}")
        else:
            print(f"Project already in list: {project_path}")
    elif args.project_command == "remove":
        try:
            registry.remove_project(project_path)
        except KeyError:
            raise ValueError(f"Project not found in list: {project_path}") from None
        print(f"Removed project: {project_path}")


def main(argv: list[str] | None = None) -> int:
    load_dotenv(Path.cwd() / ".env")
    args = _build_parser().parse_args(argv)

    config_dir = get_config_dir()
    settings = load_settings(config_dir)
    setup_logging(config_dir, settings)
    registry = _registry(settings, config_dir)
    cwd = Path.cwd()

    try:
        if args.command == "start":
            # Imported here so project management works without the MCP stack loaded
            from codebox.server import serve

            print("Starting Codebox MCP server", file=sys.stderr)
            serve(settings, config_dir)
        elif args.command == "init":
            config_path = registry.init_project(cwd, args.image, force=args.force)
            print(f"Created configuration at {config_path} with Docker image: {args.image}")
        elif args.command == "project":
            _run_project_command(args, registry, cwd)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
