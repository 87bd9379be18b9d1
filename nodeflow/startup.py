"""Command line interface for the nodeflow service."""

import sys
import argparse

from pydantic import ValidationError

from .config import (
    AppConfig,
    LogLevel,
    StoreBackend,
    load_config,
    get_development_config,
    get_production_config,
    get_testing_config,
    validate_config
)
from .core.exceptions import WorkflowEngineError
from .core.execution_coordinator import ExecutionCoordinator
from .core.executor_registry import create_default_registry
from .core.logging import get_logger, setup_logging
from .models.core import Workflow


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="nodeflow",
        description="nodeflow - workflow automation service"
    )

    # Server configuration
    parser.add_argument("--host", help="Host to bind the server to")
    parser.add_argument("--port", type=int, help="Port to bind the server to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")

    # Environment configuration
    parser.add_argument(
        "--env",
        choices=["development", "production", "testing"],
        help="Environment configuration preset"
    )
    parser.add_argument("--config", help="Path to a .env configuration file")

    parser.add_argument(
        "--store",
        choices=[backend.value for backend in StoreBackend],
        help="Workflow store backend"
    )
    parser.add_argument("--database-url", help="Database connection URL")
    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        help="Logging level"
    )
    parser.add_argument("--log-file", help="Path to log file")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument("--max-parallel-nodes", type=int, help="Worker threads per execution")

    parser.add_argument(
        "--run",
        metavar="FILE",
        help="Execute the workflow in a JSON file once, print the result and exit"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("serve", help="Run the HTTP and WebSocket server (default)")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command", help="Config commands")
    config_subparsers.add_parser("show", help="Show current configuration")
    config_subparsers.add_parser("validate", help="Validate configuration")

    return parser


def load_configuration(args: argparse.Namespace) -> AppConfig:
    """Load configuration based on command line arguments."""
    if args.env == "development":
        config = get_development_config()
    elif args.env == "production":
        config = get_production_config()
    elif args.env == "testing":
        config = get_testing_config()
    else:
        config = load_config(args.config)

    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.reload:
        overrides["reload"] = True
    if args.store:
        overrides["store_backend"] = args.store
    if args.database_url:
        overrides["database_url"] = args.database_url
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_file:
        overrides["log_file"] = args.log_file
    if args.debug:
        overrides["debug"] = True
    if args.max_parallel_nodes:
        overrides["max_parallel_nodes"] = args.max_parallel_nodes

    # Re-validate so overrides go through the same field validators
    return AppConfig.model_validate({**config.model_dump(), **overrides})


def run_server(config: AppConfig):
    """Run the HTTP server."""
    import uvicorn

    if config.reload:
        uvicorn.run("nodeflow.main:app", **config.get_uvicorn_config())
    else:
        from .factory import create_app

        uvicorn.run(create_app(config), **config.get_uvicorn_config())


def run_workflow_file(path: str, config: AppConfig) -> int:
    """Execute a workflow definition file once and print the result as JSON."""
    logger = get_logger(__name__)

    with open(path, "r", encoding="utf-8") as f:
        workflow = Workflow.model_validate_json(f.read())

    coordinator = ExecutionCoordinator(
        registry=create_default_registry(timer_max_interval=config.timer_max_interval),
        max_parallel_nodes=config.max_parallel_nodes
    )
    result = coordinator.execute(workflow)
    logger.info(f"Workflow {workflow.id or path} finished with status {result.status.value}")

    print(result.model_dump_json(indent=2))
    return 0 if not result.errors else 1


def show_configuration(config: AppConfig):
    """Show current configuration."""
    print("Current Configuration:")
    for key, value in config.model_dump(mode="json").items():
        print(f"  {key}: {value}")


def validate_configuration_command(config: AppConfig):
    """Validate configuration and show results."""
    try:
        validate_config(config)
        print("Configuration validation: PASSED")
    except WorkflowEngineError as e:
        print("Configuration validation: FAILED")
        print(f"Error: {e.message}")
        sys.exit(1)


def main(argv=None):
    """Main entry point for the command line interface."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = load_configuration(args)

        if args.run:
            # stdout carries the result JSON
            setup_logging(
                level=config.log_level.value,
                log_file=config.log_file,
                structured=config.log_structured,
                stream=sys.stderr
            )
            sys.exit(run_workflow_file(args.run, config))

        if args.command == "config":
            if args.config_command == "show":
                show_configuration(config)
            elif args.config_command == "validate":
                validate_configuration_command(config)
            else:
                print("Configuration command required. Use --help for options.")
                sys.exit(1)
            return

        validate_config(config)
        run_server(config)

    except (WorkflowEngineError, ValidationError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
