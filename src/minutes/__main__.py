import argparse
import asyncio
import os
from pathlib import Path

from minutes.config import RelayConfig, load_config_from_file
from minutes.logs import get_logger, setup_logging


def get_env_or_default(env_var, default, var_type: type = str):
  """Get environment variable with type conversion and default fallback."""
  value = os.getenv(env_var)
  if value is None:
    return default

  if var_type is bool:
    return value.lower() in ("true", "1", "yes", "on")
  elif var_type is int:
    try:
      return int(value)
    except ValueError:
      return default
  else:
    return value


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="minutes-relay",
    description="Relay recorded audio to a transcription provider and report the results.",
  )
  parser.add_argument(
    "--host",
    type=str,
    default=get_env_or_default("MINUTES_HOST", None),
    help="Interface to bind. Overrides server.host. (Env: MINUTES_HOST)",
  )
  parser.add_argument(
    "--port",
    "-p",
    type=int,
    default=get_env_or_default("SOCKET_PORT", None, int),
    help="Websocket port. Overrides server.port. (Env: SOCKET_PORT)",
  )
  parser.add_argument(
    "--config",
    type=str,
    default=get_env_or_default("MINUTES_CONFIG", None),
    help="Path to the YAML configuration file. (Env: MINUTES_CONFIG)",
  )
  parser.add_argument(
    "--json_logs",
    action="store_true",
    default=get_env_or_default("JSON_LOGS", False, bool),
    help="Output logs in JSON format. (Env: JSON_LOGS)",
  )
  parser.add_argument(
    "--correlation_id",
    type=str,
    default=get_env_or_default("CORRELATION_ID", None),
    help="Correlation ID for log tracing. (Env: CORRELATION_ID)",
  )
  return parser


def load_config(args: argparse.Namespace) -> RelayConfig:
  """Load the configuration file if one was given, then apply command line overrides."""
  if args.config:
    config = load_config_from_file(Path(args.config))
  else:
    config = RelayConfig()
    config.pretty_print()

  overrides = {}
  if args.host is not None:
    overrides["host"] = args.host
  if args.port is not None:
    overrides["port"] = args.port
  if overrides:
    config = config.model_copy(update={"server": config.server.model_copy(update=overrides)})
  return config


async def main(argv: list[str] | None = None) -> None:
  parser = build_parser()
  args = parser.parse_args(argv)

  log_level = os.getenv("LOG_LEVEL", "INFO").upper()
  setup_logging(level=log_level, json_output=args.json_logs, correlation_id=args.correlation_id)
  logger = get_logger("main")

  try:
    config = load_config(args)
  except ValueError as e:
    logger.error("Configuration validation failed", error=str(e), config_path=args.config)
    parser.exit(2, "Invalid configuration. See the log above for details.\n")

  logger.info(
    "Starting Minutes relay",
    host=config.server.host,
    port=config.server.port,
    provider=config.provider.kind,
  )

  from minutes.server import RelayServer

  server = RelayServer(config)
  await server.run()


def cli() -> None:
  try:
    asyncio.run(main())
  except KeyboardInterrupt:
    pass


if __name__ == "__main__":
  cli()
