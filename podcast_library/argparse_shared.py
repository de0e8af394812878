import argparse

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_base_parser(description: str = "Local podcast library tools") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_env_file_argument(parser)
    return parser

def add_env_file_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-e", "--env-file", help="Path to a custom .env file", default=None)

def add_dry_run_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-d", "--dry-run", action="store_true", help="Perform a dry run without making changes")

def add_log_level_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-l",
        "--log-level",
        help="Set log level (DEBUG, INFO, WARNING, ERROR); defaults to LOG_LEVEL from the environment",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
    )

def add_file_argument(parser: argparse.ArgumentParser, help_text: str) -> None:
    parser.add_argument("file", help=help_text)
