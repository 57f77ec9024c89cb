"""Configuration: argument parser, config file loader, and UpdaterConfig assembly.

Precedence for every setting: explicit command-line flag, then environment
variable, then config file, then the parser default.
"""

from __future__ import annotations

import argparse
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from submodule_updater.models import UpdaterConfig

try:
    import tomllib
except ModuleNotFoundError:
    try:
        import tomli as tomllib  # type: ignore[no-redef]
    except ImportError:
        tomllib = None  # type: ignore[assignment]

CONFIG_FILE_NAME = '.submodule-updater.toml'

# UpdaterConfig field -> environment variable
ENVIRONMENT_VARIABLES = {
    'token': 'GITHUB_TOKEN',
    'owner': 'GITHUB_OWNER',
    'repo': 'GITHUB_REPO',
    'branch': 'REPO_BRANCH',
    'repo_path': 'REPO_PATH',
    'clone_url': 'REPO_CLONE_URL',
    'github_host': 'GITHUB_HOST',
    'api_url': 'GITHUB_API_URL',
    'git_user_name': 'GIT_USER_NAME',
    'git_user_email': 'GIT_USER_EMAIL',
    'interval_minutes': 'INTERVAL_MINUTES',
    'run_once': 'RUN_ONCE',
}

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}


def create_argument_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser with all submodule-updater flags."""
    # Lazy import to avoid circular dependency with __init__.py
    from submodule_updater import __version__

    parser = argparse.ArgumentParser(
        description="Keep git submodules pinned to the latest commit of their tracked branch",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --owner acme --repo platform --once       # One run in a scratch clone
  %(prog)s --repo-path ~/src/platform --once         # Use an existing checkout
  %(prog)s --owner acme --repo platform --interval 30
  %(prog)s --owner acme --repo platform --dry-run --once

Environment:
  GITHUB_TOKEN, GITHUB_OWNER, GITHUB_REPO, REPO_BRANCH, REPO_PATH,
  INTERVAL_MINUTES, RUN_ONCE, GIT_USER_NAME, GIT_USER_EMAIL
        """
    )

    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--owner', default='',
                       help='Owner of the parent repository')
    parser.add_argument('--repo', default='',
                       help='Name of the parent repository')
    parser.add_argument('--branch', default='main',
                       help='Branch of the parent repository to update (default: main)')
    parser.add_argument('--repo-path', dest='repo_path', default=None,
                       help='Existing checkout (or empty directory to clone into); default: scratch clone')
    parser.add_argument('--clone-url', dest='clone_url', default=None,
                       help='Clone from this URL instead of the hosted owner/repo')
    parser.add_argument('--remote', dest='remote_name', default='origin',
                       help='Remote to push to (default: origin)')
    parser.add_argument('--github-host', dest='github_host', default='github.com',
                       help='Git host submodule URLs are matched against (default: github.com)')
    parser.add_argument('--api-url', dest='api_url', default='https://api.github.com',
                       help='GitHub API base URL')
    parser.add_argument('--git-user-name', dest='git_user_name', default=None,
                       help='Commit author name')
    parser.add_argument('--git-user-email', dest='git_user_email', default=None,
                       help='Commit author email')
    parser.add_argument('--no-sync', dest='skip_sync', action='store_true',
                       help='Do not merge the remote branch before pushing')
    parser.add_argument('--no-push', dest='skip_push', action='store_true',
                       help='Commit locally but do not push')
    parser.add_argument('--force-push', dest='force_push', action='store_true',
                       help='Force push, overwriting remote history')
    parser.add_argument('--dry-run', dest='dry_run', action='store_true',
                       help='Only report which submodules would be updated')
    parser.add_argument('--interval', dest='interval_minutes', type=int, default=15,
                       help='Minutes between runs (default: 15)')
    parser.add_argument('--once', dest='run_once', action='store_true',
                       help='Run a single update and exit')
    parser.add_argument('--clone-depth', dest='clone_depth', type=int, default=1,
                       help='Clone depth for scratch clones (default: 1, 0=full history)')
    parser.add_argument('--git-timeout', dest='git_timeout', type=float, default=300,
                       help='Seconds before a network git command is killed (default: 300)')
    parser.add_argument('--api-timeout', dest='api_timeout', type=float, default=30,
                       help='Seconds before a GitHub API call times out (default: 30)')
    parser.add_argument('--verbose', action='store_true',
                       help='Verbose output')
    parser.add_argument('--json', dest='json_output', action='store_true',
                       help='Output results as JSON (suppresses normal output)')
    parser.add_argument('--config', type=str, default=None,
                       help=f'Path to config file (default: {CONFIG_FILE_NAME} in current dir or home)')

    return parser


def load_config_file(search_dir: Path, config_path: str | None = None) -> dict[str, Any]:
    """Load the TOML config file from an explicit path, search dir, or home dir.

    Returns empty dict if not found or tomllib is unavailable.
    """
    candidates = [Path(config_path)] if config_path else [search_dir / CONFIG_FILE_NAME, Path.home() / CONFIG_FILE_NAME]
    for path in candidates:
        if path.is_file():
            if tomllib is None:
                print(f"Warning: Found {path} but tomllib/tomli not available (Python 3.11+ or pip install tomli). Ignoring.")
                return {}
            try:
                with open(path, 'rb') as f:
                    return tomllib.load(f)
            except Exception as e:
                print(f"Warning: Failed to parse {path}: {e}")
                return {}
    if config_path:
        print(f"Warning: Config file '{config_path}' not found. Ignoring.")
    return {}


def explicit_options(parser: argparse.ArgumentParser, argv: Sequence[str]) -> set[str]:
    """Destinations of the options actually given on the command line."""
    given = {arg.split('=', 1)[0] for arg in argv if arg.startswith('--')}
    explicit = set()
    for action in parser._actions:
        if action.dest in ('help', 'version'):
            continue
        if any(opt in given for opt in action.option_strings):
            explicit.add(action.dest)
    return explicit


def build_config(
    args: argparse.Namespace,
    file_config: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    cli_explicit: set[str] | None = None,
) -> UpdaterConfig:
    """Merge CLI, environment, config file and defaults into an UpdaterConfig."""
    file_config = file_config or {}
    environ = os.environ if environ is None else environ
    cli_explicit = cli_explicit or set()

    values: dict[str, Any] = {}
    for name, declared in UpdaterConfig.__dataclass_fields__.items():
        env_var = ENVIRONMENT_VARIABLES.get(name)
        if name in cli_explicit:
            values[name] = getattr(args, name)
        elif env_var and environ.get(env_var):
            values[name] = _coerce(env_var, environ[env_var], declared.default)
        elif name in file_config:
            values[name] = file_config[name]
        elif hasattr(args, name):
            values[name] = getattr(args, name)

    if values.get('repo_path'):
        values['repo_path'] = Path(values['repo_path']).expanduser()
    else:
        values['repo_path'] = None
    return UpdaterConfig(**values)


def validate_config(config: UpdaterConfig) -> list[str]:
    """Return human-readable problems with the configuration (empty if valid)."""
    problems = []
    if config.repo_path is None and not config.clone_url and not (config.owner and config.repo):
        problems.append("GITHUB_OWNER and GITHUB_REPO (or --owner/--repo) are required "
                        "unless --repo-path or --clone-url is given")
    if config.interval_minutes <= 0:
        problems.append("The update interval must be a positive number of minutes")
    if config.clone_depth < 0:
        problems.append("The clone depth cannot be negative")
    return problems


def _coerce(env_var: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.strip().lower() in _TRUE_VALUES
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"{env_var} must be an integer, got {raw!r}") from None
    return raw
