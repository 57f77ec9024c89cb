"""
submodule-updater: keeps git submodules on the latest commit of their branch

Reads the parent repository's .gitmodules, compares every submodule's
recorded commit with the tip of its tracked branch on GitHub, commits the
updates and pushes them, once or on a schedule.
"""

from colorama import init as colorama_init

colorama_init(autoreset=True)

__version__ = "1.0.0"

# Re-export public API so `from submodule_updater import X` keeps working.
from submodule_updater.cli import main  # noqa: E402
from submodule_updater.config import (  # noqa: E402
    build_config,
    create_argument_parser,
    load_config_file,
    validate_config,
)
from submodule_updater.engine import ReconciliationEngine  # noqa: E402
from submodule_updater.errors import (  # noqa: E402
    CommitFailed,
    CommitReadFailed,
    ManifestUnreadable,
    ProvisionFailed,
    PushFailed,
    RemoteLookupFailed,
    RepositoryNotFound,
    RunCancelled,
    RunInProgress,
    SubmoduleNotFound,
    SyncFailed,
    UpdateFailed,
    UpdaterError,
)
from submodule_updater.github import GitHubCommitResolver, parse_repository_url  # noqa: E402
from submodule_updater.manifest import GitmodulesReader  # noqa: E402
from submodule_updater.models import (  # noqa: E402
    DEFAULT_IDENTITY,
    UNKNOWN_COMMIT,
    GitErrorKind,
    GitIdentity,
    PushResult,
    RemoteRepository,
    RepositoryHandle,
    RunPhase,
    RunReport,
    SubmoduleRecord,
    UpdateOutcome,
    UpdaterConfig,
)
from submodule_updater.output import (  # noqa: E402
    SECTION_WIDTH,
    ConsoleOutputHandler,
    NullOutputHandler,
)
from submodule_updater.protocols import (  # noqa: E402
    ManifestReader,
    OutputHandler,
    RemoteCommitResolver,
    RepositoryProvisioner,
    VersionControlDriver,
)
from submodule_updater.provisioner import GitProvisioner, is_git_repository  # noqa: E402
from submodule_updater.reporter import SummaryReporter  # noqa: E402
from submodule_updater.repository import (  # noqa: E402
    GitPythonDriver,
    build_commit_message,
    classify_git_error,
)
from submodule_updater.scheduler import UpdateScheduler  # noqa: E402

__all__ = [
    "__version__",
    # Models
    "DEFAULT_IDENTITY",
    "UNKNOWN_COMMIT",
    "GitErrorKind",
    "GitIdentity",
    "PushResult",
    "RemoteRepository",
    "RepositoryHandle",
    "RunPhase",
    "RunReport",
    "SubmoduleRecord",
    "UpdateOutcome",
    "UpdaterConfig",
    # Errors
    "CommitFailed",
    "CommitReadFailed",
    "ManifestUnreadable",
    "ProvisionFailed",
    "PushFailed",
    "RemoteLookupFailed",
    "RepositoryNotFound",
    "RunCancelled",
    "RunInProgress",
    "SubmoduleNotFound",
    "SyncFailed",
    "UpdateFailed",
    "UpdaterError",
    # Protocols
    "ManifestReader",
    "OutputHandler",
    "RemoteCommitResolver",
    "RepositoryProvisioner",
    "VersionControlDriver",
    # Implementations
    "ConsoleOutputHandler",
    "GitHubCommitResolver",
    "GitPythonDriver",
    "GitProvisioner",
    "GitmodulesReader",
    "NullOutputHandler",
    "SECTION_WIDTH",
    "build_commit_message",
    "classify_git_error",
    "is_git_repository",
    "parse_repository_url",
    # Services
    "ReconciliationEngine",
    "SummaryReporter",
    "UpdateScheduler",
    # Config / CLI
    "build_config",
    "create_argument_parser",
    "load_config_file",
    "validate_config",
    "main",
]
