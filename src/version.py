import subprocess
from importlib.metadata import PackageNotFoundError, version

GIT_VERSION_COMMANDS = [
    # Release deploys are tagged, anything else reports the commit
    ['git', 'describe', '--tags', '--exact-match'],
    ['git', 'rev-parse', '--short', 'HEAD'],
]


def get_git_version() -> str | None:
    for command in GIT_VERSION_COMMANDS:
        try:
            result = subprocess.run(command, capture_output=True, text=True, timeout=2, check=False)
        except (OSError, subprocess.SubprocessError):
            return None
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    return None


def get_package_version() -> str | None:
    try:
        return version('otp-gate')
    except PackageNotFoundError:
        return None


VERSION = get_git_version() or get_package_version() or 'unknown'
