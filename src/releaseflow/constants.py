"""Default values shared across releaseflow services."""

DEFAULT_CONFIG_FILE = ".releaseflow.yml"

DEFAULT_STABLE_BRANCH = "main"
DEFAULT_DEVELOP_BRANCH = "develop"

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
SEMVER_PATTERN = (
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

VERSION_FORMATS = ("dotenv", "json", "toml")

DEFAULT_VERSION_FILES = (
    ("config.sh", "VERSION", "dotenv"),
    ("package.json", "version", "json"),
)

DEFAULT_MERGE_MESSAGE = "Merge branch '{source}' into {target} for release {version}"
DEFAULT_COMMIT_MESSAGE = "Release {version}"
DEFAULT_TAG_MESSAGE = "Release {version}"
