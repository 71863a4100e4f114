"""Wire-level constants shared by branch naming, commit metadata and tags.

These values appear in branch names, commit messages and tag names that are
pushed to shared remotes. Changing any of them breaks decoding of commits that
already exist in the wild.
"""

BRANCH_PREFIX = "cow_"
COMMIT_PREFIX = "cow:"
TEMPORARY_BRANCH_PREFIX = "temp-"

METADATA_SEPARATOR = "---"
INLINE_METADATA_SEPARATOR = f" {METADATA_SEPARATOR} "
COMMIT_SEPARATOR = "---COMMIT_SEPARATOR---"

MOD_HASH_KEY = "mod-hash"
MOD_BASE_KEY = "mod-base"
CURRENT_BASE_KEY = "current-base"
METADATA_KEYS = (MOD_HASH_KEY, MOD_BASE_KEY, CURRENT_BASE_KEY)

UNKNOWN = "unknown"

COMMON_BASE_BRANCHES = frozenset({"main", "master", "dev", "develop", "development"})
PREFERRED_BASE_BRANCH = "dev"
FALLBACK_BASE_BRANCH = "main"

ORIGIN_REMOTE = "origin"
DEFAULT_PATCHES_REMOTE = "patches"

CONFIG_NAMESPACE = "cowpatch"
STASH_LABEL_PREFIX = "cowpatch-backup-"
STATE_DIR_NAME = "cowpatch"
STATE_FILE_NAME = "state.json"
