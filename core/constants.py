"""
Constants and defaults for the agent core.

Centralized location for:
- Loop limits
- Memory retention
- Shell sandbox policy tables
- Model configuration
"""

from typing import List

# =============================================================================
# LOOP LIMITS
# =============================================================================

DEFAULT_MAX_ITERATIONS = 20
DEFAULT_TOOL_TIMEOUT = 30.0  # seconds, shared by every call of one Act step

# Correction rounds an LLM thinker gets before malformed output is fatal
MAX_PARSE_RETRIES = 2


# =============================================================================
# MEMORY
# =============================================================================

DEFAULT_SESSION_CAP = 50
DEFAULT_SESSION_CONTEXT = 50

# Paths that select the non-persistent store
IN_MEMORY_PATHS = ("", "none", ":memory:")


# =============================================================================
# SHELL SANDBOX
# =============================================================================

MAX_OUTPUT_BYTES = 50_000
DEFAULT_APPROVAL_TIMEOUT = 20.0

# Never allowed, whatever the mode (regexes, matched case-insensitively)
BLOCKED_PATTERNS: List[str] = [
    r"\brm\s+(?:-\S*\s+)*/\*?(?=$|[\s;&|])",   # rm -rf /, rm -rf /*
    r"--no-preserve-root",
    r"\bmkfs(?:\.\w+)?\b",
    r"\bdd\s+if=",
    r"\bof=/dev/(?:sd|hd|vd|xvd|nvme|mmcblk|disk)",
    r">\s*/dev/(?:sd|hd|vd|xvd|nvme|mmcblk|disk)",
    r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:",  # fork bomb
    r"fork\s*bomb",
    r"\bchmod\s+-R\s+777\s+/(?=$|\s)",
    r"\b(?:shutdown|reboot|halt|poweroff)\b",
    r"\binit\s+[06]\b",
]

# Mutating verbs, only allowed in write mode
WRITE_PATTERNS: List[str] = [
    "rm ",
    "rmdir",
    "mv ",
    "cp ",
    "mkdir",
    "touch ",
    "chmod",
    "chown",
    "chgrp",
    "ln ",
    "install ",
    "dd ",
    "fdisk",
    "parted",
    "mount",
    "umount",
    "kill",
    "killall",
    "pkill",
    "systemctl start",
    "systemctl stop",
    "systemctl restart",
    "systemctl enable",
    "systemctl disable",
    "docker rm",
    "docker stop",
    "docker kill",
    "apt ",
    "apt-get ",
    "yum ",
    "pacman -s",
    "pacman -r",
    "pip install",
    "cargo install",
    "npm install",
    "git push",
    "git commit",
    "git reset",
    "git checkout",
    "git merge",
    "git rebase",
    "wget ",
    "tee ",
    "sed -i",
    "truncate",
]

# Write verbs that only count when combined with a mutating HTTP method
WRITE_REGEXES: List[str] = [
    r"curl.*-x\s*(post|put|delete|patch)",
]

# Environment variables passed through to the subprocess
SAFE_ENV_VARS: List[str] = [
    "PATH",
    "HOME",
    "USER",
    "SHELL",
    "LANG",
    "LC_ALL",
    "TERM",
    "TZ",
]


# =============================================================================
# MODEL CONFIGURATION
# =============================================================================

MODEL_DEFAULT = "llama-3.3-70b-versatile"
MAX_OUTPUT_TOKENS = 4096

# Static API key variable consulted after stored OAuth credentials
API_KEY_ENV_VAR = "GROQ_API_KEY"

# Access tokens are treated as expired this long before the server says so
TOKEN_EXPIRY_BUFFER = 5 * 60  # seconds
