import json
import logging
import os
import re

LOGLEVEL = logging.getLevelName(os.environ.get("LOGLEVEL", "DEBUG"))

# Replicas. The contributions host may be partitioned by user and is only
# used for the main listing query, other lookups go to the regular host.
DB_HOST = os.environ.get("DB_HOST", "wikidatawiki.web.db.svc.wikimedia.cloud")
CONTRIBUTIONS_DB_HOST = os.environ.get("CONTRIBUTIONS_DB_HOST", DB_HOST)
DB_NAME = os.environ.get("DB_NAME", "wikidatawiki_p")
REVISION_TABLE = os.environ.get("REVISION_TABLE", "revision_compat")
COMMENT_TABLE = os.environ.get("COMMENT_TABLE", "comment_revision")

# HMAC key for signed job-trigger requests
SECRET_KEY = os.environ.get("SECRET_KEY", "")
READ_ONLY = os.environ.get("READ_ONLY", "") not in ("", "0", "false")

# Bearer token -> list of user rights, e.g. {"s3cr3t": ["deletedhistory", "patrol"]}
API_TOKENS: dict[str, list[str]] = json.loads(os.environ.get("API_TOKENS", "{}"))

CACHE_ENABLED = True
CACHE_EXPIRE = 60
CACHE_PREFIX = "usercontribs"

# Limits
DEFAULT_LIMIT = 10
LIMIT_BIG1 = 500
LIMIT_BIG2 = 5000
MAX_RESULT_SIZE = 8 * 1024 * 1024

USE_RC_PATROL = True
USE_NP_PATROL = True

DEFAULT_PROPS = ["ids", "title", "timestamp", "comment", "size", "flags"]
ALLOWED_PROPS = [
    "ids",
    "title",
    "timestamp",
    "comment",
    "parsedcomment",
    "size",
    "sizediff",
    "flags",
    "patrolled",
    "tags",
]
ALLOWED_SHOW = ["minor", "!minor", "patrolled", "!patrolled", "top", "!top", "new", "!new"]

ARTICLE_PATH = os.environ.get("ARTICLE_PATH", "/wiki/")

NAMESPACE_NAMES = {
    -2: "Media",
    -1: "Special",
    0: "",
    1: "Talk",
    2: "User",
    3: "User talk",
    4: "Project",
    5: "Project talk",
    6: "File",
    7: "File talk",
    8: "MediaWiki",
    9: "MediaWiki talk",
    10: "Template",
    11: "Template talk",
    12: "Help",
    13: "Help talk",
    14: "Category",
    15: "Category talk",
    120: "Property",
    121: "Property talk",
    146: "Lexeme",
    147: "Lexeme talk",
}

# Constants
TIMESTAMP_PATTERN = re.compile(r"^[0-9]{14}$")
ISO_TIMESTAMP_PATTERN = re.compile(
    r"^([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})(?:\.[0-9]+)?Z?$"
)
MAX_USERNAME_LENGTH = 255
INVALID_USERNAME_CHARACTERS = re.compile(r"[#<>\[\]|{}/@:\u0000-\u001f\u007f]")
