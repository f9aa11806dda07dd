"""
Path sensitivity classification.

Decides whether a file path is too sensitive for its context to leave the
machine. Two layers:

1. Built-in rules: well-known secret-bearing file types and directories
   (``.env`` and variants, key/certificate files, ``secrets/``, ``.ssh/``,
   ``.aws/``).
2. Project ignore rules: patterns parsed from the ignore file (``.gitignore``
   by default) at the project root. Whatever a project keeps out of version
   control is treated as something it keeps out of our records as well.

The glob dialect is deliberately looser than git's: ``*`` crosses directory
separators, negations are not supported, and patterns are not anchored to
path segments. A path that git would not ignore may still be classified as
sensitive here, which errs on the side of dropping context.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Literal, Optional, Protocol, Union

import structlog

from prompttrail.errors import IgnoreFileReadError, InputError

logger = structlog.get_logger(__name__)

PathInput = Union[str, "os.PathLike[str]"]

DEFAULT_IGNORE_FILE = ".gitignore"

SENSITIVE_SUFFIXES: tuple[str, ...] = (
    ".env",
    ".env.local",
    ".env.production",
    ".env.development",
    ".env.test",
    ".secrets",
    ".key",
    ".pem",
    ".p12",
    ".pfx",
)

# Matched against a lower-cased, "/"-separated path that always starts with "/".
SENSITIVE_PATH_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"/\.env"),
    re.compile(r"/secrets/"),
    re.compile(r"/config/[^/]*secret"),
    re.compile(r"/\.aws/"),
    re.compile(r"/\.ssh/"),
)


@dataclass(frozen=True)
class IgnorePattern:
    """One parsed ignore-file line."""

    raw: str
    regex: re.Pattern
    directory: bool = False

    def matches(self, candidates: tuple[str, ...]) -> bool:
        if self.directory:
            return any(self.regex.search(c) for c in candidates)
        return any(self.regex.fullmatch(c) for c in candidates)


@dataclass(frozen=True)
class IgnoreRuleSet:
    """Ordered ignore patterns discovered in ``root``."""

    root: Path
    patterns: tuple[IgnorePattern, ...] = ()

    def __len__(self) -> int:
        return len(self.patterns)

    def first_match(self, normalized_path: str, relative_path: str) -> Optional[IgnorePattern]:
        if not self.patterns:
            return None
        candidates = _match_candidates(normalized_path, relative_path)
        for pattern in self.patterns:
            if pattern.matches(candidates):
                return pattern
        return None


@dataclass(frozen=True)
class PathVerdict:
    """Why a path was classified as sensitive."""

    reason: Literal["builtin", "ignore_rule"]
    rule: str


class IgnoreFileReader(Protocol):
    """File-system collaborator that supplies ignore-file lines."""

    def read(self, project_root: Path) -> Optional[list[str]]:
        """Return the ignore file's lines, or None when there is no ignore file."""
        ...


class FileSystemIgnoreReader:
    """Reads a single ignore file directly inside the project root."""

    def __init__(self, file_name: str = DEFAULT_IGNORE_FILE) -> None:
        self.file_name = file_name

    def read(self, project_root: Path) -> Optional[list[str]]:
        path = Path(project_root) / self.file_name
        try:
            if not path.is_file():
                return None
            return path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise IgnoreFileReadError(str(path), str(e)) from e


def glob_to_regex(glob: str) -> str:
    """Translate a glob to a regex body: ``*`` is any run, ``?`` one character."""
    parts: list[str] = []
    for ch in glob:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return "".join(parts)


def compile_ignore_pattern(line: str) -> Optional[IgnorePattern]:
    """
    Parse one ignore-file line into a pattern.

    Returns None for blank lines, comments, and negations (unsupported).
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    if stripped.startswith("!"):
        logger.debug("path_classifier.negation_skipped", pattern=stripped)
        return None

    body = stripped.replace("\\", "/")
    if body.startswith("/"):
        body = body[1:]
    directory = body.endswith("/")
    body = body.rstrip("/")
    if not body:
        return None

    if directory:
        regex = re.compile(r"(?:^|/)" + glob_to_regex(body) + r"(?:/|$)", re.IGNORECASE)
    else:
        regex = re.compile(glob_to_regex(body), re.IGNORECASE)
    return IgnorePattern(raw=stripped, regex=regex, directory=directory)


def parse_ignore_lines(lines: list[str]) -> tuple[IgnorePattern, ...]:
    patterns = (compile_ignore_pattern(line) for line in lines)
    return tuple(p for p in patterns if p is not None)


def normalize_path(path: PathInput) -> str:
    """Convert OS-specific separators to "/" and collapse duplicates."""
    text = os.fspath(path).replace("\\", "/")
    return re.sub(r"/{2,}", "/", text)


def _match_candidates(normalized_path: str, relative_path: str) -> tuple[str, ...]:
    candidates = [normalized_path, relative_path]
    # Every leading directory prefix of the relative path, so "build" matches
    # "build/output/app.js" through its parent.
    segments = [s for s in relative_path.split("/") if s]
    for i in range(1, len(segments)):
        candidates.append("/".join(segments[:i]))
    return tuple(dict.fromkeys(candidates))


def _validate_path(value: object, name: str) -> str:
    if isinstance(value, os.PathLike):
        value = os.fspath(value)
    if not isinstance(value, str) or not value.strip():
        raise InputError(f"{name} must be a non-empty path string")
    return value


class PathSensitivityClassifier:
    """
    Classifies file paths as sensitive using built-in rules and, when a
    project root is given, that project's ignore file.

    Ignore rules are loaded lazily per project root and cached for the
    lifetime of the classifier. Edits to the ignore file are not picked up
    until ``clear_cache()`` is called.
    """

    def __init__(
        self,
        reader: Optional[IgnoreFileReader] = None,
        ignore_file_name: str = DEFAULT_IGNORE_FILE,
    ) -> None:
        self._reader = reader if reader is not None else FileSystemIgnoreReader(ignore_file_name)
        self._cache: dict[str, IgnoreRuleSet] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_sensitive(self, path: PathInput, project_root: Optional[PathInput] = None) -> bool:
        return self.classify(path, project_root) is not None

    def classify(
        self, path: PathInput, project_root: Optional[PathInput] = None
    ) -> Optional[PathVerdict]:
        """Return why *path* is sensitive, or None if it is safe to keep."""
        raw = _validate_path(path, "path")
        rule = self.builtin_rule_for(raw)
        if rule is not None:
            return PathVerdict(reason="builtin", rule=rule)
        if project_root is None:
            return None
        pattern = self._ignore_match(raw, _validate_path(project_root, "project_root"))
        if pattern is not None:
            return PathVerdict(reason="ignore_rule", rule=pattern.raw)
        return None

    def is_builtin_sensitive(self, path: PathInput) -> bool:
        return self.builtin_rule_for(_validate_path(path, "path")) is not None

    def is_ignored(self, path: PathInput, project_root: PathInput) -> bool:
        raw = _validate_path(path, "path")
        root = _validate_path(project_root, "project_root")
        return self._ignore_match(raw, root) is not None

    @staticmethod
    def builtin_rule_for(path: str) -> Optional[str]:
        """Return the built-in rule *path* trips, or None."""
        lowered = normalize_path(path).lower()
        for suffix in SENSITIVE_SUFFIXES:
            if lowered.endswith(suffix):
                return suffix
        anchored = lowered if lowered.startswith("/") else "/" + lowered
        for pattern in SENSITIVE_PATH_PATTERNS:
            if pattern.search(anchored):
                return pattern.pattern
        return None

    def load_rules(self, project_root: PathInput) -> IgnoreRuleSet:
        """Load (or fetch cached) ignore rules for *project_root*."""
        root = Path(_validate_path(project_root, "project_root")).expanduser()
        key = os.path.abspath(root)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            lines = self._reader.read(root)
        except IgnoreFileReadError as e:
            logger.warning("path_classifier.ignore_file_unreadable", path=e.path, error=e.reason)
            lines = None

        rules = IgnoreRuleSet(root=Path(key), patterns=parse_ignore_lines(lines or []))
        self._cache[key] = rules
        logger.debug("path_classifier.rules_loaded", root=key, patterns=len(rules))
        return rules

    def clear_cache(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ignore_match(self, path: str, project_root: str) -> Optional[IgnorePattern]:
        rules = self.load_rules(project_root)
        normalized = normalize_path(path)
        relative = self._relative_to_root(normalized, rules.root)
        pattern = rules.first_match(normalized, relative)
        if pattern is not None:
            logger.debug("path_classifier.ignore_match", path=path, pattern=pattern.raw)
        return pattern

    @staticmethod
    def _relative_to_root(normalized: str, root: Path) -> str:
        root_posix = normalize_path(root).rstrip("/")
        if root_posix and normalized.lower().startswith(root_posix.lower() + "/"):
            return normalized[len(root_posix) + 1:]
        if not os.path.isabs(normalized):
            # cwd-relative paths such as "proj/a.sql" for a root of "proj"
            resolved = normalize_path(os.path.abspath(normalized))
            if root_posix and resolved.lower().startswith(root_posix.lower() + "/"):
                return resolved[len(root_posix) + 1:]
        relative = str(PurePosixPath(normalized))
        if relative.startswith("./"):
            relative = relative[2:]
        return relative
