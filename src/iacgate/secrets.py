"""Line-oriented secret detection over raw text.

Two strategies run side by side: fixed high-confidence key formats, and a
Shannon-entropy score over every ``identifier = "value"`` assignment.
Placeholder values are ignored by the entropy strategy only; identifiers that
look like credentials are named as such in the match description.
"""

from __future__ import annotations

import logging
import math
import os
import re
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Pattern, Sequence, Set, Tuple

from .constants import DEFAULT_ENTROPY_MIN_LENGTH, DEFAULT_ENTROPY_THRESHOLD
from .engine.cancellation import CancellationToken, check
from .model import SecretMatch, Severity

logger = logging.getLogger(__name__)

ENTROPY_PATTERN_ID = "SECRET-ENTROPY"

SENSITIVE_KEY_HINTS = (
    "SECRET",
    "TOKEN",
    "PASSWORD",
    "PASSWD",
    "PWD",
    "PRIVATE_KEY",
    "ACCESS_KEY",
    "API_KEY",
    "APIKEY",
    "CLIENT_SECRET",
    "CREDENTIAL",
    "CONNECTION_STRING",
    "SAS",
)


@dataclass(frozen=True)
class SecretPattern:
    pattern_id: str
    description: str
    regex: Pattern[str]
    severity: Severity = Severity.HIGH


FIXED_PATTERNS: Tuple[SecretPattern, ...] = (
    SecretPattern(
        "SECRET-AWS-ACCESS-KEY",
        "AWS access key id",
        re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b"),
        Severity.CRITICAL,
    ),
    SecretPattern(
        "SECRET-GITHUB-TOKEN",
        "GitHub token",
        re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,255}\b"),
        Severity.CRITICAL,
    ),
    SecretPattern(
        "SECRET-PRIVATE-KEY",
        "Private key block",
        re.compile(r"-----BEGIN (?:RSA |EC |DSA |OPENSSH |ENCRYPTED )?PRIVATE KEY-----"),
        Severity.CRITICAL,
    ),
    SecretPattern(
        "SECRET-AZURE-STORAGE-KEY",
        "Azure storage account key",
        re.compile(r"AccountKey=[A-Za-z0-9+/]{86}==", re.IGNORECASE),
        Severity.CRITICAL,
    ),
    SecretPattern(
        "SECRET-SLACK-TOKEN",
        "Slack token",
        re.compile(r"\bxox[abprs]-[A-Za-z0-9-]{10,}\b"),
    ),
    SecretPattern(
        "SECRET-GOOGLE-API-KEY",
        "Google API key",
        re.compile(r"\bAIza[0-9A-Za-z_\-]{35}\b"),
    ),
)

_ASSIGNMENT_RE = re.compile(
    r"""(?P<key>[A-Za-z_][\w.\-]*)["']?\s*(?::|=|:=|=>)\s*(?P<quote>["'])(?P<value>[^"'\r\n]+)(?P=quote)"""
)

PLACEHOLDER_VALUES = frozenset(
    {
        "changeme",
        "change_me",
        "change-me",
        "password",
        "passw0rd",
        "secret",
        "example",
        "placeholder",
        "replace_me",
        "replaceme",
        "todo",
        "dummy",
        "test",
        "redacted",
        "none",
        "null",
        "your-secret-here",
        "your_password_here",
    }
)
_PLACEHOLDER_PATTERNS = (
    re.compile(r"^0{8}-0{4}-0{4}-0{4}-0{12}$"),
    re.compile(r"^(.)\1+$"),
    re.compile(r"^\$\{[^}]*\}$"),
    re.compile(r"^<[^>]*>$"),
    re.compile(r"^\{\{[^}]*\}\}$"),
    re.compile(r"^(?:192\.0\.2|198\.51\.100|203\.0\.113)\.\d{1,3}(?:/\d{1,2})?$"),
    re.compile(r"^(?:x+|\*+)$", re.IGNORECASE),
)


def shannon_entropy(value: str) -> float:
    """Bits of entropy per character."""

    if not value:
        return 0.0
    counts = Counter(value)
    length = len(value)
    return -sum((count / length) * math.log2(count / length) for count in counts.values())


def is_placeholder(value: str) -> bool:
    normalized = value.strip()
    if normalized.lower() in PLACEHOLDER_VALUES:
        return True
    return any(pattern.match(normalized) for pattern in _PLACEHOLDER_PATTERNS)


def key_tokens(key: str) -> Tuple[str, ...]:
    """Split an identifier into upper-case words: ``dbPassword`` -> ``("DB", "PASSWORD")``."""

    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", key)
    return tuple(token for token in re.split(r"[^A-Za-z0-9]+", spaced.upper()) if token)


def is_sensitive_key(key: str) -> bool:
    tokens = key_tokens(key)
    joined = "_" + "_".join(tokens) + "_"
    if any(f"_{hint}_" in joined for hint in SENSITIVE_KEY_HINTS):
        return True
    if "PUBLIC" in tokens:
        return False
    return bool(tokens) and tokens[-1] == "KEY"


def mask(value: str) -> str:
    if len(value) <= 4:
        return "*" * len(value)
    visible = min(4, len(value) // 4)
    return value[:visible] + "*" * (len(value) - visible)


def _excerpt(line: str, start: int, end: int, limit: int = 120) -> str:
    masked = line[:start] + mask(line[start:end]) + line[end:]
    masked = masked.strip()
    if len(masked) > limit:
        masked = masked[: limit - 3] + "..."
    return masked


class SecretScanner:
    """Scans text line by line; safe to share between threads."""

    def __init__(
        self,
        *,
        entropy_threshold: float = DEFAULT_ENTROPY_THRESHOLD,
        min_length: int = DEFAULT_ENTROPY_MIN_LENGTH,
        patterns: Sequence[SecretPattern] = FIXED_PATTERNS,
    ) -> None:
        self.entropy_threshold = entropy_threshold
        self.min_length = min_length
        self.patterns = tuple(patterns)

    def scan_text(self, text: str, *, file: str = "<text>") -> List[SecretMatch]:
        matches: List[SecretMatch] = []
        for number, line in enumerate(text.splitlines(), start=1):
            matches.extend(self.scan_line(line, file=file, line_number=number))
        return matches

    def scan_line(self, line: str, *, file: str, line_number: int) -> List[SecretMatch]:
        found: Dict[str, SecretMatch] = {}
        covered: List[Tuple[int, int]] = []

        for pattern in self.patterns:
            for match in pattern.regex.finditer(line):
                covered.append(match.span())
                if pattern.pattern_id in found:
                    continue
                found[pattern.pattern_id] = SecretMatch(
                    pattern_id=pattern.pattern_id,
                    file=file,
                    line=line_number,
                    excerpt=_excerpt(line, *match.span()),
                    confidence=1.0,
                    method="pattern",
                    severity=pattern.severity,
                    description=pattern.description,
                )

        for match in _ASSIGNMENT_RE.finditer(line):
            if ENTROPY_PATTERN_ID in found:
                break
            key = match.group("key")
            value = match.group("value")
            start, end = match.span("value")
            if any(start < cov_end and cov_start < end for cov_start, cov_end in covered):
                continue
            if len(value) < self.min_length or is_placeholder(value):
                continue
            score = shannon_entropy(value)
            if score < self.entropy_threshold:
                continue
            found[ENTROPY_PATTERN_ID] = SecretMatch(
                pattern_id=ENTROPY_PATTERN_ID,
                file=file,
                line=line_number,
                excerpt=_excerpt(line, start, end),
                confidence=score,
                method="entropy",
                severity=Severity.HIGH,
                description=(
                    f"High-entropy value assigned to credential-like '{key}'"
                    if is_sensitive_key(key)
                    else f"High-entropy value assigned to '{key}'"
                ),
            )

        return sorted(found.values(), key=lambda item: item.pattern_id)

    def scan_texts(
        self,
        texts: Mapping[str, str],
        *,
        workers: int = 1,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[SecretMatch]:
        """Scan several files; results are ordered by (file, line, pattern id)."""

        paths = sorted(texts)
        check(cancel_token)
        if not paths:
            return []

        def _scan_one(path: str) -> List[SecretMatch]:
            check(cancel_token)
            return self.scan_text(texts[path], file=path)

        if workers <= 1 or len(paths) == 1:
            results = [_scan_one(path) for path in paths]
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="iacgate-secrets") as executor:
                results = list(executor.map(_scan_one, paths))

        matches: List[SecretMatch] = []
        for file_matches in results:
            matches.extend(file_matches)
        matches.sort(key=lambda item: item.key)
        logger.debug("secret scan: %d matches across %d files", len(matches), len(paths))
        return matches


_SKIP_DIRS = {".git", ".terraform", ".hg", ".svn", "node_modules", "__pycache__", ".venv"}


def collect_text_files(roots: Iterable[Path], *, max_bytes: int = 5 * 1024 * 1024) -> Dict[str, str]:
    """Read every text file under the given paths, skipping binaries and VCS caches."""

    texts: Dict[str, str] = {}
    seen: Set[Path] = set()
    for root in roots:
        candidates: Iterable[Path]
        if root.is_dir():
            candidates = sorted(_walk(root))
        else:
            candidates = [root]
        for path in candidates:
            resolved = path.resolve()
            if resolved in seen:
                continue
            seen.add(resolved)
            text = _read_text(path, max_bytes)
            if text is not None:
                texts[str(path)] = text
    return texts


def _walk(root: Path) -> Iterable[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in _SKIP_DIRS)
        for filename in filenames:
            yield Path(dirpath) / filename


def _read_text(path: Path, max_bytes: int) -> Optional[str]:
    try:
        if path.stat().st_size > max_bytes:
            logger.info("skipping %s: larger than %d bytes", path, max_bytes)
            return None
        data = path.read_bytes()
    except OSError as exc:
        logger.warning("skipping unreadable file %s: %s", path, exc)
        return None
    if b"\0" in data[:8192]:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")
