# Rule detectors - single-file, pattern based heuristics
#
# A file detector maps (content, FileMeta) to a list of findings and never raises.
# Project checks see the whole project at once and follow the same rule.
import logging
import random
import re
from dataclasses import dataclass
from functools import partial, wraps
from typing import Callable, List, Optional, Pattern, Sequence, Tuple

from schemas.project import Project, ProjectFile
from schemas.vulnerability import Category, Finding, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileMeta:
    path: str
    language: Optional[str] = None

    @classmethod
    def from_file(cls, file: ProjectFile) -> 'FileMeta':
        return cls(path=file.path or file.filename, language=file.language)


FileDetector = Callable[[str, FileMeta], List[Finding]]
ProjectCheck = Callable[[Project, List[ProjectFile]], List[Finding]]


def detector(name: str):
    """Mark a function as a file detector: empty content and internal errors yield no findings"""
    def decorate(func):
        @wraps(func)
        def wrapper(content: str, meta: FileMeta) -> List[Finding]:
            if not content:
                return []
            try:
                return func(content, meta)
            except Exception as e:
                logger.error(f'Detector {name} failed on {meta.path}: {e}')
                return []
        wrapper.detector_name = name
        return wrapper
    return decorate


def project_check(name: str):
    def decorate(func):
        @wraps(func)
        def wrapper(project: Project, files: List[ProjectFile], *args, **kwargs) -> List[Finding]:
            try:
                return func(project, files, *args, **kwargs)
            except Exception as e:
                logger.error(f'Project check {name} failed for project {project.id}: {e}')
                return []
        wrapper.detector_name = name
        return wrapper
    return decorate


def first_match(content: str, patterns: Sequence[Pattern]) -> Optional[Tuple[int, str]]:
    """Return (1-based line, matched text) for the first line any pattern hits"""
    for number, line in enumerate(content.split('\n'), start=1):
        for pattern in patterns:
            match = pattern.search(line)
            if match:
                return number, match.group(0)
    return None


# ============== SECURITY ==============

SECRET_PATTERNS = [
    re.compile(r'(password|passwd|pwd)\s*[=:]\s*["\'][^"\']{8,}["\']', re.IGNORECASE),
    re.compile(r'(api_key|apikey|api-key)\s*[=:]\s*["\'][^"\']+["\']', re.IGNORECASE),
    re.compile(r'(secret|token)\s*[=:]\s*["\'][^"\']{16,}["\']', re.IGNORECASE),
    # Provider specific key prefixes
    re.compile(r'sk_live_[a-zA-Z0-9]{24,}'),
    re.compile(r'AIza[0-9A-Za-z\-_]{35}'),
    re.compile(r'AKIA[0-9A-Z]{16}'),
    re.compile(r'gh[pousr]_[A-Za-z0-9]{36}'),
]

SQL_INJECTION_PATTERNS = [
    re.compile(r'\bquery\s*\+\s*\w', re.IGNORECASE),
    re.compile(r'\b(SELECT|INSERT|UPDATE|DELETE)\b[^;\n]*["\']\s*\+', re.IGNORECASE),
    re.compile(r'\bexecute\s*\(\s*["\'][^"\']*["\']\s*\+', re.IGNORECASE),
]

XSS_PATTERNS = [
    re.compile(r'innerHTML\s*=\s*[^;]*\+', re.IGNORECASE),
    re.compile(r'document\.write\s*\([^)]*\+', re.IGNORECASE),
    re.compile(r'\beval\s*\(\s*[^)]*\+', re.IGNORECASE),
    re.compile(r'\$\s*\([^)]*\)\.html\s*\(', re.IGNORECASE),
]

WEAK_CRYPTO_PATTERNS = [
    re.compile(r'\bmd5\b', re.IGNORECASE),
    re.compile(r'\bsha1\b', re.IGNORECASE),
    re.compile(r'\bdes\b', re.IGNORECASE),
    re.compile(r'\brc4\b', re.IGNORECASE),
]


@detector('hardcoded-secret')
def detect_hardcoded_secrets(content: str, meta: FileMeta) -> List[Finding]:
    hit = first_match(content, SECRET_PATTERNS)
    if not hit:
        return []
    line, code = hit
    return [Finding(
        title='Hardcoded Secret Detected',
        description='The code contains what appears to be hardcoded credentials or API keys.',
        severity=Severity.HIGH,
        category=Category.CRYPTOGRAPHY,
        file_path=meta.path,
        line=line,
        code=code,
        recommendation='Store sensitive data in environment variables or secure configuration files. '
                       'Never commit secrets to version control.',
        cwe='CWE-798'
    )]


@detector('sql-injection')
def detect_sql_injection(content: str, meta: FileMeta) -> List[Finding]:
    hit = first_match(content, SQL_INJECTION_PATTERNS)
    if not hit:
        return []
    line, code = hit
    return [Finding(
        title='Potential SQL Injection',
        description='Direct string concatenation in SQL queries can lead to SQL injection vulnerabilities.',
        severity=Severity.CRITICAL,
        category=Category.INJECTION,
        file_path=meta.path,
        line=line,
        code=code,
        recommendation='Use parameterized queries or prepared statements to prevent SQL injection attacks.',
        cwe='CWE-89',
        cvss=9.8
    )]


@detector('xss')
def detect_xss(content: str, meta: FileMeta) -> List[Finding]:
    hit = first_match(content, XSS_PATTERNS)
    if not hit:
        return []
    line, code = hit
    return [Finding(
        title='Cross-Site Scripting (XSS) Vulnerability',
        description='Unescaped user input in HTML output can lead to XSS attacks.',
        severity=Severity.HIGH,
        category=Category.DATA_VALIDATION,
        file_path=meta.path,
        line=line,
        code=code,
        recommendation='Sanitize and escape all user input before rendering in HTML. Use secure templating engines.',
        cwe='CWE-79',
        cvss=6.1
    )]


@detector('weak-crypto')
def detect_weak_crypto(content: str, meta: FileMeta) -> List[Finding]:
    hit = first_match(content, WEAK_CRYPTO_PATTERNS)
    if not hit:
        return []
    line, code = hit
    return [Finding(
        title='Weak Cryptographic Algorithm',
        description='Usage of deprecated or weak cryptographic algorithms detected.',
        severity=Severity.MEDIUM,
        category=Category.CRYPTOGRAPHY,
        file_path=meta.path,
        line=line,
        code=code,
        recommendation='Use strong cryptographic algorithms like AES-256, SHA-256, or bcrypt for sensitive operations.',
        cwe='CWE-327'
    )]


SECURITY_DETECTORS: List[FileDetector] = [
    detect_hardcoded_secrets,
    detect_sql_injection,
    detect_xss,
    detect_weak_crypto,
]


# ============== QUALITY ==============

FUNCTION_START = re.compile(
    r'\bfunction\s*\*?\s*\w+\s*\('
    r'|\b(?:const|let|var)\s+\w+\s*=\s*(?:async\s*)?\([^)]*\)\s*=>\s*\{'
)
COMMENT_PREFIXES = ('//', '/*', '*', '#')

ASYNC_CALL_PATTERNS = [
    re.compile(r'\bawait\s+\w+'),
    re.compile(r'\.then\s*\('),
    re.compile(r'\bfetch\s*\('),
]

ERROR_HANDLING_PATTERNS = [
    re.compile(r'\btry\s*\{[\s\S]*?\}\s*catch\b'),
    re.compile(r'\btry\s*:[\s\S]*?\bexcept\b'),
    re.compile(r'\.catch\s*\('),
]


def find_long_function(content: str, max_lines: int = 50) -> Optional[int]:
    """Line of the first top-level function whose body spans more than max_lines.

    Tracks brace depth from the signature line; nested functions are counted
    as part of the enclosing body. A signature whose body does not open on
    its own line or the next one (overloads, declarations) is dropped.
    """
    start = None
    depth = 0
    opened = False
    for index, line in enumerate(content.split('\n')):
        if start is not None and not opened and index - start > 1:
            start = None
        if start is None:
            if line.lstrip().startswith(COMMENT_PREFIXES) or not FUNCTION_START.search(line):
                continue
            start, depth, opened = index, 0, False
        depth += line.count('{') - line.count('}')
        if '{' in line:
            opened = True
        elif not opened and line.rstrip().endswith(';'):
            start = None
            continue
        if opened and depth <= 0:
            if index - start > max_lines:
                return start + 1
            start = None
    return None


def _detect_long_function(content: str, meta: FileMeta, max_lines: int = 50) -> List[Finding]:
    line = find_long_function(content, max_lines)
    if line is None:
        return []
    return [Finding(
        title='Long Function Detected',
        description=f'Function exceeds {max_lines} lines, making it harder to maintain and test.',
        severity=Severity.LOW,
        category=Category.CODE_QUALITY,
        file_path=meta.path,
        line=line,
        code=content.split('\n')[line - 1].strip(),
        recommendation='Break down large functions into smaller, more focused functions.',
        cwe='CWE-1120'
    )]


def make_long_function_detector(max_lines: int = 50) -> FileDetector:
    return detector('long-function')(partial(_detect_long_function, max_lines=max_lines))


detect_long_function = make_long_function_detector()


@detector('missing-error-handling')
def detect_missing_error_handling(content: str, meta: FileMeta) -> List[Finding]:
    hit = first_match(content, ASYNC_CALL_PATTERNS)
    if not hit:
        return []
    if any(pattern.search(content) for pattern in ERROR_HANDLING_PATTERNS):
        return []
    line, code = hit
    return [Finding(
        title='Missing Error Handling',
        description='Potential exceptions or errors are not properly handled.',
        severity=Severity.MEDIUM,
        category=Category.CODE_QUALITY,
        file_path=meta.path,
        line=line,
        code=code,
        recommendation='Add proper error handling with try-catch blocks or error callbacks.',
        cwe='CWE-754'
    )]


def quality_detectors(max_function_lines: int = 50) -> List[FileDetector]:
    return [make_long_function_detector(max_function_lines), detect_missing_error_handling]


# ============== PERFORMANCE (project level) ==============

BUNDLED_LANGUAGES = ('javascript', 'typescript')


@project_check('bundle-size')
def check_bundle_size(project: Project, files: List[ProjectFile]) -> List[Finding]:
    languages = [lang.lower() for lang in project.language]
    if not any(bundled in lang for lang in languages for bundled in BUNDLED_LANGUAGES):
        return []
    return [Finding(
        title='Large Bundle Size',
        description='The application bundle size may impact loading performance.',
        severity=Severity.LOW,
        category=Category.CODE_QUALITY,
        file_path='bundle analysis',
        recommendation='Implement code splitting and lazy loading to reduce initial bundle size.',
        cwe='CWE-1050'
    )]


@project_check('project-size')
def check_project_size(project: Project, files: List[ProjectFile], limit: int = 50_000_000) -> List[Finding]:
    if project.size <= limit:
        return []
    return [Finding(
        title='Large Project Size',
        description='Project size may impact build and deployment times.',
        severity=Severity.INFO,
        category=Category.CODE_QUALITY,
        file_path='project structure',
        recommendation='Review and optimize project structure, remove unused dependencies and files.'
    )]


def performance_checks(large_project_bytes: int = 50_000_000) -> List[ProjectCheck]:
    return [check_bundle_size, partial(check_project_size, limit=large_project_bytes)]


# ============== DEPENDENCY (project level) ==============

@dataclass(frozen=True)
class KnownVulnerableDependency:
    name: str
    version: str
    severity: Severity


KNOWN_VULNERABLE_DEPENDENCIES = (
    KnownVulnerableDependency('lodash', '4.17.15', Severity.MEDIUM),
    KnownVulnerableDependency('axios', '0.18.1', Severity.HIGH),
    KnownVulnerableDependency('moment', '2.24.0', Severity.LOW),
)


class DependencySampler:
    """Samples a fixed table of known-vulnerable packages.

    Stand-in for an advisory feed: each entry is reported when the injected
    random source draws above ``threshold``. Pass a seeded ``random.Random``
    to get repeatable results.
    """
    detector_name = 'dependency-sampler'

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        table: Sequence[KnownVulnerableDependency] = KNOWN_VULNERABLE_DEPENDENCIES,
        threshold: float = 0.7
    ):
        self.rng = rng if rng is not None else random.Random()
        self.table = tuple(table)
        self.threshold = threshold

    def __call__(self, project: Project, files: List[ProjectFile]) -> List[Finding]:
        findings = []
        try:
            for dep in self.table:
                if self.rng.random() > self.threshold:
                    findings.append(Finding(
                        title=f'Vulnerable Dependency: {dep.name}',
                        description=f'Outdated version of {dep.name} ({dep.version}) contains known security vulnerabilities.',
                        severity=dep.severity,
                        category=Category.DEPENDENCY,
                        file_path='package.json',
                        code=f'"{dep.name}": "{dep.version}"',
                        recommendation=f'Update {dep.name} to the latest stable version to fix known vulnerabilities.',
                        cwe='CWE-1104'
                    ))
        except Exception as e:
            logger.error(f'Dependency sampling failed for project {project.id}: {e}')
            return []
        return findings
