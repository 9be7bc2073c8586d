"""Share-link schema migrations: discovery and idempotency lint.

Migration files live beside this module as ``NNN_description.sql`` and are
applied in sequence order with ``supabase db push`` (or ``psql -f``).  This
module does not execute SQL; it finds the files, reads them, and checks that
each one is safe to re-run.

Idempotency contract, per statement line:
    1. CREATE TABLE / INDEX / SCHEMA use IF NOT EXISTS.
    2. CREATE FUNCTION uses CREATE OR REPLACE.
    3. CREATE TRIGGER / POLICY follow a DROP ... IF EXISTS of the same name.
    4. DROP TABLE / INDEX / FUNCTION use IF EXISTS.
    5. ADD COLUMN uses IF NOT EXISTS (warning only).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

_MIGRATION_RE = re.compile(r'^(\d{3})_[a-z0-9_]+\.sql$')

MIGRATIONS_DIR = Path(__file__).parent


@dataclass(frozen=True, slots=True)
class MigrationFile:
    """A discovered migration file and its sequence number."""

    sequence: int
    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    def read(self) -> str:
        return self.path.read_text(encoding='utf-8')


@dataclass
class LintResult:
    """Idempotency findings for one migration file."""

    name: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# (pattern, message, is_error). Matched against comment-free lines.
_LINE_RULES: list[tuple[re.Pattern[str], str, bool]] = [
    (re.compile(r'^create\s+table\s+(?!if\s+not\s+exists)', re.I),
     'CREATE TABLE without IF NOT EXISTS', True),
    (re.compile(r'^create\s+(?:unique\s+)?index\s+(?!if\s+not\s+exists)', re.I),
     'CREATE INDEX without IF NOT EXISTS', True),
    (re.compile(r'^create\s+schema\s+(?!if\s+not\s+exists)', re.I),
     'CREATE SCHEMA without IF NOT EXISTS', True),
    (re.compile(r'^create\s+function\s+', re.I),
     'CREATE FUNCTION without OR REPLACE', True),
    (re.compile(r'^drop\s+(?:table|index|function)\s+(?!if\s+exists)', re.I),
     'DROP without IF EXISTS', True),
    (re.compile(r'^add\s+column\s+(?!if\s+not\s+exists)', re.I),
     'ADD COLUMN without IF NOT EXISTS', False),
]

_DROP_GUARDED = re.compile(r'^drop\s+(trigger|policy)\s+if\s+exists\s+(\S+)', re.I)
_CREATE_GUARDED = re.compile(r'^create\s+(?:or\s+replace\s+)?(trigger|policy)\s+(\S+)', re.I)


def discover_migrations(directory: Path | None = None) -> list[MigrationFile]:
    """Return migration files sorted by sequence number.

    Raises:
        ValueError: If two files share a sequence number.
    """
    found: dict[int, MigrationFile] = {}
    for path in (directory or MIGRATIONS_DIR).iterdir():
        match = _MIGRATION_RE.match(path.name)
        if not match or not path.is_file():
            continue
        seq = int(match.group(1))
        if seq in found:
            raise ValueError(
                f'Duplicate migration sequence {seq:03d}: '
                f'{found[seq].name} and {path.name}'
            )
        found[seq] = MigrationFile(sequence=seq, path=path)
    return [found[seq] for seq in sorted(found)]


def lint_sql(name: str, sql: str) -> LintResult:
    """Check SQL text against the idempotency contract."""
    result = LintResult(name=name)
    guarded: set[tuple[str, str]] = set()

    for lineno, raw in enumerate(sql.splitlines(), start=1):
        line = raw.split('--', 1)[0].strip()
        if not line:
            continue

        drop = _DROP_GUARDED.match(line)
        if drop:
            guarded.add((drop.group(1).lower(), drop.group(2).lower()))
            continue

        create = _CREATE_GUARDED.match(line)
        if create:
            kind, obj = create.group(1).lower(), create.group(2).lower()
            if (kind, obj) not in guarded:
                result.errors.append(
                    f'Line {lineno}: CREATE {kind.upper()} {create.group(2)} '
                    f'without preceding DROP {kind.upper()} IF EXISTS'
                )
            continue

        for pattern, message, is_error in _LINE_RULES:
            if pattern.search(line):
                (result.errors if is_error else result.warnings).append(
                    f'Line {lineno}: {message}'
                )
    return result


def lint_all(directory: Path | None = None) -> dict[str, LintResult]:
    """Lint every discovered migration, keyed by file name."""
    return {
        mf.name: lint_sql(mf.name, mf.read())
        for mf in discover_migrations(directory)
    }


def sequence_gaps(migrations: list[MigrationFile]) -> list[str]:
    """Describe any holes in the sequence numbering."""
    gaps: list[str] = []
    for prev, curr in zip(migrations, migrations[1:]):
        if curr.sequence != prev.sequence + 1:
            gaps.append(
                f'Gap in sequence: {prev.sequence:03d} -> {curr.sequence:03d}'
            )
    return gaps
