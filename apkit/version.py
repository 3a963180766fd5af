"""Parsing and comparison of apk package versions and dependency constraints."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from functools import total_ordering

_VERSION_RE = re.compile(
    r"([0-9]+)((?:\.[0-9]+)*)([a-z]?)"
    r"(?:(_alpha|_beta|_pre|_rc)([0-9]*))?"
    r"(?:(_cvs|_svn|_git|_hg|_p)([0-9]*))?"
    r"(?:-r([0-9]+))?"
)

_PACKAGE_NAME_RE = re.compile(
    r"([^@=><~]+)(?:([=><~]+)([^@]+))?(?:@([a-zA-Z0-9]+))?"
)


class VersionError(ValueError):
    """Raised when a version string cannot be parsed."""


class PreModifier(enum.IntEnum):
    """Pre-release suffixes, in increasing order of precedence."""

    NONE = 0
    ALPHA = 1
    BETA = 2
    PRE = 3
    RC = 4
    MAX = 1000


class PostModifier(enum.IntEnum):
    """Post-release suffixes, in increasing order of precedence."""

    NONE = 0
    CVS = 1
    SVN = 2
    GIT = 3
    HG = 4
    P = 5
    MAX = 1000


_PRE_SUFFIXES = {
    "": PreModifier.NONE,
    "_alpha": PreModifier.ALPHA,
    "_beta": PreModifier.BETA,
    "_pre": PreModifier.PRE,
    "_rc": PreModifier.RC,
}

_POST_SUFFIXES = {
    "": PostModifier.NONE,
    "_cvs": PostModifier.CVS,
    "_svn": PostModifier.SVN,
    "_git": PostModifier.GIT,
    "_hg": PostModifier.HG,
    "_p": PostModifier.P,
}


@total_ordering
@dataclass(frozen=True)
class Version:
    """A parsed apk version such as ``1.2.3b_rc1_p2-r4``."""

    numbers: tuple[int, ...] = ()
    letter: str = ""
    pre_suffix: PreModifier = PreModifier.NONE
    pre_suffix_number: int = 0
    post_suffix: PostModifier = PostModifier.NONE
    post_suffix_number: int = 0
    revision: int = 0

    def _key(self) -> tuple:
        # A missing pre-suffix ranks above every pre-release; a missing
        # post-suffix ranks below every post-release.
        pre = PreModifier.MAX if self.pre_suffix == PreModifier.NONE else self.pre_suffix
        return (
            self.numbers,
            self.letter,
            int(pre),
            self.pre_suffix_number,
            int(self.post_suffix),
            self.post_suffix_number,
            self.revision,
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()


def parse_version(version: str) -> Version:
    """Parse a version string, raising VersionError when it is malformed."""
    match = _VERSION_RE.fullmatch(version)
    if match is None:
        raise VersionError(f"invalid version {version}, could not parse")
    first, rest, letter, pre, pre_num, post, post_num, revision = match.groups()

    numbers = [int(first)]
    numbers.extend(int(part) for part in rest.split(".") if part)

    try:
        pre_suffix = _PRE_SUFFIXES[pre or ""]
    except KeyError:
        raise VersionError(
            f"invalid version {version}, pre-suffix {pre} is not valid"
        ) from None
    try:
        post_suffix = _POST_SUFFIXES[post or ""]
    except KeyError:
        raise VersionError(
            f"invalid version {version}, suffix {post} is not valid"
        ) from None

    return Version(
        numbers=tuple(numbers),
        letter=letter,
        pre_suffix=pre_suffix,
        pre_suffix_number=int(pre_num) if pre_num else 0,
        post_suffix=post_suffix,
        post_suffix_number=int(post_num) if post_num else 0,
        revision=int(revision) if revision else 0,
    )


def compare_versions(actual: Version, required: Version) -> int:
    """Return 1, 0 or -1 as ``actual`` is greater than, equal to or less than ``required``."""
    a, b = actual._key(), required._key()
    return (a > b) - (a < b)


def includes_version(actual: Version, required: Version) -> bool:
    """Return True if ``actual`` falls within the prefix described by ``required``."""
    if len(actual.numbers) < len(required.numbers):
        return False
    if actual.numbers[: len(required.numbers)] != required.numbers:
        return False
    if len(actual.numbers) > len(required.numbers):
        return True
    if required.letter and actual.letter != required.letter:
        return False
    if required.pre_suffix != PreModifier.NONE and actual.pre_suffix != required.pre_suffix:
        return False
    if required.pre_suffix_number and actual.pre_suffix_number != required.pre_suffix_number:
        return False
    if required.post_suffix != PostModifier.NONE and actual.post_suffix != required.post_suffix:
        return False
    if required.post_suffix_number and actual.post_suffix_number != required.post_suffix_number:
        return False
    if required.revision and actual.revision != required.revision:
        return False
    return True


class VersionDependency(enum.Enum):
    """The comparison operator of a dependency constraint."""

    ANY = enum.auto()
    EQUAL = enum.auto()
    GREATER = enum.auto()
    LESS = enum.auto()
    GREATER_EQUAL = enum.auto()
    LESS_EQUAL = enum.auto()
    TILDE = enum.auto()

    def satisfies(self, actual: Version, required: Version | None) -> bool:
        """Return True if ``actual`` meets this operator against ``required``."""
        if self is VersionDependency.ANY:
            return True
        if required is None:
            required = Version()
        if self is VersionDependency.TILDE:
            return includes_version(actual, required)
        result = compare_versions(actual, required)
        if self is VersionDependency.EQUAL:
            return result == 0
        if self is VersionDependency.GREATER:
            return result > 0
        if self is VersionDependency.LESS:
            return result < 0
        if self is VersionDependency.GREATER_EQUAL:
            return result >= 0
        if self is VersionDependency.LESS_EQUAL:
            return result <= 0
        return False


_OPERATORS = {
    "=": VersionDependency.EQUAL,
    ">": VersionDependency.GREATER,
    "<": VersionDependency.LESS,
    ">=": VersionDependency.GREATER_EQUAL,
    "<=": VersionDependency.LESS_EQUAL,
    "~": VersionDependency.TILDE,
}


@dataclass(frozen=True)
class ParsedConstraint:
    """A package reference split into name, version, operator and pin."""

    name: str
    version: str = ""
    dep: VersionDependency = VersionDependency.ANY
    pin: str = ""


def resolve_package_name_version_pin(pkg_name: str) -> ParsedConstraint:
    """Split ``name[op version][@pin]`` into its parts.

    Input that does not fit the pattern is returned whole as the name.
    """
    match = _PACKAGE_NAME_RE.fullmatch(pkg_name)
    if match is None:
        return ParsedConstraint(name=pkg_name)
    name, operator, version, pin = match.groups()
    return ParsedConstraint(
        name=name,
        version=version or "",
        dep=_OPERATORS.get(operator or "", VersionDependency.ANY),
        pin=pin or "",
    )