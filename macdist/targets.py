"""Target resolution: user-declared output kinds -> canonical TargetSet."""

from typing import Iterable, Optional, Union

from .errors import InvalidTargetError

DEFAULT = "default"
DMG = "dmg"
ZIP = "zip"
MAS = "mas"
SEVEN_Z = "7z"

# accepted token -> canonical id
_ALIASES = {
    DEFAULT: DEFAULT,
    DMG: DMG,
    "disk-image": DMG,
    ZIP: ZIP,
    "archive": ZIP,
    MAS: MAS,
    "store-package": MAS,
    SEVEN_Z: SEVEN_Z,
    "light-archive": SEVEN_Z,
}


class TargetSet:
    """Ordered, duplicate-free, never-empty set of canonical target ids."""

    def __init__(self, targets: Iterable[str]):
        self._targets = tuple(dict.fromkeys(targets))
        if not self._targets:
            self._targets = (DEFAULT,)

    def __iter__(self):
        return iter(self._targets)

    def __len__(self):
        return len(self._targets)

    def __contains__(self, target):
        return target in self._targets

    def __eq__(self, other):
        if isinstance(other, TargetSet):
            return self._targets == other._targets
        return NotImplemented

    def __repr__(self):
        return f"TargetSet({list(self._targets)!r})"

    @property
    def needs_store(self) -> bool:
        return MAS in self._targets

    @property
    def needs_direct(self) -> bool:
        return any(t != MAS for t in self._targets)

    @property
    def needs_disk_image(self) -> bool:
        return DMG in self._targets or DEFAULT in self._targets

    def archive_targets(self) -> list:
        return [t for t in self._targets if t not in (MAS, DMG)]


def normalize_targets(raw: Union[None, str, Iterable[str]]) -> Optional[list]:
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = [raw] if raw.strip() else []
    return [str(it).strip().lower() for it in raw]


def resolve_targets(raw: Union[None, str, Iterable[str]]) -> TargetSet:
    """Validate and canonicalize a raw target list.

    Absent or empty input resolves to {default}. Any token outside the fixed
    vocabulary, a blank entry of a non-empty list included, raises
    InvalidTargetError naming it.
    """
    tokens = normalize_targets(raw)
    if not tokens:
        return TargetSet([DEFAULT])
    resolved = []
    for token in tokens:
        canonical = _ALIASES.get(token)
        if canonical is None:
            raise InvalidTargetError(token)
        resolved.append(canonical)
    return TargetSet(resolved)
