"""Map checkout file paths to their Integrates group."""

import re
from dataclasses import dataclass
from pathlib import Path, PurePath

# <root>/groups/<group>/<nickname>/<rest>
_GROUP_PATH = re.compile(r"^(.+)/groups/([^/]+)/([^/]+)/(.+)$")


@dataclass(frozen=True)
class GroupPath:
    """A file located inside a group root checkout."""

    name: str
    nickname: str
    relative_path: str
    repo_root: Path

    @property
    def location_key(self) -> str:
        """Key of this file in the snapshot partitions."""
        return f"{self.nickname}/{self.relative_path}"


def classify(path: "str | PurePath") -> GroupPath | None:
    """Return the group a file belongs to, or None outside a groups checkout."""
    match = _GROUP_PATH.match(PurePath(path).as_posix())
    if not match:
        return None
    root, group, nickname, rest = match.groups()
    return GroupPath(
        name=group,
        nickname=nickname,
        relative_path=rest,
        repo_root=Path(root) / "groups" / group / nickname,
    )
