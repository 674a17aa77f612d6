from typing import NamedTuple


class GroupKind(NamedTuple):
    group: str
    kind: str

    def __str__(self):
        if not self.group:
            return self.kind
        return f"{self.kind}.{self.group}"


class GroupVersion(NamedTuple):
    group: str
    version: str

    def __str__(self):
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    def with_kind(self, kind):
        return GroupVersionKind(self.group, self.version, kind)


class GroupVersionKind(NamedTuple):
    group: str
    version: str
    kind: str

    def __str__(self):
        return f"{self.group}/{self.version}, Kind={self.kind}"

    @property
    def group_kind(self):
        return GroupKind(self.group, self.kind)

    @property
    def group_version(self):
        return GroupVersion(self.group, self.version)


class GroupVersionResource(NamedTuple):
    group: str
    version: str
    resource: str


def parse_group_version(gv):
    """Parse an ``apiVersion`` string such as ``"v1"`` or ``"apps/v1"``."""
    if not gv:
        return GroupVersion("", "")
    parts = gv.split("/")
    if len(parts) == 1:
        return GroupVersion("", parts[0])
    if len(parts) == 2:
        return GroupVersion(parts[0], parts[1])
    raise ValueError(f"unexpected GroupVersion string: {gv}")
