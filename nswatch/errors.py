class NSWatchError(Exception):
    pass


class InvalidArgumentError(NSWatchError, ValueError):
    pass


class DiscoveryError(NSWatchError):
    pass


class NotRegisteredError(DiscoveryError):
    def __init__(self, obj_type):
        super().__init__(f"no kind is registered for the type {obj_type}")
        self.obj_type = obj_type


class NoKindMatchError(DiscoveryError):
    def __init__(self, group_kind, *versions):
        super().__init__(f"no matches for kind {group_kind} in versions {versions}")
        self.group_kind = group_kind
        self.versions = versions


class SessionError(NSWatchError):
    pass
