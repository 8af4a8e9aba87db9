"""
Storage key layout. One collection per resource, so contention is
partitioned per resource.
"""


class StorageKeys:

    def __init__(self, prefix: str = "cw"):
        self.prefix = prefix

    def resource(self, resource_id: int) -> str:
        return f"{self.prefix}:resource:{resource_id}"

    def blocks(self, resource_id: int) -> str:
        return f"{self.prefix}:blocks:{resource_id}"

    def occupancy(self, resource_id: int) -> str:
        return f"{self.prefix}:occupancy:{resource_id}"

    def locks(self, resource_id: int) -> str:
        return f"{self.prefix}:locks:{resource_id}"

    def draft(self, token: str) -> str:
        return f"{self.prefix}:draft:{token}"

    def reservation(self, token: str) -> str:
        return f"{self.prefix}:reservation:{token}"

    def order(self, order_id: str) -> str:
        return f"{self.prefix}:order:{order_id}"

    def pattern(self, kind: str) -> str:
        return f"{self.prefix}:{kind}:*"

    def resource_id_from(self, key: str) -> int:
        """Trailing resource id of a per-resource key."""
        return int(key.rsplit(":", 1)[1])

    def suffix_from(self, key: str, kind: str) -> str:
        return key[len(f"{self.prefix}:{kind}:"):]
