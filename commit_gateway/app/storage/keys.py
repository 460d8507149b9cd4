"""
Namespaced keys for the shared key-value store.

File index records and idempotency entries live in the same store. Each key
carries an explicit namespace so a user-supplied file path can never address
an idempotency entry (or the other way round), whatever characters it holds.
"""
import enum
from dataclasses import dataclass

# Paths beginning with this prefix were historically used for internal
# bookkeeping keys and are still refused as user paths.
RESERVED_PREFIX = "manage@"


class KeyNamespace(str, enum.Enum):
    FILE = "file"
    IDEMPOTENCY = "idempotency"


@dataclass(frozen=True)
class StoreKey:
    namespace: KeyNamespace
    name: str

    def render(self) -> str:
        return f"{self.namespace.value}:{self.name}"


def file_key(full_id: str) -> StoreKey:
    return StoreKey(KeyNamespace.FILE, full_id)


def idempotency_key(request_id: str) -> StoreKey:
    return StoreKey(KeyNamespace.IDEMPOTENCY, f"hf_batch_request@{request_id}")


__all__ = ["KeyNamespace", "RESERVED_PREFIX", "StoreKey", "file_key", "idempotency_key"]
