"""Client registry: maps authenticated caller principals to client ids."""

from __future__ import annotations

from typing import Dict, List

from secure_fedavg.errors import NotFound, Unauthenticated

ClientId = int


class Registry:
    """
    Assigns sequential client ids, one per distinct principal.

    Ids are never reused or deleted; the id of a principal is its position in
    registration order.
    """

    def __init__(self) -> None:
        self._principals: List[str] = []
        self._ids: Dict[str, ClientId] = {}

    def register(self, principal: str) -> ClientId:
        """Idempotent: an already registered principal gets its existing id back."""
        if not principal:
            raise Unauthenticated("Anonymous callers cannot register")
        existing = self._ids.get(principal)
        if existing is not None:
            return existing
        client_id = len(self._principals)
        self._principals.append(principal)
        self._ids[principal] = client_id
        return client_id

    def is_registered(self, client_id: ClientId) -> bool:
        return 0 <= client_id < len(self._principals)

    def client_id_for(self, principal: str) -> ClientId:
        client_id = self._ids.get(principal)
        if client_id is None:
            raise Unauthenticated("Caller is not registered")
        return client_id

    def principal_for(self, client_id: ClientId) -> str:
        if not self.is_registered(client_id):
            raise NotFound(f"Unknown client {client_id}")
        return self._principals[client_id]

    def members(self) -> List[ClientId]:
        return list(range(len(self._principals)))

    def __len__(self) -> int:
        return len(self._principals)

    def to_dict(self) -> Dict:
        return {"principals": list(self._principals)}

    @classmethod
    def from_dict(cls, data: Dict) -> "Registry":
        registry = cls()
        for principal in data.get("principals", []):
            registry.register(str(principal))
        return registry
