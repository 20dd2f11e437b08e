"""
Guarded transition tables for conversations and tickets.

Every legal status change is a named edge in a fixed adjacency table.
Reopen edges are ordinary edges that point backwards, so the terminal-state
rules can be read straight off the table.
"""
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Iterator, List, NamedTuple, Optional, Tuple

from support_relay.domains import (
    Actor,
    ActorRole,
    ConversationStatus,
    ELEVATED_ROLES,
    TicketStatus,
)
from support_relay.errors import InvalidTransitionError


class Edge(NamedTuple):
    """One permitted status change."""
    name: str
    source: Enum
    target: Enum
    # None means any role may use the edge
    roles: Optional[FrozenSet[ActorRole]] = None

    def permits(self, actor: Actor) -> bool:
        return self.roles is None or actor.role in self.roles


class StateMachine:
    """Adjacency table of named edges for one entity type."""

    def __init__(self, entity: str, edges: Iterable[Edge]):
        self.entity = entity
        self._edges: Dict[Tuple[Enum, Enum], List[Edge]] = {}
        for edge in edges:
            self._edges.setdefault((edge.source, edge.target), []).append(edge)

    def edges(self) -> Iterator[Edge]:
        for candidates in self._edges.values():
            yield from candidates

    def pairs(self) -> List[Tuple[Enum, Enum]]:
        """Every (source, target) pair present in the table."""
        return list(self._edges)

    def is_valid(self, current: Enum, requested: Enum) -> bool:
        return (current, requested) in self._edges

    def allowed_targets(self, current: Enum, actor: Optional[Actor] = None) -> List[Enum]:
        """Statuses reachable from ``current``, optionally filtered by actor role."""
        targets = []
        for (source, target), candidates in self._edges.items():
            if source != current:
                continue
            if actor is None or any(e.permits(actor) for e in candidates):
                targets.append(target)
        return targets

    def resolve(self, current: Enum, requested: Enum, actor: Actor) -> Edge:
        """Return the edge ``actor`` may use to move from ``current`` to ``requested``.

        Raises:
            InvalidTransitionError: The pair is not in the table, or no edge for
                the pair admits the actor's role.
        """
        candidates = self._edges.get((current, requested))
        allowed = [t.value for t in self.allowed_targets(current, actor)]
        if not candidates:
            raise InvalidTransitionError(
                self.entity, current.value, requested.value, allowed)

        for edge in candidates:
            if edge.permits(actor):
                return edge

        raise InvalidTransitionError(
            self.entity,
            current.value,
            requested.value,
            allowed,
            detail=f"role '{actor.role.value}' may not use this transition",
        )


def _edges(
    name: str,
    sources: Iterable[Enum],
    target: Enum,
    roles: Optional[FrozenSet[ActorRole]] = None,
) -> List[Edge]:
    return [Edge(name=name, source=s, target=target, roles=roles) for s in sources]


CS = ConversationStatus

CONVERSATION_MACHINE = StateMachine(
    "conversation",
    [
        *_edges("assign", [CS.OPEN], CS.ASSIGNED),
        *_edges("transfer", [CS.ASSIGNED], CS.ASSIGNED),
        *_edges("resume", [CS.WAITING], CS.ASSIGNED),
        *_edges("await_customer", [CS.ASSIGNED], CS.WAITING),
        *_edges("release", [CS.ASSIGNED, CS.WAITING], CS.OPEN),
        *_edges("resolve", [CS.OPEN, CS.ASSIGNED, CS.WAITING], CS.RESOLVED),
        *_edges("unresolve", [CS.RESOLVED], CS.OPEN),
        *_edges("close", [CS.RESOLVED], CS.CLOSED),
        *_edges(
            "force_close", [CS.OPEN, CS.ASSIGNED, CS.WAITING], CS.CLOSED,
            roles=ELEVATED_ROLES,
        ),
        *_edges("reopen", [CS.CLOSED], CS.OPEN, roles=ELEVATED_ROLES),
        *_edges(
            "customer_reopen", [CS.CLOSED], CS.OPEN,
            roles=frozenset({ActorRole.CUSTOMER}),
        ),
    ],
)

TS = TicketStatus

_TICKET_ACTIVE = [
    TS.NEW, TS.OPEN, TS.IN_PROGRESS, TS.PENDING_CUSTOMER, TS.WAITING_INTERNAL]

TICKET_MACHINE = StateMachine(
    "ticket",
    [
        *_edges("open", [TS.NEW], TS.OPEN),
        *_edges("start", [TS.OPEN], TS.IN_PROGRESS),
        *_edges("await_customer", [TS.IN_PROGRESS], TS.PENDING_CUSTOMER),
        *_edges("await_internal", [TS.IN_PROGRESS], TS.WAITING_INTERNAL),
        *_edges("resume", [TS.PENDING_CUSTOMER, TS.WAITING_INTERNAL], TS.IN_PROGRESS),
        *_edges(
            "resolve",
            [TS.IN_PROGRESS, TS.PENDING_CUSTOMER, TS.WAITING_INTERNAL],
            TS.RESOLVED,
        ),
        *_edges("cancel", _TICKET_ACTIVE, TS.CANCELLED),
        *_edges("close", [TS.RESOLVED], TS.CLOSED),
        *_edges("force_close", _TICKET_ACTIVE, TS.CLOSED, roles=ELEVATED_ROLES),
        *_edges("reopen", [TS.RESOLVED, TS.CLOSED], TS.OPEN),
    ],
)
