"""
Canonical workflow types (``stockbook_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines.  Every document module
(purchasing, sales, inventory, vouchers) declares its lifecycle with these
types; services ask the workflow whether an action is legal before they
attempt the status compare-and-swap.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions; leaving one requires
  deletion-with-reversal, which is not a transition.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must hold before a transition fires (descriptive)."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition.  ``posts_entry`` marks ledger-posting transitions."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    posts_entry: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state '{self.initial_state}' "
                "is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} "
                    f"{t.from_state}->{t.to_state} uses an undeclared state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state '{t.from_state}' "
                    "has an outgoing transition"
                )

    def transition_for(self, current_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``current_state``, if any."""
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        return None

    def actions_from(self, current_state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == current_state)
