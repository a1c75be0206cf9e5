# fs_core/common/state_machine.py
"""
Generic finite-state-machine engine.

One StatusMachine instance per entity kind (see fs_core.workflow.machines). The engine
only knows strings; Django TextChoices values are str subclasses, so they can be used
directly as states and events.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from fs_core.common.exceptions import IllegalTransition


@dataclass(frozen=True)
class StateInfo:
    value: str
    label: str
    tone: str = "neutral"
    terminal: bool = False


@dataclass(frozen=True)
class StatusMachine:
    """
    kind:        entity kind name used in error messages ("job", "quote", ...)
    states:      ordered mapping state -> label
    initial:     initial state
    terminal:    states with no outgoing transitions
    transitions: explicit (from_state, event) -> to_state table
    universal:   event -> to_state, available from every non-terminal state
                 (except states listed in universal_excludes[event])
    hold_event / resume_event / hold_state / holdable:
                 optional pause support. `hold` is allowed from every state in `holdable`;
                 `resume` returns to the state remembered by the caller.
    tones:       presentation severity per state (neutral/info/warning/success/danger)
    """
    kind: str
    states: Mapping[str, str]
    initial: str
    terminal: frozenset[str]
    transitions: Mapping[tuple[str, str], str]
    universal: Mapping[str, str] = field(default_factory=dict)
    universal_excludes: Mapping[str, frozenset[str]] = field(default_factory=dict)
    hold_event: str | None = None
    resume_event: str | None = None
    hold_state: str | None = None
    holdable: frozenset[str] = frozenset()
    tones: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.initial not in self.states:
            raise ValueError(f"{self.kind}: initial state {self.initial!r} is not a known state")
        for (src, _event), dst in self.transitions.items():
            if src not in self.states or dst not in self.states:
                raise ValueError(f"{self.kind}: transition {src!r} -> {dst!r} references unknown state")
            if src in self.terminal:
                raise ValueError(f"{self.kind}: terminal state {src!r} cannot have outgoing transitions")

    # -------------------------
    # Queries
    # -------------------------
    def is_terminal(self, state: str) -> bool:
        return state in self.terminal

    def _target(self, current: str, event: str, resume_to: str | None = None) -> str | None:
        if current not in self.states or current in self.terminal:
            return None

        key = (str(current), str(event))
        if key in self.transitions:
            return self.transitions[key]

        if event in self.universal and current not in self.universal_excludes.get(event, frozenset()):
            return self.universal[event]

        if self.hold_event and event == self.hold_event and current in self.holdable:
            return self.hold_state

        if self.resume_event and event == self.resume_event and current == self.hold_state:
            if resume_to is not None and resume_to in self.holdable:
                return resume_to
            return None

        return None

    def can_transition(self, current: str, event: str, *, resume_to: str | None = None) -> bool:
        return self._target(current, event, resume_to) is not None

    def allowed_events(self, current: str) -> list[str]:
        events = [ev for (src, ev) in self.transitions if src == current]
        if current not in self.terminal:
            events += [
                ev for ev in self.universal
                if current not in self.universal_excludes.get(ev, frozenset()) and ev not in events
            ]
        if self.hold_event and current in self.holdable:
            events.append(self.hold_event)
        if self.resume_event and current == self.hold_state:
            events.append(self.resume_event)
        return events

    def event_for(self, current: str, target: str, *, resume_to: str | None = None) -> str:
        """
        Resolve a requested target status into the single event that reaches it.
        Raises IllegalTransition if no event does.
        """
        for ev in self.allowed_events(current):
            if self._target(current, ev, resume_to) == target:
                return ev
        raise IllegalTransition(
            f"{self.kind.capitalize()} cannot move from '{current}' to '{target}'.",
            current=current,
            event=target,
        )

    # -------------------------
    # Commands
    # -------------------------
    def apply(self, current: str, event: str, *, resume_to: str | None = None) -> str:
        target = self._target(current, event, resume_to)
        if target is None:
            raise IllegalTransition(
                f"{self.kind.capitalize()} in status '{current}' does not accept '{event}'.",
                current=current,
                event=event,
            )
        return target

    # -------------------------
    # Presentation
    # -------------------------
    def choices(self) -> list[tuple[str, str]]:
        return [(value, label) for value, label in self.states.items()]

    def describe(self, state: str) -> StateInfo:
        return StateInfo(
            value=state,
            label=self.states.get(state, state),
            tone=self.tones.get(state, "neutral"),
            terminal=state in self.terminal,
        )


def table(rows: Iterable[tuple[str, str, str]]) -> dict[tuple[str, str], str]:
    """
    Build a transition table from (from_state, event, to_state) rows.
    Duplicate (from_state, event) keys are a configuration error.
    """
    out: dict[tuple[str, str], str] = {}
    for src, event, dst in rows:
        key = (str(src), str(event))
        if key in out:
            raise ValueError(f"duplicate transition for {key}")
        out[key] = str(dst)
    return out
