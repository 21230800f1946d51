"""Client-side session: the member list, its graph, the running layout and view state.

View state is an immutable ``ViewState`` snapshot; every UI change goes
through a reducer returning a new snapshot. Local members only change when
the store has confirmed a write, so a failed request leaves the graph as it
was.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Optional, Tuple

from pydantic import ValidationError

from .client import StoreError, StoreUnavailable
from .graph import build_graph
from .plotly_graph.layout import ForceSimulation, LayoutConfig, run_ticks
from .relatives import Proposal, RelativeValidationError, propose_relative
from .schemas import CreateFamilyMemberResponse, FamilyMemberCreate, FamilyMemberOut

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemberDraft:
    first_name: str = ""
    last_name: str = ""
    date_of_birth: Optional[date] = None
    date_of_death: Optional[date] = None
    description: str = ""


@dataclass(frozen=True)
class ViewState:
    inspected: Optional[int] = None
    draft: MemberDraft = field(default_factory=MemberDraft)
    relative: Optional[Tuple[str, str]] = None
    relationship: Optional[str] = None
    pending: bool = False
    notice: Optional[str] = None


# ── reducers ──

def inspect_member(state: ViewState, index: int) -> ViewState:
    return replace(state, inspected=index)


def close_inspector(state: ViewState) -> ViewState:
    return replace(state, inspected=None)


def edit_draft(state: ViewState, **fields) -> ViewState:
    return replace(state, draft=replace(state.draft, **fields))


def select_relative(state: ViewState, identity: Optional[Tuple[str, str]]) -> ViewState:
    return replace(state, relative=identity)


def select_relationship(state: ViewState, relationship: Optional[str]) -> ViewState:
    return replace(state, relationship=relationship)


def submit_started(state: ViewState) -> ViewState:
    return replace(state, pending=True, notice=None)


def submit_succeeded(state: ViewState, created: FamilyMemberOut) -> ViewState:
    # clears the form, keeps the inspector where it was
    return ViewState(inspected=state.inspected, notice=f"Added {created.first_name} {created.last_name}")


def submit_failed(state: ViewState, message: str) -> ViewState:
    return replace(state, pending=False, notice=message)


def post_notice(state: ViewState, message: str) -> ViewState:
    return replace(state, notice=message)


def dismiss_notice(state: ViewState) -> ViewState:
    return replace(state, notice=None)


def new_member_from_draft(draft: MemberDraft) -> FamilyMemberCreate:
    try:
        return FamilyMemberCreate(
            first_name=draft.first_name,
            last_name=draft.last_name,
            date_of_birth=draft.date_of_birth,
            date_of_death=draft.date_of_death,
            description=draft.description,
        )
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise RelativeValidationError(f"Check the new member's details ({problems})") from e


class FamilyTreeSession:
    def __init__(self, store: Any, config: Optional[LayoutConfig] = None):
        self.store = store
        self.members: list[FamilyMemberOut] = []
        self.graph = build_graph([])
        self.simulation = ForceSimulation(self.graph, config)
        self.simulation.on("nonconvergence", self._on_nonconvergence)
        self.state = ViewState()
        self._task: Optional[asyncio.Task] = None

    def dispatch(self, reducer: Callable[..., ViewState], *args, **kwargs) -> ViewState:
        self.state = reducer(self.state, *args, **kwargs)
        return self.state

    def _on_nonconvergence(self, sim: ForceSimulation):
        self.dispatch(post_notice, f"Layout still settling after {sim.iterations} steps")

    # ── data ──

    async def refresh(self) -> bool:
        """Reload members from the store. On failure the current graph is kept."""
        try:
            members = await self.store.list_members()
        except (StoreUnavailable, StoreError) as e:
            self.dispatch(post_notice, f"Could not load family members: {e}")
            return False
        self._set_members(members)
        return True

    def _set_members(self, members):
        self.members = list(members)
        self.graph = build_graph(self.members)
        self.simulation.update_graph(self.graph)

    def inspected_member(self) -> Optional[FamilyMemberOut]:
        i = self.state.inspected
        if i is None or i >= len(self.members):
            return None
        return self.members[i]

    async def submit(self) -> bool:
        """Send the form as one create request; apply it locally only once confirmed.

        The simulation keeps ticking while the request is in flight.
        """
        try:
            new_member = new_member_from_draft(self.state.draft)
            proposal = await propose_relative(
                self.members, self.state.relative, self.state.relationship,
                new_member, self.store.issue_union_token,
            )
        except RelativeValidationError as e:
            self.dispatch(post_notice, str(e))
            return False
        except (StoreUnavailable, StoreError) as e:
            self.dispatch(submit_failed, f"Could not reserve a union token: {e}")
            return False

        self.dispatch(submit_started)
        try:
            result = await self.store.create_member(proposal.new_member, proposal.relative)
        except (StoreUnavailable, StoreError) as e:
            name = f"{new_member.first_name} {new_member.last_name}"
            self.dispatch(submit_failed, f"Could not add {name}: {e}")
            return False

        self._apply_confirmed(proposal, result)
        self.dispatch(submit_succeeded, result.new_family_member)
        return True

    def _apply_confirmed(self, proposal: Proposal, result: CreateFamilyMemberResponse):
        # the store wrote only these fields, on every row with the name pair
        tokens = proposal.relative.token_fields()
        identity = proposal.relative.identity
        members = [
            m.model_copy(update=tokens) if m.identity == identity else m
            for m in self.members
        ]
        members.append(result.new_family_member)
        self._set_members(members)

    # ── drag ──

    def drag_start(self, node_id: int, x: Optional[float] = None, y: Optional[float] = None):
        self.simulation.pin(self.graph.nodes[node_id].key, x, y)

    def drag(self, node_id: int, x: float, y: float):
        self.simulation.drag(self.graph.nodes[node_id].key, x, y)

    def drag_end(self, node_id: int):
        self.simulation.release(self.graph.nodes[node_id].key)

    # ── ticking ──

    def start(self, interval: float = 1.0 / 60.0) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(run_ticks(self.simulation, interval))
        return self._task

    async def stop(self):
        """Stop ticking, e.g. when the view is closed."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Layout ticking stopped")
