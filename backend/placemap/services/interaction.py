"""
Interaction state machine for the map UI.

Owns the single InteractionState. Map canvas, detail panel and debug views
only subscribe; they never keep their own copy of the mode flags.

Every transition replaces the whole state object and notifies subscribers
synchronously, in registration order, with the full snapshot. Async work
(fetching the latest record, saving, deleting) captures a context ticket
before awaiting and drops its result if the ticket is no longer current.
"""

import logging
from collections import deque
from typing import Any, Callable, Iterable, Optional

from placemap.core.config import settings
from placemap.core.errors import PlaceMapError, PlaceStoreError
from placemap.core.logger import logs
from placemap.models.coordinates_model import GeographicPoint
from placemap.models.interaction_model import (
    FORM_MODES,
    InteractionMode,
    InteractionState,
    PendingEdits,
)
from placemap.models.places_model import PlaceRecord, PointGeometry
from placemap.services.coordinates import REFERENCE_POINT, reconcile_place, reconcile_with_report
from placemap.services.store import PlaceStore

Listener = Callable[[InteractionState], None]

_CLEARED_SELECTION = {
    "resume_to": None,
    "place": None,
    "selected_place_id": None,
    "selected_place_name": "",
    "pending_edits": PendingEdits(),
    "geometry_outcome": None,
}


def _stored_form_mode(mode: Optional[InteractionMode]) -> Optional[InteractionMode]:
    # once stored, a new place is edited like any other
    return InteractionMode.EDITING if mode == InteractionMode.CREATING else mode


class InteractionStateMachine:
    def __init__(self, store: Optional[PlaceStore] = None):
        self._store = store
        self._state = InteractionState()
        self._listeners: list[Listener] = []
        self._outbox: deque = deque()
        self._notifying = False
        # Bumped whenever the selected place or mode context changes; async results
        # carrying an older value are stale.
        self._context = 0
        # Bumped whenever the panel is opened for another place or closed; a save
        # result for the same form is applied even if the mode changed meanwhile.
        self._form = 0
        self._saving = False

    # ===== Subscription =====

    def get_state(self) -> InteractionState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def bind_store(self, store: PlaceStore):
        self._store = store

    @property
    def store(self) -> Optional[PlaceStore]:
        return self._store

    def _commit(
        self, new_context: bool = False, new_form: bool = False, base: Optional[dict] = None, **changes: Any
    ) -> InteractionState:
        if new_context or new_form:
            self._context += 1
        if new_form:
            self._form += 1
        self._state = self._state.model_copy(update={**(base or {}), **changes, "version": self._state.version + 1})
        self._publish(self._state)
        return self._state

    def _publish(self, snapshot: InteractionState):
        # A listener may trigger another transition; queue it so every listener
        # still sees the snapshots in order.
        self._outbox.append(snapshot)
        if self._notifying:
            return
        self._notifying = True
        try:
            while self._outbox:
                current = self._outbox.popleft()
                for listener in list(self._listeners):
                    try:
                        listener(current)
                    except Exception as e:
                        logs.log(logging.ERROR, f"State listener {listener!r} failed: {str(e)}")
        finally:
            self._notifying = False

    def _ignore(self, trigger: str) -> InteractionState:
        logs.log(logging.DEBUG, f"Ignored '{trigger}' in mode {self._state.mode.value}")
        return self._state

    def _is_current(self, ticket: int, place_id: Optional[str], modes: Iterable[InteractionMode]) -> bool:
        return (
            ticket == self._context
            and self._state.selected_place_id == place_id
            and self._state.mode in modes
        )

    def _require_store(self) -> PlaceStore:
        if self._store is None:
            raise RuntimeError("No place store bound to the interaction state machine")
        return self._store

    # ===== Browsing / viewing =====

    async def select_place(self, place: PlaceRecord) -> InteractionState:
        """Open the detail panel for a place, then refresh it from the store."""
        if self._state.mode not in (InteractionMode.BROWSING, InteractionMode.VIEWING):
            return self._ignore("select_place")

        fixed, report = reconcile_place(place)
        self._commit(
            new_form=True,
            base=_CLEARED_SELECTION,
            mode=InteractionMode.VIEWING,
            place=fixed,
            selected_place_id=place.id,
            selected_place_name=place.name,
            geometry_outcome=report.outcome,
            last_error=None,
        )
        await self._refresh(self._context, place.id, (InteractionMode.VIEWING,))
        return self._state

    async def edit(self) -> InteractionState:
        """Switch the open place into edit mode, keeping a picked geometry override."""
        if self._state.mode != InteractionMode.VIEWING:
            return self._ignore("edit")

        self._commit(new_context=True, mode=InteractionMode.EDITING, last_error=None)
        await self._refresh(self._context, self._state.selected_place_id, (InteractionMode.EDITING,))
        return self._state

    async def _refresh(self, ticket: int, place_id: Optional[str], modes: tuple):
        if self._store is None or place_id is None:
            return
        try:
            latest = await self._store.fetch_place(place_id)
        except Exception as e:
            # keep showing what we already have
            logs.log(logging.WARNING, f"Could not fetch latest data for place {place_id}, using cached copy: {str(e)}")
            return

        if not self._is_current(ticket, place_id, modes):
            logs.log(logging.DEBUG, f"Discarded stale fetch result for place {place_id}")
            return

        fixed, report = reconcile_place(latest)
        self._commit(place=fixed, selected_place_name=fixed.name, geometry_outcome=report.outcome)

    # ===== Creating / editing =====

    def create_place(self, properties: Optional[dict] = None) -> InteractionState:
        """Open an empty form seeded with the default category at the reference point."""
        if self._state.mode not in (InteractionMode.BROWSING, InteractionMode.VIEWING):
            return self._ignore("create_place")

        blank = PlaceRecord(
            properties={
                "Name": "",
                "Beschreibung": "",
                "Kategorie": settings.DEFAULT_CATEGORY,
                **(properties or {}),
            },
            geometry=PointGeometry.from_point(REFERENCE_POINT),
        )
        return self._commit(
            new_form=True,
            base=_CLEARED_SELECTION,
            mode=InteractionMode.CREATING,
            place=blank,
            last_error=None,
        )

    def update_pending(self, **properties: Any) -> InteractionState:
        if self._state.mode not in FORM_MODES:
            return self._ignore("update_pending")

        pending = self._state.pending_edits
        merged = pending.model_copy(update={"properties": {**pending.properties, **properties}})
        return self._commit(pending_edits=merged)

    def set_pending_coordinates(self, point) -> InteractionState:
        """Manual numeric coordinate entry; the value is reconciled like a map pick."""
        if self._state.mode not in FORM_MODES:
            return self._ignore("set_pending_coordinates")

        report = reconcile_with_report(point)
        merged = self._state.pending_edits.model_copy(update={"geometry": report.point})
        return self._commit(pending_edits=merged, geometry_outcome=report.outcome)

    def cancel_edit(self) -> InteractionState:
        if self._state.mode == InteractionMode.EDITING:
            return self._commit(
                new_form=True,
                mode=InteractionMode.VIEWING,
                pending_edits=PendingEdits(),
                last_error=None,
            )
        if self._state.mode == InteractionMode.CREATING:
            return self._commit(new_form=True, base=_CLEARED_SELECTION, mode=InteractionMode.BROWSING, last_error=None)
        return self._ignore("cancel_edit")

    async def save(self) -> Optional[PlaceRecord]:
        """
        Persist the place under edit. On success the panel shows the saved
        record; on failure the form stays open with its pending edits and
        the error is re-raised for the caller to show.

        A result that arrives while the same form is still open, for example
        after a pick round-trip, is folded into that form so a second save
        updates the record instead of creating another one.
        """
        state = self._state
        if state.mode not in FORM_MODES or state.place is None or self._saving:
            self._ignore("save")
            return None
        store = self._require_store()

        properties = {**state.place.properties, **state.pending_edits.properties}
        geometry = state.effective_geometry or REFERENCE_POINT
        record, _ = reconcile_place(
            state.place.model_copy(update={"properties": properties, "geometry": PointGeometry.from_point(geometry)})
        )

        # any fetch still in flight for this place is now outdated
        self._context += 1
        ticket, place_id, modes, form = self._context, state.selected_place_id, (state.mode,), self._form

        self._saving = True
        try:
            saved = await store.save_place(record)
        except Exception as e:
            if form != self._form:
                logs.log(logging.DEBUG, f"Discarded stale save failure for '{record.name}': {str(e)}")
                return None
            logs.log(logging.ERROR, f"Saving place '{record.name}' failed: {str(e)}")
            self._commit(last_error=f"Saving failed: {e}")
            if isinstance(e, PlaceMapError):
                raise
            raise PlaceStoreError(str(e)) from e
        finally:
            self._saving = False

        if self._is_current(ticket, place_id, modes):
            fixed, report = reconcile_place(saved)
            self._commit(
                new_form=True,
                base=_CLEARED_SELECTION,
                mode=InteractionMode.VIEWING,
                place=fixed,
                selected_place_id=saved.id,
                selected_place_name=saved.name,
                geometry_outcome=report.outcome,
                last_error=None,
            )
        elif form == self._form:
            self._adopt_saved(saved)
        else:
            logs.log(logging.DEBUG, f"Discarded stale save result for '{saved.name}'")
        return saved

    def _adopt_saved(self, saved: PlaceRecord):
        """Keep the user's current mode and pending edits, but point the form at the stored record."""
        state = self._state
        self._commit(
            mode=_stored_form_mode(state.mode),
            resume_to=_stored_form_mode(state.resume_to),
            place=state.place.model_copy(update={"id": saved.id, "properties": saved.properties, "geometry": saved.geometry}),
            selected_place_id=saved.id,
            selected_place_name=saved.name,
            last_error=None,
        )
        logs.log(logging.DEBUG, f"Save result for '{saved.name}' applied to the open form ({state.mode.value})")

    async def delete(self) -> bool:
        state = self._state
        if state.mode not in (InteractionMode.VIEWING, InteractionMode.EDITING) or not state.selected_place_id:
            self._ignore("delete")
            return False
        store = self._require_store()

        self._context += 1
        ticket, place_id, modes = self._context, state.selected_place_id, (state.mode,)

        try:
            await store.delete_place(place_id)
        except Exception as e:
            if not self._is_current(ticket, place_id, modes):
                return False
            logs.log(logging.ERROR, f"Deleting place {place_id} failed: {str(e)}")
            self._commit(last_error=f"Deleting failed: {e}")
            if isinstance(e, PlaceMapError):
                raise
            raise PlaceStoreError(str(e)) from e

        if self._is_current(ticket, place_id, modes):
            self._commit(new_form=True, base=_CLEARED_SELECTION, mode=InteractionMode.BROWSING, last_error=None)
        return True

    # ===== Location picking =====

    def pick_on_map(self) -> InteractionState:
        """Hide the panel and wait for a map click. The current mode is resumed afterwards."""
        if self._state.mode == InteractionMode.PICKING:
            return self._ignore("pick_on_map")

        return self._commit(new_context=True, mode=InteractionMode.PICKING, resume_to=self._state.mode)

    def complete_pick(self, point) -> InteractionState:
        """
        Finish picking with a map position. Late or duplicate clicks that
        arrive after the pick already ended are ignored.
        """
        if self._state.mode != InteractionMode.PICKING:
            return self._ignore("complete_pick")

        report = reconcile_with_report(point)
        target = self._state.resume_to or InteractionMode.BROWSING

        changes: dict = {"last_selected_coordinates": report.point}
        if target != InteractionMode.BROWSING:
            # keep the other pending form fields
            changes["pending_edits"] = self._state.pending_edits.model_copy(update={"geometry": report.point})
            changes["geometry_outcome"] = report.outcome

        return self._commit(new_context=True, mode=target, resume_to=None, **changes)

    def pick_marker(self, place: PlaceRecord) -> InteractionState:
        """Picking an existing place is the same as picking its coordinate."""
        if self._state.mode != InteractionMode.PICKING:
            return self._ignore("pick_marker")
        return self.complete_pick(place.point)

    def cancel_pick(self) -> InteractionState:
        if self._state.mode != InteractionMode.PICKING:
            return self._ignore("cancel_pick")

        target = self._state.resume_to or InteractionMode.BROWSING
        return self._commit(new_context=True, mode=target, resume_to=None)

    # ===== Panel / camera =====

    def close_panel(self) -> InteractionState:
        """Back to browsing; pending edits are dropped, the camera is left alone."""
        if self._state.mode == InteractionMode.BROWSING and self._state.place is None:
            return self._ignore("close_panel")

        return self._commit(new_form=True, base=_CLEARED_SELECTION, mode=InteractionMode.BROWSING, last_error=None)

    def camera_changed(self, zoom: float, center: Optional[GeographicPoint] = None) -> InteractionState:
        if zoom == self._state.map_zoom_level and center == self._state.map_center:
            return self._state
        # the center is a viewport position, not a place coordinate: stored as reported
        return self._commit(map_zoom_level=zoom, map_center=center)

    def set_debug_mode(self, enabled: bool) -> InteractionState:
        if enabled == self._state.debug_mode:
            return self._state
        logs.enable_debug(enabled)
        return self._commit(debug_mode=enabled)

    def reset(self) -> InteractionState:
        self._context += 1
        self._form += 1
        self._state = InteractionState()
        self._publish(self._state)
        return self._state


def log_transitions(state: InteractionState):
    """Diagnostic subscriber: dumps every snapshot while debug mode is on."""
    if not state.debug_mode:
        return
    logs.log(
        logging.INFO,
        f"[state v{state.version}] {state.mode.value}",
        extra={
            "picker": state.picker_mode_active,
            "panel": state.detail_panel_open,
            "edit": state.edit_mode_active,
            "place": state.selected_place_name,
            "zoom": state.map_zoom_level,
            "last_pick": state.last_selected_coordinates.as_coordinates() if state.last_selected_coordinates else None,
            "unsaved_edits": not state.pending_edits.is_empty,
        },
    )


# Singleton instance
interaction_state = InteractionStateMachine()
interaction_state.subscribe(log_transitions)
