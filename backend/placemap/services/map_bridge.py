"""
Glue between the map renderer and the interaction state machine.

The renderer is opaque: it reports clicks and camera moves and accepts
markers, a picker cursor toggle and fly-to requests. Every point crossing
this boundary goes through reconciliation.
"""

import logging
from typing import Optional, Protocol

from placemap.core.logger import logs
from placemap.models.coordinates_model import GeographicPoint
from placemap.models.interaction_model import InteractionState
from placemap.models.places_model import PlaceRecord, PlacesFilter, PlaceView
from placemap.services.coordinates import reconcile, reconcile_place
from placemap.services.interaction import InteractionStateMachine
from placemap.services.places_service import to_view


class MapRenderer(Protocol):
    def set_markers(self, markers: list[PlaceView]) -> None: ...
    def show_picker_cursor(self, active: bool) -> None: ...
    def fly_to(self, point: GeographicPoint, zoom: float) -> None: ...


class MapBridge:
    def __init__(self, machine: InteractionStateMachine, renderer: MapRenderer):
        self.machine = machine
        self.renderer = renderer
        self.markers: dict[str, PlaceView] = {}
        self._picker_shown: Optional[bool] = None
        self._focused_place: Optional[str] = None
        self._unsubscribe = machine.subscribe(self._on_state)
        self._on_state(machine.get_state())

    def close(self):
        self._unsubscribe()

    # ===== Renderer -> state machine =====

    def on_map_clicked(self, point: GeographicPoint):
        """Only meaningful while picking; other clicks are ignored by the machine."""
        self.machine.complete_pick(point)

    async def on_marker_clicked(self, place_id: str):
        place = self.markers.get(place_id)
        if place is None:
            logs.log(logging.DEBUG, f"Click on unknown marker {place_id} ignored")
            return

        if self.machine.get_state().picker_mode_active:
            self.machine.pick_marker(place)
        else:
            await self.machine.select_place(place)

    def on_camera_changed(self, zoom: float, center: Optional[GeographicPoint] = None):
        self.machine.camera_changed(zoom, center)

    # ===== State machine / store -> renderer =====

    def show_places(self, places: list[PlaceRecord]):
        """Push markers to the renderer. Unrecoverable geometries are shown, flagged."""
        views = [p if isinstance(p, PlaceView) else to_view(p) for p in places]
        # stored views may predate a correction; make sure nothing off-area is drawn
        views = [v.model_copy(update={"geometry": reconcile_place(v)[0].geometry}) for v in views]
        self.markers = {v.id: v for v in views if v.id is not None}
        self.renderer.set_markers(views)

    async def load_markers(self, places_filter: Optional[PlacesFilter] = None):
        store = self.machine.store
        if store is None:
            raise RuntimeError("No place store bound to the interaction state machine")
        try:
            places = await store.list_places(places_filter)
        except Exception as e:
            # keep whatever is on the map
            logs.log(logging.WARNING, f"Loading markers failed: {str(e)}")
            return
        self.show_places(places)

    def _on_state(self, state: InteractionState):
        if state.picker_mode_active != self._picker_shown:
            self._picker_shown = state.picker_mode_active
            self.renderer.show_picker_cursor(state.picker_mode_active)

        # centre on a newly opened place, keeping the user's zoom
        if state.detail_panel_open and state.selected_place_id != self._focused_place:
            self._focused_place = state.selected_place_id
            target = state.effective_geometry
            if target is not None:
                self.renderer.fly_to(reconcile(target), state.map_zoom_level)
        elif not state.detail_panel_open and not state.picker_mode_active:
            self._focused_place = None
