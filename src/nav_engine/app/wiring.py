# nav_engine/app/wiring.py
from nav_engine.app.controllers.advisory import AdvisoryHandler
from nav_engine.app.controllers.navigation import NavigationHandler
from nav_engine.app.controllers.search import SearchHandler
from nav_engine.app.events import (
    ApproveRoute,
    CancelNavigation,
    FetchCompleted,
    MapInteraction,
    PositionFix,
    SearchRequested,
    SelectDestination,
    TripCompleted,
)
from nav_engine.sim.kernel import Kernel


def wire(
    kernel: Kernel,
    *,
    navigation: NavigationHandler,
    advisory: AdvisoryHandler | None = None,
    search: SearchHandler | None = None,
) -> None:
    k = kernel

    # commands
    k.on(SelectDestination, navigation.on_select_destination)
    k.on(ApproveRoute, navigation.on_approve)
    k.on(CancelNavigation, navigation.on_cancel)
    k.on(MapInteraction, navigation.on_map_interaction)

    # position stream: trip state first, advisories read the updated progress
    k.on(PositionFix, navigation.on_position_fix)
    if advisory:
        k.on(PositionFix, advisory.on_position_fix)

    # async completions
    k.on(FetchCompleted, navigation.on_fetch_completed)
    if advisory:
        k.on(FetchCompleted, advisory.on_fetch_completed)
    if search:
        k.on(SearchRequested, search.on_search_requested)
        k.on(FetchCompleted, search.on_fetch_completed)

    # leg finished → next leg or end of journey
    k.on(TripCompleted, navigation.on_trip_completed)
