"""Routes reporting how far game servers are along the way to routing."""

from typing import Annotated

from fastapi import APIRouter, Depends
from safir.models import ErrorModel
from safir.slack.webhook import SlackRouteErrorHandler

from ..constants import KUBERNETES_REQUEST_TIMEOUT
from ..dependencies.context import RequestContext, context_dependency
from ..exceptions import UnknownGameServerError
from ..models.domain.gameserver import GameServerIdentity
from ..models.domain.reconcile import ReconcileState
from ..models.v1.gameserver import GameServerStatus
from ..timeout import Timeout

router = APIRouter(route_class=SlackRouteErrorHandler)
"""Router to mount into the application."""

__all__ = ["router"]


@router.get(
    "/gameservers/{namespace}/{name}",
    responses={
        404: {"description": "Game server not found", "model": ErrorModel}
    },
    response_model=GameServerStatus,
    response_model_exclude_none=True,
    summary="Routing status of game server",
    description=(
        "Reports the next step needed to expose the game server, along with"
        " the ports of its service and the match rule of its route if those"
        " exist. Makes no changes."
    ),
)
async def get_gameserver_status(
    namespace: str,
    name: str,
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> GameServerStatus:
    context.rebind_logger(namespace=namespace, name=name)
    identity = GameServerIdentity(namespace=namespace, name=name)
    reconciler = context.factory.create_reconciler()
    timeout = Timeout("Reading game server", KUBERNETES_REQUEST_TIMEOUT)
    async with timeout.enforce():
        observed = await reconciler.observe(identity, timeout)
    if observed.state == ReconcileState.WORKLOAD_MISSING:
        raise UnknownGameServerError(namespace, name)
    return GameServerStatus.from_observed(identity, observed)
