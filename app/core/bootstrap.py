"""
Builds the process-wide collaborators kept on app.state: persistence gateway,
realtime channel, token verifier, lookups and the PlanBot interpreter.

Anything already set on the state is left alone, so tests can install an
in-memory gateway or a scripted lookup before startup runs.
"""
import logging

from app.config.settings import Settings, settings as default_settings
from app.database.memory_gateway import MemoryGateway
from app.database.supabase_client import SupabaseClient
from app.database.supabase_gateway import SupabaseGateway
from app.modules.auth.service import AuthService
from app.modules.planbot.interpreter import PlanBot
from app.modules.planbot.lookup import HttpLookupProvider, build_reranker
from app.modules.planbot.serializer import CommandSerializer
from app.modules.planbot.session import SessionStore
from app.modules.realtime.channel import RealtimeChannel

logger = logging.getLogger(__name__)


def _missing(state, name: str) -> bool:
    return getattr(state, name, None) is None


async def init_state(state, settings: Settings = default_settings) -> None:
    if _missing(state, "gateway"):
        if settings.persistence_backend == "memory":
            state.gateway = MemoryGateway()
            logger.warning("Using in-memory persistence; data is lost on restart")
        else:
            state.gateway = SupabaseGateway(await SupabaseClient.get_service_client())
    if _missing(state, "channel"):
        state.channel = RealtimeChannel()
    if _missing(state, "auth_service"):
        if settings.supabase_url and settings.supabase_key:
            state.auth_service = AuthService(await SupabaseClient.get_client())
        else:
            logger.warning("Supabase is not configured; authenticated routes will answer 503")
    if _missing(state, "lookup"):
        state.lookup = HttpLookupProvider(settings)
    if _missing(state, "reranker"):
        state.reranker = build_reranker(settings)
    if _missing(state, "planbot"):
        state.planbot = PlanBot(
            state.gateway,
            state.channel,
            state.lookup,
            reranker=state.reranker,
            sessions=SessionStore(),
            max_results=settings.planbot_max_results,
            prefixes=settings.get_command_prefixes(),
        )
    if _missing(state, "command_serializer"):
        state.command_serializer = CommandSerializer()


async def close_state(state) -> None:
    for name in ("lookup", "reranker"):
        closable = getattr(state, name, None)
        if closable is None:
            continue
        try:
            await closable.aclose()
        except Exception as e:
            logger.warning(f"Error closing {name}: {e}")
