"""
PlanBot: turns slash commands typed in a group chat into poll-state changes.

    idle -> searching (/plan, /planmovies) -> selected (/select)
         -> scheduled (/when creates the active poll) -> locked (/lock)

Every reply is a system message in the group. handle_command never raises:
failures are logged and reported back to the chat instead.
"""
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import AppError
from app.database.gateway import Gateway
from app.modules.messages.service import MessageService
from app.modules.notifications.schemas import NotificationMetadata
from app.modules.notifications.service import NotificationService
from app.modules.planbot.grammar import ParsedCommand, extract_date_time, parse_command
from app.modules.planbot.lookup import Candidate, LookupProvider, NoopReranker, Reranker, split_category
from app.modules.planbot.schemas import CommandContext, CommandResult
from app.modules.planbot.session import CandidateKind, PlanbotSession, SessionPhase, SessionStore
from app.modules.polls.schemas import PollCreate, PollMetadata, PollResponse
from app.modules.polls.service import PollService
from app.modules.realtime.channel import RealtimeChannel
from app.modules.users.service import UserService
from app.modules.votes.service import VoteService

logger = logging.getLogger(__name__)

HELP_TEXT = "\n".join([
    "🤖 **PlanBot Commands**",
    "",
    "📍 **/plan <what> <where>**",
    "   Example: /plan cafe connaught place",
    "   Search for places in a specific area",
    "",
    "🎬 **/planmovies**",
    "   Suggest movies from your favorite genres",
    "",
    "✅ **/select <name>**",
    "   Example: /select Third Wave Coffee",
    "   Choose one of the suggestions",
    "",
    "📅 **/when YYYY-MM-DD HH:MM**",
    "   Example: /when 2025-10-30 19:30",
    "   Create poll with date and time",
    "",
    "📊 **/rsvp**",
    "   Show current RSVP summary",
    "",
    "🔒 **/lock**",
    "   Lock and finalize the plan",
    "   (Sends confirmation to all attendees)",
    "",
    "❓ **/help**",
    "   Show this help message",
])

UNKNOWN_COMMAND = "❌ Unknown command. Use **/help** for available commands."
PLAN_USAGE = "❌ Usage: /plan <what> <where>\nExample: /plan cafe connaught place"
SELECT_USAGE = "❌ Usage: /select <name>\nExample: /select Third Wave Coffee"
WHEN_USAGE = "❌ Usage: /when YYYY-MM-DD HH:MM\nExample: /when 2025-10-30 19:30"

# what the user was trying to do, for failure reports
FAILED_ACTIONS = {
    "plan": "fetch suggestions",
    "planmovies": "fetch movie suggestions",
    "select": "select",
    "when": "create poll",
    "rsvp": "load the RSVP summary",
    "lock": "lock the plan",
    "help": "show help",
}

Handler = Callable[[ParsedCommand, CommandContext, PlanbotSession], Awaitable[None]]


def _kind_icon(kind: str) -> str:
    return "🎬" if kind == CandidateKind.MOVIE.value else "🏪"


def _release_year(candidate: Candidate) -> str:
    release = candidate.extra.get("release_date") or ""
    return f" ({release[:4]})" if release[:4].isdigit() else ""


class PlanBot:
    def __init__(
        self,
        gateway: Gateway,
        channel: RealtimeChannel,
        lookup: LookupProvider,
        reranker: Optional[Reranker] = None,
        sessions: Optional[SessionStore] = None,
        max_results: int = 5,
        prefixes: Sequence[str] = ("/", "!"),
    ):
        self.lookup = lookup
        self.reranker = reranker or NoopReranker()
        self.sessions = sessions if sessions is not None else SessionStore()
        self.max_results = max_results
        self.prefixes = tuple(prefixes)
        self.polls = PollService(gateway, channel)
        self.votes = VoteService(gateway, channel)
        self.messages = MessageService(gateway, channel)
        self.notifications = NotificationService(gateway, channel)
        self.users = UserService(gateway)
        self._handlers: Dict[str, Handler] = {
            "help": self._help,
            "plan": self._plan,
            "planmovies": self._plan_movies,
            "select": self._select,
            "when": self._when,
            "rsvp": self._rsvp,
            "lock": self._lock,
        }

    def forget_group(self, group_id: str) -> None:
        """Drop the session of a deleted group."""
        self.sessions.clear(group_id)

    def is_command(self, text: str) -> bool:
        return parse_command(text, self.prefixes) is not None

    async def handle_command(self, text: str, context: Union[CommandContext, Dict]) -> CommandResult:
        parsed = parse_command(text, self.prefixes)
        if parsed is None:
            return CommandResult(handled=False)
        if not isinstance(context, CommandContext):
            try:
                context = CommandContext.model_validate(context)
            except PydanticValidationError as e:
                logger.error(f"PlanBot /{parsed.name} dropped: unusable command context: {e}")
                return CommandResult(handled=True)

        group_id = context.group_id
        handler = self._handlers.get(parsed.name)
        try:
            if handler is None:
                await self._say(group_id, UNKNOWN_COMMAND)
            else:
                logger.info(f"PlanBot /{parsed.name} in group {group_id} by {context.current_user.id}")
                await handler(parsed, context, self.sessions.get(group_id))
        except Exception as e:
            logger.exception(f"PlanBot /{parsed.name} failed in group {group_id}: {e}")
            await self._report_failure(group_id, parsed.name, e)
        return CommandResult(handled=True)

    async def _say(self, group_id: str, text: str) -> None:
        await self.messages.send_system_message(group_id, text)

    async def _report_failure(self, group_id: str, command: str, error: Exception) -> None:
        action = FAILED_ACTIONS.get(command, "run that command")
        detail = f" {error.message}" if isinstance(error, AppError) else ""
        try:
            await self._say(group_id, f"❌ Failed to {action}.{detail}")
        except Exception as e:
            logger.error(f"Could not report PlanBot failure to group {group_id}: {e}")

    def _shortlist(self, lines: List[str]) -> str:
        return "\n\n".join(lines)

    async def _help(self, parsed: ParsedCommand, context: CommandContext, session: PlanbotSession) -> None:
        await self._say(context.group_id, HELP_TEXT)

    async def _plan(self, parsed: ParsedCommand, context: CommandContext, session: PlanbotSession) -> None:
        group_id = context.group_id
        if not parsed.args:
            await self._say(group_id, PLAN_USAGE)
            return
        query = parsed.rest
        category, location = split_category(query)
        await self._say(group_id, f"🔍 Searching for {category}s in {location}...")

        results = await self.lookup.search_places(query)
        if not results:
            await self._say(group_id, f"❌ No {category}s found in {location}. Try a different area or category.")
            return
        top = (await self.reranker.rerank(query, results))[:self.max_results]
        session.start_search(CandidateKind.PLACE, top)

        lines = [
            f"{i}. **{c.title}**{f' ⭐ {c.rating}' if c.rating else ''}\n   📍 {c.description}"
            for i, c in enumerate(top, 1)
        ]
        await self._say(
            group_id,
            f"✅ Top {category} suggestions in {location}:\n\n{self._shortlist(lines)}\n\n"
            "💡 Use **/select <name>** to choose one, then **/when** to set date/time.",
        )

    async def _plan_movies(self, parsed: ParsedCommand, context: CommandContext, session: PlanbotSession) -> None:
        group_id = context.group_id
        genres = await self.users.get_favorite_genres(context.current_user.id)
        if not genres:
            await self._say(
                group_id,
                "🎬 Set your favorite genres in your profile first, then try **/planmovies** again.",
            )
            return
        genre_list = ", ".join(genres)
        await self._say(group_id, f"🔍 Finding {genre_list} movies...")

        results = await self.lookup.search_movies_by_genres(genres)
        if not results:
            await self._say(group_id, f"❌ No movies found for {genre_list}. Try adding more genres.")
            return
        top = (await self.reranker.rerank(f"{genre_list} movies", results))[:self.max_results]
        session.start_search(CandidateKind.MOVIE, top)

        lines = [
            f"{i}. **{c.title}**{_release_year(c)}{f' ⭐ {c.rating}' if c.rating else ''}"
            for i, c in enumerate(top, 1)
        ]
        await self._say(
            group_id,
            f"✅ Movie picks for {genre_list}:\n\n{self._shortlist(lines)}\n\n"
            "💡 Use **/select <title>** to choose one, then **/when** to set date/time.",
        )

    async def _select(self, parsed: ParsedCommand, context: CommandContext, session: PlanbotSession) -> None:
        group_id = context.group_id
        if not parsed.args:
            await self._say(group_id, SELECT_USAGE)
            return
        if not session.results:
            await self._say(group_id, "❌ No search results available. Run **/plan** first.")
            return

        fragment = parsed.rest.lower()
        match = next((c for c in session.results if fragment in c.title.lower()), None)
        session.select(match)
        if match is None:
            options = "\n".join(f"{i}. {c.title}" for i, c in enumerate(session.results, 1))
            await self._say(group_id, f"❌ No match for \"{parsed.rest}\". Available options:\n{options}")
            return

        if session.kind == CandidateKind.MOVIE:
            details = f"✅ Selected: **{match.title}**{_release_year(match)}"
        else:
            details = f"✅ Selected: **{match.title}**\n📍 {match.description}"
        await self._say(group_id, f"{details}\n\n💡 Use **/when YYYY-MM-DD HH:MM** to set date and time.")

    async def _when(self, parsed: ParsedCommand, context: CommandContext, session: PlanbotSession) -> None:
        group_id = context.group_id
        selected = session.selection
        if selected is None:
            await self._say(group_id, "❌ Nothing selected. Use **/select <name>** first.")
            return
        date, time = extract_date_time(parsed.args)
        if not date or not time:
            await self._say(group_id, WHEN_USAGE)
            return

        creator = context.current_user.model_dump()
        draft = PollCreate(
            type=session.kind.value,
            external_id=selected.id,
            title=selected.title,
            description=selected.description,
            image=selected.image or "",
            metadata=PollMetadata(
                date=date,
                time=time,
                rating=selected.rating,
                release_date=selected.extra.get("release_date"),
                types=selected.extra.get("types") or [],
                latitude=selected.extra.get("latitude"),
                longitude=selected.extra.get("longitude"),
                source="planbot",
            ),
        )
        poll = await self.polls.create_poll(group_id, creator, draft)
        # the poll exists from here on; a retry must not create a second one
        session.settle(SessionPhase.SCHEDULED)

        lines = ["📅 **Poll Created!**", "", f"{_kind_icon(poll.type)} **{poll.title}**"]
        if poll.type == CandidateKind.PLACE.value and poll.description:
            lines.append(f"📍 {poll.description}")
        lines += [f"📆 Date: {date}", f"⏰ Time: {time}", "", "👥 Vote Join/Maybe/No in the sidebar!"]
        try:
            await self.messages.announce_poll(group_id, creator, poll)
            await self._say(group_id, "\n".join(lines))
        except Exception as e:
            logger.warning(f"Poll {poll.id} is active in group {group_id} but announcing it failed: {e}")

    async def _rsvp(self, parsed: ParsedCommand, context: CommandContext, session: PlanbotSession) -> None:
        group_id = context.group_id
        active = await self.polls.get_active_poll(group_id)
        if active is None:
            await self._say(group_id, "❌ No active poll to summarize.")
            return
        tally = await self.votes.tally(active.id)
        when = " ".join(
            part for part in (
                f"📆 {active.metadata.date}" if active.metadata.date else "",
                f"⏰ {active.metadata.time}" if active.metadata.time else "",
            ) if part
        )
        lines = ["📊 **RSVP Summary**", "", f"{_kind_icon(active.type)} **{active.title}**"]
        if active.description and active.type == CandidateKind.PLACE.value:
            lines.append(f"📍 {active.description}")
        if when:
            lines.append(when)
        lines += [
            "",
            f"✅ Joining: {tally.join}",
            f"🤔 Maybe: {tally.maybe}",
            f"❌ Not joining: {tally.no}",
            "",
            "💡 Use **/lock** to finalize the plan.",
        ]
        await self._say(group_id, "\n".join(lines))

    async def _lock(self, parsed: ParsedCommand, context: CommandContext, session: PlanbotSession) -> None:
        group_id = context.group_id
        active = await self.polls.get_active_poll(group_id)
        if active is None:
            await self._say(group_id, "❌ No active plan to lock.")
            return
        votes = await self.votes.votes_of(active.id)
        joiners = [v.user_id for v in votes if v.choice == "join"]
        maybes = sum(1 for v in votes if v.choice == "maybe")

        await self.polls.close_poll(active.id)
        session.settle(SessionPhase.LOCKED)
        await self._say(group_id, self._lock_summary(active, len(joiners), maybes))

        group_name = context.group.name if context.group and context.group.name else None
        delivered = await self.notifications.notify_many(
            joiners,
            self._confirmation_text(active, len(joiners), group_name),
            NotificationMetadata(
                group_id=group_id,
                group_name=group_name,
                poll_id=active.id,
                place=active.title,
                address=active.description,
                date=active.metadata.date,
                time=active.metadata.time,
                attendees=len(joiners),
            ),
        )
        if delivered < len(joiners):
            logger.warning(f"Plan lock in group {group_id}: notified {delivered} of {len(joiners)} attendees")

    @staticmethod
    def _lock_summary(poll: PollResponse, joining: int, maybes: int) -> str:
        lines = [
            "🎉 **Plan Locked!**",
            "",
            f"{_kind_icon(poll.type)} **{poll.title}**",
            f"📍 {poll.description}" if poll.description and poll.type == CandidateKind.PLACE.value else None,
            f"📆 Date: {poll.metadata.date}" if poll.metadata.date else None,
            f"⏰ Time: {poll.metadata.time}" if poll.metadata.time else None,
            "",
            f"👥 **Attending ({joining})**",
            f"✅ {joining} confirmed" if joining else "No confirmations yet",
            f"🤔 {maybes} maybe" if maybes else None,
            "",
            "🎊 See you there!",
        ]
        return _join_kept(lines)

    @staticmethod
    def _confirmation_text(poll: PollResponse, joining: int, group_name: Optional[str]) -> str:
        lines = [
            "🎉 Plan Confirmed!",
            "",
            f"{_kind_icon(poll.type)} {poll.title}",
            f"📍 {poll.description}" if poll.description and poll.type == CandidateKind.PLACE.value else None,
            f"📆 {poll.metadata.date}" if poll.metadata.date else None,
            f"⏰ {poll.metadata.time}" if poll.metadata.time else None,
            "",
            f"Group: {group_name or 'Your group'}",
            f"👥 {joining} attending",
            "",
            "Don't forget! 🎊",
        ]
        return _join_kept(lines)


def _join_kept(lines: List[str]) -> str:
    """Join lines, skipping optional ones that came out None. Empty strings are spacers."""
    return "\n".join(line for line in lines if line is not None)
