"""
Exact-match dispatch of prefixed text commands.

Guild messages and direct messages have separate command tables. The first
whitespace-delimited token selects the handler (case-sensitive, no partial
matches); the handler receives every token, the command name included.
Unknown commands are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from bouncer.datatypes.discord_datatypes import GuildID, UserID
from bouncer.util.logger import get_logger

logger = get_logger("command_router")


class CommandScope(Enum):
    GUILD = "guild"
    DIRECT = "direct"


@dataclass(slots=True)
class CommandContext:
    """Who invoked a command, where, and how to answer them."""

    author_id: UserID
    reply: Callable[[str], Awaitable[None]]
    guild_id: Optional[GuildID] = None
    author_tag: str = ""
    can_moderate: bool = False

    @property
    def scope(self) -> CommandScope:
        return CommandScope.GUILD if self.guild_id is not None else CommandScope.DIRECT


CommandHandler = Callable[[CommandContext, List[str]], Awaitable[None]]


def strip_prefix(content: str, prefix: str) -> Optional[str]:
    """Return the command line after ``prefix`` or ``None`` if the message is not a command.

    The prefix has to be followed by whitespace or end the message, so
    ``!bbping`` is not a command.
    """
    content = content.strip()
    if content == prefix:
        return ""
    if content.startswith(prefix) and content[len(prefix)].isspace():
        return content[len(prefix):].strip()
    return None


class CommandRouter:
    """Two command tables and the error boundary around their handlers."""

    def __init__(self) -> None:
        self._tables: Dict[CommandScope, Dict[str, CommandHandler]] = {scope: {} for scope in CommandScope}

    def register(self, scope: CommandScope, name: str, handler: CommandHandler) -> None:
        if name in self._tables[scope]:
            raise ValueError(f"Command '{name}' is already registered for {scope.value} messages")
        self._tables[scope][name] = handler

    def resolve(self, scope: CommandScope, name: str) -> Optional[CommandHandler]:
        return self._tables[scope].get(name)

    async def dispatch(self, line: str, context: CommandContext) -> bool:
        """Run the handler for ``line`` in the context's scope.

        Returns True when a handler was found. Handler exceptions are logged and
        reported to the invoker; they never reach the caller.
        """
        tokens = line.split()
        if not tokens:
            return False

        handler = self.resolve(context.scope, tokens[0])
        if handler is None:
            logger.debug("[ROUTER] Ignoring unknown %s command %r", context.scope.value, tokens[0])
            return False

        try:
            await handler(context, tokens)
        except Exception as exc:
            logger.exception("[ROUTER] Command %r from %s failed", tokens[0], context.author_id)
            try:
                await context.reply(f"An error occurred: {exc}")
            except Exception:
                logger.exception("[ROUTER] Could not report failure of %r to %s", tokens[0], context.author_id)
        return True
