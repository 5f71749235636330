"""Dispatch of commands issued by the collector."""

from typing import Callable, Dict, Iterable, Optional

from packetpilot.logger import StructuredLogger, get_logger
from shared.models import Command, CommandType

CommandHandler = Callable[[Command], None]


class CommandDispatcher:
    """Routes collector commands to their handlers by type.

    The block/limit handlers only log the intended action; enforcement is
    plugged in later through register().
    """

    def __init__(self, log: Optional[StructuredLogger] = None):
        self.log = log or get_logger(__name__)
        self._handlers: Dict[str, CommandHandler] = {
            CommandType.BLOCK_APP.value: self._handle_block_app,
            CommandType.LIMIT_APP.value: self._handle_limit_app,
        }

    def register(self, command_type, handler: CommandHandler):
        """Install a handler for a command type, replacing any existing one."""
        key = command_type.value if isinstance(command_type, CommandType) else str(command_type)
        self._handlers[key] = handler

    def dispatch(self, command: Command) -> bool:
        """Run the handler for one command. Returns False for unknown types."""
        self.log.info(
            "Processing command",
            type=command.type,
            app=command.app_name,
            action=command.action
        )
        handler = self._handlers.get(command.type)
        if handler is None:
            self.log.warn("Unknown command type", type=command.type)
            return False
        handler(command)
        return True

    def dispatch_all(self, commands: Iterable[Command]) -> int:
        """Dispatch commands in the order received. Returns how many were handled."""
        commands = list(commands)
        self.log.info("Received commands from server", count=len(commands))
        return sum(1 for command in commands if self.dispatch(command))

    def _handle_block_app(self, command: Command):
        self.log.info("Block app command", app=command.app_name, action=command.action)

    def _handle_limit_app(self, command: Command):
        self.log.info("Limit app command", app=command.app_name, action=command.action)
