"""
Keyboard command surface for the slide list.
"""
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from .selection import SelectionController

logger = logging.getLogger(__name__)


class Command(Enum):
    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"
    EXTEND_UP = "extend_up"
    EXTEND_DOWN = "extend_down"
    DELETE = "delete"
    DUPLICATE = "duplicate"
    COPY = "copy"
    PASTE = "paste"
    SAVE = "save"


# (key, shift, ctrl) -> command
DEFAULT_KEYMAP: Dict[Tuple[str, bool, bool], Command] = {
    ('ArrowUp', False, False): Command.MOVE_UP,
    ('ArrowDown', False, False): Command.MOVE_DOWN,
    ('ArrowUp', True, False): Command.EXTEND_UP,
    ('ArrowDown', True, False): Command.EXTEND_DOWN,
    ('Delete', False, False): Command.DELETE,
    ('Backspace', False, False): Command.DELETE,
    ('d', False, True): Command.DUPLICATE,
    ('c', False, True): Command.COPY,
    ('v', False, True): Command.PASTE,
    ('s', False, True): Command.SAVE,
}


class CommandDispatcher:
    """Routes semantic commands to the selection controller and the saver"""

    def __init__(self, selection: SelectionController,
                 save: Optional[Callable[[], Any]] = None,
                 keymap: Optional[Dict[Tuple[str, bool, bool], Command]] = None):
        self.selection = selection
        self.save = save
        self.keymap = keymap or DEFAULT_KEYMAP
        self._handlers: Dict[Command, Callable[[], Any]] = {
            Command.MOVE_UP: lambda: self.selection.move(-1),
            Command.MOVE_DOWN: lambda: self.selection.move(1),
            Command.EXTEND_UP: lambda: self.selection.extend(-1),
            Command.EXTEND_DOWN: lambda: self.selection.extend(1),
            Command.DELETE: self.selection.delete,
            Command.DUPLICATE: self.selection.duplicate,
            Command.COPY: self.selection.copy,
            Command.PASTE: self.selection.paste,
            Command.SAVE: self._save,
        }

    def _save(self):
        if self.save is None:
            logger.warning("Save requested but no saver is configured")
            return None
        return self.save()

    def dispatch(self, command: Command) -> Any:
        logger.debug("Dispatching %s", command.value)
        return self._handlers[command]()

    def handle_key(self, key: str, shift: bool = False, ctrl: bool = False) -> Optional[Command]:
        """Dispatch the command bound to a key chord; unbound chords are ignored"""
        lookup = key.lower() if len(key) == 1 else key
        command = self.keymap.get((lookup, shift, ctrl))
        if command is None:
            return None
        self.dispatch(command)
        return command
