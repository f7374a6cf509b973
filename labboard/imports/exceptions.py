"""Import errors."""

from labboard.board.exceptions import PreconditionError


class CSVInputError(ValueError):
    """Malformed, unreadable or oversize input. Terminal; the board is untouched."""


class MissingResolutionError(PreconditionError):
    """Resolutions were applied before every conflict had one."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(f"Missing resolutions for: {', '.join(names)}")


class ImportStateError(PreconditionError):
    """Illegal transition of the import state machine."""


class InvalidResolutionError(ValueError):
    """A resolution names a target category that can never exist."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(f"Invalid target category for: {', '.join(names)}")
