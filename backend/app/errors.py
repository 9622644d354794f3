class InvalidParameterError(ValueError):
    """A request parameter is malformed or out of range."""


class ExportSweepError(RuntimeError):
    """Raised when any page fetch fails during an export sweep.

    Rows accumulated before the failure are discarded; the original exception
    is chained as ``__cause__``.
    """

    def __init__(self, page: int, message: str = "") -> None:
        self.page = page
        super().__init__(message or f"Export aborted while fetching page {page}")
