"""
Retry orchestration exceptions.

Failed turns are reported as TurnOutcome values, not exceptions. The
exceptions here signal caller bugs.
"""


class TurnInProgressError(RuntimeError):
    """
    Raised when a turn is started while another is still in flight.

    Only one turn (and one completion gate) may be live per session instance.
    This is a programming error, not a retry scenario.
    """

    def __init__(self, turn_id: str | None) -> None:
        self.turn_id = turn_id
        super().__init__(
            f"Turn {turn_id or '<arming>'} is still in flight; "
            "await its completion before starting another"
        )
