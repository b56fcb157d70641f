from __future__ import annotations

from statemachine import State, StateMachine

from bakery2048.api.models import TERMINAL_STATUSES, SessionStatus


class SessionFSM(StateMachine):
    """Lifecycle guard for a timed puzzle session.

    - idle -> active on the first accepted move
    - active -> won / lost / timed_out
    - restart from anywhere back to idle

    The session mutates board/score itself; the FSM only decides which transitions are legal.
    """

    idle = State(SessionStatus.idle.value, value=SessionStatus.idle.value, initial=True)
    active = State(SessionStatus.active.value, value=SessionStatus.active.value)
    won = State(SessionStatus.won.value, value=SessionStatus.won.value)
    lost = State(SessionStatus.lost.value, value=SessionStatus.lost.value)
    timed_out = State(SessionStatus.timed_out.value, value=SessionStatus.timed_out.value)

    begin = idle.to(active)
    win = active.to(won)
    lose = active.to(lost)
    time_out = active.to(timed_out)
    restart = idle.to(idle) | active.to(idle) | won.to(idle) | lost.to(idle) | timed_out.to(idle)

    def __init__(self, status: SessionStatus = SessionStatus.idle):
        super().__init__(start_value=status.value)

    @property
    def status(self) -> SessionStatus:
        return SessionStatus(str(self.current_state.value))

    @property
    def game_over(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def accepts_moves(self) -> bool:
        return self.status in (SessionStatus.idle, SessionStatus.active)
