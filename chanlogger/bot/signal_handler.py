"""SignalHandler - turns process signals into one-shot flags for the event loop."""

import logging
import signal

FLAGS = ("reload", "debug_dump", "rotate_logs", "quit")

SIGNAL_FLAGS = {
    signal.SIGHUP: "reload",
    signal.SIGUSR1: "debug_dump",
    signal.SIGUSR2: "rotate_logs",
    signal.SIGTERM: "quit",
    signal.SIGINT: "quit",
}


class SignalHandler:
    """Holds the flags raised by signals until the loop drains them."""

    def __init__(self) -> None:
        self._flags: dict[str, bool] = dict.fromkeys(FLAGS, False)

    def request(self, flag: str) -> None:
        if flag not in self._flags:
            raise ValueError(f"Unknown control flag: {flag}")
        self._flags[flag] = True

    def requested(self, flag: str) -> bool:
        return self._flags.get(flag, False)

    def drain(self) -> list[str]:
        """Return and clear the raised flags, except quit which stays set."""
        raised = [name for name, value in self._flags.items() if value]
        for name in raised:
            if name != "quit":
                self._flags[name] = False
        return raised

    def setup_signal_handlers(self) -> None:  # pragma: no cover
        """Install handlers for SIGHUP, SIGUSR1, SIGUSR2, SIGTERM and SIGINT."""

        def handler(signum: int, _frame: object | None) -> None:  # noqa: D401
            flag = SIGNAL_FLAGS[signum]
            if flag == "quit" and self._flags["quit"]:
                return
            logging.warning(f"Signal received (signal={signum}, flag={flag})")
            self._flags[flag] = True

        for signum in SIGNAL_FLAGS:
            signal.signal(signum, handler)
