# facesnap/utils/logger.py
import traceback

from PySide6.QtCore import QObject, Signal, QDateTime


class AppLogger(QObject):
    message = Signal(str)

    def log(self, text: str) -> None:
        ts = QDateTime.currentDateTime().toString("yyyy-MM-dd HH:mm:ss")
        self.message.emit(f"[{ts}] {text}")

    def error(self, text: str, exc: BaseException | None = None) -> None:
        self.log(f"ERROR: {text}")
        if exc is not None and exc.__traceback__ is not None:
            tb = "".join(traceback.format_exception(
                type(exc), exc, exc.__traceback__)).rstrip()
            self.message.emit(tb)


# Singleton instance you can import anywhere
app_logger = AppLogger()
