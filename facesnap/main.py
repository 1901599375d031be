# facesnap/main.py
from __future__ import annotations
from PySide6.QtGui import QIcon
from PySide6.QtWidgets import QApplication
import pathlib
import sys

# ---- Qt stability & DPI (must be set before the QApplication exists) ----
import os
# layer-backed views; avoids Cocoa flush crashes
os.environ.setdefault("QT_MAC_WANTS_LAYER", "1")
os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")   # crisp UI on Retina
# prevent mixing system Qt plugins
os.environ.pop("QT_PLUGIN_PATH", None)

from .state import AppSettings
from .ui import FaceSnapWindow


def main() -> None:
    app = QApplication(sys.argv)
    app.setApplicationName("FaceSnap")

    # Optional: place an `icon.png` next to this file
    icon_path = pathlib.Path(__file__).with_name("icon.png")
    if icon_path.exists():
        app.setWindowIcon(QIcon(str(icon_path)))

    win = FaceSnapWindow(AppSettings.from_env())
    win.show()
    code = app.exec()
    # in-flight model/capture/detect work finishes; results are discarded
    win.wait_for_workers()
    sys.exit(code)


if __name__ == "__main__":
    main()
