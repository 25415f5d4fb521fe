from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from PySide6.QtGui import QIcon  # noqa: E402
from PySide6.QtWidgets import (  # noqa: E402
    QApplication,
    QCheckBox,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

import roster_store  # noqa: E402
from accounts import ACCOUNTS_FILE, AUDIT_FILE, AccountLockedError, AccountStore, AuditLogger  # noqa: E402
from database import SessionLocal, init_database  # noqa: E402
from settings import days_to_show, load_settings, save_settings, shift_windows  # noqa: E402
from shift_state import StaffMember  # noqa: E402
from ui.roster_grid import RosterGridPage  # noqa: E402
from ui.staff_directory import StaffDirectoryDialog  # noqa: E402


ICON_FILE = APP_DIR.parent / "project_image.ico"
ACCENT_COLOR = "#8f3434"
ERROR_COLOR = "#ff7a7a"

LIGHT_STYLESHEET = """
QWidget {
    background-color: #f7f4ef;
    color: #12100e;
    font-family: 'Segoe UI', sans-serif;
    font-size: 14px;
}

QDialog, QMenu, QToolTip {
    background-color: #ffffff;
    border: 1px solid #d8d2c8;
    border-radius: 10px;
}

QPushButton {
    background-color: #ffffff;
    border: 1px solid #cfc7bb;
    border-radius: 8px;
    padding: 6px 14px;
}

QPushButton:hover {
    border-color: #8f3434;
}

QPushButton:disabled {
    color: #a49b8f;
}

QHeaderView::section {
    background-color: #ece6dc;
    border: none;
    padding: 4px;
    font-weight: 600;
}

QTableWidget {
    gridline-color: #e2dbcf;
    background-color: #ffffff;
}
"""

DARK_STYLESHEET = """
QWidget {
    background-color: #12100e;
    color: #f2efe9;
    font-family: 'Segoe UI', sans-serif;
    font-size: 14px;
}

QDialog, QMenu, QToolTip {
    background-color: #1c1916;
    border: 1px solid #2e2a25;
    border-radius: 10px;
}

QPushButton {
    background-color: #1c1916;
    border: 1px solid #3a352f;
    border-radius: 8px;
    padding: 6px 14px;
}

QPushButton:hover {
    border-color: #c25a5a;
}

QPushButton:disabled {
    color: #6b645b;
}

QHeaderView::section {
    background-color: #221f1b;
    border: none;
    padding: 4px;
    font-weight: 600;
}

QTableWidget {
    gridline-color: #2e2a25;
    background-color: #171512;
}
"""


def theme_stylesheet(dark_mode: bool) -> str:
    return DARK_STYLESHEET if dark_mode else LIGHT_STYLESHEET


class LoginDialog(QDialog):
    def __init__(self, store: AccountStore, parent=None) -> None:
        super().__init__(parent)
        self.store = store
        self.authenticated_user: Optional[Dict[str, str]] = None
        self.setWindowTitle("Roster Viewer - Admin sign in")
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        heading = QLabel(f"<h2 style='color:{ACCENT_COLOR};'>Admin sign in</h2>")
        subheading = QLabel("Sign in to edit the roster. Viewing needs no account.")

        self.username_input = QLineEdit()
        self.username_input.setPlaceholderText("Username")
        self.password_input = QLineEdit()
        self.password_input.setPlaceholderText("Password")
        self.password_input.setEchoMode(QLineEdit.Password)

        form = QFormLayout()
        form.addRow("Username", self.username_input)
        form.addRow("Password", self.password_input)

        self.error_label = QLabel()
        self.error_label.setStyleSheet(f"color:{ERROR_COLOR};")
        self.error_label.setWordWrap(True)
        self.error_label.setVisible(False)

        button_box = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        button_box.accepted.connect(self.attempt_login)
        button_box.rejected.connect(self.reject)

        layout.addWidget(heading)
        layout.addWidget(subheading)
        layout.addSpacing(10)
        layout.addLayout(form)
        layout.addWidget(self.error_label)
        layout.addWidget(button_box)

    def _set_error(self, message: str = "") -> None:
        self.error_label.setText(message)
        self.error_label.setVisible(bool(message.strip()))

    def attempt_login(self) -> None:
        username = self.username_input.text().strip()
        password = self.password_input.text()
        try:
            account = self.store.verify_credentials(username, password)
        except AccountLockedError as exc:
            self.password_input.clear()
            self._set_error(exc.until.astimezone().strftime("Account locked until %Y-%m-%d %H:%M %Z."))
            return

        self.password_input.clear()
        if not account:
            self._set_error("Invalid username or password.")
            return

        self._set_error("")
        self.authenticated_user = account
        self.accept()


class MainWindow(QMainWindow):
    """Read-only roster for everyone; signing in as admin enables editing."""

    def __init__(
        self,
        store: AccountStore,
        audit: AuditLogger,
        staff: List[StaffMember],
        session_factory,
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__()
        self.store = store
        self.audit = audit
        self.session_factory = session_factory
        self.settings = settings or load_settings()
        self.user: Optional[Dict[str, str]] = None
        self.staff = list(staff)
        self.setWindowTitle("Roster Viewer")
        self.setMinimumSize(1100, 640)
        self._build_ui()
        self.apply_theme()

    @property
    def is_admin(self) -> bool:
        return self.user is not None

    def _build_ui(self) -> None:
        central = QWidget()
        layout = QVBoxLayout(central)

        toolbar = QHBoxLayout()
        self.title_label = QLabel(f"<h2 style='color:{ACCENT_COLOR};'>Staff roster</h2>")
        toolbar.addWidget(self.title_label)
        toolbar.addStretch()
        self.user_label = QLabel("Viewing")
        toolbar.addWidget(self.user_label)
        self.dark_mode_toggle = QCheckBox("Dark mode")
        self.dark_mode_toggle.setChecked(bool(self.settings.get("dark_mode")))
        self.dark_mode_toggle.toggled.connect(self.toggle_dark_mode)
        toolbar.addWidget(self.dark_mode_toggle)
        self.directory_button = QPushButton("Staff directory")
        self.directory_button.clicked.connect(self.open_staff_directory)
        toolbar.addWidget(self.directory_button)
        self.auth_button = QPushButton()
        self.auth_button.clicked.connect(self.toggle_admin)
        toolbar.addWidget(self.auth_button)
        layout.addLayout(toolbar)

        self.grid = RosterGridPage(
            self.staff,
            is_admin=False,
            days=days_to_show(False, self.settings),
            windows=shift_windows(self.settings),
            display_mode=self.settings.get("display_mode", "dots"),
            dark_mode=bool(self.settings.get("dark_mode")),
            on_update_staff=self.handle_update_staff,
        )
        layout.addWidget(self.grid)

        self.status_label = QLabel()
        layout.addWidget(self.status_label)
        self.setCentralWidget(central)
        self._sync_mode()

    def _sync_mode(self) -> None:
        self.directory_button.setVisible(self.is_admin)
        self.auth_button.setText("Sign out" if self.is_admin else "Admin sign in")
        if self.is_admin:
            self.user_label.setText(f"Signed in as {self.user['display_name']}")
        else:
            self.user_label.setText("Viewing")
        self.grid.set_admin(self.is_admin, days_to_show(self.is_admin, self.settings))

    def apply_theme(self) -> None:
        dark_mode = bool(self.settings.get("dark_mode"))
        self.setStyleSheet(theme_stylesheet(dark_mode))
        self.grid.dark_mode = dark_mode
        self.grid.refresh()

    def toggle_dark_mode(self, checked: bool) -> None:
        self.settings["dark_mode"] = checked
        save_settings(self.settings)
        self.apply_theme()

    def toggle_admin(self) -> None:
        if self.is_admin:
            self.audit.log("logout", self.user["username"])
            self.user = None
            self._sync_mode()
            return
        dialog = LoginDialog(self.store, self)
        dialog.setStyleSheet(theme_stylesheet(bool(self.settings.get("dark_mode"))))
        if dialog.exec() == QDialog.Accepted and dialog.authenticated_user:
            self.user = dialog.authenticated_user
            self._sync_mode()

    def persist_staff(
        self,
        members: List[StaffMember],
        event: str = "roster_save",
        details: Optional[Dict[str, Any]] = None,
    ) -> List[StaffMember]:
        stored = roster_store.save_roster(self.session_factory, members)
        username = self.user["username"] if self.user else None
        self.audit.log(event, username, details=details or {"count": len(stored)})
        self.staff = stored
        self.grid.set_staff(stored)
        return stored

    def handle_update_staff(
        self,
        members: List[StaffMember],
        event: str = "roster_save",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Keep the edit on screen even if the store rejects it; the cache already holds it.
        self.grid.set_staff(members)
        try:
            self.persist_staff(members, event, details)
        except (SQLAlchemyError, ValueError) as exc:
            self.staff = list(members)
            self.status_label.setText("Failed to save. Changes are kept locally.")
            QMessageBox.warning(self, "Save failed", str(exc))
            return
        self.status_label.setText("Saved.")

    def open_staff_directory(self) -> None:
        dialog = StaffDirectoryDialog(
            self.staff,
            self.persist_staff,
            self,
            audit=self.audit,
            username=self.user["username"] if self.user else None,
        )
        dialog.setStyleSheet(theme_stylesheet(bool(self.settings.get("dark_mode"))))
        dialog.exec()


def launch_app() -> int:
    app = QApplication(sys.argv)
    icon = QIcon(str(ICON_FILE)) if ICON_FILE.exists() else None
    if icon is not None:
        app.setWindowIcon(icon)

    audit = AuditLogger(AUDIT_FILE)
    store = AccountStore(ACCOUNTS_FILE, audit)
    try:
        init_database()
    except SQLAlchemyError as exc:
        print(f"[roster] Record store unavailable at startup: {exc}", file=sys.stderr)
    staff = roster_store.load_roster(SessionLocal)

    window = MainWindow(store, audit, staff, SessionLocal)
    if icon is not None:
        window.setWindowIcon(icon)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(launch_app())
