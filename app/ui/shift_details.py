from __future__ import annotations

import datetime
from typing import Any, Dict

from PySide6.QtWidgets import QDialog, QDialogButtonBox, QFormLayout, QLabel, QVBoxLayout


class ShiftDetailsDialog(QDialog):
    def __init__(self, details: Dict[str, Any], parent=None) -> None:
        super().__init__(parent)
        self.setModal(True)
        self.details = details
        self.setWindowTitle(details.get("staffName") or "Shift")
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        heading = QLabel(f"<h2>{self.details.get('staffName', '')}</h2>")
        layout.addWidget(heading)

        form = QFormLayout()
        date_value = datetime.date.fromisoformat(self.details["dateStr"])
        form.addRow("Date", QLabel(date_value.strftime("%a %d %b %Y")))
        form.addRow("Shift", QLabel(self.details.get("label", "")))
        self.time_label = QLabel(f"{self.details['start']} – {self.details['end']}")
        form.addRow("Time", self.time_label)
        layout.addLayout(form)

        buttons = QDialogButtonBox(QDialogButtonBox.Close)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)
