from __future__ import annotations

import dataclasses
import datetime
import time
from pathlib import Path
from typing import Callable, List, Optional

from PySide6.QtCore import QDate, Qt
from PySide6.QtWidgets import (
    QAbstractItemView,
    QComboBox,
    QDateEdit,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QSpinBox,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
)

from accounts import AuditLogger
from data_exchange import EXPORT_DIR, export_staff, import_staff
from shift_state import (
    SHIFT_HALF,
    SHIFT_NORMAL,
    STATUS_CASUAL,
    STATUS_PERMANENT,
    StaffMember,
    validate_pattern,
)


class StaffEditDialog(QDialog):
    def __init__(self, member: Optional[StaffMember] = None, parent=None) -> None:
        super().__init__(parent)
        self.setModal(True)
        self.member = member
        self.result_member: Optional[StaffMember] = None
        self.setWindowTitle("Edit staff member" if member else "Add staff member")
        self._build_ui()
        if member:
            self._load_member(member)

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        form = QFormLayout()

        self.name_input = QLineEdit()
        form.addRow("Name", self.name_input)
        self.role_input = QLineEdit()
        form.addRow("Role", self.role_input)

        today = datetime.date.today()
        self.cycle_start_edit = QDateEdit()
        self.cycle_start_edit.setCalendarPopup(True)
        self.cycle_start_edit.setDisplayFormat("yyyy-MM-dd")
        self.cycle_start_edit.setDate(QDate(today.year, today.month, today.day))
        form.addRow("Cycle start", self.cycle_start_edit)

        self.pattern_on_spin = QSpinBox()
        self.pattern_on_spin.setRange(0, 365)
        self.pattern_on_spin.setValue(5)
        form.addRow("Days on", self.pattern_on_spin)
        self.pattern_off_spin = QSpinBox()
        self.pattern_off_spin.setRange(0, 365)
        self.pattern_off_spin.setValue(2)
        form.addRow("Days off", self.pattern_off_spin)

        self.shift_type_combo = QComboBox()
        self.shift_type_combo.addItems([SHIFT_NORMAL, SHIFT_HALF])
        form.addRow("Shift type", self.shift_type_combo)
        self.status_combo = QComboBox()
        self.status_combo.addItems([STATUS_PERMANENT, STATUS_CASUAL])
        form.addRow("Status", self.status_combo)
        layout.addLayout(form)

        self.feedback_label = QLabel()
        self.feedback_label.setStyleSheet("color:#ff7a7a;")
        layout.addWidget(self.feedback_label)

        buttons = QDialogButtonBox(QDialogButtonBox.Save | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self._handle_save)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def _load_member(self, member: StaffMember) -> None:
        self.name_input.setText(member.name)
        self.role_input.setText(member.role)
        start = member.cycle_start_date
        self.cycle_start_edit.setDate(QDate(start.year, start.month, start.day))
        self.pattern_on_spin.setValue(member.pattern_on)
        self.pattern_off_spin.setValue(member.pattern_off)
        self.shift_type_combo.setCurrentText(member.shift_type)
        self.status_combo.setCurrentText(member.status)

    def _handle_save(self) -> None:
        name = self.name_input.text().strip()
        if not name:
            self.feedback_label.setText("Enter a name.")
            return
        try:
            validate_pattern(self.pattern_on_spin.value(), self.pattern_off_spin.value())
        except ValueError as exc:
            self.feedback_label.setText(str(exc))
            return
        qdate = self.cycle_start_edit.date()
        values = {
            "name": name,
            "role": self.role_input.text().strip(),
            "cycle_start_date": datetime.date(qdate.year(), qdate.month(), qdate.day()),
            "pattern_on": self.pattern_on_spin.value(),
            "pattern_off": self.pattern_off_spin.value(),
            "shift_type": self.shift_type_combo.currentText(),
            "status": self.status_combo.currentText(),
        }
        if self.member:
            self.result_member = dataclasses.replace(self.member, **values)
        else:
            self.result_member = StaffMember(id=f"new-{int(time.time() * 1000)}", **values)
        self.accept()


class StaffDirectoryDialog(QDialog):
    """Edits a local copy of the roster; nothing is stored until "Save all changes"."""

    def __init__(
        self,
        staff: List[StaffMember],
        on_save: Callable[[List[StaffMember]], List[StaffMember]],
        parent=None,
        *,
        audit: Optional[AuditLogger] = None,
        username: Optional[str] = None,
    ) -> None:
        super().__init__(parent)
        self.local_staff = list(staff)
        self.on_save = on_save
        self.audit = audit
        self.username = username
        self.has_unsaved_changes = False
        self.setWindowTitle("Staff directory")
        self.resize(900, 560)
        self._build_ui()
        self.refresh_table()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)

        self.table = QTableWidget(0, 6)
        self.table.setHorizontalHeaderLabels(["Name", "Role", "Cycle start", "Pattern", "Shift", "Status"])
        self.table.horizontalHeader().setSectionResizeMode(0, QHeaderView.Stretch)
        self.table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.table.setSelectionMode(QAbstractItemView.SingleSelection)
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.table.itemSelectionChanged.connect(self.update_button_state)
        self.table.cellDoubleClicked.connect(lambda *_: self.edit_member())
        layout.addWidget(self.table)

        buttons = QHBoxLayout()
        self.add_button = QPushButton("Add staff")
        self.add_button.clicked.connect(self.add_member)
        buttons.addWidget(self.add_button)
        self.edit_button = QPushButton("Edit")
        self.edit_button.clicked.connect(self.edit_member)
        buttons.addWidget(self.edit_button)
        self.delete_button = QPushButton("Remove")
        self.delete_button.clicked.connect(self.delete_member)
        buttons.addWidget(self.delete_button)
        self.up_button = QPushButton("Move up")
        self.up_button.clicked.connect(lambda: self.move_member(-1))
        buttons.addWidget(self.up_button)
        self.down_button = QPushButton("Move down")
        self.down_button.clicked.connect(lambda: self.move_member(1))
        buttons.addWidget(self.down_button)
        buttons.addStretch()
        self.import_button = QPushButton("Import CSV")
        self.import_button.clicked.connect(self.import_csv)
        buttons.addWidget(self.import_button)
        self.export_button = QPushButton("Export CSV")
        self.export_button.clicked.connect(self.export_csv)
        buttons.addWidget(self.export_button)
        layout.addLayout(buttons)

        footer = QHBoxLayout()
        self.status_label = QLabel()
        footer.addWidget(self.status_label)
        footer.addStretch()
        self.save_button = QPushButton("Save all changes")
        self.save_button.clicked.connect(self.save_all)
        footer.addWidget(self.save_button)
        close_button = QPushButton("Close")
        close_button.clicked.connect(self.reject)
        footer.addWidget(close_button)
        layout.addLayout(footer)
        self.update_button_state()

    def refresh_table(self) -> None:
        self.table.setRowCount(len(self.local_staff))
        for row, member in enumerate(self.local_staff):
            name_item = QTableWidgetItem(member.name)
            name_item.setData(Qt.UserRole, member.id)
            self.table.setItem(row, 0, name_item)
            self.table.setItem(row, 1, QTableWidgetItem(member.role))
            self.table.setItem(row, 2, QTableWidgetItem(member.cycle_start_date.isoformat()))
            self.table.setItem(row, 3, QTableWidgetItem(f"{member.pattern_on} on / {member.pattern_off} off"))
            self.table.setItem(row, 4, QTableWidgetItem(member.shift_type))
            self.table.setItem(row, 5, QTableWidgetItem(member.status))
        self.save_button.setEnabled(self.has_unsaved_changes)
        self.update_button_state()

    def selected_row(self) -> Optional[int]:
        rows = self.table.selectionModel().selectedRows() if self.table.selectionModel() else []
        return rows[0].row() if rows else None

    def update_button_state(self) -> None:
        row = self.selected_row()
        has_selection = row is not None
        self.edit_button.setEnabled(has_selection)
        self.delete_button.setEnabled(has_selection)
        self.up_button.setEnabled(has_selection and row > 0)
        self.down_button.setEnabled(has_selection and row < len(self.local_staff) - 1)

    def _log(self, event: str, **details) -> None:
        if self.audit is not None:
            self.audit.log(event, self.username, details=details)

    def _mark_dirty(self) -> None:
        self.has_unsaved_changes = True
        self.status_label.setText("Unsaved changes")
        self.refresh_table()

    def add_member(self) -> None:
        dialog = StaffEditDialog(parent=self)
        if dialog.exec() == QDialog.Accepted and dialog.result_member:
            self.local_staff.append(dialog.result_member)
            self._mark_dirty()

    def edit_member(self) -> None:
        row = self.selected_row()
        if row is None:
            return
        dialog = StaffEditDialog(self.local_staff[row], parent=self)
        if dialog.exec() == QDialog.Accepted and dialog.result_member:
            self.local_staff[row] = dialog.result_member
            self._mark_dirty()

    def delete_member(self) -> None:
        row = self.selected_row()
        if row is None:
            return
        confirm = QMessageBox.question(self, "Remove staff", f"Remove {self.local_staff[row].name}?")
        if confirm == QMessageBox.Yes:
            del self.local_staff[row]
            self._mark_dirty()

    def move_member(self, delta: int) -> None:
        row = self.selected_row()
        if row is None or not 0 <= row + delta < len(self.local_staff):
            return
        staff = self.local_staff
        staff[row], staff[row + delta] = staff[row + delta], staff[row]
        self._mark_dirty()
        self.table.selectRow(row + delta)

    def import_csv(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Import roster", str(EXPORT_DIR), "CSV files (*.csv)")
        if not path:
            return
        try:
            members, skipped = import_staff(Path(path))
        except (OSError, UnicodeDecodeError) as exc:
            QMessageBox.warning(self, "Import failed", str(exc))
            return
        if not members:
            QMessageBox.information(self, "Import", "No staff rows found in that file.")
            return
        self.local_staff = members
        self._mark_dirty()
        self._log("csv_import", file=Path(path).name, imported=len(members), skipped=skipped)
        message = f"Imported {len(members)} staff."
        if skipped:
            message += f" Skipped {skipped} invalid rows."
        self.status_label.setText(message + " Save to keep them.")

    def export_csv(self) -> None:
        path = export_staff(self.local_staff)
        self._log("csv_export", file=path.name, exported=len(self.local_staff))
        QMessageBox.information(self, "Export", f"Roster exported to {path}")

    def save_all(self) -> None:
        try:
            self.local_staff = self.on_save(self.local_staff)
        except Exception as exc:  # noqa: BLE001
            self.status_label.setText("Failed to save. Please try again.")
            QMessageBox.warning(self, "Save failed", str(exc))
            return
        self.has_unsaved_changes = False
        self.refresh_table()
        self.status_label.setText("Changes saved.")
