from __future__ import annotations

import datetime
from typing import Callable, Dict, List, Optional, Tuple

from PySide6.QtCore import QDate, Qt
from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QAbstractItemView,
    QComboBox,
    QDateEdit,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from shift_state import (
    SHIFT_HALF,
    STATUS_CASUAL,
    VISUAL_DASH,
    VISUAL_HOLLOW,
    VISUAL_SOLID,
    DayStatus,
    ShiftState,
    StaffMember,
    apply_quick_cycle,
    compute_shift_state,
    count_on_duty,
    describe_shift,
    generate_date_range,
    local_date_string,
)
from ui.shift_details import ShiftDetailsDialog

DOT_GLYPHS = {VISUAL_SOLID: "●", VISUAL_HOLLOW: "○", VISUAL_DASH: "—"}
OFF_COLOR = "#9a9a9a"
HALF_COLOR = "#f59a4b"
NORMAL_COLOR = "#4f8a5b"
TODAY_COLOR = "#8f3434"


def cell_colors(state: ShiftState, display_mode: str, dark_mode: bool) -> Tuple[Optional[QColor], QColor]:
    text = QColor("#f2efe9" if dark_mode else "#12100e")
    if display_mode != "colors":
        return None, text
    if not state.is_working:
        background = QColor(OFF_COLOR)
        background.setAlpha(100)
    elif state.shift_type == SHIFT_HALF:
        background = QColor(HALF_COLOR)
        background.setAlpha(150)
    else:
        background = QColor(NORMAL_COLOR)
        background.setAlpha(190)
    return background, text


class RosterGridPage(QWidget):
    """Staff-by-date grid. Admin clicks cycle a cell; viewers open shift details."""

    def __init__(
        self,
        staff: List[StaffMember],
        *,
        is_admin: bool,
        days: int,
        windows: Dict[str, Tuple[str, str]],
        display_mode: str = "dots",
        dark_mode: bool = False,
        on_update_staff: Optional[Callable[..., None]] = None,
        start_date: Optional[datetime.date] = None,
    ) -> None:
        super().__init__()
        self.staff = list(staff)
        self.is_admin = is_admin
        self.days = days
        self.windows = windows
        self.display_mode = display_mode
        self.dark_mode = dark_mode
        self.on_update_staff = on_update_staff
        self.start_date = start_date or datetime.date.today()
        self.dates: List[DayStatus] = []
        self._build_ui()
        self.refresh()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setSpacing(10)

        header = QHBoxLayout()
        self.prev_button = QPushButton("◀")
        self.prev_button.setFixedSize(30, 30)
        self.prev_button.clicked.connect(lambda: self._navigate(-7))
        header.addWidget(self.prev_button)

        self.start_picker = QDateEdit()
        self.start_picker.setCalendarPopup(True)
        self.start_picker.setDisplayFormat("yyyy-MM-dd")
        self.start_picker.setDate(QDate(self.start_date.year, self.start_date.month, self.start_date.day))
        self.start_picker.dateChanged.connect(self._handle_start_changed)
        header.addWidget(self.start_picker)

        self.next_button = QPushButton("▶")
        self.next_button.setFixedSize(30, 30)
        self.next_button.clicked.connect(lambda: self._navigate(7))
        header.addWidget(self.next_button)

        self.today_button = QPushButton("Today")
        self.today_button.clicked.connect(lambda: self.set_start_date(datetime.date.today()))
        header.addWidget(self.today_button)

        self.mode_combo = QComboBox()
        self.mode_combo.addItem("Dots", "dots")
        self.mode_combo.addItem("Colors", "colors")
        self.mode_combo.setCurrentIndex(max(0, self.mode_combo.findData(self.display_mode)))
        self.mode_combo.currentIndexChanged.connect(self._handle_mode_changed)
        header.addWidget(self.mode_combo)

        self.hint_label = QLabel()
        header.addWidget(self.hint_label)
        header.addStretch()
        layout.addLayout(header)

        self.table = QTableWidget()
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.table.setSelectionMode(QAbstractItemView.NoSelection)
        self.table.verticalHeader().setVisible(False)
        self.table.cellClicked.connect(self._handle_cell_clicked)
        layout.addWidget(self.table)

    def set_staff(self, staff: List[StaffMember]) -> None:
        self.staff = list(staff)
        self.refresh()

    def set_admin(self, is_admin: bool, days: int) -> None:
        self.is_admin = is_admin
        self.days = days
        self.refresh()

    def set_start_date(self, value: datetime.date) -> None:
        self.start_date = value
        self.start_picker.blockSignals(True)
        self.start_picker.setDate(QDate(value.year, value.month, value.day))
        self.start_picker.blockSignals(False)
        self.refresh()

    def refresh(self) -> None:
        self.dates = generate_date_range(self.start_date, self.days)
        today = local_date_string(datetime.date.today())
        self.hint_label.setText(
            "Click a cell to cycle Normal → Half → Off." if self.is_admin else "Click a shift for details."
        )

        self.table.clear()
        self.table.setColumnCount(len(self.dates) + 1)
        self.table.setRowCount(len(self.staff) + 1)
        headers = ["Staff"] + [f"{day.day_name}\n{day.day_number}" for day in self.dates]
        self.table.setHorizontalHeaderLabels(headers)
        self.table.horizontalHeader().setSectionResizeMode(0, QHeaderView.ResizeToContents)

        for row, member in enumerate(self.staff):
            label = f"{member.name}\n{member.role}"
            if member.status == STATUS_CASUAL:
                label += "  [Casual]"
            name_item = QTableWidgetItem(label)
            name_item.setData(Qt.UserRole, member.id)
            self.table.setItem(row, 0, name_item)
            for col, day in enumerate(self.dates, start=1):
                state = compute_shift_state(member, day)
                item = QTableWidgetItem(DOT_GLYPHS.get(state.visual_type, "") if self.display_mode == "dots" else "")
                item.setTextAlignment(Qt.AlignCenter)
                item.setToolTip(f"{member.name} — {day.full_date_str}: {state.label}")
                background, foreground = cell_colors(state, self.display_mode, self.dark_mode)
                if day.full_date_str == today and background is None:
                    background = QColor(TODAY_COLOR).lighter(170)
                elif background is None and day.is_weekend:
                    background = QColor("#5c554f")
                    background.setAlpha(30)
                if background is not None:
                    item.setBackground(background)
                item.setForeground(foreground)
                self.table.setItem(row, col, item)

        total_row = len(self.staff)
        self.table.setItem(total_row, 0, QTableWidgetItem("On Duty"))
        for col, day in enumerate(self.dates, start=1):
            item = QTableWidgetItem(str(count_on_duty(self.staff, day)))
            item.setTextAlignment(Qt.AlignCenter)
            self.table.setItem(total_row, col, item)
        self.table.resizeRowsToContents()

    def _navigate(self, delta_days: int) -> None:
        self.set_start_date(self.start_date + datetime.timedelta(days=delta_days))

    def _handle_start_changed(self) -> None:
        qdate = self.start_picker.date()
        self.start_date = datetime.date(qdate.year(), qdate.month(), qdate.day())
        self.refresh()

    def _handle_mode_changed(self) -> None:
        self.display_mode = self.mode_combo.currentData() or "dots"
        self.refresh()

    def _handle_cell_clicked(self, row: int, column: int) -> None:
        if column == 0 or row >= len(self.staff):
            return
        self.handle_shift_click(self.staff[row], self.dates[column - 1])

    def handle_shift_click(self, member: StaffMember, day: DayStatus) -> None:
        if self.is_admin and self.on_update_staff:
            updated = apply_quick_cycle(member, day, self.windows)
            state = compute_shift_state(updated, day)
            self.on_update_staff(
                [updated if entry.id == member.id else entry for entry in self.staff],
                event="quick_cycle",
                details={"staff_id": member.id, "date": day.full_date_str, "state": state.shift_type},
            )
            return
        details = describe_shift(member, day, self.windows)
        if details is None:
            return
        ShiftDetailsDialog(details, parent=self).exec()
