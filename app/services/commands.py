"""Slash commands and main-menu buttons.

These run before any wizard dispatch: a command typed mid-wizard is
handled here and the wizard session is left as it was (except for the
home button, which clears it).
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time
from typing import Awaitable, Callable, Dict, Optional

from app.services import messages
from app.services.flow import FlowOrchestrator
import db

_LOGGER = logging.getLogger(__name__)

_COMMAND_RE = re.compile(r"^/(\w+)(?:@\w+)?(?:\s+(.*))?$", re.DOTALL)
_RANGE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\s+(\d{4}-\d{2}-\d{2})$")

RANGE_USAGE = "Gunakan perintah: /laporan_range YYYY-MM-DD YYYY-MM-DD"


def _parse_id(args: str) -> Optional[int]:
    token = args.split()[0] if args.split() else ""
    return int(token) if token.isdigit() else None


class CommandRouter:
    def __init__(self, flow: FlowOrchestrator):
        self.flow = flow
        self._commands: Dict[str, Callable[[str, str], Awaitable[None]]] = {
            "start": self.menu,
            "menu": self.menu,
            "timecheck": self.time_check,
            "list": self.list_reminders,
            "done": self.mark_done,
            "laporan": self.list_reports,
            "reports": self.list_reports,
            "laporan_range": self.report_range,
            "delete": self.delete,
            "edit": self.edit_text,
            "edit_time": self.edit_time,
            "edit_report": self.edit_report,
        }
        self._buttons: Dict[str, Callable[[str], Awaitable[None]]] = {
            messages.MENU_CREATE_REMINDER.lower(): flow.start_create_reminder,
            messages.MENU_CREATE_REPORT.lower(): flow.start_create_report,
            messages.MENU_TIME_CHECK.lower(): lambda owner: self.time_check(owner, ""),
            messages.MENU_LIST_REMINDERS.lower(): lambda owner: self.list_reminders(owner, ""),
            messages.MENU_LIST_REPORTS.lower(): lambda owner: self.list_reports(owner, ""),
            messages.MENU_REPORT_RANGE.lower(): self._range_hint,
            messages.MENU_DELETE_REMINDER.lower(): self._delete_reminder_index,
            messages.MENU_EDIT_REMINDER.lower(): self._edit_reminder_index,
            messages.MENU_MARK_DONE.lower(): self._pending_index,
            messages.MENU_EDIT_REPORT.lower(): self._edit_report_index,
            messages.MENU_DELETE_REPORT.lower(): self._delete_report_index,
            messages.MENU_HOME.lower(): flow.return_to_menu,
        }

    async def _send(self, owner: str, text: str, **kwargs) -> None:
        await self.flow.gateway.send_message(owner, text, **kwargs)

    async def dispatch(self, owner: str, text: str) -> bool:
        """Run the command or menu button in *text*; False if it is neither."""
        text = text.strip()
        button = self._buttons.get(text.lower())
        if button is not None:
            await button(owner)
            return True

        m = _COMMAND_RE.match(text)
        if not m:
            return False
        handler = self._commands.get(m.group(1).lower())
        if handler is None:
            return False
        _LOGGER.debug("Command /%s from %s", m.group(1), owner)
        await handler(owner, (m.group(2) or "").strip())
        return True

    # ── general ─────────────────────────────────────────────────────────

    async def menu(self, owner: str, args: str) -> None:
        await self.flow.show_main_menu(owner)

    async def time_check(self, owner: str, args: str) -> None:
        await self._send(owner, messages.bot_time(self.flow.now(), self.flow.tz))

    # ── reminders ───────────────────────────────────────────────────────

    async def list_reminders(self, owner: str, args: str) -> None:
        rows = await db.list_reminders(owner)
        if not rows:
            await self._send(owner, "Belum ada pengingat.")
            return
        await self._send(owner, messages.reminder_list(rows, self.flow.tz), markdown=True)

    async def mark_done(self, owner: str, args: str) -> None:
        reminder_id = _parse_id(args)
        if reminder_id is None:
            await self._send(owner, "Gunakan /done <id>")
            return
        reminder = await db.get_reminder(reminder_id, owner)
        if reminder is None:
            await self._send(owner, messages.reminder_not_found(reminder_id))
        elif reminder.status == "done":
            await self._send(owner, f"Pengingat #{reminder_id} sudah ditandai selesai.")
        else:
            await db.update_reminder_status(reminder_id, owner, "done")
            await self._send(owner, f"✅ Pengingat #{reminder_id} ditandai selesai.")

    async def edit_text(self, owner: str, args: str) -> None:
        reminder_id = _parse_id(args)
        if reminder_id is None:
            await self._send(owner, "Gunakan /edit <id>")
            return
        await self.flow.start_edit_note_text(owner, reminder_id)

    async def edit_time(self, owner: str, args: str) -> None:
        reminder_id = _parse_id(args)
        if reminder_id is None:
            await self._send(owner, "Gunakan /edit_time <id>")
            return
        await self.flow.start_edit_note_time(owner, reminder_id)

    async def delete(self, owner: str, args: str) -> None:
        """Delete a reminder (cancelling its timer) or, failing that, a report."""
        item_id = _parse_id(args)
        if item_id is None:
            await self._send(owner, "Gunakan /delete <id>")
            return
        if await db.delete_reminder(item_id, owner):
            self.flow.reminders.cancel(item_id)
            await self._send(owner, f"✅ Pengingat #{item_id} dihapus.")
        elif await db.delete_report(item_id, owner):
            await self._send(owner, f"✅ Laporan #{item_id} dihapus.")
        else:
            await self._send(owner, f"ID {item_id} tidak ditemukan.")

    # ── reports ─────────────────────────────────────────────────────────

    async def list_reports(self, owner: str, args: str) -> None:
        rows = await db.list_reports(owner)
        if not rows:
            await self._send(owner, "Belum ada laporan.")
            return
        await self._send(owner, messages.report_list(rows, self.flow.tz), markdown=True)

    async def report_range(self, owner: str, args: str) -> None:
        m = _RANGE_RE.match(args)
        if not m:
            await self._send(owner, RANGE_USAGE)
            return
        try:
            first, last = date.fromisoformat(m.group(1)), date.fromisoformat(m.group(2))
        except ValueError:
            await self._send(owner, RANGE_USAGE)
            return

        tz = self.flow.tz
        start = datetime.combine(first, time.min, tzinfo=tz)
        end = datetime.combine(last, time.max, tzinfo=tz)
        rows = await db.list_reports_between(owner, start, end)
        if not rows:
            await self._send(owner, f"Tidak ada laporan antara {first} dan {last}.")
            return
        await self._send(owner, messages.report_list(rows, tz), markdown=True)

    async def edit_report(self, owner: str, args: str) -> None:
        report_id = _parse_id(args)
        if report_id is None:
            await self._send(owner, "Gunakan /edit_report <id>")
            return
        await self.flow.start_edit_report(owner, report_id)

    # ── menu-only listings ──────────────────────────────────────────────

    async def _range_hint(self, owner: str) -> None:
        await self._send(owner, RANGE_USAGE)

    async def _reminder_index(self, owner: str, header: str, empty: str, pending_only=False) -> None:
        rows = await db.list_reminders(owner)
        if pending_only:
            rows = [r for r in rows if r.status != "done"]
        if not rows:
            await self._send(owner, empty)
            return
        await self._send(owner, messages.reminder_index(header, rows, self.flow.tz))

    async def _report_index(self, owner: str, header: str, empty: str) -> None:
        rows = await db.list_reports(owner)
        if not rows:
            await self._send(owner, empty)
            return
        await self._send(owner, messages.report_index(header, rows, self.flow.tz))

    async def _delete_reminder_index(self, owner: str) -> None:
        await self._reminder_index(
            owner,
            "Ketik /delete <id> untuk menghapus. Daftar pengingat:",
            "Tidak ada pengingat untuk dihapus.",
        )

    async def _edit_reminder_index(self, owner: str) -> None:
        await self._reminder_index(
            owner,
            "Gunakan /edit <id> untuk teks atau /edit_time <id> untuk waktu. Daftar:",
            "Tidak ada pengingat untuk diedit.",
        )

    async def _pending_index(self, owner: str) -> None:
        await self._reminder_index(
            owner,
            "Ketik /done <id> untuk menandai selesai. Daftar:",
            "Tidak ada pengingat yang pending.",
            pending_only=True,
        )

    async def _edit_report_index(self, owner: str) -> None:
        await self._report_index(
            owner,
            "Gunakan /edit_report <id> untuk mengedit. Daftar:",
            "Tidak ada laporan untuk diedit.",
        )

    async def _delete_report_index(self, owner: str) -> None:
        await self._report_index(
            owner,
            "Ketik /delete <id> untuk menghapus laporan. Daftar:",
            "Tidak ada laporan untuk dihapus.",
        )
