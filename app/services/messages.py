"""User-facing texts, keyboards and formatting (Indonesian UI)."""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Iterable, Optional

from telegram.helpers import escape_markdown

from app.types.flow_contract import CONFIRM_CANCEL, CONFIRM_SAVE, PresetSelection, ReportDraft
from config import settings

# ──────────────────────────────
# Main menu
# ──────────────────────────────

MENU_CREATE_REMINDER = "🕰️ Catat Pengingat"
MENU_CREATE_REPORT = "🧾 Laporan Kerja Harian"
MENU_TIME_CHECK = "🕓 Cek Waktu Bot"
MENU_LIST_REMINDERS = "📜 Lihat Pengingat"
MENU_LIST_REPORTS = "📥 Lihat Laporan"
MENU_REPORT_RANGE = "📅 Lihat Laporan (range)"
MENU_DELETE_REMINDER = "🗑️ Hapus Pengingat"
MENU_EDIT_REMINDER = "✏️ Edit Pengingat"
MENU_MARK_DONE = "✅ Tandai Selesai"
MENU_EDIT_REPORT = "✏️ Edit Laporan"
MENU_DELETE_REPORT = "🗑️ Hapus Laporan"
MENU_HOME = "🏠 Kembali ke Menu Utama"

MAIN_MENU = (
    (MENU_CREATE_REMINDER, MENU_CREATE_REPORT),
    (MENU_TIME_CHECK, MENU_LIST_REMINDERS),
    (MENU_LIST_REPORTS, MENU_REPORT_RANGE),
    (MENU_DELETE_REMINDER, MENU_EDIT_REMINDER),
    (MENU_MARK_DONE, MENU_EDIT_REPORT, MENU_DELETE_REPORT),
    (MENU_HOME,),
)
MAIN_MENU_PROMPT = "Silahkan Mulai Proses :"

# ──────────────────────────────
# Reminder wizard
# ──────────────────────────────

ASK_REMINDER_TEXT = "Ketik isi pengingat (contoh: 'Beli tinta printer'):"
ASK_REMINDER_TIME = (
    "Kapan saya harus mengingatkan? (ketik natural seperti 'besok jam 9 pagi')"
)
ASK_NEW_TIME = "Oke, kirim waktu baru (contoh: 'besok jam 9 pagi' atau '2025-10-21 08:00'):"
TIME_UNRECOGNIZED = (
    "Waktu tidak dikenali. Coba contoh: 'besok jam 9 pagi' atau '2025-10-21 08:00'."
)
ASK_WHAT_ABOUT = "Tentang apa pengingatnya?"
NOT_UNDERSTOOD = "Saya belum mengerti. Gunakan /menu atau pilih tombol pada keyboard."
SESSION_EXPIRED = "⏰ Sesi kadaluarsa (2 menit). Kembali ke menu utama."
FORMS_CANCELLED = "Kembali ke menu utama. Semua form dibatalkan."

# ──────────────────────────────
# Report wizard
# ──────────────────────────────

ASK_REPORT_TITLE = "Masukkan *judul laporan*:"
ASK_REPORT_COMPLETION = "Bagaimana penyelesaiannya?"
ASK_REPORT_NOTES = "Tambahkan catatan tambahan (boleh kosong, ketik - untuk kosong):"
STAMP_UNRECOGNIZED = (
    "Tanggal/jam tidak dikenali. Ketik format `YYYY-MM-DD HH:mm` atau pilih dari tombol."
)
USE_PREVIEW_BUTTONS = "Gunakan tombol ✅ Simpan atau ❌ Batal di atas."
REPORT_CANCELLED = "❌ Simpan laporan dibatalkan."

ASK_EDIT_COMPLETION = "Kirim penyelesaian baru (atau - untuk tetap):"
ASK_EDIT_NOTES = "Kirim catatan baru (atau - untuk tetap):"

FIELD_LABELS = {
    "report_time": "Tanggal & Jam Laporan",
    "receive_time": "Tanggal & Jam Terima",
    "done_time": "Tanggal & Jam Selesai",
}

ACK_NO_SESSION = "Tidak ada sesi aktif."
ACK_BAD_PRESET = "Preset tidak valid."
ACK_PRESET_IGNORED = "Preset diterima."
ACK_NOTHING_TO_SAVE = "Tidak ada laporan untuk disimpan."
ACK_NOTHING_TO_CANCEL = "Tidak ada laporan untuk dibatalkan."
ACK_SAVED = "Disimpan"
ACK_CANCELLED = "Dibatalkan"


# ──────────────────────────────
# Formatting
# ──────────────────────────────

def _local(dt: datetime, tz: Optional[tzinfo] = None) -> datetime:
    return dt.astimezone(tz or settings.tz)


def fmt(dt: datetime, tz: Optional[tzinfo] = None) -> str:
    return _local(dt, tz).strftime("%A, %d %b %Y %H:%M")


def fmt_short(dt: Optional[datetime], empty: str = "-", tz: Optional[tzinfo] = None) -> str:
    return _local(dt, tz).strftime("%d %b %Y %H:%M") if dt else empty


def fmt_compact(dt: Optional[datetime], empty: str = "-", tz: Optional[tzinfo] = None) -> str:
    return _local(dt, tz).strftime("%d/%m %H:%M") if dt else empty


def fmt_iso(dt: Optional[datetime], empty: str = "-", tz: Optional[tzinfo] = None) -> str:
    return _local(dt, tz).strftime("%Y-%m-%d %H:%M") if dt else empty


def md(text: Optional[str]) -> str:
    return escape_markdown(text or "", version=1)


def bot_time(now: datetime, tz: Optional[tzinfo] = None) -> str:
    tz = tz or settings.tz
    return f"🕒 Waktu bot sekarang ({tz}): {_local(now, tz).strftime('%A, %d %B %Y %H:%M:%S')}"


# ──────────────────────────────
# Keyboards
# ──────────────────────────────

def preset_keyboard(field_tag: str):
    def button(label: str, tag: str):
        return (label, PresetSelection(field_tag=field_tag, preset_tag=tag).to_callback())

    return (
        (button("Sekarang", "now"), button("Hari Ini 08:00", "today_08")),
        (button("Hari Ini 13:00", "today_13"), button("Besok 08:00", "tomorrow_08")),
        (button("Custom (ketik manual)", "custom"),),
    )


CONFIRM_KEYBOARD = ((("✅ Simpan", CONFIRM_SAVE), ("❌ Batal", CONFIRM_CANCEL)),)


# ──────────────────────────────
# Composite messages
# ──────────────────────────────

def ask_stamp(field: str, edit: bool = False) -> str:
    label = FIELD_LABELS[field]
    if edit:
        return f"Kirim {label} (ketik 'skip' untuk tetap) atau pilih dari tombol:"
    return f"Pilih {label} atau ketik custom:"


def ask_custom_stamp(field: str) -> str:
    return (
        f"Ketik tanggal & jam untuk *{FIELD_LABELS[field]}* "
        "dalam format `YYYY-MM-DD HH:mm` atau natural."
    )


def stamp_set(field: str, dt: datetime, tz: Optional[tzinfo] = None) -> str:
    return f"✔️ {FIELD_LABELS[field]} di-set: {fmt(dt, tz)}"


def time_passed(candidate_hhmm: str) -> str:
    return (
        f"Waktu hari ini ({candidate_hhmm}) sudah lewat. Jadwalkan besok jam yang sama? "
        "(ketik 'ya' untuk besok atau kirim waktu baru)"
    )


def reminder_saved(reminder_id: int, when: datetime, tz: Optional[tzinfo] = None) -> str:
    return f"✅ Pengingat disimpan (#{reminder_id}) pada {fmt(when, tz)}"


def reminder_time_updated(reminder_id: int, when: datetime, tz: Optional[tzinfo] = None) -> str:
    return f"✅ Waktu pengingat #{reminder_id} diperbarui: {fmt(when, tz)}"


def reminder_pending_time(reminder_id: int) -> str:
    return f"Catatan disimpan sementara (#{reminder_id}). Kapan saya harus mengingatkan?"


def reminder_not_found(reminder_id: int) -> str:
    return f"Pengingat #{reminder_id} tidak ditemukan."


def report_not_found(report_id: int) -> str:
    return f"Laporan #{report_id} tidak ditemukan."


def report_preview(draft: ReportDraft, tz: Optional[tzinfo] = None) -> str:
    return (
        "📋 *Preview Laporan*\n"
        f"🧾 Judul: {md(draft.title)}\n"
        f"⚙️ Penyelesaian: {md(draft.completion_summary)}\n"
        f"🕒 Tanggal Laporan: {fmt_short(draft.report_time, tz=tz)}\n"
        f"📥 Diterima: {fmt_short(draft.receive_time, tz=tz)}\n"
        f"✅ Selesai: {fmt_short(draft.done_time, tz=tz)}\n"
        f"📝 Catatan: {md(draft.notes)}\n\n"
        "Simpan laporan ini?"
    )


def reminder_list(rows: Iterable, tz: Optional[tzinfo] = None) -> str:
    s = "📋 *Pengingat:*\n"
    for r in rows:
        status = "✅ Selesai" if r.status == "done" else "⏳ Pending"
        s += (
            f"\n#{r.id} • {md(r.text)}\n"
            f"   ⏰ {fmt_short(r.scheduled_at, 'tanpa waktu', tz)}\n"
            f"   📌 Status: {status}\n"
        )
    return s


def reminder_index(header: str, rows: Iterable, tz: Optional[tzinfo] = None) -> str:
    s = header + "\n"
    for r in rows:
        s += f"#{r.id} • {r.text} — {fmt_compact(r.scheduled_at, 'tanpa waktu', tz)}\n"
    return s


def report_list(rows: Iterable, tz: Optional[tzinfo] = None) -> str:
    s = "🗂️ *Laporan:*\n"
    for r in rows:
        s += (
            f"#{r.id} - {md(r.title)}\n"
            f"🕒 {fmt_iso(r.report_time, tz=tz)}, 📥 {fmt_iso(r.receive_time, tz=tz)}, "
            f"✅ {fmt_iso(r.done_time, tz=tz)}\n"
        )
    return s


def report_index(header: str, rows: Iterable, tz: Optional[tzinfo] = None) -> str:
    s = header + "\n"
    for r in rows:
        s += f"#{r.id} • {r.title} — {fmt_compact(r.report_time, tz=tz)}\n"
    return s
