from .db import (
    Base,
    Reminder,
    Report,
    REPORT_FIELDS,
    create_all,
    dispose_engine,
    insert_reminder,
    get_reminder,
    get_reminder_by_id,
    list_reminders,
    fetch_unfired_scheduled_reminders,
    update_reminder_text,
    update_reminder_time,
    update_reminder_status,
    mark_reminder_fired,
    delete_reminder,
    insert_report,
    get_report,
    list_reports,
    list_reports_between,
    update_report,
    delete_report,
)  # noqa: F401
