"""Fixed reply templates. Questions are keyed by the missing slot."""

from tools.nlp import parse_iso

DEFAULT_TITLE = "ללא כותרת"

FOLLOWUP_QUESTIONS = {
    "DATE": "📅 הבנתי את השעה, אבל לא את היום. מתי זה אמור לקרות? (לדוגמה: מחר / ביום ראשון הקרוב / 1.1)",
    "TIME": "🕒 הבנתי את היום, אבל חסרה לי שעה. באיזו שעה זה? (לדוגמה: 12 בצהריים / 7 בערב / 08:30)",
    "DATE_TIME_RANGE": "🤔 כדי לבצע את זה אני צריך עוד קצת מידע: באיזה יום ובאיזו שעה? (לדוגמה: מחר בשש בערב)",
}

MESSAGES = {
    "task_created": "📋 יצרתי משימה: {title}",
    "task_created_due": "📋 יצרתי משימה: {title} (עד {when})",
    "meeting_created": "📅 פגישה נקבעה: {title} ({when})",
    "idea_saved": "💡 שמרתי רעיון: {title}",
    "not_understood": "🤖 לא הצלחתי להבין, אפשר לנסח מחדש?",
}


def question_for(missing: str) -> str:
    return FOLLOWUP_QUESTIONS.get(missing, FOLLOWUP_QUESTIONS["DATE_TIME_RANGE"])


def format_when(iso: str | None) -> str:
    dt = parse_iso(iso)
    if dt is None:
        return iso or ""
    if dt.hour == 23 and dt.minute == 59:
        return dt.strftime("%d/%m/%Y")
    return dt.strftime("%d/%m/%Y %H:%M")


def task_created(title: str, due: str | None) -> str:
    if due:
        return MESSAGES["task_created_due"].format(title=title, when=format_when(due))
    return MESSAGES["task_created"].format(title=title)


def meeting_created(title: str, start: str) -> str:
    return MESSAGES["meeting_created"].format(title=title, when=format_when(start))


def idea_saved(title: str) -> str:
    return MESSAGES["idea_saved"].format(title=title)
