import re
from datetime import datetime, date, time, timedelta
from functools import lru_cache

from utils.timezone import local_now

from .models import TimeOfDay, TimeResult

_HEB = "א-ת"
_PROCLITICS = "בהולמשכ"

# 0 = Sunday
_WEEKDAYS = {
  "ראשון": 0, "שני": 1, "שלישי": 2, "רביעי": 3, "חמישי": 4, "שישי": 5, "שבת": 6,
  "sunday": 0, "monday": 1, "tuesday": 2, "wednesday": 3,
  "thursday": 4, "friday": 5, "saturday": 6,
}

_MONTHS = {
  "ינואר": 1, "פברואר": 2, "מרץ": 3, "מרס": 3, "אפריל": 4, "מאי": 5, "יוני": 6,
  "יולי": 7, "אוגוסט": 8, "ספטמבר": 9, "אוקטובר": 10, "נובמבר": 11, "דצמבר": 12,
  "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
  "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
}

_HOUR_WORDS = {
  "אחת": 1, "אחד": 1,
  "שתיים": 2, "שתים": 2, "שניים": 2,
  "שלוש": 3, "ארבע": 4, "חמש": 5, "שש": 6, "שבע": 7, "שמונה": 8, "תשע": 9, "עשר": 10,
  "אחת עשרה": 11, "אחתעשרה": 11,
  "שתים עשרה": 12, "שתיים עשרה": 12, "שתיםעשרה": 12, "שתייםעשרה": 12,
  "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6, "seven": 7,
  "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
  "noon": 12, "midnight": 0,
}

_DAY_ORDINALS = {
  "ראשון": 1, "אחד": 1, "אחת": 1,
  "שני": 2, "שניים": 2, "שתיים": 2,
  "שלישי": 3, "שלושה": 3, "שלוש": 3,
  "רביעי": 4, "ארבעה": 4, "ארבע": 4,
  "חמישי": 5, "חמישה": 5, "חמש": 5,
  "שישי": 6, "שישה": 6, "שש": 6,
  "שביעי": 7, "שבעה": 7, "שבע": 7,
  "שמיני": 8, "שמונה": 8,
  "תשיעי": 9, "תשעה": 9, "תשע": 9,
  "עשירי": 10, "עשרה": 10, "עשר": 10,
  "אחד עשר": 11, "אחת עשרה": 11,
  "שנים עשר": 12, "שתים עשרה": 12,
  "שלושה עשר": 13, "שלוש עשרה": 13,
  "ארבעה עשר": 14, "ארבע עשרה": 14,
  "חמישה עשר": 15, "חמש עשרה": 15,
  "שישה עשר": 16, "שש עשרה": 16,
  "שבעה עשר": 17, "שבע עשרה": 17,
  "שמונה עשר": 18, "שמונה עשרה": 18,
  "תשעה עשר": 19, "תשע עשרה": 19,
  "עשרים": 20,
  "עשרים ואחד": 21, "עשרים ואחת": 21,
  "עשרים ושניים": 22, "עשרים ושתיים": 22,
  "עשרים ושלושה": 23, "עשרים ושלוש": 23,
  "עשרים וארבעה": 24, "עשרים וארבע": 24,
  "עשרים וחמישה": 25, "עשרים וחמש": 25,
  "עשרים ושישה": 26, "עשרים ושש": 26,
  "עשרים ושבעה": 27, "עשרים ושבע": 27,
  "עשרים ושמונה": 28,
  "עשרים ותשעה": 29, "עשרים ותשע": 29,
  "שלושים": 30,
  "שלושים ואחד": 31, "שלושים ואחת": 31,
  "first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5, "sixth": 6,
  "seventh": 7, "eighth": 8, "ninth": 9, "tenth": 10, "eleventh": 11, "twelfth": 12,
  "thirteenth": 13, "fourteenth": 14, "fifteenth": 15, "sixteenth": 16,
  "seventeenth": 17, "eighteenth": 18, "nineteenth": 19, "twentieth": 20,
  "twenty first": 21, "twenty second": 22, "twenty third": 23, "twenty fourth": 24,
  "twenty fifth": 25, "twenty sixth": 26, "twenty seventh": 27, "twenty eighth": 28,
  "twenty ninth": 29, "thirtieth": 30, "thirty first": 31,
}

_TODAY = ("היום", "today")
_DAY_AFTER_TOMORROW = ("מחרתיים", "day after tomorrow")
_TOMORROW = ("מחר", "tomorrow")
_TWO_WEEKS = ("עוד שבועיים", "in two weeks", "in 2 weeks", "two weeks from now")
_ONE_WEEK = ("עוד שבוע", "שבוע הבא", "in a week", "in one week", "in 1 week", "next week", "a week from now")

_MORNING = ("בוקר", "morning")
_AFTERNOON = ("ערב", "לילה", "צהריים", "צהרים", "evening", "night", "tonight", "noon", "afternoon")
_HALF = ("וחצי", "and a half", "and half", "half past")
_QUARTER_PAST = ("ורבע", "and a quarter", "quarter past")
_TIME_CLUES = _MORNING + _AFTERNOON + _HALF + _QUARTER_PAST + (
  "שעה", "at", "hour", "o'clock", "oclock", "half", "quarter", "midnight",
)

_ISO_DATE_RE = re.compile(r"(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)")
_NUMERIC_WITH_YEAR_RE = re.compile(r"(?<!\d)(\d{1,2})[/.-](\d{1,2})[/.-](\d{2,4})(?!\d)")
_NUMERIC_NO_YEAR_RE = re.compile(r"(?<!\d)(\d{1,2})[/.-](\d{1,2})(?!\d)")
_NUMERIC_DATE_RE = re.compile(r"(?<!\d)\d{1,2}[/.-]\d{1,2}(?:[/.-]\d{2,4})?(?!\d)")
_IN_DAYS_RE = re.compile(
  rf"(?<![{_HEB}])ב?עוד\s*(\d{{1,3}})\s*ימים"
  r"|(?<![a-z])in\s+(\d{1,3})\s+days?(?![a-z])"
  r"|(?<![\d])(\d{1,3})\s+days?\s+from\s+now"
)
_COLON_TIME_RE = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})(?!\d)")
_QUARTER_TO_RE = re.compile(rf"(?<![{_HEB}])רבע\s*ל|(?<![a-z])quarter\s+(?:to|of)(?![a-z])")
_ANCHORED_HOUR_RE = re.compile(rf"(?:(?<![a-z])at|(?<![{_HEB}])ב?שעה)\s*(\d{{1,2}})(?![\d:])")
_BARE_NUMBER_RE = re.compile(r"(?<![\d:])(\d{1,2})(?![\d:]|st|nd|rd|th)")
_DAY_NUMBER_RE = re.compile(r"(?<![\d:])(\d{1,2})(?:st|nd|rd|th)?(?![\d:])")

def _sorted_keys(table: dict) -> tuple[str, ...]:
  return tuple(sorted(table, key=len, reverse=True))

_WEEKDAY_KEYS = _sorted_keys(_WEEKDAYS)
_MONTH_KEYS = _sorted_keys(_MONTHS)
_HOUR_WORD_KEYS = _sorted_keys(_HOUR_WORDS)
_DAY_ORDINAL_KEYS = _sorted_keys(_DAY_ORDINALS)

_MONTH_ALT = "|".join(re.escape(k) for k in _MONTH_KEYS)
_MONTH_DAY_RE = re.compile(
  rf"(?<!\d)\d{{1,2}}(?:st|nd|rd|th)?\s*(?:of\s+)?[{_PROCLITICS}]?(?:{_MONTH_ALT})"
  rf"|(?:{_MONTH_ALT})\s*(?:the\s+)?\d{{1,2}}(?:st|nd|rd|th)?(?!\d)"
)
_HEBREW_HOUR_ALT = "|".join(
  r"\s+".join(re.escape(part) for part in k.split())
  for k in _HOUR_WORD_KEYS
  if re.match(f"[{_HEB}]", k)
)
# "באחת", "בשש", "בשתים עשרה"
_AT_HOUR_WORD_RE = re.compile(rf"(?<![{_HEB}])ב(?:{_HEBREW_HOUR_ALT})(?![{_HEB}])")

_HEBREW_HOUR_KEYS = tuple(k for k in _HOUR_WORD_KEYS if re.match(f"[{_HEB}]", k))
_ENGLISH_HOUR_ALT = "|".join(re.escape(k) for k in _HOUR_WORD_KEYS if k.isascii())
# am/pm only count right after an hour: "7pm", "10:30 a.m.", "six pm" (never the verb "am")
_MERIDIEM_RE = re.compile(
  rf"(?:\d|(?<![a-z])(?:{_ENGLISH_HOUR_ALT}))\s*([ap])\.?m(?![a-z])"
)

_EN_ORDINAL_ALT = "|".join(
  r"\s+".join(part for part in k.split())
  for k in _DAY_ORDINAL_KEYS
  if k.isascii()
)
# English month names need a day right next to them ("may" is usually a verb)
_EN_DAY_BEFORE_MONTH_RE = re.compile(
  rf"(?:(?<!\d)(\d{{1,2}})(?:st|nd|rd|th)?|(?<![a-z])({_EN_ORDINAL_ALT}))\s*(?:of\s+)?$"
)
_EN_DAY_AFTER_MONTH_RE = re.compile(
  rf"\s*(?:the\s+)?(?:(\d{{1,2}})(?:st|nd|rd|th)?(?![\d:])|({_EN_ORDINAL_ALT})(?![a-z]))"
)

@lru_cache(maxsize=1024)
def _phrase_re(phrase: str) -> re.Pattern:
  # 英文按字母边界匹配；希伯来语允许前缀字母（ב/ה/ו/ל/מ/ש/כ）
  body = r"\s+".join(re.escape(part) for part in phrase.split())
  if re.match(f"[{_HEB}]", phrase):
    return re.compile(rf"(?<![{_HEB}])(?:[{_PROCLITICS}]{{1,2}})?{body}(?![{_HEB}])")
  return re.compile(rf"(?<![a-z]){body}(?![a-z])")

def _has_phrase(text: str, phrases) -> bool:
  return any(_phrase_re(p).search(text) for p in phrases)

def _search_table(text: str, table: dict, keys: tuple[str, ...]):
  for key in keys:
    m = _phrase_re(key).search(text)
    if m:
      return table[key], m
  return None, None

def normalize_text(raw: str) -> str:
  text = (raw or "").lower()
  text = re.sub("[,\u05be]", " ", text)
  text = re.sub("[\u0591-\u05c7]", "", text)
  text = re.sub(r"\s+", " ", text)
  return text.strip()

def _start_of_day(now: datetime) -> date:
  return now.date() if isinstance(now, datetime) else now

def _next_weekday(target: int, today: date) -> date:
  current = (today.weekday() + 1) % 7
  diff = target - current
  if diff <= 0:
    diff += 7
  return today + timedelta(days=diff)

def _safe_date(year: int, month: int, day: int) -> date | None:
  try:
    return date(year, month, day)
  except ValueError:
    return None

def _roll_forward(month: int, day: int, today: date) -> date | None:
  d = _safe_date(today.year, month, day)
  if d is None:
    return None
  if d < today:
    return _safe_date(today.year + 1, month, day)
  return d

def _parse_relative_date(text: str, today: date) -> date | None:
  if _has_phrase(text, _TODAY):
    return today
  if _has_phrase(text, _DAY_AFTER_TOMORROW):
    return today + timedelta(days=2)
  if _has_phrase(text, _TOMORROW):
    return today + timedelta(days=1)
  return None

def _parse_relative_days(text: str, today: date) -> date | None:
  m = _IN_DAYS_RE.search(text)
  if not m:
    return None
  days = int(next(g for g in m.groups() if g is not None))
  return today + timedelta(days=days)

def _parse_relative_weeks(text: str, today: date) -> date | None:
  if _has_phrase(text, _TWO_WEEKS):
    return today + timedelta(days=14)
  if _has_phrase(text, _ONE_WEEK):
    return today + timedelta(days=7)
  return None

def _parse_iso_date(text: str) -> date | None:
  m = _ISO_DATE_RE.search(text)
  if not m:
    return None
  return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

def _parse_numeric_date(text: str, today: date) -> date | None:
  m = _NUMERIC_WITH_YEAR_RE.search(text)
  if m:
    day, month, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
    if year < 100:
      year += 2000
    if 1 <= day <= 31 and 1 <= month <= 12:
      d = _safe_date(year, month, day)
      if d:
        return d

  m = _NUMERIC_NO_YEAR_RE.search(text)
  if m:
    day, month = int(m.group(1)), int(m.group(2))
    if 1 <= day <= 31 and 1 <= month <= 12:
      return _roll_forward(month, day, today)
  return None

def _day_near_month(text: str, month_match: re.Match) -> int | None:
  before = re.search(r"(?<!\d)(\d{1,2})(?:st|nd|rd|th)?\s*(?:of\s*)?$", text[:month_match.start()])
  if before:
    return int(before.group(1))
  after = re.match(r"\s*(?:the\s+)?(\d{1,2})(?:st|nd|rd|th)?(?![\d:])", text[month_match.end():])
  if after:
    return int(after.group(1))
  value, _ = _search_table(text, _DAY_ORDINALS, _DAY_ORDINAL_KEYS)
  if value is not None:
    return value
  m = _DAY_NUMBER_RE.search(text)
  return int(m.group(1)) if m else None

def _adjacent_english_day(text: str, month_match: re.Match) -> int | None:
  m = _EN_DAY_BEFORE_MONTH_RE.search(text[:month_match.start()])
  if not m:
    m = _EN_DAY_AFTER_MONTH_RE.match(text[month_match.end():])
  if not m:
    return None
  number, word = m.groups()
  return int(number) if number else _DAY_ORDINALS[" ".join(word.split())]

def _find_month_day(text: str) -> tuple[int | None, int | None]:
  """
  First month name in ``text`` and the day that goes with it.

  A Hebrew month name always counts, even without a day. An English one only
  counts with a day next to it, so "we may meet" is not May.
  """
  for key in _MONTH_KEYS:
    for m in _phrase_re(key).finditer(text):
      if not key.isascii():
        return _MONTHS[key], _day_near_month(text, m)
      day = _adjacent_english_day(text, m)
      if day is not None:
        return _MONTHS[key], day
  return None, None

def resolve_date_from_text(text: str, now: datetime | None = None) -> date | None:
  """
  Resolve a calendar date from a free-text utterance.

  Rules are tried in a fixed order and the first hit wins:
  relative words, "in N days", weeks, ISO date, D/M/Y, D/M,
  month name + day, weekday name. Weekday names are skipped whenever a month
  name is present so that "the first of January" is never read as Sunday.
  English month names only count with a day beside them.
  """
  now = now or local_now()
  today = _start_of_day(now)
  clean = normalize_text(text)
  if not clean:
    return None

  for parser in (_parse_relative_date, _parse_relative_days, _parse_relative_weeks):
    d = parser(clean, today)
    if d:
      return d

  d = _parse_iso_date(clean)
  if d:
    return d

  d = _parse_numeric_date(clean, today)
  if d:
    return d

  month, day = _find_month_day(clean)
  if month is not None:
    if day and 1 <= day <= 31:
      d = _roll_forward(month, day, today)
      if d:
        return d
    return None

  weekday, _ = _search_table(clean, _WEEKDAYS, _WEEKDAY_KEYS)
  if weekday is not None:
    return _next_weekday(weekday, today)
  return None

def _has_time_clues(text: str) -> bool:
  if ":" in text:
    return True
  if _has_phrase(text, _TIME_CLUES):
    return True
  if _QUARTER_TO_RE.search(text) or _MERIDIEM_RE.search(text):
    return True
  return bool(_AT_HOUR_WORD_RE.search(text))

def _scrub_date_expressions(text: str) -> str:
  # "in two weeks", "in 3 days", "5 march" must not leave hour candidates behind
  for pattern in (_ISO_DATE_RE, _NUMERIC_DATE_RE, _IN_DAYS_RE, _MONTH_DAY_RE):
    text = pattern.sub(" ", text)
  for phrase in _TWO_WEEKS + _ONE_WEEK:
    text = _phrase_re(phrase).sub(" ", text)
  return text

def _meridiem(text: str) -> str | None:
  m = _MERIDIEM_RE.search(text)
  return m.group(1) if m else None

def apply_meridiem(hour: int, text: str) -> int:
  marker = _meridiem(text)
  if hour < 12 and (marker == "p" or _has_phrase(text, _AFTERNOON)):
    return hour + 12
  if hour == 12 and (marker == "a" or _has_phrase(text, _MORNING)):
    return 0
  return hour

def resolve_time_from_text(text: str) -> TimeResult:
  """Resolve an hour and minute from free text; confidence 0 means no time was found."""
  lower = normalize_text(text)
  if not lower:
    return TimeResult()

  has_clues = _has_time_clues(lower)
  # 只有日期没有时间线索时，不把日期里的数字当作小时
  if _NUMERIC_DATE_RE.search(lower) and not has_clues:
    return TimeResult()

  hour: int | None = None
  minute = 0
  confidence = 0.0

  for m in _COLON_TIME_RE.finditer(lower):
    h, mi = int(m.group(1)), int(m.group(2))
    if h <= 23 and mi <= 59:
      hour, minute, confidence = h, mi, 0.95
      break

  scrubbed = _scrub_date_expressions(lower)
  if hour is None and has_clues:
    m = _ANCHORED_HOUR_RE.search(scrubbed) or _BARE_NUMBER_RE.search(scrubbed)
    if m and int(m.group(1)) <= 23:
      hour, confidence = int(m.group(1)), 0.9

  if hour is None:
    # English number words are everyday words ("one of them"); they need a time clue
    keys = _HOUR_WORD_KEYS if has_clues else _HEBREW_HOUR_KEYS
    value, _ = _search_table(scrubbed, _HOUR_WORDS, keys)
    if value is not None:
      hour, confidence = value, 0.9

  if hour is None:
    return TimeResult()

  if _has_phrase(lower, _HALF):
    minute = 30
  elif _has_phrase(lower, _QUARTER_PAST):
    minute = 15
  elif _QUARTER_TO_RE.search(lower):
    hour = (hour + 23) % 24
    minute = 45

  hour = apply_meridiem(hour, lower)
  return TimeResult(hour=hour, minute=minute, confidence=confidence)

def parse_iso(value: str | None) -> datetime | None:
  if not value or not isinstance(value, str):
    return None
  raw = value.strip()
  if raw.endswith("Z"):
    raw = raw[:-1] + "+00:00"
  try:
    return datetime.fromisoformat(raw)
  except ValueError:
    return None

def format_local_iso(dt: datetime) -> str:
  return dt.strftime("%Y-%m-%dT%H:%M:%S")

def build_date_time(d: date, t: TimeResult | TimeOfDay | None) -> str | None:
  if d is None or t is None or getattr(t, "hour", None) is None:
    return None
  try:
    combined = datetime.combine(d, time(hour=t.hour, minute=t.minute or 0))
  except ValueError:
    return None
  return format_local_iso(combined)

def add_minutes_iso(iso: str, minutes: int) -> str:
  dt = parse_iso(iso)
  if dt is None:
    return iso
  return format_local_iso(dt + timedelta(minutes=minutes))

def resolve_date_time_from_text(text: str, now: datetime | None = None) -> tuple[date | None, TimeResult, str | None]:
  d = resolve_date_from_text(text, now)
  t = resolve_time_from_text(text)
  if d is None:
    return d, t, None
  return d, t, build_date_time(d, t)

if __name__ == "__main__":
  now = datetime(2026, 1, 21, 12, 0, 0)
  date_cases = [
    "מחר",
    "מחרתיים",
    "בעוד 3 ימים",
    "1.2",
    "15/3",
    "הראשון לינואר",
    "ביום ראשון",
    "next sunday",
  ]
  for text in date_cases:
    print("原始文本:", text)
    print("  日期:", resolve_date_from_text(text, now))
    print("-" * 40)

  time_cases = [
    "שש בערב",
    "12 בצהריים",
    "8:30",
    "רבע לשש בערב",
    "six in the evening",
    "three and a half",
    "1.2",
  ]
  for text in time_cases:
    print("原始文本:", text)
    print("  时间:", resolve_time_from_text(text))
    print("-" * 40)
