"""Scraper for UK voting intention polls from Wikipedia.

The polling page is edited by hand and its layout drifts, so extraction is
deliberately conservative:

- Only tables under the current year's sub-heading of the "National poll
  results" section are considered. If that heading is missing, nothing is
  scraped.
- Column roles come from fuzzy header matching (see ``COLUMN_RULES``). A
  table missing any required role is skipped outright.
- Cells that do not parse become None. A blank party cell is never zero.
"""

import logging
import re
from datetime import date, timedelta
from typing import Callable, Optional

import requests
from bs4 import BeautifulSoup, Tag

from .config import REQUEST_TIMEOUT, USER_AGENT, Settings
from .errors import FetchError
from .models import NormalizedPoll, ScrapeResult

logger = logging.getLogger(__name__)

SECTION_HEADING = re.compile(
    r"(?<![\w-])national\s+poll\s+results", re.IGNORECASE
)
HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")

FOOTNOTE = re.compile(r"\[[^\]]*\]")
NUMBER = re.compile(r"\d+(?:\.\d+)?")
ISO_DATE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
DAY_MONTH = re.compile(
    r"(\d{1,2})(?:\s*[–—\-−]\s*\d{1,2})?\s+([A-Za-z]+)\.?(?:\s+(\d{4}|\d{2})\b)?"
)
FOUR_DIGIT_YEAR = re.compile(r"\b((?:19|20)\d{2})\b")

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
    "january": 1, "february": 2, "march": 3, "april": 4,
    "june": 6, "july": 7, "august": 8, "september": 9,
    "october": 10, "november": 11, "december": 12,
}

# A date with no year that lands further ahead than this is last year's
FUTURE_TOLERANCE = timedelta(days=7)

PARTY_FIELDS = (
    "labour", "conservative", "reform", "libdem",
    "green", "snp", "pc", "others",
)

REQUIRED_ROLES = frozenset({
    "date", "pollster", "sample_size",
    "labour", "conservative", "reform", "libdem", "green",
})


def _has(*needles: str) -> Callable[[str], bool]:
    return lambda header: any(n in header for n in needles)


def _word(*tokens: str) -> Callable[[str], bool]:
    pattern = re.compile(r"\b(?:%s)\b" % "|".join(map(re.escape, tokens)))
    return lambda header: pattern.search(header) is not None


# Evaluated top to bottom against normalized header text; first match wins.
# "date" must come before "con" ("dates conducted") and "ld" ("fieldwork").
# Add new header variants here rather than reordering existing rules.
COLUMN_RULES: list[tuple[Callable[[str], bool], str]] = [
    (_has("date", "fieldwork"), "date"),
    (_has("pollster", "polling"), "pollster"),
    (_has("sample"), "sample_size"),
    (_has("lab", "labour"), "labour"),
    (_has("con", "conservative"), "conservative"),
    (_has("lib"), "libdem"),
    (_word("ld"), "libdem"),
    (_has("reform", "ref"), "reform"),
    (_has("green", "grn"), "green"),
    (_has("snp"), "snp"),
    (_word("pc"), "pc"),
    (_has("plaid"), "pc"),
    (_has("other"), "others"),
    (_has("area"), "area"),
]


# ── Fetching ───────────────────────────────────────────────────────────


def fetch_document(url: str, session=None) -> str:
    """GET *url* and return its body; any failure raises FetchError."""
    http = session if session is not None else requests
    logger.info("Fetching polling data from %s", url)
    try:
        resp = http.get(
            url, headers={"User-Agent": USER_AGENT}, timeout=REQUEST_TIMEOUT
        )
    except requests.RequestException as exc:
        raise FetchError(url, reason=str(exc)) from exc
    if not 200 <= resp.status_code < 300:
        raise FetchError(url, resp.status_code, resp.reason or "")
    return resp.text


# ── Cell parsing ───────────────────────────────────────────────────────


def _clean_text(text: str) -> str:
    """Strip footnote markers like "[12]" and collapse whitespace."""
    return " ".join(FOOTNOTE.sub("", text).split())


def _normalize_header(text: str) -> str:
    return _clean_text(text).lower()


def _cell_text(cell: Optional[Tag]) -> str:
    if cell is None:
        return ""
    return _clean_text(cell.get_text(" ", strip=True))


def _parse_percentage(text: str) -> Optional[float]:
    """Parse a party cell. Anything that is not a plain number is None."""
    text = _clean_text(text).rstrip("%").strip()
    if not NUMBER.fullmatch(text):
        return None
    value = float(text)
    return value if value <= 100 else None


def _parse_sample_size(text: str) -> Optional[int]:
    """Keep only the digits, so "2,089" and "2 089" both give 2089."""
    digits = re.sub(r"\D", "", _clean_text(text))
    if not digits or int(digits) == 0:
        return None
    return int(digits)


def _parse_date_text(text: str, today: date) -> Optional[date]:
    """Parse the first day of a fieldwork date from visible text.

    Handles formats like:
    - "12–14 March 2026"  (first day taken)
    - "28 Feb – 2 Mar 2026"
    - "3 Feb 26"
    - "3 Feb"  (year inferred from *today*)
    """
    text = _clean_text(text)
    if not text:
        return None

    iso = ISO_DATE.search(text)
    if iso:
        try:
            return date(*map(int, iso.groups()))
        except ValueError:
            return None

    match = DAY_MONTH.search(text)
    if not match:
        return None
    day = int(match.group(1))
    month = MONTHS.get(match.group(2).lower())
    if month is None:
        return None

    year_text = match.group(3)
    if year_text is None:
        later_year = FOUR_DIGIT_YEAR.search(text, match.end())
        year_text = later_year.group(1) if later_year else None

    if year_text is not None:
        year = int(year_text)
        if year < 100:
            year += 2000
        try:
            return date(year, month, day)
        except ValueError:
            return None

    try:
        guess = date(today.year, month, day)
    except ValueError:
        return None
    if guess - today > FUTURE_TOLERANCE:
        try:
            guess = date(today.year - 1, month, day)
        except ValueError:
            return None
    return guess


def _parse_poll_date(cell: Optional[Tag], today: date) -> Optional[date]:
    """Prefer a sortable date attribute over the visible text."""
    if cell is None:
        return None
    sortable = cell if cell.has_attr("data-sort-value") else cell.find(
        attrs={"data-sort-value": True}
    )
    if sortable is not None:
        match = ISO_DATE.search(str(sortable["data-sort-value"]))
        if match:
            try:
                return date(*map(int, match.groups()))
            except ValueError:
                pass
    return _parse_date_text(cell.get_text(" ", strip=True), today)


# ── Table location and layout ──────────────────────────────────────────


def _heading_level(tag: Tag) -> int:
    return int(tag.name[1])


def find_candidate_tables(soup: BeautifulSoup, year: int) -> list[Tag]:
    """Return the wikitables under "National poll results" → *year*."""
    year_pattern = re.compile(r"\b%d\b" % year)
    section_level = None
    year_level = None
    tables: list[Tag] = []

    for el in soup.find_all(HEADING_TAGS + ("table",)):
        if el.name in HEADING_TAGS:
            level = _heading_level(el)
            text = el.get_text(" ", strip=True)
            if section_level is None:
                if SECTION_HEADING.search(text):
                    section_level = level
                continue
            if level <= section_level:
                break
            if year_level is not None and level <= year_level:
                year_level = None
            if year_level is None and year_pattern.search(text):
                year_level = level
            continue

        if year_level is None:
            continue
        if "wikitable" not in (el.get("class") or []):
            continue
        if el.find_parent("table") is not None:
            continue
        tables.append(el)

    if section_level is None:
        logger.warning("No 'National poll results' heading found")
    elif not tables:
        logger.warning("No %d poll tables found under national results", year)
    return tables


def _span(cell: Tag, attr: str) -> int:
    digits = re.match(r"\d+", str(cell.get(attr, "1")))
    return max(1, int(digits.group())) if digits else 1


def _expand_rowspans(table: Tag) -> list[list[Optional[Tag]]]:
    """Expand rowspan/colspan so each row has one cell per column."""
    rows = table.find_all("tr")
    if not rows:
        return []

    max_cols = 0
    for row in rows:
        cols_in_row = sum(
            _span(cell, "colspan") for cell in row.find_all(["th", "td"])
        )
        max_cols = max(max_cols, cols_in_row)

    grid: list[list[Optional[Tag]]] = [
        [None] * max_cols for _ in range(len(rows))
    ]
    filled = [[False] * max_cols for _ in range(len(rows))]

    for row_idx, row in enumerate(rows):
        col_idx = 0
        for cell in row.find_all(["th", "td"]):
            while col_idx < max_cols and filled[row_idx][col_idx]:
                col_idx += 1
            if col_idx >= max_cols:
                break

            rowspan = _span(cell, "rowspan")
            colspan = _span(cell, "colspan")
            for dr in range(rowspan):
                for dc in range(colspan):
                    r, c = row_idx + dr, col_idx + dc
                    if r < len(grid) and c < max_cols:
                        grid[r][c] = cell
                        filled[r][c] = True

            col_idx += colspan

    return grid


def identify_columns(header_cells: list[str]) -> dict[str, int]:
    """Map roles to column indices from header text.

    Each header is matched against ``COLUMN_RULES`` in order. When two
    columns claim the same role, the leftmost one is kept.
    """
    roles: dict[str, int] = {}
    for i, header in enumerate(header_cells):
        h = _normalize_header(header)
        if not h:
            continue
        for predicate, role in COLUMN_RULES:
            if predicate(h):
                roles.setdefault(role, i)
                break
    return roles


def _find_header(grid: list[list[Optional[Tag]]]) -> Optional[tuple[int, dict]]:
    for i in range(min(4, len(grid))):
        roles = identify_columns([_cell_text(c) for c in grid[i]])
        if REQUIRED_ROLES <= roles.keys():
            return i, roles
    return None


# ── Extraction ─────────────────────────────────────────────────────────


def _subtract_months(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    for candidate_day in (day.day, 30, 29, 28):
        try:
            return date(year, month, min(day.day, candidate_day))
        except ValueError:
            continue
    raise ValueError(f"cannot subtract {months} months from {day}")


def _dedupe_key(poll: NormalizedPoll) -> str:
    fields = [
        poll.poll_date.isoformat(),
        poll.pollster,
        poll.sample_size,
        poll.area,
    ] + [getattr(poll, key) for key in PARTY_FIELDS]
    return "|".join("" if f is None else str(f) for f in fields)


def _extract_row(
    row: list[Optional[Tag]], roles: dict[str, int], today: date
) -> Optional[NormalizedPoll]:
    def cell(role: str) -> Optional[Tag]:
        idx = roles.get(role)
        return row[idx] if idx is not None and idx < len(row) else None

    pollster = _cell_text(cell("pollster"))
    if not pollster:
        return None
    poll_date = _parse_poll_date(cell("date"), today)
    if poll_date is None:
        return None

    party_values = {
        key: _parse_percentage(_cell_text(cell(key))) if key in roles else None
        for key in PARTY_FIELDS
    }
    if all(v is None for v in party_values.values()):
        return None

    area = _cell_text(cell("area")) if "area" in roles else ""
    return NormalizedPoll(
        poll_date=poll_date,
        pollster=pollster,
        sample_size=_parse_sample_size(_cell_text(cell("sample_size"))),
        area=area or None,
        **party_values,
    )


def extract_polls(
    html: str, lookback_months: int, today: Optional[date] = None
) -> list[NormalizedPoll]:
    """Extract deduplicated recent polls from the polling page HTML."""
    today = today or date.today()
    cutoff = _subtract_months(today, lookback_months)
    soup = BeautifulSoup(html, "lxml")

    polls: list[NormalizedPoll] = []
    seen: set[str] = set()

    for table_no, table in enumerate(find_candidate_tables(soup, today.year)):
        grid = _expand_rowspans(table)
        header = _find_header(grid)
        if header is None:
            logger.info("Skipping table %d: required columns missing", table_no)
            continue
        header_idx, roles = header
        logger.debug("Table %d header row %d: %s", table_no, header_idx, roles)

        kept = 0
        for row in grid[header_idx + 1:]:
            poll = _extract_row(row, roles, today)
            if poll is None:
                continue
            if poll.poll_date < cutoff or poll.poll_date.year < today.year:
                continue
            key = _dedupe_key(poll)
            if key in seen:
                continue
            seen.add(key)
            polls.append(poll)
            kept += 1
        logger.info("Table %d: kept %d polls", table_no, kept)

    return polls


def scrape_polls(
    lookback_months: Optional[int] = None,
    *,
    settings: Optional[Settings] = None,
    session=None,
    today: Optional[date] = None,
) -> ScrapeResult:
    """Fetch the polling page and return polls from the lookback window.

    Raises FetchError if the page cannot be retrieved. Nothing is retried
    here; scheduling and retry policy belong to the caller.
    """
    settings = settings or Settings()
    months = lookback_months or settings.lookback_months
    html = fetch_document(settings.source_url, session)
    polls = extract_polls(html, months, today)
    logger.info(
        "Scraped %d polls from the last %d months", len(polls), months
    )
    return ScrapeResult(source_url=settings.source_url, polls=polls)
