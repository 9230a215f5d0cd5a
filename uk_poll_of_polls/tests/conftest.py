"""Shared fixtures: a trimmed copy of the polling page and a fake session."""

from datetime import date

import pytest
import requests

TODAY = date(2026, 3, 20)

HEADER = (
    "<tr><th>Dates conducted</th><th>Pollster</th><th>Client</th>"
    "<th>Area</th><th>Sample size</th><th>Lab</th><th>Con</th><th>Ref</th>"
    "<th>LD</th><th>Grn</th><th>SNP</th><th>PC</th><th>Others</th>"
    "<th>Lead</th></tr>"
)


def poll_row(date_cell, pollster, sample, values, area="GB", client="—"):
    """Render one poll row; *values* are the eight party cells in order."""
    cells = [date_cell, f"<td>{pollster}</td>", f"<td>{client}</td>",
             f"<td>{area}</td>", f"<td>{sample}</td>"]
    cells += [f"<td>{v}</td>" for v in values]
    cells.append("<td>8</td>")
    return "<tr>" + "".join(cells) + "</tr>"


def td(text):
    return f"<td>{text}</td>"


ROWS_2026 = [
    poll_row(
        '<td data-sort-value="2026-03-16">16–18 Mar</td>',
        "YouGov[3]", "2,089", [20, 17, 28, 14, 11, 3, 1, 6],
        client="The Times",
    ),
    poll_row(
        td("12–14 Mar 2026"), "Opinium", "1,500",
        ["21%", "18%", "27%", "13%", "10%", "–", "–", "11"],
    ),
    # Exact duplicate of the Opinium row
    poll_row(
        td("12–14 Mar 2026"), "Opinium", "1,500",
        ["21%", "18%", "27%", "13%", "10%", "–", "–", "11"],
    ),
    # Same figures, different sample size
    poll_row(
        td("12–14 Mar 2026"), "Opinium", "1,501",
        ["21%", "18%", "27%", "13%", "10%", "–", "–", "11"],
    ),
    # Older than the two-month window
    poll_row(td("5 Jan 2026"), "Survation", "1,000",
             [22, 19, 26, 12, 10, 3, 1, 7]),
    # No usable party figures
    poll_row(td("10 Mar 2026"), "Find Out Now", "2,000",
             ["–", "–", "–", "–", "–", "–", "–", "–"]),
    '<tr><td colspan="14">2026 local elections</td></tr>',
]

NO_SAMPLE_TABLE = (
    '<table class="wikitable">'
    "<tr><th>Date</th><th>Pollster</th><th>Lab</th><th>Con</th>"
    "<th>Ref</th><th>LD</th><th>Grn</th></tr>"
    "<tr><td>15 Mar 2026</td><td>Deltapoll</td><td>20</td><td>18</td>"
    "<td>29</td><td>13</td><td>10</td></tr>"
    "</table>"
)

POLLING_PAGE = f"""
<html><body>
<div class="mw-heading mw-heading1"><h1>Opinion polling for the next
United Kingdom general election</h1></div>
<div class="mw-heading mw-heading2"><h2 id="Graphical">Graphical
summary</h2></div>
<table class="wikitable">{HEADER}
{poll_row(td("17 Mar 2026"), "Verian", "1,200", [30, 30, 30, 5, 5, 0, 0, 0])}
</table>
<div class="mw-heading mw-heading2"><h2 id="National">National poll
results</h2></div>
<div class="mw-heading mw-heading3"><h3 id="2026">2026</h3></div>
<table class="wikitable">{HEADER}
{"".join(ROWS_2026)}
</table>
{NO_SAMPLE_TABLE}
<div class="mw-heading mw-heading3"><h3 id="2025">2025</h3></div>
<table class="wikitable">{HEADER}
{poll_row(td("15 Mar 2026"), "BMG Research", "1,500",
          [25, 20, 25, 12, 9, 3, 1, 5])}
</table>
<div class="mw-heading mw-heading2"><h2 id="Sub">Sub-national poll
results</h2></div>
<div class="mw-heading mw-heading3"><h3>2026</h3></div>
<table class="wikitable">{HEADER}
{poll_row(td("14 Mar 2026"), "Norstat", "1,000",
          [30, 15, 20, 10, 8, 10, 0, 7], area="Scotland")}
</table>
</body></html>
"""


class FakeResponse:
    def __init__(self, text="", status_code=200, reason="OK"):
        self.text = text
        self.status_code = status_code
        self.reason = reason


class FakeSession:
    """Stands in for requests.Session; records the URLs requested."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requested = []

    def get(self, url, headers=None, timeout=None):
        self.requested.append(url)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def polling_page():
    return POLLING_PAGE


@pytest.fixture
def ok_session():
    return FakeSession(FakeResponse(POLLING_PAGE))


@pytest.fixture
def failing_session():
    return FakeSession(FakeResponse("", status_code=503, reason="Service Unavailable"))


@pytest.fixture
def broken_session():
    return FakeSession(error=requests.ConnectionError("connection refused"))
