"""Spreadsheet safety for exported transaction text.

Merchant names, category paths and account ids in an export come straight
from bank feeds. A spreadsheet opening the CSV evaluates any of them that
looks like a formula, so text cells get a leading apostrophe when they start
with a trigger character. Dates and amounts are formatted by the exporter and
never pass through here, so "-4.50" stays a number.
"""

# Leading characters a spreadsheet reads as a formula or a DDE call
FORMULA_TRIGGERS = frozenset("=+-@|\t\r\n")


def guard_text_cell(text: str) -> str:
    """Return text safe to place in a CSV text column."""
    if text and text[0] in FORMULA_TRIGGERS:
        return "'" + text
    return text
