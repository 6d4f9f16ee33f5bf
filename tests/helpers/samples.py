"""Sample bank exports shared by tests."""

from __future__ import annotations

import textwrap


def dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


# Semicolon-delimited European bank export, unsigned amounts with a
# Debit/credit column. One billing period (23 Jan - 22 Feb 2024).
BANK_CSV = dedent(
    """
    "Date";"Name / Description";"Account";"Counterparty";"Code";"Debit/credit";"Amount (EUR)";"Transaction type";"Notifications";"Resulting balance";"Tag"
    "20240123";"Albert Heijn 1234";"NL01INGB0001234567";"";"BA";"Debit";"23,45";"Payment terminal";"";"1000,00";""
    "20240125";"Salary ACME BV";"NL01INGB0001234567";"NL99ABNA0123456789";"GT";"Credit";"2500,00";"Online banking";"";"3476,55";""
    "20240201";"Transfer to savings bunq";"NL01INGB0001234567";"NL88BUNQ0987654321";"GT";"Debit";"500,00";"Online banking";"";"2976,55";""
    "20240205";"DEGIRO deposit";"NL01INGB0001234567";"NL77FLTX0000000001";"GT";"Debit";"300,00";"Online banking";"";"2676,55";""
    "20240210";"DEGIRO trading fee";"NL01INGB0001234567";"";"GT";"Debit";"2,00";"Online banking";"";"2674,55";""
    """
)

# Comma-delimited export with signed amounts and dd/mm/yyyy dates spanning two
# billing periods.
SIMPLE_CSV = dedent(
    """
    Date,Description,Amount,Counterparty,Tag
    15/01/2024,Rent January,-900.00,Landlord,#Housing
    20/01/2024,Salary,"2.000,00",Employer,
    25/01/2024,Salary,"2.100,00",Employer,
    28/01/2024,Groceries,-45.10,Jumbo,
    """
)

# Bank-API style JSON with nested objects and source ids.
BANK_JSON = textwrap.dedent(
    """
    [
      {
        "id": "bank-1",
        "executionDate": "2024-03-01T10:00:00",
        "amount": {"value": "-12.50", "currency": "EUR"},
        "subject": "Coffee Corner",
        "category": {"description": "Restaurants & bars"},
        "subCategory": {"description": "Coffee bars"},
        "type": {"description": "Card payment"}
      },
      {
        "id": "bank-2",
        "executionDate": "2024-03-02",
        "amount": {"value": "-250.00", "currency": "EUR"},
        "counterAccount": {"name": "Flatex Bank AG"},
        "category": {"description": "To your accounts"},
        "subCategory": {"description": "Investment account"}
      }
    ]
    """
)
