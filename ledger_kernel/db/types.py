"""
Module: ledger_kernel.db.types
Responsibility: Annotated column aliases so every model declares money,
    codes and text with identical SQL types.
Architecture position: Kernel > DB.  Imported by models only.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# Two fixed decimal places; 18 integer digits.
Money = Annotated[Decimal, Numeric(20, 2)]

# Per-tenant monotonic ordering value
Sequence = Annotated[int, BigInteger]

# Account codes, entry numbers, enum values
ShortCode = Annotated[str, String(50)]

# Descriptions and notes
LongText = Annotated[str, String(2000)]
