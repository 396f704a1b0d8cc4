"""Shared schema types."""

from decimal import Decimal
from typing import Annotated

from pydantic import PlainSerializer

# Decimals travel as JSON numbers, the same way jsonable_encoder renders them
JsonDecimal = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
