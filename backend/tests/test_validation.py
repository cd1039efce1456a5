"""
Input coercion tests.

Verifies:
- Integral floats from JSON clients are accepted as ints
- Anything that would lose precision is rejected
"""

import pytest

from isms.validation import ValidationError, coerce_int


class TestCoerceInt:

    @pytest.mark.parametrize(
        "value,expected",
        [(20000, 20000), ("20000", 20000), (" -5 ", -5), (20000.0, 20000)],
    )
    def test_accepted(self, value, expected):
        assert coerce_int(value, "amount_cents") == expected

    @pytest.mark.parametrize("value", [True, 12.5, "12.5", "1e3", "", None, [1]])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            coerce_int(value, "amount_cents")
